"""
Gunicorn configuration for the certificate console.

Worker count and bind address come from pydantic_settings env.
structlog renders application logs; gunicorn writes its own to stderr.

Each external call (step, openssl) may block for up to CA_COMMAND_TIMEOUT
seconds and a pfx issue runs four of them, so the worker timeout is
derived from it; see env.worker_timeout.
"""

import multiprocessing

from src.config.env import env

bind = env.GUNICORN_BIND  # "0.0.0.0:8080"

workers = env.GUNICORN_WORKERS or (multiprocessing.cpu_count() * 2 + 1)
worker_class = "sync"
worker_tmp_dir = "/dev/shm"

timeout = env.worker_timeout
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = "info"

proc_name = "stepca-console"

# CSR bodies are small; keep header limits tight
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190
