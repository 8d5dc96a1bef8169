"""
Logging configuration with structlog + django-structlog.

Development: colored, human-readable console output.
Production:  JSON lines, one object per event.
Test:        console output without ANSI colors.

Event fields named like secrets (passwords, private keys) are masked
before rendering. CA command output is logged verbatim on failure, so
nothing sensitive may ever be passed to `step` on its command line.
"""

import structlog

from src.config.env import env

REDACTED = "***"
SECRET_FIELDS = frozenset({"password", "pfx_password", "key_pem", "private_key", "secret"})


def redact_secrets(logger, method_name, event_dict):
    """Mask secret-looking fields wherever an event carries them."""
    for field in SECRET_FIELDS.intersection(event_dict):
        event_dict[field] = REDACTED
    return event_dict


shared_processors: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    redact_secrets,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]

if env.is_production:
    renderer = structlog.processors.JSONRenderer()
else:
    renderer = structlog.dev.ConsoleRenderer(colors=env.is_development)

structlog.configure(
    processors=[
        *shared_processors,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


def _logger(level: str) -> dict:
    return {"handlers": ["console"], "level": level, "propagate": False}


# ── Django LOGGING dict ─────────────────────────────────────────────────
# stdlib records (Django, gunicorn) share the structlog renderer.

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "structlog": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processors": [
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "structlog",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": _logger("INFO"),
        "django.db.backends": _logger("WARNING"),
        "django.request": _logger("INFO"),
        "django_structlog": _logger("INFO"),
        "gunicorn.error": _logger("INFO"),
        # Certificate workflows and step/openssl invocations
        "src": _logger(env.LOG_LEVEL),
    },
}

# ── django-structlog ────────────────────────────────────────────────────
# request_id on every event logged while serving a request. Command
# logging needs django-extensions, which this project does not install.

DJANGO_STRUCTLOG_COMMAND_LOGGING_ENABLED = False
