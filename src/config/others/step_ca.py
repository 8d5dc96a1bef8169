"""
step-ca integration settings.

Read by src.integrations.step_ca.StepCAConfig.from_settings() and by the
certificate services. Values come straight from the env singleton.
"""

from src.config.env import env

CA_URL = env.CA_URL
CA_ROOT = env.CA_ROOT
PROVISIONER_NAME = env.PROVISIONER_NAME
PROVISIONER_PASSWORD_FILE = env.PROVISIONER_PASSWORD_FILE

STEP_BIN = env.STEP_BIN
OPENSSL_BIN = env.OPENSSL_BIN
CA_COMMAND_TIMEOUT = env.CA_COMMAND_TIMEOUT

CERT_PARSER = env.CERT_PARSER

RENEWAL_VALIDITY_DAYS = env.RENEWAL_VALIDITY_DAYS
OWNER_USER = env.OWNER_USER
