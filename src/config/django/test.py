"""
Test settings.

Optimized for speed. Uses in-memory SQLite and points the CA tooling at
binaries that must never be reached; tests fake the subprocess seam.
"""

from src.config.django.base import *  # noqa: F401, F403

# ── Speed ───────────────────────────────────────────────────────────────

DEBUG = False
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# ── Database (SQLite for fast test runs) ────────────────────────────────

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    },
}

# ── CA tooling ──────────────────────────────────────────────────────────

CA_URL = "https://ca.test.internal:9000"
CA_ROOT = ""
PROVISIONER_NAME = "test-admin"
PROVISIONER_PASSWORD_FILE = "/run/secrets/test-provisioner-password"
STEP_BIN = "step-not-installed"
OPENSSL_BIN = "openssl-not-installed"
CA_COMMAND_TIMEOUT = 5
CERT_PARSER = "openssl"
RENEWAL_VALIDITY_DAYS = 90
OWNER_USER = "system"
