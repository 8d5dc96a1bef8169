import pydantic
import pytest

from src.config.env import AppSettings
from src.config.others.logging_conf import REDACTED, redact_secrets


def test_defaults_match_deployment_layout():
    app_settings = AppSettings(_env_file=None)

    assert app_settings.DB_PATH == "./data/certs.db"
    assert app_settings.PROVISIONER_NAME == "ui-admin"
    assert app_settings.CERT_PARSER == "openssl"
    assert app_settings.RENEWAL_VALIDITY_DAYS == 90


@pytest.mark.parametrize(
    ("django_env", "module"),
    [
        ("production", "src.config.django.prod"),
        ("test", "src.config.django.test"),
        ("development", "src.config.django.base"),
    ],
)
def test_settings_module_follows_environment(django_env, module):
    assert AppSettings(_env_file=None, DJANGO_ENV=django_env).settings_module == module


@pytest.mark.parametrize(
    "overrides",
    [
        {"DJANGO_ENV": "staging"},
        {"CERT_PARSER": "gnutls"},
        {"CA_COMMAND_TIMEOUT": 0},
        {"RENEWAL_VALIDITY_DAYS": -1},
        {"LOG_LEVEL": "chatty"},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(pydantic.ValidationError):
        AppSettings(_env_file=None, **overrides)


def test_log_level_is_normalised():
    assert AppSettings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


def test_secret_fields_are_masked():
    event = redact_secrets(None, "info", {"event": "pfx_built", "pfx_password": "s3cret", "cn": "a"})

    assert event == {"event": "pfx_built", "pfx_password": REDACTED, "cn": "a"}


@pytest.mark.parametrize(("command_timeout", "worker_timeout"), [(10, 120), (60, 270), (120, 510)])
def test_worker_outlives_every_external_call(command_timeout, worker_timeout):
    app_settings = AppSettings(_env_file=None, CA_COMMAND_TIMEOUT=command_timeout)

    assert app_settings.worker_timeout == worker_timeout
    assert app_settings.worker_timeout > command_timeout * 4


def test_command_logging_is_off(settings):
    assert settings.DJANGO_STRUCTLOG_COMMAND_LOGGING_ENABLED is False
