from datetime import timedelta

import pytest
from django.utils import timezone

from src.apps.certificates.models import Certificate, KeyStrategy
from src.integrations.cert_inspector import NativeCertificateParser
from src.integrations.step_ca import StepCAClient, StepCAConfig
from tests.factories import FakeStepClient, FakeStepProcess, LocalCA


class RecordingLogger:
    """Captures structlog calls as (level, event, fields)."""

    def __init__(self):
        self.events: list[tuple[str, str, dict]] = []

    def __getattr__(self, level):
        def log(event, **fields):
            self.events.append((level, event, fields))
        return log

    def names(self, level: str | None = None) -> list[str]:
        return [event for lvl, event, _ in self.events if level is None or lvl == level]


@pytest.fixture(scope="session")
def ca():
    return LocalCA()


@pytest.fixture
def fake_client(ca):
    return FakeStepClient(ca)


@pytest.fixture
def step_process(ca, monkeypatch):
    fake = FakeStepProcess(ca)
    monkeypatch.setattr("src.integrations.step_ca.subprocess.run", fake)
    return fake


@pytest.fixture
def step_config():
    return StepCAConfig(
        ca_url="https://ca.example.internal:9000",
        provisioner_name="ui-admin",
        provisioner_password_file="/run/secrets/provisioner-password",
        step_bin="/usr/bin/step",
        timeout=5,
    )


@pytest.fixture
def step_client(step_config, step_process):
    return StepCAClient(step_config, parser=NativeCertificateParser())


@pytest.fixture
def make_certificate(db):
    def _make(**overrides):
        fields = {
            "cn": "app.example.com",
            "sans": ["app.example.com"],
            "serial": "0A1B2C",
            "not_after": timezone.now() + timedelta(days=30),
            "key_strategy": KeyStrategy.SERVER,
        }
        fields.update(overrides)
        return Certificate.objects.create(**fields)

    return _make


@pytest.fixture
def recording_logger():
    return RecordingLogger()
