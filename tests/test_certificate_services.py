import io
import zipfile
from datetime import timedelta

import pytest
from cryptography import x509
from django.utils import timezone

from src.apps.audits.models import AuditAction, AuditEvent
from src.apps.certificates import services
from src.apps.certificates.models import Certificate, CertificateStatus, KeyStrategy
from src.common.exceptions import (
    AssembleError,
    CAError,
    NotFoundError,
    ParseError,
    StoreError,
    ValidationError,
)
from src.integrations.cert_inspector import format_serial
from tests.factories import build_csr

pytestmark = pytest.mark.django_db


def audit_actions(cert) -> list[str]:
    return list(
        AuditEvent.objects.filter(cert_id=str(cert.id))
        .order_by("id")
        .values_list("action", flat=True)
    )


# ── issue ───────────────────────────────────────────────────────────────


def test_issue_records_parsed_identity(fake_client):
    result = services.issue_certificate(
        cn="app.example.com",
        sans=["app.example.com", "www.example.com"],
        validity_days=30,
        client=fake_client,
    )

    cert = Certificate.objects.get(id=result.certificate.id)
    leaf = x509.load_pem_x509_certificate(
        zipfile.ZipFile(io.BytesIO(result.archive)).read("cert.pem")
    )
    assert cert.not_after == leaf.not_valid_after_utc
    assert cert.serial == format_serial(leaf.serial_number)
    assert cert.cn == "app.example.com"
    assert cert.sans == ["app.example.com", "www.example.com"]
    assert cert.status == CertificateStatus.ACTIVE
    assert cert.key_strategy == KeyStrategy.SERVER
    assert cert.storage_ref == "ephemeral"
    assert cert.owner_user == "system"
    assert fake_client.calls[0] == ("issue", "app.example.com", ["app.example.com", "www.example.com"], 30)


def test_issue_returns_download_bundle(fake_client):
    result = services.issue_certificate(cn="app.example.com", validity_days=30, client=fake_client)

    assert result.filename == "app.example.com-cert-bundle.zip"
    assert result.mime_type == "application/zip"
    assert "privkey.pem" in zipfile.ZipFile(io.BytesIO(result.archive)).namelist()


def test_issue_pfx_includes_p12(fake_client):
    result = services.issue_certificate(
        cn="app.example.com",
        validity_days=30,
        fmt="pfx",
        pfx_password="s3cret",
        client=fake_client,
    )

    archive = zipfile.ZipFile(io.BytesIO(result.archive))
    assert archive.read("cert.p12") == b"PKCS12:s3cret"


def test_issue_writes_one_audit_event(fake_client):
    result = services.issue_certificate(cn="app.example.com", validity_days=30, client=fake_client)

    event = AuditEvent.objects.get(cert_id=str(result.certificate.id))
    assert event.action == AuditAction.ISSUED
    assert event.who == "system"
    assert "app.example.com" in event.details


@pytest.mark.parametrize(
    "kwargs",
    [
        {"cn": "", "validity_days": 30},
        {"cn": "app.example.com", "validity_days": 0},
        {"cn": "app.example.com", "validity_days": 30, "fmt": "der"},
        {"cn": "app.example.com", "validity_days": 30, "fmt": "pfx"},
        {"cn": "app.example.com", "validity_days": 30, "sans": ["  "]},
    ],
)
def test_invalid_issue_never_reaches_ca(fake_client, kwargs):
    with pytest.raises(ValidationError):
        services.issue_certificate(client=fake_client, **kwargs)

    assert fake_client.calls == []
    assert Certificate.objects.count() == 0


@pytest.mark.parametrize(
    "error",
    [
        CAError("step certificate failed", exit_code=1, output="denied"),
        ParseError("bad output", reason=ParseError.UNPARSEABLE),
    ],
)
def test_failed_issue_leaves_no_record(fake_client, error):
    fake_client.issue_error = error

    with pytest.raises(type(error)):
        services.issue_certificate(cn="app.example.com", validity_days=30, client=fake_client)

    assert Certificate.objects.count() == 0
    assert AuditEvent.objects.count() == 0


def test_bundle_failure_leaves_no_record(fake_client):
    fake_client.pfx_error = CAError("p12 failed", exit_code=1)

    with pytest.raises(AssembleError):
        services.issue_certificate(
            cn="app.example.com",
            validity_days=30,
            fmt="pfx",
            pfx_password="pw",
            client=fake_client,
        )

    assert Certificate.objects.count() == 0
    assert AuditEvent.objects.count() == 0


def test_store_failure_after_issue_is_logged_critical(fake_client, monkeypatch, recording_logger):
    def failing_create(**kwargs):
        raise StoreError("disk full")

    monkeypatch.setattr(services, "create_certificate_record", failing_create)
    monkeypatch.setattr(services, "logger", recording_logger)

    with pytest.raises(StoreError):
        services.issue_certificate(cn="app.example.com", validity_days=30, client=fake_client)

    assert "untracked_certificate_issued" in recording_logger.names("critical")


def test_audit_failure_does_not_fail_issue(fake_client, monkeypatch, recording_logger):
    def failing_log_action(**kwargs):
        raise StoreError("audit table locked")

    monkeypatch.setattr("src.apps.audits.services.log_action", failing_log_action)
    monkeypatch.setattr(services, "logger", recording_logger)

    result = services.issue_certificate(cn="app.example.com", validity_days=30, client=fake_client)

    assert Certificate.objects.filter(id=result.certificate.id).exists()
    assert "audit_log_failed" in recording_logger.names("error")


# ── sign CSR ────────────────────────────────────────────────────────────


def test_sign_csr_records_names_from_csr(fake_client):
    csr = build_csr("csr.example.com", ["csr.example.com", "alt.example.com"])

    result = services.sign_csr(csr_pem=csr, validity_days=14, client=fake_client)

    cert = result.certificate
    assert cert.cn == "csr.example.com"
    assert cert.sans == ["csr.example.com", "alt.example.com"]
    assert cert.key_strategy == KeyStrategy.CSR
    assert result.cert_pem.startswith("-----BEGIN CERTIFICATE-----")
    assert result.chain_pem.startswith("-----BEGIN CERTIFICATE-----")
    assert audit_actions(cert) == [AuditAction.SIGNED_CSR]


@pytest.mark.parametrize("csr_pem", ["", "not a csr"])
def test_invalid_csr_never_reaches_ca(fake_client, csr_pem):
    with pytest.raises(ValidationError):
        services.sign_csr(csr_pem=csr_pem, validity_days=14, client=fake_client)

    assert fake_client.calls == []
    assert Certificate.objects.count() == 0


def test_failed_sign_leaves_no_record(fake_client):
    fake_client.sign_error = CAError("step ca sign failed", exit_code=1)

    with pytest.raises(CAError):
        services.sign_csr(csr_pem=build_csr("csr.example.com"), validity_days=14, client=fake_client)

    assert Certificate.objects.count() == 0


# ── renew ───────────────────────────────────────────────────────────────


def test_renew_keeps_identity_and_moves_expiry(fake_client, make_certificate):
    original = make_certificate(
        cn="app.example.com",
        sans=["app.example.com", "api.example.com"],
        not_after=timezone.now() + timedelta(days=5),
    )

    renewed = services.renew_certificate(cert_id=original.id, client=fake_client)

    stored = Certificate.objects.get(id=original.id)
    assert stored.id == original.id
    assert stored.cn == original.cn
    assert stored.sans == original.sans
    assert stored.status == CertificateStatus.ACTIVE
    assert stored.not_after > original.not_after
    assert stored.serial == renewed.serial != original.serial
    assert stored.updated_at > original.updated_at
    assert fake_client.calls == [("issue", "app.example.com", ["app.example.com", "api.example.com"], 90)]
    assert audit_actions(stored) == [AuditAction.RENEWED]


def test_renew_uses_configured_validity(fake_client, make_certificate, settings):
    settings.RENEWAL_VALIDITY_DAYS = 45

    services.renew_certificate(cert_id=make_certificate().id, client=fake_client)

    assert fake_client.calls[0][3] == 45


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": CertificateStatus.REVOKED},
        {"not_after": timezone.now() - timedelta(days=1)},
    ],
)
def test_renew_rejects_revoked_and_expired(fake_client, make_certificate, overrides):
    cert = make_certificate(**overrides)

    with pytest.raises(ValidationError):
        services.renew_certificate(cert_id=cert.id, client=fake_client)

    assert fake_client.calls == []


def test_renew_unknown_id(fake_client):
    with pytest.raises(NotFoundError):
        services.renew_certificate(cert_id="6f1c1b9e-8e0a-4d8e-9a53-2f4c3f0e7a11", client=fake_client)


def test_failed_renew_leaves_record_unchanged(fake_client, make_certificate):
    cert = make_certificate()
    fake_client.issue_error = CAError("step certificate failed", exit_code=1)

    with pytest.raises(CAError):
        services.renew_certificate(cert_id=cert.id, client=fake_client)

    stored = Certificate.objects.get(id=cert.id)
    assert (stored.serial, stored.not_after, stored.updated_at) == (
        cert.serial,
        cert.not_after,
        cert.updated_at,
    )
    assert audit_actions(cert) == []


def test_renew_store_failure_is_logged_critical(fake_client, make_certificate, monkeypatch, recording_logger):
    def failing_update(**kwargs):
        raise StoreError("disk full")

    monkeypatch.setattr(services, "update_certificate_record", failing_update)
    monkeypatch.setattr(services, "logger", recording_logger)
    cert = make_certificate()

    with pytest.raises(StoreError):
        services.renew_certificate(cert_id=cert.id, client=fake_client)

    assert "untracked_certificate_issued" in recording_logger.names("critical")
    assert audit_actions(cert) == []


def test_revoke_during_renew_is_not_undone(fake_client, make_certificate, monkeypatch, recording_logger):
    cert = make_certificate(serial="0A1B2C")
    issue = fake_client.issue

    def issue_while_revoked(*args):
        Certificate.objects.filter(id=cert.id).update(status=CertificateStatus.REVOKED)
        return issue(*args)

    monkeypatch.setattr(fake_client, "issue", issue_while_revoked)
    monkeypatch.setattr(services, "logger", recording_logger)

    with pytest.raises(ValidationError):
        services.renew_certificate(cert_id=cert.id, client=fake_client)

    stored = Certificate.objects.get(id=cert.id)
    assert stored.status == CertificateStatus.REVOKED
    assert stored.serial == "0A1B2C"
    assert "untracked_certificate_issued" in recording_logger.names("critical")
    assert audit_actions(cert) == []


# ── revoke ──────────────────────────────────────────────────────────────


def test_revoke_marks_record_and_calls_ca(fake_client, make_certificate):
    cert = make_certificate(serial="0A1B2C")

    services.revoke_certificate(cert_id=cert.id, client=fake_client)

    stored = Certificate.objects.get(id=cert.id)
    assert stored.status == CertificateStatus.REVOKED
    assert stored.updated_at > cert.updated_at
    assert fake_client.calls == [("revoke", "0A1B2C")]
    assert audit_actions(cert) == [AuditAction.REVOKED]


def test_revoke_is_idempotent(fake_client, make_certificate):
    cert = make_certificate()

    services.revoke_certificate(cert_id=cert.id, client=fake_client)
    first = Certificate.objects.get(id=cert.id)
    services.revoke_certificate(cert_id=cert.id, client=fake_client)
    second = Certificate.objects.get(id=cert.id)

    assert second.status == CertificateStatus.REVOKED
    assert second.updated_at == first.updated_at
    assert fake_client.count("revoke") == 1
    assert audit_actions(cert) == [AuditAction.REVOKED]


def test_revoke_applies_locally_when_ca_fails(fake_client, make_certificate, monkeypatch, recording_logger):
    fake_client.revoke_error = CAError("step ca revoke failed", exit_code=1, output="unreachable")
    monkeypatch.setattr(services, "logger", recording_logger)
    cert = make_certificate()

    services.revoke_certificate(cert_id=cert.id, client=fake_client)

    assert Certificate.objects.get(id=cert.id).status == CertificateStatus.REVOKED
    assert "ca_revoke_failed" in recording_logger.names("warning")
    event = AuditEvent.objects.get(cert_id=str(cert.id))
    assert "CA revocation failed" in event.details


def test_revoke_without_serial_skips_ca(fake_client, make_certificate):
    cert = make_certificate(serial="")

    services.revoke_certificate(cert_id=cert.id, client=fake_client)

    assert fake_client.calls == []
    assert Certificate.objects.get(id=cert.id).status == CertificateStatus.REVOKED


def test_revoke_rejects_expired(fake_client, make_certificate):
    cert = make_certificate(not_after=timezone.now() - timedelta(days=1))

    with pytest.raises(ValidationError):
        services.revoke_certificate(cert_id=cert.id, client=fake_client)

    assert fake_client.calls == []


# ── delete ──────────────────────────────────────────────────────────────


def test_delete_keeps_audit_trail(fake_client):
    result = services.issue_certificate(cn="app.example.com", validity_days=30, client=fake_client)

    services.delete_certificate(cert_id=result.certificate.id)

    assert not Certificate.objects.filter(id=result.certificate.id).exists()
    assert audit_actions(result.certificate) == [AuditAction.ISSUED]


def test_delete_unknown_id():
    with pytest.raises(NotFoundError):
        services.delete_certificate(cert_id="6f1c1b9e-8e0a-4d8e-9a53-2f4c3f0e7a11")
