"""
Certificate services (write operations).

Issue flow:
  1. Validate CN, validity, bundle format
  2. step ca certificate (+ chain + parse)
  3. Assemble the download zip
  4. Create the Certificate record (only now: nothing is stored for a
     partially failed operation)
  5. Log audit entry

Sign-CSR flow:
  1. Decode the CSR, read its CN + SANs
  2. step ca sign (+ chain + parse)
  3. Create the Certificate record (key_strategy=csr)
  4. Log audit entry

Renew flow:
  1. Load record, refuse revoked / expired ones
  2. Re-issue with the stored CN + SANs and RENEWAL_VALIDITY_DAYS
  3. Update not_after, serial, updated_at in place
  4. Log audit entry

Revoke flow:
  1. Load record; already revoked → nothing to do
  2. step ca revoke <serial>. A CA-side failure is logged and the local
     revocation still goes ahead: the record must stop being served as
     active even while the CA is unreachable. Operators reconcile from
     the `ca_revoke_failed` log events.
  3. Set status = revoked, bump updated_at
  4. Log audit entry

A StoreError after a successful CA call means the CA issued a
certificate nobody is tracking; it is logged at critical level.
"""

from dataclasses import dataclass

import structlog
from django.conf import settings

from src.apps.audits.models import AuditAction
from src.apps.certificates.bundles import (
    BUNDLE_MIME_TYPE,
    assemble_bundle,
    bundle_filename,
    validate_bundle_request,
)
from src.apps.certificates.models import Certificate, CertificateStatus, KeyStrategy
from src.apps.certificates.records import (
    create_certificate_record,
    delete_certificate_record,
    update_certificate_record,
)
from src.apps.certificates.selectors import get_certificate
from src.common.exceptions import CAError, NotFoundError, StoreError, ValidationError
from src.common.types import StorageRef
from src.integrations.cert_inspector import read_csr_subject
from src.integrations.step_ca import (
    CertificateBundle,
    StepCAClient,
    clean_sans,
    get_step_client,
    validate_validity_days,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IssueResult:
    certificate: Certificate
    archive: bytes
    filename: str
    mime_type: str = BUNDLE_MIME_TYPE


@dataclass(frozen=True)
class SignResult:
    certificate: Certificate
    cert_pem: str
    chain_pem: str


def issue_certificate(
    *,
    cn: str,
    sans: list[str] | None = None,
    validity_days: int,
    fmt: str = "pem",
    pfx_password: str | None = None,
    client: StepCAClient | None = None,
) -> IssueResult:
    """
    Issue a server-keyed certificate and return its download bundle.

    Raises:
        ValidationError, CAError, ParseError, AssembleError, StoreError
    """
    cn = (cn or "").strip()
    if not cn:
        raise ValidationError("cn is required.")
    validity_days = validate_validity_days(validity_days)
    sans = clean_sans(sans)
    bundle_format = validate_bundle_request(fmt, pfx_password)

    client = client or get_step_client()
    bundle = client.issue(cn, sans, validity_days)

    archive = assemble_bundle(
        bundle=bundle,
        fmt=bundle_format,
        pfx_password=pfx_password,
        pfx_packager=client.create_pfx,
    )

    cert = _record_new_certificate(
        cn=cn,
        sans=sans,
        bundle=bundle,
        key_strategy=KeyStrategy.SERVER,
    )

    _log_cert_audit(
        certificate=cert,
        action=AuditAction.ISSUED,
        details=f"CN: {cn}, SANs: {sans}",
    )

    logger.info(
        "certificate_issued",
        cert_id=str(cert.id),
        cn=cn,
        serial=cert.serial,
        format=str(bundle_format),
    )
    return IssueResult(
        certificate=cert,
        archive=archive,
        filename=bundle_filename(cn),
    )


def sign_csr(
    *,
    csr_pem: str,
    validity_days: int,
    client: StepCAClient | None = None,
) -> SignResult:
    """
    Sign a caller-supplied CSR. The record stores the CN and SANs the CSR
    asked for; no private key is ever held.
    """
    if not csr_pem or not csr_pem.strip():
        raise ValidationError("csr_pem is required.")
    validity_days = validate_validity_days(validity_days)
    subject = read_csr_subject(csr_pem)

    client = client or get_step_client()
    bundle = client.sign_csr(csr_pem, validity_days)

    cert = _record_new_certificate(
        cn=subject.common_name,
        sans=subject.sans,
        bundle=bundle,
        key_strategy=KeyStrategy.CSR,
    )

    _log_cert_audit(
        certificate=cert,
        action=AuditAction.SIGNED_CSR,
        details=f"CN: {subject.common_name}, SANs: {subject.sans}",
    )

    logger.info(
        "csr_signed",
        cert_id=str(cert.id),
        cn=subject.common_name,
        serial=cert.serial,
    )
    return SignResult(
        certificate=cert,
        cert_pem=bundle.cert_pem.decode("utf-8"),
        chain_pem=bundle.chain_pem.decode("utf-8"),
    )


def renew_certificate(*, cert_id, client: StepCAClient | None = None) -> Certificate:
    """
    Re-issue a certificate for the same CN and SANs. The record keeps its
    id and status; not_after and serial move to the new certificate.
    The record is only updated while still active: a revoke that lands
    during the CA call wins, and the renewed certificate goes untracked.
    """
    cert = get_certificate(cert_id=cert_id)

    if cert.status == CertificateStatus.REVOKED:
        raise ValidationError("Cannot renew a revoked certificate.")
    if cert.is_expired:
        raise ValidationError("Cannot renew an expired certificate. Issue a new one instead.")

    validity_days = getattr(settings, "RENEWAL_VALIDITY_DAYS", 90)

    client = client or get_step_client()
    bundle = client.issue(cert.cn, list(cert.sans or []), validity_days)

    previous_serial = cert.serial
    cert.not_after = bundle.not_after
    cert.serial = bundle.serial
    cert.touch()

    try:
        update_certificate_record(certificate=cert, expected_status=CertificateStatus.ACTIVE)
    except (StoreError, NotFoundError, ValidationError):
        _log_untracked(cn=cert.cn, bundle=bundle, cert_id=str(cert.id))
        raise

    _log_cert_audit(
        certificate=cert,
        action=AuditAction.RENEWED,
        details=f"CN: {cert.cn}, serial {previous_serial or '?'} -> {bundle.serial}, "
                f"valid for {validity_days} days",
    )

    logger.info(
        "certificate_renewed",
        cert_id=str(cert.id),
        serial=cert.serial,
        not_after=cert.not_after.isoformat(),
    )
    return cert


def revoke_certificate(*, cert_id, client: StepCAClient | None = None) -> Certificate:
    """
    Revoke a certificate. Idempotent: an already revoked record is
    returned unchanged without contacting the CA.
    """
    cert = get_certificate(cert_id=cert_id)

    if cert.status == CertificateStatus.REVOKED:
        logger.info("certificate_already_revoked", cert_id=str(cert.id))
        return cert
    if cert.is_expired:
        raise ValidationError("Cannot revoke an expired certificate.")

    ca_outcome = _revoke_at_ca(cert, client or get_step_client())

    cert.status = CertificateStatus.REVOKED
    cert.touch()
    update_certificate_record(certificate=cert)

    _log_cert_audit(
        certificate=cert,
        action=AuditAction.REVOKED,
        details=f"CN: {cert.cn}, serial {cert.serial or '?'}. {ca_outcome}",
    )

    logger.info("certificate_revoked", cert_id=str(cert.id), serial=cert.serial)
    return cert


def delete_certificate(*, cert_id) -> None:
    """Remove a record outright. Not a lifecycle transition: no audit event."""
    cert = get_certificate(cert_id=cert_id)
    delete_certificate_record(cert_id=cert.id)


# ── Internal helpers ─────────────────────────────────────────────────────


def _record_new_certificate(
    *,
    cn: str,
    sans: list[str],
    bundle: CertificateBundle,
    key_strategy: str,
) -> Certificate:
    try:
        return create_certificate_record(
            cn=cn,
            sans=sans,
            serial=bundle.serial,
            not_after=bundle.not_after,
            key_strategy=key_strategy,
            storage_ref=StorageRef.EPHEMERAL,
            owner_user=_owner(),
        )
    except StoreError:
        _log_untracked(cn=cn, bundle=bundle)
        raise


def _revoke_at_ca(cert: Certificate, client: StepCAClient) -> str:
    if not cert.serial:
        logger.warning("ca_revoke_skipped", cert_id=str(cert.id), reason="no serial on record")
        return "CA revocation skipped: serial unknown."

    try:
        client.revoke(cert.serial)
    except (CAError, ValidationError) as e:
        logger.warning(
            "ca_revoke_failed",
            cert_id=str(cert.id),
            serial=cert.serial,
            error=e.message,
            hint="Local revocation applied; revoke at the CA once it is reachable.",
        )
        return f"CA revocation failed: {e.message}"
    return "CA revocation confirmed."


def _log_untracked(*, cn: str, bundle: CertificateBundle, cert_id: str | None = None) -> None:
    logger.critical(
        "untracked_certificate_issued",
        cn=cn,
        cert_id=cert_id,
        serial=bundle.serial,
        not_after=bundle.not_after.isoformat(),
        hint="The CA issued this certificate but it is not recorded locally.",
    )


def _owner() -> str:
    return getattr(settings, "OWNER_USER", "system")


def _log_cert_audit(*, certificate: Certificate, action: str, details: str) -> None:
    """Log audit entry for certificate operations."""
    try:
        from src.apps.audits.services import log_action
        log_action(
            cert_id=certificate.id,
            who=_owner(),
            action=action,
            details=details,
        )
    except Exception as e:
        # Audit logging should never break the main operation
        logger.error("audit_log_failed", cert_id=str(certificate.id), action=action, error=str(e))
