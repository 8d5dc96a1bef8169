"""
Certificate record writes.

Every write is a single statement inside transaction.atomic: a create
inserts the full row, an update replaces every column at once, so a
concurrent reader sees either the old row or the new one. Concurrent
updates to one record resolve last-writer-wins, except where a caller
asks for the update to apply only to a record still in a given status.
"""

from datetime import datetime

import structlog
from django.db import DatabaseError, transaction

from src.apps.certificates.models import Certificate, CertificateStatus
from src.common.exceptions import NotFoundError, StoreError, ValidationError

logger = structlog.get_logger(__name__)


@transaction.atomic
def create_certificate_record(
    *,
    cn: str,
    sans: list[str],
    serial: str,
    not_after: datetime,
    key_strategy: str,
    storage_ref: str,
    owner_user: str,
) -> Certificate:
    try:
        cert = Certificate.objects.create(
            cn=cn,
            sans=list(sans),
            serial=serial,
            not_after=not_after,
            status=CertificateStatus.ACTIVE,
            key_strategy=key_strategy,
            storage_ref=storage_ref,
            owner_user=owner_user,
        )
    except DatabaseError as e:
        raise StoreError(f"Failed to store certificate metadata: {e}")

    logger.debug("certificate_record_created", cert_id=str(cert.id))
    return cert


@transaction.atomic
def update_certificate_record(
    *,
    certificate: Certificate,
    expected_status: str | None = None,
) -> Certificate:
    """
    Full-record replace. With expected_status the row is only written if
    it still has that status, so a revoke committed meanwhile is kept.
    """
    fields = {
        f.attname: getattr(certificate, f.attname)
        for f in Certificate._meta.concrete_fields
        if not f.primary_key
    }
    rows = Certificate.objects.filter(id=certificate.id)
    if expected_status is not None:
        rows = rows.filter(status=expected_status)

    try:
        updated = rows.update(**fields)
        exists = updated or Certificate.objects.filter(id=certificate.id).exists()
    except DatabaseError as e:
        raise StoreError(f"Failed to update certificate: {e}")

    if not exists:
        raise NotFoundError("Certificate not found.", {"id": str(certificate.id)})
    if not updated:
        raise ValidationError(
            f"Certificate is no longer {expected_status}.",
            {"id": str(certificate.id)},
        )

    logger.debug("certificate_record_updated", cert_id=str(certificate.id))
    return certificate


@transaction.atomic
def delete_certificate_record(*, cert_id) -> None:
    try:
        deleted, _ = Certificate.objects.filter(id=cert_id).delete()
    except DatabaseError as e:
        raise StoreError(f"Failed to delete certificate: {e}")

    if not deleted:
        raise NotFoundError("Certificate not found.", {"id": str(cert_id)})

    logger.info("certificate_record_deleted", cert_id=str(cert_id))
