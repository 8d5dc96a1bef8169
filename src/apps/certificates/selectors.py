"""
Certificate selectors (read operations).

Status filtering follows what readers see: `expired` is derived from
not_after, so filtering by `active` excludes lapsed rows and filtering
by `expired` includes them.
"""

from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.db.models import Q, QuerySet
from django.utils import timezone

from src.apps.certificates.models import Certificate, CertificateStatus
from src.common.exceptions import NotFoundError, StoreError, ValidationError
from src.common.pagination import DEFAULT_LIMIT, DEFAULT_OFFSET, limit_offset


def get_certificate(*, cert_id: UUID | str) -> Certificate:
    try:
        return Certificate.objects.get(id=cert_id)
    except (Certificate.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("Certificate not found.", {"id": str(cert_id)})
    except DatabaseError as e:
        raise StoreError(f"Failed to load certificate: {e}")


def filter_by_status(qs: QuerySet[Certificate], status: str) -> QuerySet[Certificate]:
    if status not in CertificateStatus.values:
        raise ValidationError(
            f"Unknown status filter '{status}'. Use one of: {', '.join(CertificateStatus.values)}."
        )

    now = timezone.now()
    if status == CertificateStatus.ACTIVE:
        return qs.filter(status=CertificateStatus.ACTIVE, not_after__gte=now)
    if status == CertificateStatus.EXPIRED:
        return qs.filter(
            Q(status=CertificateStatus.EXPIRED)
            | Q(status=CertificateStatus.ACTIVE, not_after__lt=now)
        )
    return qs.filter(status=status)


def list_certificates(
    *,
    limit: int = DEFAULT_LIMIT,
    offset: int = DEFAULT_OFFSET,
    status: str = "",
) -> list[Certificate]:
    """Newest first. The status filter applies only when non-empty."""
    qs = Certificate.objects.order_by("-created_at", "-id")
    if status:
        qs = filter_by_status(qs, status)

    try:
        return list(limit_offset(qs, limit=limit, offset=offset))
    except DatabaseError as e:
        raise StoreError(f"Failed to list certificates: {e}")
