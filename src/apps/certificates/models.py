"""
Certificate models.

A Certificate row is the local record of one certificate issued or
signed through the CA. It exists only for operations that fully
succeeded (CA call, parse and bundle). Renewal updates the row in
place; revocation flips its status. `expired` is never written: readers
derive it from `not_after` (see `effective_status`).
"""

from django.db import models
from django.utils import timezone

from src.common.models import BaseModel


class CertificateStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    REVOKED = "revoked", "Revoked"
    EXPIRED = "expired", "Expired"


class KeyStrategy(models.TextChoices):
    SERVER = "server", "Server-generated key"
    CSR = "csr", "Caller-supplied CSR"


class Certificate(BaseModel):
    cn = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Subject common name.",
    )
    sans = models.JSONField(
        default=list,
        blank=True,
        help_text="Ordered subject alternative names.",
    )
    serial = models.CharField(
        max_length=128,
        blank=True,
        default="",
        help_text="Serial exactly as reported by certificate inspection.",
    )
    not_after = models.DateTimeField(
        db_index=True,
        help_text="Expiry read from the CA-issued certificate.",
    )
    status = models.CharField(
        max_length=10,
        choices=CertificateStatus.choices,
        default=CertificateStatus.ACTIVE,
        db_index=True,
    )
    key_strategy = models.CharField(
        max_length=10,
        choices=KeyStrategy.choices,
    )
    storage_ref = models.CharField(
        max_length=255,
        default="ephemeral",
        help_text="Where key material lives; 'ephemeral' means it is not retained.",
    )
    owner_user = models.CharField(max_length=255, default="system")

    class Meta:
        db_table = "certificates"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.cn} ({self.id})"

    @property
    def is_expired(self) -> bool:
        return self.not_after is not None and timezone.now() > self.not_after

    @property
    def effective_status(self) -> str:
        """Stored status, with `active` reported as `expired` past not_after."""
        if self.status == CertificateStatus.ACTIVE and self.is_expired:
            return CertificateStatus.EXPIRED
        return self.status
