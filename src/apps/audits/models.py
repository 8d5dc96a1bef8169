"""
Audit log model.

Append-only facts about certificate lifecycle transitions.
`cert_id` is a plain reference rather than a foreign key, so the trail
survives an explicit certificate delete.
"""

from django.db import models
from django.utils import timezone


class AuditAction(models.TextChoices):
    ISSUED = "issued", "Certificate issued"
    SIGNED_CSR = "signed_csr", "CSR signed"
    RENEWED = "renewed", "Certificate renewed"
    REVOKED = "revoked", "Certificate revoked"


class AuditEvent(models.Model):
    """
    Immutable audit entry. No updated_at: once written, never modified.
    """

    cert_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="ID of the certificate record this event is about.",
    )
    who = models.CharField(max_length=255)
    action = models.CharField(
        max_length=20,
        choices=AuditAction.choices,
    )
    details = models.TextField(
        blank=True,
        default="",
        help_text="Human-readable summary.",
    )
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "audit_events"
        ordering = ["-timestamp", "-id"]
        indexes = [
            models.Index(fields=["cert_id", "-timestamp"], name="audit_cert_ts_idx"),
        ]

    def __str__(self) -> str:
        return f"[{self.action}] {self.cert_id} by {self.who}"

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ValueError("Audit events are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Audit events are append-only.")
