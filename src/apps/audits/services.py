"""
Audit log service.

Provides a simple API to append immutable audit entries.
"""

import structlog
from django.db import DatabaseError, transaction

from src.apps.audits.models import AuditEvent
from src.common.exceptions import StoreError

logger = structlog.get_logger(__name__)


@transaction.atomic
def log_action(
    *,
    cert_id,
    who: str,
    action: str,
    details: str = "",
) -> AuditEvent:
    """
    Append an audit event.

    Args:
        cert_id: ID of the certificate record (UUID or str)
        who: principal performing the action
        action: AuditAction value
        details: Human-readable summary

    Returns:
        AuditEvent instance

    Raises:
        StoreError if the event could not be written.
    """
    try:
        entry = AuditEvent.objects.create(
            cert_id=str(cert_id),
            who=who,
            action=action,
            details=details,
        )
    except DatabaseError as e:
        raise StoreError(f"Failed to write audit event: {e}")

    logger.info(
        "audit_logged",
        action=action,
        cert_id=str(cert_id),
        who=who,
    )

    return entry
