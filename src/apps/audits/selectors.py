"""
Audit selectors (read operations).
"""

from django.db.models import QuerySet

from src.apps.audits.models import AuditEvent
from src.common.pagination import DEFAULT_LIMIT, limit_offset


def list_audit_events(*, cert_id: str = "", limit: int = DEFAULT_LIMIT) -> QuerySet[AuditEvent]:
    """Newest first; all certificates when cert_id is empty."""
    qs = AuditEvent.objects.order_by("-timestamp", "-id")
    if cert_id:
        qs = qs.filter(cert_id=str(cert_id))
    return limit_offset(qs, limit=limit, offset=0)
