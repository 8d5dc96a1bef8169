"""
CA settings and health endpoints.

  GET /api/settings/ca  → CA URL, root fingerprint, ACME directory
  GET /health           → liveness
"""

from pathlib import Path

import structlog
from django.conf import settings
from django.http import HttpRequest
from ninja import Router, Schema

from src.common.exceptions import ParseError
from src.integrations.cert_inspector import fingerprint_sha256

logger = structlog.get_logger(__name__)

router = Router(tags=["Settings"])
health_router = Router(tags=["Health"])


class CASettingsSchema(Schema):
    ca_url: str
    root_fingerprint: str
    acme_directories: list[str]


class HealthSchema(Schema):
    status: str


def _root_fingerprint() -> str:
    """SHA-256 of CA_ROOT, or "" when unset / unreadable."""
    root_path = getattr(settings, "CA_ROOT", "")
    if not root_path:
        return ""
    try:
        return fingerprint_sha256(Path(root_path).read_bytes())
    except OSError as e:
        logger.warning("ca_root_unreadable", path=root_path, error=str(e))
    except ParseError as e:
        logger.warning("ca_root_unparseable", path=root_path, error=e.message)
    return ""


@router.get("/settings/ca", response=CASettingsSchema, summary="CA connection settings")
def get_ca_settings(request: HttpRequest):
    ca_url = getattr(settings, "CA_URL", "").rstrip("/")
    return {
        "ca_url": ca_url,
        "root_fingerprint": _root_fingerprint(),
        "acme_directories": [f"{ca_url}/acme/acme/directory"] if ca_url else [],
    }


@health_router.get("/health", response=HealthSchema, summary="Health check")
def health(request: HttpRequest):
    return {"status": "healthy"}
