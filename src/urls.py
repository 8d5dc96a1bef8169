"""
Root URL configuration.

- /api/     → Main NinjaExtraAPI (certificate lifecycle + CA settings)
- /health   → Liveness probe
- /admin/   → Django admin (records + read-only audit trail)
"""

from django.contrib import admin
from django.urls import path
from ninja_extra import NinjaExtraAPI

from src.apps.certificates.apis import router as cert_router
from src.apps.system.apis import health_router
from src.apps.system.apis import router as system_router
from src.common.exceptions import configure_exception_handlers

# ── Main API ────────────────────────────────────────────────────────────

api = NinjaExtraAPI(
    title="step-ca Certificate Console API",
    version="1.0.0",
    description="Issue, sign, renew and revoke certificates through step-ca",
    urls_namespace="api",
)

configure_exception_handlers(api)

# Certificates: /api/certs/...
api.add_router("/", cert_router)

# Settings: /api/settings/ca
api.add_router("/", system_router)

# ── Health ──────────────────────────────────────────────────────────────

health_api = NinjaExtraAPI(
    title="step-ca Certificate Console health",
    version="1.0.0",
    urls_namespace="health",
    docs_url=None,
    openapi_url=None,
)

health_api.add_router("/", health_router)

# ── URL patterns ────────────────────────────────────────────────────────

urlpatterns = [
    path("api/", api.urls),
    path("admin/", admin.site.urls),
    path("", health_api.urls),
]
