"""
Certificate API endpoints.

Mounted at: /api/
Full paths:  /api/certs/...

Single-tenant and unauthenticated: every record belongs to OWNER_USER.
Issue returns the zip bundle base64-encoded inside the JSON body.
"""

import base64

from django.http import HttpRequest
from ninja import Router

from src.apps.audits import selectors as audit_selectors
from src.apps.certificates import selectors as cert_selectors
from src.apps.certificates import services as cert_services
from src.apps.certificates.models import Certificate
from src.apps.certificates.schemas import (
    AuditEventListSchema,
    CertificateListSchema,
    CertificateOutSchema,
    ErrorSchema,
    IssueRequestSchema,
    IssueResponseSchema,
    MessageSchema,
    SignCSRRequestSchema,
    SignCSRResponseSchema,
)
from src.common.pagination import DEFAULT_LIMIT, DEFAULT_OFFSET

router = Router(tags=["Certificates"])

_P = "/certs"


# ── Helpers ──────────────────────────────────────────────────────────────


def _cert_item(cert: Certificate) -> dict:
    return {
        "id": cert.id,
        "cn": cert.cn,
        "sans": list(cert.sans or []),
        "serial": cert.serial,
        "not_after": cert.not_after,
        "status": cert.effective_status,
        "key_strategy": cert.key_strategy,
        "created_at": cert.created_at,
        "updated_at": cert.updated_at,
    }


# ── Issue ────────────────────────────────────────────────────────────────


@router.post(
    f"{_P}/issue",
    response={200: IssueResponseSchema, 400: ErrorSchema, 500: ErrorSchema},
    summary="Issue a certificate with a server-generated key",
)
def issue_certificate(request: HttpRequest, payload: IssueRequestSchema):
    result = cert_services.issue_certificate(
        cn=payload.cn,
        sans=payload.sans,
        validity_days=payload.not_after_days,
        fmt=payload.format,
        pfx_password=payload.pfx_password or None,
    )
    return {
        "certificate": _cert_item(result.certificate),
        "download": {
            "data": base64.b64encode(result.archive).decode("ascii"),
            "filename": result.filename,
            "mime_type": result.mime_type,
        },
    }


# ── Sign CSR ─────────────────────────────────────────────────────────────


@router.post(
    f"{_P}/sign-csr",
    response={200: SignCSRResponseSchema, 400: ErrorSchema, 500: ErrorSchema},
    summary="Sign a certificate signing request",
)
def sign_csr(request: HttpRequest, payload: SignCSRRequestSchema):
    result = cert_services.sign_csr(
        csr_pem=payload.csr_pem,
        validity_days=payload.not_after_days,
    )
    return {
        "certificate": _cert_item(result.certificate),
        "cert_pem": result.cert_pem,
        "chain_pem": result.chain_pem,
    }


# ── List / detail ────────────────────────────────────────────────────────


@router.get(
    f"{_P}",
    response={200: CertificateListSchema, 400: ErrorSchema, 500: ErrorSchema},
    summary="List certificates",
)
def list_certificates(
    request: HttpRequest,
    limit: int = DEFAULT_LIMIT,
    offset: int = DEFAULT_OFFSET,
    status: str = "",
):
    certs = cert_selectors.list_certificates(limit=limit, offset=offset, status=status)
    return {"certificates": [_cert_item(c) for c in certs]}


@router.get(
    f"{_P}/{{cert_id}}",
    response={200: CertificateOutSchema, 404: ErrorSchema},
    summary="Get certificate detail",
)
def get_certificate(request: HttpRequest, cert_id: str):
    cert = cert_selectors.get_certificate(cert_id=cert_id)
    return {"certificate": _cert_item(cert)}


@router.get(
    f"{_P}/{{cert_id}}/audit",
    response={200: AuditEventListSchema, 404: ErrorSchema},
    summary="Audit trail of one certificate",
)
def list_certificate_audit(request: HttpRequest, cert_id: str, limit: int = DEFAULT_LIMIT):
    cert = cert_selectors.get_certificate(cert_id=cert_id)
    events = audit_selectors.list_audit_events(cert_id=str(cert.id), limit=limit)
    return {"events": list(events)}


# ── Renew / revoke / delete ──────────────────────────────────────────────


@router.post(
    f"{_P}/{{cert_id}}/renew",
    response={200: CertificateOutSchema, 400: ErrorSchema, 404: ErrorSchema, 500: ErrorSchema},
    summary="Renew a certificate for the same names",
)
def renew_certificate(request: HttpRequest, cert_id: str):
    cert = cert_services.renew_certificate(cert_id=cert_id)
    return {"certificate": _cert_item(cert)}


@router.post(
    f"{_P}/{{cert_id}}/revoke",
    response={200: MessageSchema, 400: ErrorSchema, 404: ErrorSchema, 500: ErrorSchema},
    summary="Revoke a certificate",
)
def revoke_certificate(request: HttpRequest, cert_id: str):
    cert_services.revoke_certificate(cert_id=cert_id)
    return {"message": "Certificate revoked successfully"}


@router.delete(
    f"{_P}/{{cert_id}}",
    response={200: MessageSchema, 404: ErrorSchema, 500: ErrorSchema},
    summary="Delete a certificate record",
)
def delete_certificate(request: HttpRequest, cert_id: str):
    cert_services.delete_certificate(cert_id=cert_id)
    return {"message": "Certificate deleted"}
