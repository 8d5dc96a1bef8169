"""
Certificate API schemas.
"""

from datetime import datetime
from uuid import UUID

from ninja import Field, Schema


# ── Request ─────────────────────────────────────────────────────────────


class IssueRequestSchema(Schema):
    cn: str
    sans: list[str] = Field(default_factory=list)
    not_after_days: int
    format: str = "pem"
    pfx_password: str | None = None


class SignCSRRequestSchema(Schema):
    csr_pem: str
    not_after_days: int


# ── Response ────────────────────────────────────────────────────────────


class CertificateSchema(Schema):
    id: UUID
    cn: str
    sans: list[str]
    serial: str
    not_after: datetime
    status: str
    key_strategy: str
    created_at: datetime
    updated_at: datetime


class CertificateOutSchema(Schema):
    certificate: CertificateSchema


class CertificateListSchema(Schema):
    certificates: list[CertificateSchema]


class DownloadSchema(Schema):
    data: str  # base64 zip
    filename: str
    mime_type: str


class IssueResponseSchema(Schema):
    certificate: CertificateSchema
    download: DownloadSchema


class SignCSRResponseSchema(Schema):
    certificate: CertificateSchema
    cert_pem: str
    chain_pem: str


class AuditEventSchema(Schema):
    id: int
    cert_id: str
    who: str
    action: str
    details: str
    timestamp: datetime


class AuditEventListSchema(Schema):
    events: list[AuditEventSchema]


class MessageSchema(Schema):
    message: str


class ErrorSchema(Schema):
    detail: str
