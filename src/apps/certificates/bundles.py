"""
Download bundle assembler.

Builds the zip a caller receives after issuing a certificate. Entry
names and order are fixed, documentation refers to them:

    cert.pem        leaf certificate
    chain.pem       issuing chain
    fullchain.pem   leaf bytes followed by chain bytes
    privkey.pem     only when the server generated the key
    cert.p12        only for format "pfx" with a server-held key
    README.txt      installation guide for the files above

Every entry carries the same fixed timestamp, so identical inputs
produce byte-identical archives.
"""

import io
import zipfile
from collections.abc import Callable

import structlog

from src.common.exceptions import ApplicationError, AssembleError, ValidationError
from src.common.types import BundleFormat
from src.integrations.step_ca import CertificateBundle

logger = structlog.get_logger(__name__)

BUNDLE_MIME_TYPE = "application/zip"

CERT_ENTRY = "cert.pem"
CHAIN_ENTRY = "chain.pem"
FULLCHAIN_ENTRY = "fullchain.pem"
KEY_ENTRY = "privkey.pem"
PFX_ENTRY = "cert.p12"
README_ENTRY = "README.txt"

_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

_ENTRY_DESCRIPTIONS = {
    CERT_ENTRY: "Your certificate",
    CHAIN_ENTRY: "Certificate chain (intermediate CAs)",
    FULLCHAIN_ENTRY: "Certificate + chain (use this for most applications)",
    KEY_ENTRY: "Private key (keep this secure!)",
}

PfxPackager = Callable[[bytes, bytes, str], bytes]


def bundle_filename(common_name: str) -> str:
    return f"{common_name}-cert-bundle.zip"


def assemble_bundle(
    *,
    bundle: CertificateBundle,
    fmt: str = BundleFormat.PEM,
    pfx_password: str | None = None,
    pfx_packager: PfxPackager | None = None,
) -> bytes:
    """
    Build the download archive for one issued certificate.

    Args:
        bundle: material from a completed CA operation
        fmt: "pem" or "pfx"
        pfx_password: protects cert.p12; required when a .p12 is produced
        pfx_packager: callable (cert_pem, key_pem, password) -> p12 bytes,
            normally StepCAClient.create_pfx

    Raises:
        AssembleError if any entry cannot be produced. Nothing partial
        is ever returned.
    """
    entries: list[tuple[str, bytes]] = [
        (CERT_ENTRY, bundle.cert_pem),
        (CHAIN_ENTRY, bundle.chain_pem),
        (FULLCHAIN_ENTRY, bundle.fullchain_pem),
    ]

    if bundle.has_private_key:
        entries.append((KEY_ENTRY, bundle.key_pem))

    include_pfx = fmt == BundleFormat.PFX and bundle.has_private_key
    if include_pfx:
        entries.append((PFX_ENTRY, _package_pfx(bundle, pfx_password, pfx_packager)))

    names = [name for name, _ in entries]
    readme = render_readme(names, pfx_password=pfx_password if include_pfx else None)
    entries.append((README_ENTRY, readme.encode("utf-8")))

    buf = io.BytesIO()
    try:
        with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, data in entries:
                info = zipfile.ZipInfo(name, date_time=_ZIP_EPOCH)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o600 << 16 if name in (KEY_ENTRY, PFX_ENTRY) else 0o644 << 16
                archive.writestr(info, data)
    except (OSError, zipfile.BadZipFile) as e:
        raise AssembleError(f"Failed to write bundle archive: {e}")

    logger.info("bundle_assembled", entries=[name for name, _ in entries], size=buf.tell())
    return buf.getvalue()


def _package_pfx(
    bundle: CertificateBundle,
    password: str | None,
    packager: PfxPackager | None,
) -> bytes:
    if not password:
        raise AssembleError("A PFX password is required for the pfx format.")
    if packager is None:
        raise AssembleError("No PKCS#12 packager configured.")

    try:
        return packager(bundle.cert_pem, bundle.key_pem, password)
    except (ApplicationError, OSError) as e:
        message = e.message if isinstance(e, ApplicationError) else str(e)
        logger.error("pfx_packaging_failed", error=message)
        raise AssembleError(f"Failed to create PFX: {message}")


def render_readme(entry_names: list[str], *, pfx_password: str | None = None) -> str:
    """Installation guide listing exactly the files present in the archive."""
    has_key = KEY_ENTRY in entry_names
    has_pfx = PFX_ENTRY in entry_names

    lines = [
        "# Certificate Installation Instructions",
        "",
        "## Files in this bundle:",
    ]
    for name in entry_names:
        if name == PFX_ENTRY:
            lines.append(f"- {PFX_ENTRY}: PFX/PKCS#12 bundle (password: {pfx_password})")
        elif name in _ENTRY_DESCRIPTIONS:
            lines.append(f"- {name}: {_ENTRY_DESCRIPTIONS[name]}")
    lines.append(f"- {README_ENTRY}: This file")

    lines += [
        "",
        "## Installation Instructions",
        "",
        "### Linux/Ubuntu (Nginx, Apache, etc.)",
        "```bash",
        "# Copy files to appropriate locations",
        "sudo cp fullchain.pem /etc/ssl/certs/your-domain.crt",
    ]
    if has_key:
        lines.append("sudo cp privkey.pem /etc/ssl/private/your-domain.key")
    else:
        lines.append("# The private key stayed with whoever generated the CSR.")
    lines += [
        "",
        "# For Nginx, update your server block:",
        "# ssl_certificate /etc/ssl/certs/your-domain.crt;",
        "# ssl_certificate_key /etc/ssl/private/your-domain.key;",
        "",
        "# Reload nginx",
        "sudo nginx -s reload",
        "```",
        "",
    ]

    if has_pfx:
        lines += [
            "### Windows (IIS)",
            "1. Import cert.p12 into Certificate Store",
            "2. Use IIS Manager to bind the certificate to your site",
            "",
        ]

    lines += [
        "### Trust the CA Root",
        "To trust this CA on client systems:",
        "",
        "**Linux/Ubuntu:**",
        "```bash",
        "sudo cp chain.pem /usr/local/share/ca-certificates/my-ca.crt",
        "sudo update-ca-certificates",
        "```",
        "",
        "**Windows PowerShell:**",
        "```powershell",
        "Import-Certificate -FilePath chain.pem -CertStoreLocation Cert:\\LocalMachine\\Root",
        "```",
        "",
        "## Verification",
        "```bash",
        "# Verify certificate chain",
        "openssl verify -CAfile chain.pem cert.pem",
        "",
        "# Check certificate details",
        "openssl x509 -in cert.pem -text -noout",
        "",
        "# Test SSL connection",
        "openssl s_client -connect your-domain:443 -showcerts",
        "```",
    ]
    return "\n".join(lines) + "\n"


def validate_bundle_request(fmt: str, pfx_password: str | None) -> BundleFormat:
    """Check format/password before any CA work happens."""
    try:
        bundle_format = BundleFormat(fmt or BundleFormat.PEM)
    except ValueError:
        raise ValidationError(f"Unsupported bundle format '{fmt}'. Use 'pem' or 'pfx'.")
    if bundle_format == BundleFormat.PFX and not pfx_password:
        raise ValidationError("pfx_password is required when format is 'pfx'.")
    return bundle_format
