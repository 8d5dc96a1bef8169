"""
Certificate material parser.

Recovers the canonical identity (serial number, expiry) of a certificate
issued by the CA. Two strategies sit behind the same interface:

  OpenSSLCertificateParser: runs `openssl x509 -noout -serial -enddate`
                            and maps its textual output (default).
  NativeCertificateParser:  decodes the DER with `cryptography`.

Both decode the PEM envelope first, so a malformed envelope is always
ParseError(reason="malformed") regardless of strategy.

Configuration (Django settings):
    CERT_PARSER: "openssl" | "native"
    OPENSSL_BIN: path to the openssl binary (default: 'openssl')

Also reads CSR subjects (CN + SANs) and root fingerprints, which need a
real X.509 decoder rather than text scraping.
"""

import base64
import binascii
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID
from django.conf import settings

from src.common.exceptions import ParseError, ValidationError

logger = structlog.get_logger(__name__)

DEFAULT_OPENSSL_BIN = "openssl"
DEFAULT_TIMEOUT = 30

# openssl prints e.g. "notAfter=Jan  2 15:04:05 2006 GMT"
NOT_AFTER_FORMAT = "%b %d %H:%M:%S %Y"

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\r?\n(.*?)-----END \1-----",
    re.DOTALL,
)


@dataclass(frozen=True)
class CertificateIdentity:
    serial: str
    not_after: datetime


@dataclass(frozen=True)
class CSRSubject:
    common_name: str
    sans: list[str]


def _as_bytes(data: bytes | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return data


def decode_pem(data: bytes | str) -> tuple[str, bytes]:
    """
    Decode the first PEM block in `data`.

    Returns (label, der_bytes). Encapsulated headers (Proc-Type, …) are
    skipped.

    Raises:
        ParseError(reason="malformed") if no well-formed block is found.
    """
    match = _PEM_BLOCK_RE.search(_as_bytes(data))
    if match is None:
        raise ParseError("Failed to decode PEM block.", reason=ParseError.MALFORMED)

    label = match.group(1).decode("ascii")
    body_lines = [
        line.strip()
        for line in match.group(2).splitlines()
        if line.strip() and b":" not in line
    ]
    try:
        der = base64.b64decode(b"".join(body_lines), validate=True)
    except (binascii.Error, ValueError):
        raise ParseError("PEM block body is not valid base64.", reason=ParseError.MALFORMED)

    if not der:
        raise ParseError("PEM block is empty.", reason=ParseError.MALFORMED)
    return label, der


def parse_not_after(value: str) -> datetime:
    """
    Parse an openssl `notAfter` value under the fixed format
    "Mon D HH:MM:SS YYYY TZ". Runs of spaces collapse (openssl pads
    single-digit days). The zone abbreviation is read as UTC.
    """
    parts = value.split()
    if len(parts) != 5 or not parts[-1].isalpha():
        raise ParseError(
            f"Unrecognised notAfter value: {value!r}",
            reason=ParseError.UNPARSEABLE,
        )
    try:
        parsed = datetime.strptime(" ".join(parts[:-1]), NOT_AFTER_FORMAT)
    except ValueError:
        raise ParseError(
            f"Unrecognised notAfter value: {value!r}",
            reason=ParseError.UNPARSEABLE,
        )
    return parsed.replace(tzinfo=timezone.utc)


def parse_openssl_fields(output: str) -> CertificateIdentity:
    """Map `serial=` / `notAfter=` lines to a CertificateIdentity."""
    serial = None
    not_after = None

    for line in output.splitlines():
        if line.startswith("serial="):
            serial = line[len("serial="):]
        elif line.startswith("notAfter="):
            not_after = parse_not_after(line[len("notAfter="):])

    if not serial or not_after is None:
        missing = [name for name, v in (("serial", serial), ("notAfter", not_after)) if not v]
        raise ParseError(
            f"Certificate inspection output is missing: {', '.join(missing)}",
            reason=ParseError.UNPARSEABLE,
        )
    return CertificateIdentity(serial=serial, not_after=not_after)


class CertificateParser:
    """Interface: parse(cert_pem) -> CertificateIdentity, raises ParseError."""

    def parse(self, cert_pem: bytes | str) -> CertificateIdentity:
        raise NotImplementedError


class OpenSSLCertificateParser(CertificateParser):

    def __init__(self, openssl_bin: str = DEFAULT_OPENSSL_BIN, timeout: float = DEFAULT_TIMEOUT):
        self.openssl_bin = openssl_bin
        self.timeout = timeout

    def parse(self, cert_pem: bytes | str) -> CertificateIdentity:
        cert_bytes = _as_bytes(cert_pem)
        decode_pem(cert_bytes)

        cmd = [self.openssl_bin, "x509", "-noout", "-serial", "-enddate"]
        try:
            result = subprocess.run(
                cmd,
                input=cert_bytes,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise ParseError(
                f"openssl binary not found at '{self.openssl_bin}'.",
                reason=ParseError.UNPARSEABLE,
            )
        except subprocess.TimeoutExpired:
            raise ParseError(
                f"Certificate inspection timed out ({self.timeout}s).",
                reason=ParseError.UNPARSEABLE,
            )

        output = result.stdout.decode("utf-8", errors="replace")
        if result.returncode != 0:
            logger.error(
                "cert_inspection_failed",
                return_code=result.returncode,
                output=output.strip(),
            )
            raise ParseError(
                f"openssl x509 failed: {output.strip() or 'unknown error'}",
                reason=ParseError.UNPARSEABLE,
            )

        return parse_openssl_fields(output)


class NativeCertificateParser(CertificateParser):

    def parse(self, cert_pem: bytes | str) -> CertificateIdentity:
        _, der = decode_pem(cert_pem)
        try:
            cert = x509.load_der_x509_certificate(der)
        except ValueError as e:
            raise ParseError(f"Not an X.509 certificate: {e}", reason=ParseError.UNPARSEABLE)

        return CertificateIdentity(
            serial=format_serial(cert.serial_number),
            not_after=cert.not_valid_after_utc,
        )


def format_serial(serial_number: int) -> str:
    """Uppercase hex, padded to whole octets, the form openssl prints."""
    hex_serial = f"{serial_number:X}"
    if len(hex_serial) % 2:
        hex_serial = "0" + hex_serial
    return hex_serial


def get_certificate_parser() -> CertificateParser:
    """Build the parser selected by settings.CERT_PARSER."""
    if getattr(settings, "CERT_PARSER", "openssl") == "native":
        return NativeCertificateParser()
    return OpenSSLCertificateParser(
        openssl_bin=getattr(settings, "OPENSSL_BIN", DEFAULT_OPENSSL_BIN),
        timeout=getattr(settings, "CA_COMMAND_TIMEOUT", DEFAULT_TIMEOUT),
    )


def parse_certificate(cert_pem: bytes | str) -> CertificateIdentity:
    """Parse with the strategy selected by settings.CERT_PARSER."""
    return get_certificate_parser().parse(cert_pem)


# ── CSR / root helpers ──────────────────────────────────────────────────


def read_csr_subject(csr_pem: bytes | str) -> CSRSubject:
    """
    Read the common name and SANs a CSR asks for.

    A CSR without a CN falls back to its first SAN.

    Raises:
        ValidationError if the CSR cannot be decoded, its signature does
        not verify, or it names no identity at all.
    """
    try:
        csr = x509.load_pem_x509_csr(_as_bytes(csr_pem))
    except ValueError as e:
        raise ValidationError(f"Invalid CSR: {e}")

    if not csr.is_signature_valid:
        raise ValidationError("CSR signature does not verify.")

    cn_attrs = csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    common_name = str(cn_attrs[0].value) if cn_attrs else ""

    sans: list[str] = []
    try:
        ext = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        ext = None
    except ValueError as e:
        raise ValidationError(f"Invalid CSR extensions: {e}")

    if ext is not None:
        for name in ext.value:
            if isinstance(name, (x509.DNSName, x509.RFC822Name, x509.UniformResourceIdentifier)):
                sans.append(name.value)
            elif isinstance(name, x509.IPAddress):
                sans.append(str(name.value))

    if not common_name:
        if not sans:
            raise ValidationError("CSR names neither a common name nor any SAN.")
        common_name = sans[0]

    return CSRSubject(common_name=common_name, sans=sans)


def fingerprint_sha256(cert_pem: bytes | str) -> str:
    """Lowercase hex SHA-256 of the first certificate's DER (step's format)."""
    _, der = decode_pem(cert_pem)
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise ParseError(f"Not an X.509 certificate: {e}", reason=ParseError.UNPARSEABLE)
    return cert.fingerprint(hashes.SHA256()).hex()
