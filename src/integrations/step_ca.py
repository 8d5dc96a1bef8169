"""
step-ca integration.

Wraps the `step` CLI behind a typed client. Each operation takes domain
parameters, runs the CLI inside its own scratch directory and returns a
structured result or raises:

  ValidationError: input rejected before the CLI is invoked
  CAError:         the CLI exited non-zero (exit code + output attached)
  CATimeoutError:  the CLI exceeded CA_COMMAND_TIMEOUT
  ParseError:      the issued certificate could not be parsed

Configuration (Django settings, see src/config/others/step_ca.py):
  CA_URL                     = "https://ca.internal:9000"
  CA_ROOT                    = "/home/step/certs/root_ca.crt"   (optional)
  PROVISIONER_NAME           = "ui-admin"
  PROVISIONER_PASSWORD_FILE  = "/run/secrets/provisioner-password"
  STEP_BIN                   = "step"
  CA_COMMAND_TIMEOUT         = 60

The provisioner password only ever travels as a file path, so it can
not leak into argv, logs or error details.
"""

import subprocess
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog
from django.conf import settings

from src.common.exceptions import CAError, CATimeoutError, ParseError, ValidationError
from src.integrations.cert_inspector import (
    CertificateParser,
    decode_pem,
    get_certificate_parser,
)

logger = structlog.get_logger(__name__)

DEFAULT_STEP_BIN = "step"
DEFAULT_TIMEOUT = 60


@dataclass(frozen=True)
class StepCAConfig:
    ca_url: str
    provisioner_name: str
    provisioner_password_file: str = ""
    ca_root: str = ""
    step_bin: str = DEFAULT_STEP_BIN
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_settings(cls) -> "StepCAConfig":
        return cls(
            ca_url=getattr(settings, "CA_URL", ""),
            provisioner_name=getattr(settings, "PROVISIONER_NAME", ""),
            provisioner_password_file=getattr(settings, "PROVISIONER_PASSWORD_FILE", ""),
            ca_root=getattr(settings, "CA_ROOT", ""),
            step_bin=getattr(settings, "STEP_BIN", DEFAULT_STEP_BIN),
            timeout=getattr(settings, "CA_COMMAND_TIMEOUT", DEFAULT_TIMEOUT),
        )


@dataclass(frozen=True)
class CertificateBundle:
    """Output of one successful issue/sign. Never persisted."""

    cert_pem: bytes
    chain_pem: bytes
    serial: str
    not_after: datetime
    key_pem: bytes | None = None

    @property
    def fullchain_pem(self) -> bytes:
        return self.cert_pem + self.chain_pem

    @property
    def has_private_key(self) -> bool:
        return bool(self.key_pem)


@contextmanager
def scratch_workspace(prefix: str) -> Iterator[Path]:
    """Private temp directory, removed on every exit path."""
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        yield Path(tmp)


def _decode(output: bytes | None) -> str:
    return (output or b"").decode("utf-8", errors="replace")


def validate_validity_days(validity_days) -> int:
    if isinstance(validity_days, bool) or not isinstance(validity_days, int) or validity_days <= 0:
        raise ValidationError(
            f"Validity must be a positive whole number of days, got {validity_days!r}."
        )
    return validity_days


def clean_sans(sans: Sequence[str] | None) -> list[str]:
    """Strip each SAN, keeping order; blanks and non-strings are rejected."""
    cleaned = []
    for san in sans or []:
        if not isinstance(san, str) or not san.strip():
            raise ValidationError(f"Invalid subject alternative name: {san!r}")
        cleaned.append(san.strip())
    return cleaned


class StepCAClient:
    """
    Four CA operations (issue, sign, revoke, fetch chain) plus PKCS#12
    packaging. Stateless apart from its immutable config.
    """

    def __init__(self, config: StepCAConfig, parser: CertificateParser | None = None):
        self.config = config
        self.parser = parser or get_certificate_parser()

    # ── Public operations ───────────────────────────────────────────────

    def issue(self, common_name: str, sans: Sequence[str], validity_days: int) -> CertificateBundle:
        """Issue a fresh key + certificate. The bundle carries the key."""
        common_name = (common_name or "").strip()
        if not common_name:
            raise ValidationError("Common name is required.")
        validity_days = validate_validity_days(validity_days)
        sans = clean_sans(sans)

        with scratch_workspace("step-cert-") as workdir:
            cert_path = workdir / "cert.crt"
            key_path = workdir / "cert.key"

            args = [
                "ca", "certificate",
                common_name,
                str(cert_path),
                str(key_path),
                *self._ca_flags(),
                *self._provisioner_flags(),
                "--not-after", self._not_after(validity_days),
            ]
            for san in sans:
                args.extend(["--san", san])

            self._run(args, operation="certificate", workdir=workdir)

            cert_pem = self._read_output(cert_path, "certificate")
            key_pem = self._read_output(key_path, "private key")
            chain_pem = self._chain_for(cert_path, workdir)

        identity = self.parser.parse(cert_pem)

        logger.info(
            "ca_certificate_issued",
            cn=common_name,
            san_count=len(sans),
            serial=identity.serial,
            not_after=identity.not_after.isoformat(),
        )
        return CertificateBundle(
            cert_pem=cert_pem,
            chain_pem=chain_pem,
            key_pem=key_pem,
            serial=identity.serial,
            not_after=identity.not_after,
        )

    def sign_csr(self, csr_pem: str | bytes, validity_days: int) -> CertificateBundle:
        """Sign a caller-supplied CSR. No private key is ever seen."""
        csr_bytes = csr_pem.encode("utf-8") if isinstance(csr_pem, str) else (csr_pem or b"")
        try:
            label, _ = decode_pem(csr_bytes)
        except ParseError:
            raise ValidationError("CSR is not a PEM-encoded certificate request.")
        if "CERTIFICATE REQUEST" not in label:
            raise ValidationError(f"Expected a CERTIFICATE REQUEST PEM block, got '{label}'.")
        validity_days = validate_validity_days(validity_days)

        with scratch_workspace("step-csr-") as workdir:
            csr_path = workdir / "csr.pem"
            cert_path = workdir / "cert.crt"
            csr_path.write_bytes(csr_bytes)

            args = [
                "ca", "sign",
                str(csr_path),
                str(cert_path),
                *self._ca_flags(),
                *self._provisioner_flags(),
                "--not-after", self._not_after(validity_days),
            ]
            self._run(args, operation="sign", workdir=workdir)

            cert_pem = self._read_output(cert_path, "certificate")
            chain_pem = self._chain_for(cert_path, workdir)

        identity = self.parser.parse(cert_pem)

        logger.info(
            "ca_csr_signed",
            serial=identity.serial,
            not_after=identity.not_after.isoformat(),
        )
        return CertificateBundle(
            cert_pem=cert_pem,
            chain_pem=chain_pem,
            serial=identity.serial,
            not_after=identity.not_after,
        )

    def revoke(self, serial: str) -> None:
        """
        Revoke by serial. Records hold the hex form openssl prints; step
        reads an unprefixed serial as decimal, so it is converted here.
        """
        serial = (serial or "").strip()
        if not serial:
            raise ValidationError("Serial number is required to revoke.")
        try:
            serial_number = int(serial.replace(":", ""), 16)
        except ValueError:
            raise ValidationError(f"Serial number is not hexadecimal: {serial}")

        with scratch_workspace("step-revoke-") as workdir:
            args = [
                "ca", "revoke",
                str(serial_number),
                *self._ca_flags(),
                *self._provisioner_flags(),
            ]
            self._run(args, operation="revoke", workdir=workdir)

        logger.info("ca_certificate_revoked", serial=serial)

    def fetch_chain(self, cert_pem: bytes | str) -> bytes:
        cert_bytes = cert_pem.encode("utf-8") if isinstance(cert_pem, str) else cert_pem
        with scratch_workspace("step-chain-") as workdir:
            cert_path = workdir / "cert.crt"
            cert_path.write_bytes(cert_bytes)
            return self._chain_for(cert_path, workdir)

    def create_pfx(self, cert_pem: bytes, key_pem: bytes, password: str) -> bytes:
        """Package certificate + key as PKCS#12 protected by `password`."""
        if not password:
            raise ValidationError("A password is required for PKCS#12 output.")

        with scratch_workspace("step-pfx-") as workdir:
            cert_path = workdir / "cert.crt"
            key_path = workdir / "cert.key"
            pfx_path = workdir / "cert.p12"
            password_path = workdir / "password.txt"

            cert_path.write_bytes(cert_pem)
            key_path.write_bytes(key_pem)
            key_path.chmod(0o600)
            password_path.write_text(password, encoding="utf-8")
            password_path.chmod(0o600)

            args = [
                "certificate", "p12",
                str(pfx_path),
                str(cert_path),
                str(key_path),
                "--password-file", str(password_path),
            ]
            self._run(args, operation="p12", workdir=workdir)
            return self._read_output(pfx_path, "PKCS#12 bundle")

    # ── Internals ───────────────────────────────────────────────────────

    def _chain_for(self, cert_path: Path, workdir: Path) -> bytes:
        args = [
            "certificate", "chain",
            str(cert_path),
            *self._ca_flags(),
        ]
        chain_pem = self._run(args, operation="chain", workdir=workdir)
        if not chain_pem.strip():
            raise CAError("step certificate chain returned an empty chain.", output="")
        return chain_pem

    def _ca_flags(self) -> list[str]:
        flags = ["--ca-url", self.config.ca_url]
        if self.config.ca_root:
            flags.extend(["--root", self.config.ca_root])
        return flags

    def _provisioner_flags(self) -> list[str]:
        flags = ["--provisioner", self.config.provisioner_name]
        if self.config.provisioner_password_file:
            flags.extend(["--provisioner-password-file", self.config.provisioner_password_file])
        return flags

    @staticmethod
    def _not_after(validity_days: int) -> str:
        # step parses --not-after as a Go duration, which has no day unit
        return f"{validity_days * 24}h"

    @staticmethod
    def _read_output(path: Path, what: str) -> bytes:
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise CAError(f"step reported success but wrote no {what}.", output="")
        if not data:
            raise CAError(f"step wrote an empty {what}.", output="")
        return data

    def _run(self, args: list[str], *, operation: str, workdir: Path) -> bytes:
        """
        Run one step command. Returns stdout; stderr is only kept for
        diagnostics.
        """
        cmd = [self.config.step_bin, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=workdir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.config.timeout,
            )
        except FileNotFoundError:
            raise CAError(
                f"step binary not found at '{self.config.step_bin}'. "
                "Ensure the step CLI is installed and STEP_BIN is set.",
                output="",
            )
        except subprocess.TimeoutExpired as e:
            output = (_decode(e.stdout) + _decode(e.stderr)).strip()
            logger.error(
                "ca_command_timeout",
                operation=operation,
                timeout=self.config.timeout,
            )
            raise CATimeoutError(
                f"step {operation} timed out ({self.config.timeout}s).",
                timeout=self.config.timeout,
                output=output,
            )

        if result.returncode != 0:
            output = (_decode(result.stdout) + _decode(result.stderr)).strip()
            logger.error(
                "ca_command_failed",
                operation=operation,
                return_code=result.returncode,
                output=output,
            )
            raise CAError(
                f"step {operation} failed: {output or 'unknown error'}",
                exit_code=result.returncode,
                output=output,
            )

        logger.debug("ca_command_succeeded", operation=operation)
        return result.stdout


def get_step_client() -> StepCAClient:
    """Client built from current Django settings."""
    return StepCAClient(StepCAConfig.from_settings())
