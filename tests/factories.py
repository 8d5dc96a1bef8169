"""
Test doubles: an in-memory CA built with cryptography, a fake step
client for service/API tests and a fake `subprocess.run` for the
StepCAClient tests.
"""

import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from src.integrations.cert_inspector import NativeCertificateParser
from src.integrations.step_ca import CertificateBundle


def _name(common_name: str | None) -> x509.Name:
    if not common_name:
        return x509.Name([])
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _key_pem(key) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def build_csr(common_name: str | None, sans: list[str] | None = None) -> str:
    key = ec.generate_private_key(ec.SECP256R1())
    builder = x509.CertificateSigningRequestBuilder().subject_name(_name(common_name))
    if sans:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(s) for s in sans]),
            critical=False,
        )
    csr = builder.sign(key, hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.PEM).decode("ascii")


class LocalCA:
    """Self-signed root that issues leaf certificates on demand."""

    def __init__(self, common_name: str = "Test Root CA"):
        self.key = ec.generate_private_key(ec.SECP256R1())
        now = datetime.now(timezone.utc)
        self.cert = (
            x509.CertificateBuilder()
            .subject_name(_name(common_name))
            .issuer_name(_name(common_name))
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=3650))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .sign(self.key, hashes.SHA256())
        )
        self.cert_pem = self.cert.public_bytes(serialization.Encoding.PEM)

    def issue_leaf(
        self,
        common_name: str | None,
        sans: list[str] | None = None,
        days: int = 30,
        public_key=None,
    ) -> tuple[bytes, bytes | None]:
        """Return (cert_pem, key_pem). key_pem is None when public_key is given."""
        key = None
        if public_key is None:
            key = ec.generate_private_key(ec.SECP256R1())
            public_key = key.public_key()

        now = datetime.now(timezone.utc)
        builder = (
            x509.CertificateBuilder()
            .subject_name(_name(common_name))
            .issuer_name(self.cert.subject)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=1))
            .not_valid_after(now + timedelta(days=days))
        )
        if sans:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(s) for s in sans]),
                critical=False,
            )
        cert = builder.sign(self.key, hashes.SHA256())
        cert_pem = cert.public_bytes(serialization.Encoding.PEM)
        return cert_pem, (_key_pem(key) if key is not None else None)

    def sign_csr(self, csr_pem: bytes | str, days: int = 30) -> bytes:
        if isinstance(csr_pem, str):
            csr_pem = csr_pem.encode("ascii")
        csr = x509.load_pem_x509_csr(csr_pem)
        cn_attrs = csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        cert_pem, _ = self.issue_leaf(
            cn_attrs[0].value if cn_attrs else None,
            days=days,
            public_key=csr.public_key(),
        )
        return cert_pem


class FakeStepClient:
    """
    Stands in for StepCAClient at the service seam. Issues real
    certificates from a LocalCA; failures are injected per operation.
    """

    def __init__(self, ca: LocalCA):
        self.ca = ca
        self.parser = NativeCertificateParser()
        self.calls: list[tuple] = []
        self.issue_error: Exception | None = None
        self.sign_error: Exception | None = None
        self.revoke_error: Exception | None = None
        self.pfx_error: Exception | None = None

    def _bundle(self, cert_pem: bytes, key_pem: bytes | None) -> CertificateBundle:
        identity = self.parser.parse(cert_pem)
        return CertificateBundle(
            cert_pem=cert_pem,
            chain_pem=self.ca.cert_pem,
            key_pem=key_pem,
            serial=identity.serial,
            not_after=identity.not_after,
        )

    def issue(self, common_name, sans, validity_days):
        self.calls.append(("issue", common_name, list(sans), validity_days))
        if self.issue_error:
            raise self.issue_error
        cert_pem, key_pem = self.ca.issue_leaf(common_name, list(sans), days=validity_days)
        return self._bundle(cert_pem, key_pem)

    def sign_csr(self, csr_pem, validity_days):
        self.calls.append(("sign", validity_days))
        if self.sign_error:
            raise self.sign_error
        return self._bundle(self.ca.sign_csr(csr_pem, days=validity_days), None)

    def revoke(self, serial):
        self.calls.append(("revoke", serial))
        if self.revoke_error:
            raise self.revoke_error

    def create_pfx(self, cert_pem, key_pem, password):
        self.calls.append(("pfx", password))
        if self.pfx_error:
            raise self.pfx_error
        return b"PKCS12:" + password.encode("utf-8")

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)


def _flag_values(cmd: list[str], flag: str) -> list[str]:
    return [cmd[i + 1] for i, arg in enumerate(cmd[:-1]) if arg == flag]


class FakeStepProcess:
    """
    Replacement for subprocess.run inside src.integrations.step_ca.

    Behaves like a cooperative `step` binary: writes the files the real
    CLI would write. `results` maps a subcommand, e.g. ("ca", "revoke"),
    to a (returncode, stdout, stderr) tuple or an exception to raise.
    """

    def __init__(self, ca: LocalCA):
        self.ca = ca
        self.commands: list[list[str]] = []
        self.workdirs: list[Path] = []
        self.results: dict[tuple[str, str], object] = {}
        self.password_file_contents: list[str] = []

    def __call__(self, cmd, *, cwd=None, timeout=None, **kwargs):
        self.commands.append(list(cmd))
        self.workdirs.append(Path(cwd))
        subcommand = (cmd[1], cmd[2])

        injected = self.results.get(subcommand)
        if isinstance(injected, BaseException):
            raise injected
        if injected is not None:
            returncode, stdout, stderr = injected
            return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

        if subcommand == ("ca", "certificate"):
            cert_pem, key_pem = self.ca.issue_leaf(cmd[3], _flag_values(cmd, "--san"))
            Path(cmd[4]).write_bytes(cert_pem)
            Path(cmd[5]).write_bytes(key_pem)
        elif subcommand == ("ca", "sign"):
            Path(cmd[4]).write_bytes(self.ca.sign_csr(Path(cmd[3]).read_bytes()))
        elif subcommand == ("certificate", "chain"):
            return subprocess.CompletedProcess(cmd, 0, self.ca.cert_pem, b"")
        elif subcommand == ("certificate", "p12"):
            password_file = _flag_values(cmd, "--password-file")[0]
            self.password_file_contents.append(Path(password_file).read_text())
            Path(cmd[3]).write_bytes(b"PKCS12-DATA")
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    def ran(self, first: str, second: str) -> list[list[str]]:
        return [cmd for cmd in self.commands if (cmd[1], cmd[2]) == (first, second)]
