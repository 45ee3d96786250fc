from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from ipaddress import ip_address
from pathlib import Path
from tempfile import TemporaryDirectory

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

logger = logging.getLogger(__name__)

CERT_VALIDITY_DAYS = 365
LOOPBACK_ADDRESSES = ("127.0.0.1", "::1")


@dataclass
class TlsMaterial:
    """A self-signed certificate/key pair written to a private temp directory."""

    certfile: Path
    keyfile: Path
    not_valid_before: datetime
    not_valid_after: datetime
    _tmpdir: TemporaryDirectory = field(repr=False)

    def cleanup(self) -> None:
        self._tmpdir.cleanup()


def issue_self_signed(hostname: str = "localhost", days: int = CERT_VALIDITY_DAYS) -> TlsMaterial:
    """Generate a fresh RSA-2048 certificate for ``hostname`` and the loopback addresses."""

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, hostname),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Development"),
        ]
    )
    alt_names: list[x509.GeneralName] = [x509.DNSName(hostname)]
    alt_names.extend(x509.IPAddress(ip_address(addr)) for addr in LOOPBACK_ADDRESSES)

    not_before = datetime.now(timezone.utc)
    not_after = not_before + timedelta(days=days)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.SubjectAlternativeName(alt_names), critical=False)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    tmpdir = TemporaryDirectory(prefix="pageserver-tls-")
    certfile = Path(tmpdir.name) / "cert.pem"
    keyfile = Path(tmpdir.name) / "key.pem"
    certfile.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    keyfile.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    keyfile.chmod(0o600)

    logger.info(
        "tls.certificate_issued",
        extra={"hostname": hostname, "not_valid_after": not_after.isoformat()},
    )
    return TlsMaterial(
        certfile=certfile,
        keyfile=keyfile,
        not_valid_before=not_before,
        not_valid_after=not_after,
        _tmpdir=tmpdir,
    )
