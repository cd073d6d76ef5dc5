"""Self-signed certificate for serving the local listener over https."""

from __future__ import annotations

import datetime
import ipaddress
import logging
import os
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

logger = logging.getLogger(__name__)

CERT_FILENAME = "dev-cert.pem"
KEY_FILENAME = "dev-privkey.pem"
CERT_VALIDITY_DAYS = 365


def _load_existing(cert_path: Path, key_path: Path) -> bool:
    """True when both files exist, parse, and the certificate has not expired."""
    if not (cert_path.exists() and key_path.exists()):
        return False
    try:
        serialization.load_pem_private_key(key_path.read_bytes(), password=None)
        cert = x509.load_pem_x509_certificate(cert_path.read_bytes())
    except (ValueError, TypeError) as e:
        logger.warning("Dev certificate is unreadable (%s), generating a new one", e)
        return False
    return cert.not_valid_after_utc > datetime.datetime.now(datetime.timezone.utc)


def generate_certificate() -> tuple[bytes, bytes]:
    """Create a P-256 key and a self-signed certificate for localhost.

    Returns ``(cert_pem, key_pem)``.
    """
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=CERT_VALIDITY_DAYS))
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                    x509.IPAddress(ipaddress.ip_address("::1")),
                ]
            ),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return cert_pem, key_pem


def ensure_dev_certificate(config_dir: Path) -> tuple[Path, Path]:
    """Return ``(cert_path, key_path)``, generating them on first use."""
    cert_path = config_dir / CERT_FILENAME
    key_path = config_dir / KEY_FILENAME
    if _load_existing(cert_path, key_path):
        return cert_path, key_path

    logger.info("Generating dev certificate in %s", config_dir)
    config_dir.mkdir(parents=True, exist_ok=True)
    cert_pem, key_pem = generate_certificate()
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(key_pem)
    # Private key readable by the owner only
    os.chmod(key_path, 0o600)
    return cert_path, key_path
