"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
TLS keystore handling for the mock API server.

The keystore is a password protected PKCS#12 file holding the server's
private key, a server certificate valid for localhost and 127.0.0.1, and the
certificate of the test CA that issued it. The server side turns it into PEM
files for uvicorn; the client side extracts the CA certificate as its trust
bundle so certificate validation stays enabled.
"""

import ipaddress
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from sheets_harness.exceptions import KeystoreError

logger = logging.getLogger("sheets_harness.keystore")

CA_COMMON_NAME = "Sheets Harness Test CA"
SERVER_COMMON_NAME = "localhost"


@dataclass(frozen=True)
class TlsIdentity:
    """Key material loaded from a keystore."""

    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate
    ca_certificates: tuple[x509.Certificate, ...] = field(default_factory=tuple)

    @property
    def common_name(self) -> str:
        """Common name of the server certificate."""
        attributes = self.certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        return str(attributes[0].value) if attributes else ""

    @property
    def fingerprint(self) -> str:
        """SHA-256 fingerprint of the server certificate as hex."""
        return self.certificate.fingerprint(hashes.SHA256()).hex()

    def certificate_chain_pem(self) -> bytes:
        """Server certificate followed by its issuers, PEM encoded."""
        chain = [self.certificate, *self.ca_certificates]
        return b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in chain)

    def trust_pem(self) -> bytes:
        """Certificates a client must trust to validate the server, PEM encoded.

        A keystore without CA certificates holds a self-signed server
        certificate, which is then trusted directly.
        """
        anchors = self.ca_certificates or (self.certificate,)
        return b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in anchors)

    def private_key_pem(self, password: str) -> bytes:
        """Private key as encrypted PKCS#8 PEM."""
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(password.encode("utf-8")),
        )

    def write_server_files(self, directory: Path, password: str) -> tuple[Path, Path]:
        """
        Write the certificate chain and encrypted key for a TLS listener.

        Args:
            directory: Directory to write into
            password: Password used to encrypt the key file

        Returns:
            Tuple of (certificate file, key file)
        """
        directory.mkdir(parents=True, exist_ok=True)
        certfile = directory / "server-chain.pem"
        keyfile = directory / "server-key.pem"
        certfile.write_bytes(self.certificate_chain_pem())
        keyfile.write_bytes(self.private_key_pem(password))
        keyfile.chmod(0o600)
        return certfile, keyfile

    def write_trust_bundle(self, path: Path) -> Path:
        """Write the trust anchors to a CA bundle file usable as ``requests`` ``verify``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.trust_pem())
        return path


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Sheets Harness"),
        ]
    )


def _new_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def generate_identity(
    common_name: str = SERVER_COMMON_NAME,
    validity_days: int = 365,
) -> TlsIdentity:
    """
    Generate a test CA and a server certificate issued by it.

    Args:
        common_name: Host name the server certificate is issued for
        validity_days: Number of days both certificates stay valid

    Returns:
        The generated identity
    """
    now = datetime.now(timezone.utc)
    not_before = now - timedelta(days=1)
    not_after = now + timedelta(days=validity_days)

    ca_key = _new_key()
    ca_name = _name(CA_COMMON_NAME)
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(ca_name)
        .issuer_name(ca_name)
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(ca_key.public_key()), critical=False)
        .sign(ca_key, hashes.SHA256())
    )

    server_key = _new_key()
    server_cert = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(ca_name)
        .public_key(server_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName(common_name),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(server_key.public_key()), critical=False
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )

    return TlsIdentity(private_key=server_key, certificate=server_cert, ca_certificates=(ca_cert,))


def generate_keystore(
    path: str | Path,
    password: str,
    common_name: str = SERVER_COMMON_NAME,
    validity_days: int = 365,
) -> Path:
    """
    Generate a PKCS#12 keystore with a fresh test CA and server certificate.

    Args:
        path: Where to write the keystore
        password: Password protecting the keystore
        common_name: Host name the server certificate is issued for
        validity_days: Number of days the certificates stay valid

    Returns:
        Path to the written keystore

    Raises:
        KeystoreError: If the keystore cannot be written
    """
    path = Path(path)
    identity = generate_identity(common_name, validity_days)
    data = pkcs12.serialize_key_and_certificates(
        name=common_name.encode("utf-8"),
        key=identity.private_key,
        cert=identity.certificate,
        cas=list(identity.ca_certificates),
        encryption_algorithm=serialization.BestAvailableEncryption(password.encode("utf-8")),
    )

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise KeystoreError(f"Keystore {path} could not be written: {e}") from e

    logger.info(f"Generated keystore {path} for {common_name}")
    return path


def load_keystore(path: str | Path, password: str) -> TlsIdentity:
    """
    Load the TLS identity from a PKCS#12 keystore.

    Args:
        path: Location of the keystore
        password: Keystore password

    Returns:
        The identity stored in the keystore

    Raises:
        KeystoreError: If the file is unreadable, the password is wrong, or
            the keystore lacks a key or certificate
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise KeystoreError(f"Keystore {path} could not be read: {e}") from e

    try:
        key, certificate, ca_certificates = pkcs12.load_key_and_certificates(
            data, password.encode("utf-8")
        )
    except ValueError as e:
        raise KeystoreError(f"Keystore {path} could not be decrypted: {e}") from e

    if key is None or certificate is None:
        raise KeystoreError(f"Keystore {path} does not contain a private key and certificate")

    logger.debug(f"Loaded keystore {path}")
    return TlsIdentity(
        private_key=key,
        certificate=certificate,
        ca_certificates=tuple(ca_certificates or ()),
    )


def ensure_keystore(path: str | Path, password: str, generate: bool = True) -> TlsIdentity:
    """Load a keystore, generating it first when it is missing and generation is allowed."""
    path = Path(path)
    if not path.exists() and generate:
        generate_keystore(path, password)
    return load_keystore(path, password)
