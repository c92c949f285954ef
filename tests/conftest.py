from __future__ import annotations

import datetime as dt
import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtensionOID, NameOID

from hostverify.tls.contexts import TLSPaths, build_client_ssl_context, build_server_ssl_context


@dataclass
class FakeReader:
    dns_names: List[str]
    common_name: Optional[str] = None

    cn_reads: int = 0

    def subject_alt_name_dns_entries(self) -> List[str]:
        return list(self.dns_names)

    def subject_common_name(self) -> Optional[str]:
        self.cn_reads += 1
        return self.common_name


@dataclass(frozen=True)
class CertPair:
    cert: x509.Certificate
    cert_path: Path
    key_path: Path

    @property
    def pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)


def make_cert(
    common_name: Union[str, Sequence[str], None],
    san: Optional[Sequence[x509.GeneralName]] = None,
    key: Optional[ec.EllipticCurvePrivateKey] = None,
    raw_san: Optional[bytes] = None,
) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    key = key or ec.generate_private_key(ec.SECP256R1())

    attrs = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, "hostverify tests")]
    cns = [common_name] if isinstance(common_name, str) else list(common_name or ())
    for cn in cns:
        attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, cn))
    subject = issuer = x509.Name(attrs)

    now = dt.datetime.now(dt.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - dt.timedelta(minutes=1))
        .not_valid_after(now + dt.timedelta(days=1))
    )
    if san is not None:
        builder = builder.add_extension(x509.SubjectAlternativeName(list(san)), critical=False)
    if raw_san is not None:
        builder = builder.add_extension(
            x509.UnrecognizedExtension(ExtensionOID.SUBJECT_ALTERNATIVE_NAME, raw_san),
            critical=False,
        )
    return builder.sign(key, hashes.SHA256()), key


def write_pair(tmp_path: Path, name: str, cert: x509.Certificate, key: ec.EllipticCurvePrivateKey) -> CertPair:
    cert_path = tmp_path / f"{name}.crt"
    key_path = tmp_path / f"{name}.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return CertPair(cert, cert_path, key_path)


@pytest.fixture
def san_cert(tmp_path: Path) -> CertPair:
    # CN *.webrtc.org, SANs foo.test, *.bar.test, test.webrtc.org
    cert, key = make_cert(
        "*.webrtc.org",
        san=[
            x509.DNSName("foo.test"),
            x509.DNSName("*.bar.test"),
            x509.DNSName("test.webrtc.org"),
        ],
    )
    return write_pair(tmp_path, "san", cert, key)


@pytest.fixture
def legacy_cert(tmp_path: Path) -> CertPair:
    cert, key = make_cert("*.webrtc.org")
    return write_pair(tmp_path, "legacy", cert, key)


def handshake(server_pair: CertPair) -> ssl.SSLObject:
    """
    Run a full in-memory handshake against a server presenting
    `server_pair` and return the client side.
    """
    server_ctx = build_server_ssl_context(server_pair.cert_path, server_pair.key_path)
    client_ctx = build_client_ssl_context(TLSPaths(), verify_chain=False)

    c_in, c_out = ssl.MemoryBIO(), ssl.MemoryBIO()
    s_in, s_out = ssl.MemoryBIO(), ssl.MemoryBIO()
    client = client_ctx.wrap_bio(c_in, c_out, server_side=False)
    server = server_ctx.wrap_bio(s_in, s_out, server_side=True)

    client_done = server_done = False
    for _ in range(20):
        if not client_done:
            try:
                client.do_handshake()
                client_done = True
            except ssl.SSLWantReadError:
                pass
        s_in.write(c_out.read())
        if not server_done:
            try:
                server.do_handshake()
                server_done = True
            except ssl.SSLWantReadError:
                pass
        c_in.write(s_out.read())
        if client_done and server_done:
            return client
    raise AssertionError("handshake did not complete")


@pytest.fixture
def unconnected_sslobj() -> ssl.SSLObject:
    ctx = build_client_ssl_context(TLSPaths(), verify_chain=False)
    return ctx.wrap_bio(ssl.MemoryBIO(), ssl.MemoryBIO(), server_side=False)
