from __future__ import annotations

import asyncio
import ssl
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from cryptography import x509
from cryptography.x509.oid import ExtensionOID, NameOID

# Everything cryptography raises for undecodable extensions or names.
_DECODE_ERRORS = (ValueError, TypeError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType)


class MalformedCertificate(ValueError):
    """Identity fields of the peer certificate could not be decoded."""


class CertificateReader(Protocol):
    def subject_alt_name_dns_entries(self) -> List[str]:
        ...

    def subject_common_name(self) -> Optional[str]:
        ...


class PeerSession(Protocol):
    def peer_certificate(self) -> Optional[CertificateReader]:
        ...


@dataclass(frozen=True)
class IdentityClaims:
    """
    Names a peer certificate asserts.

    `common_name` is only filled in when `dns_names` is empty: once a
    certificate carries SAN DNS entries its subject CN is not an identity.
    `malformed` claims carry no names at all.
    """

    dns_names: Tuple[str, ...] = ()
    common_name: Optional[str] = None
    malformed: bool = False

    @property
    def source(self) -> str:
        if self.dns_names:
            return "san"
        if self.common_name is not None:
            return "cn"
        return "none"

    def candidates(self) -> Tuple[str, ...]:
        if self.dns_names:
            return self.dns_names
        if self.common_name is not None:
            return (self.common_name,)
        return ()


class X509CertificateReader:
    """Reads identity names out of a `cryptography` certificate."""

    def __init__(self, cert: x509.Certificate):
        self.cert = cert

    def subject_alt_name_dns_entries(self) -> List[str]:
        try:
            ext = self.cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
            names = ext.value.get_values_for_type(x509.DNSName)
        except x509.ExtensionNotFound:
            return []
        except _DECODE_ERRORS as e:
            raise MalformedCertificate(f"subjectAltName: {e}") from e
        return [n for n in names if isinstance(n, str)]

    def subject_common_name(self) -> Optional[str]:
        try:
            attrs = self.cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        except _DECODE_ERRORS as e:
            raise MalformedCertificate(f"subject: {e}") from e
        if not attrs:
            return None
        # most specific CN is the last one in the subject
        value = attrs[-1].value
        return value if isinstance(value, str) else None


class PeerCertDictReader:
    """
    Reads identity names from the dict form of `SSLSocket.getpeercert()`.

    Only populated when the handshake verified the peer chain; with
    CERT_NONE Python returns an empty dict.
    """

    def __init__(self, peer_cert: Dict[str, Any]):
        self.peer_cert = peer_cert

    def subject_alt_name_dns_entries(self) -> List[str]:
        out: List[str] = []
        for entry in self.peer_cert.get("subjectAltName", ()) or ():
            if isinstance(entry, (tuple, list)) and len(entry) == 2:
                kind, value = entry
                if kind == "DNS" and isinstance(value, str):
                    out.append(value)
        return out

    def subject_common_name(self) -> Optional[str]:
        # ssl.getpeercert() dict: {'subject': ((('commonName','a.test'),), ...), ...}
        found: Optional[str] = None
        for rdn in self.peer_cert.get("subject", ()) or ():
            for attr in rdn:
                if isinstance(attr, (tuple, list)) and len(attr) == 2:
                    k, v = attr
                    if k == "commonName" and isinstance(v, str):
                        found = v
        return found


def reader_from_der(der: bytes) -> Optional[X509CertificateReader]:
    try:
        return X509CertificateReader(x509.load_der_x509_certificate(der))
    except _DECODE_ERRORS:
        return None


@dataclass(frozen=True)
class SSLPeerSession:
    """Adapter over a finished `ssl.SSLObject` / `ssl.SSLSocket`."""

    sslobj: Union[ssl.SSLObject, ssl.SSLSocket]

    def peer_certificate(self) -> Optional[CertificateReader]:
        try:
            der = self.sslobj.getpeercert(binary_form=True)
        except (ValueError, OSError):
            # handshake not done / socket not connected
            return None
        if not der:
            return None
        return reader_from_der(der)


@dataclass(frozen=True)
class CertificateSession:
    """A session whose peer certificate is already at hand (or absent)."""

    cert: Optional[x509.Certificate] = None

    def peer_certificate(self) -> Optional[CertificateReader]:
        if self.cert is None:
            return None
        return X509CertificateReader(self.cert)


@dataclass(frozen=True)
class ReaderSession:
    """Wraps any `CertificateReader`, e.g. a fabricated one in tests."""

    reader: Optional[CertificateReader] = None

    def peer_certificate(self) -> Optional[CertificateReader]:
        return self.reader


def session_from_writer(writer: asyncio.StreamWriter) -> PeerSession:
    sslobj = writer.get_extra_info("ssl_object")
    if sslobj is None:
        return ReaderSession(None)
    return SSLPeerSession(sslobj)


def get_identity_claims(session: PeerSession) -> Optional[IdentityClaims]:
    """
    Identity claims of the peer, or None when no peer certificate was presented.

    SAN DNS entries are returned in encoding order. The subject CN is read
    only if there are none. Undecodable identity fields yield empty claims;
    the CN is never used to make up for a broken SAN extension.
    """
    reader = session.peer_certificate()
    if reader is None:
        return None

    try:
        dns_names = tuple(reader.subject_alt_name_dns_entries())
        if dns_names:
            return IdentityClaims(dns_names=dns_names)
        return IdentityClaims(common_name=reader.subject_common_name())
    except MalformedCertificate:
        return IdentityClaims(malformed=True)
