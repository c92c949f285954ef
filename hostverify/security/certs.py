from __future__ import annotations

import hashlib
from typing import Any, Dict, Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization


def load_certificate(data: bytes) -> x509.Certificate:
    """Load a PEM or DER certificate. Raises ValueError if it is neither."""
    if b"-----BEGIN" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def sha256_fingerprint(cert: x509.Certificate) -> str:
    der = cert.public_bytes(serialization.Encoding.DER)
    return hashlib.sha256(der).hexdigest()


def sha256_fingerprint_from_der(der: bytes) -> str:
    return hashlib.sha256(der).hexdigest()


def subject_dict(cert: x509.Certificate) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    try:
        rdns = cert.subject.rdns
    except ValueError:
        return out
    for rdn in rdns:
        for attr in rdn:
            value = attr.value
            out[attr.rfc4514_attribute_name] = value if isinstance(value, str) else value.hex()
    return out


def cert_summary(cert: x509.Certificate) -> Dict[str, Optional[Any]]:
    return {
        "fingerprint": sha256_fingerprint(cert),
        "subject": subject_dict(cert),
        "serial_number": format(cert.serial_number, "x"),
    }
