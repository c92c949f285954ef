from __future__ import annotations

import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class TLSPaths:
    ca_cert: Optional[Path] = None
    client_cert: Optional[Path] = None
    client_key: Optional[Path] = None


def build_client_ssl_context(paths: TLSPaths = TLSPaths(), verify_chain: bool = True) -> ssl.SSLContext:
    ctx = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    if paths.ca_cert is not None:
        ctx.load_verify_locations(cafile=str(paths.ca_cert))
    if paths.client_cert is not None:
        ctx.load_cert_chain(
            certfile=str(paths.client_cert),
            keyfile=str(paths.client_key) if paths.client_key else None,
        )
    # hostname checking is done by hostverify.tls.verify after the handshake
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_REQUIRED if verify_chain else ssl.CERT_NONE
    return ctx


def build_server_ssl_context(cert_path: Path, key_path: Path) -> ssl.SSLContext:
    ctx = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    ctx.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    ctx.verify_mode = ssl.CERT_NONE
    return ctx
