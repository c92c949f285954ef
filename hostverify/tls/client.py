from __future__ import annotations

import asyncio
import ssl
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..security.certs import sha256_fingerprint_from_der
from ..settings import IdnaPolicy
from ..storage.events import NULL_EVENT_LOG, EventLog
from .identity import session_from_writer
from .verify import Verdict, explain_peer_cert_match


class ProbeError(Exception):
    """Could not connect to or complete a TLS handshake with the peer."""


class HostnameMismatch(ssl.SSLError):
    def __init__(self, hostname: str, verdict: Verdict):
        super().__init__(f"peer certificate is not valid for {hostname!r} ({verdict.reason.value})")
        self.hostname = hostname
        self.verdict = verdict


@dataclass(frozen=True)
class ProbeResult:
    host: str
    port: int
    hostname: str
    verdict: Verdict
    fingerprint: Optional[str] = None
    tls_version: Optional[str] = None
    cipher: Optional[str] = None

    dns_names: List[str] = field(default_factory=list)
    common_name: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "hostname": self.hostname,
            "matched": self.verdict.matched,
            "reason": self.verdict.reason.value,
            "source": self.verdict.source,
            "matched_pattern": self.verdict.matched_pattern,
            "dns_names": self.dns_names,
            "common_name": self.common_name,
            "fingerprint": self.fingerprint,
            "tls_version": self.tls_version,
            "cipher": self.cipher,
        }


async def _connect(
    host: str,
    port: int,
    ssl_ctx: ssl.SSLContext,
    server_hostname: str,
    timeout: float,
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    conn = asyncio.open_connection(host, port, ssl=ssl_ctx, server_hostname=server_hostname)
    try:
        return await asyncio.wait_for(conn, timeout=timeout)
    except (OSError, asyncio.TimeoutError) as e:
        # ssl.SSLError is an OSError
        raise ProbeError(f"{host}:{port}: {e.__class__.__name__}: {e}") from e


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


async def _explain(writer: asyncio.StreamWriter, hostname: str, idna_policy: IdnaPolicy, events: EventLog) -> Verdict:
    # event log writes are file I/O
    session = session_from_writer(writer)
    return await asyncio.to_thread(explain_peer_cert_match, session, hostname, idna_policy=idna_policy, events=events)


async def probe_host(
    host: str,
    port: int,
    ssl_ctx: ssl.SSLContext,
    hostname: Optional[str] = None,
    timeout: float = 5.0,
    idna_policy: IdnaPolicy = IdnaPolicy.OFF,
    events: EventLog = NULL_EVENT_LOG,
) -> ProbeResult:
    """
    Connect to host:port, finish the handshake and check the peer certificate
    against `hostname` (defaults to `host`). The connection is always closed.
    """
    target = hostname or host
    try:
        _, writer = await _connect(host, port, ssl_ctx, target, timeout)
    except ProbeError as e:
        await asyncio.to_thread(
            events.log_event, "PROBE_FAILED", severity="ERROR", host=host, port=port, hostname=target, detail=str(e)
        )
        raise

    try:
        sslobj = writer.get_extra_info("ssl_object")
        verdict = await _explain(writer, target, idna_policy, events)

        der = sslobj.getpeercert(binary_form=True) if sslobj is not None else None
        cipher = sslobj.cipher() if sslobj is not None else None
        claims = verdict.claims
        return ProbeResult(
            host=host,
            port=port,
            hostname=target,
            verdict=verdict,
            fingerprint=sha256_fingerprint_from_der(der) if der else None,
            tls_version=sslobj.version() if sslobj is not None else None,
            cipher=cipher[0] if cipher else None,
            dns_names=list(claims.dns_names) if claims else [],
            common_name=claims.common_name if claims else None,
        )
    finally:
        await _close(writer)


async def open_verified_connection(
    host: str,
    port: int,
    ssl_ctx: ssl.SSLContext,
    hostname: Optional[str] = None,
    timeout: float = 5.0,
    idna_policy: IdnaPolicy = IdnaPolicy.OFF,
    events: EventLog = NULL_EVENT_LOG,
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """
    Like asyncio.open_connection, but the streams are only handed back once
    the peer certificate has been checked against `hostname`.
    """
    target = hostname or host
    reader, writer = await _connect(host, port, ssl_ctx, target, timeout)

    verdict = await _explain(writer, target, idna_policy, events)
    if not verdict.matched:
        await _close(writer)
        raise HostnameMismatch(target, verdict)
    return reader, writer
