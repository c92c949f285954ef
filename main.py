from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from hostverify.constants import EVENTS_LOG
from hostverify.security.certs import cert_summary, load_certificate
from hostverify.settings import Settings, load_settings
from hostverify.storage.events import EventLog
from hostverify.tls.client import ProbeError, probe_host
from hostverify.tls.contexts import TLSPaths, build_client_ssl_context
from hostverify.tls.identity import CertificateSession
from hostverify.tls.verify import explain_peer_cert_match


class VerifyRequest(BaseModel):
    cert_pem: str
    hostname: str


def create_app(settings: Optional[Settings] = None, events_path: Path = EVENTS_LOG) -> FastAPI:
    settings = settings or load_settings()
    events = EventLog(path=events_path, enabled=settings.event_log_enabled)

    app = FastAPI(title="hostverify")
    app.state.settings = settings
    app.state.events = events
    app.state.client_ssl_ctx = build_client_ssl_context(
        TLSPaths(ca_cert=Path(settings.probe_ca_file) if settings.probe_ca_file else None),
        verify_chain=settings.probe_verify_chain,
    )

    @app.get("/api/v1/health")
    async def api_health():
        return {"ok": True, "idna": settings.idna_policy.value}

    # plain def: runs in FastAPI's threadpool (event log I/O)
    @app.post("/api/v1/verify")
    def api_verify(req: VerifyRequest) -> Dict[str, Any]:
        try:
            cert = load_certificate(req.cert_pem.encode("utf-8"))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"unparseable certificate: {e}")

        verdict = explain_peer_cert_match(
            CertificateSession(cert),
            req.hostname,
            idna_policy=settings.idna_policy,
            events=events,
        )
        claims = verdict.claims
        return {
            "hostname": req.hostname,
            "matched": verdict.matched,
            "reason": verdict.reason.value,
            "source": verdict.source,
            "matched_pattern": verdict.matched_pattern,
            "dns_names": list(claims.dns_names) if claims else [],
            "common_name": claims.common_name if claims else None,
            "certificate": cert_summary(cert),
        }

    @app.get("/api/v1/probe")
    async def api_probe(
        host: str,
        port: int = Query(443, ge=1, le=65535),
        hostname: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            result = await probe_host(
                host,
                port,
                app.state.client_ssl_ctx,
                hostname=hostname,
                timeout=settings.probe_timeout_sec,
                idna_policy=settings.idna_policy,
                events=events,
            )
        except ProbeError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return result.as_dict()

    @app.get("/api/v1/events")
    def api_events(limit: int = Query(200, ge=1, le=5000)):
        return {"events": events.tail(limit=limit)}

    return app


app = create_app()

if __name__ == "__main__":
    env = app.state.settings.app_env
    uvicorn.run(
        "main:app",
        host=app.state.settings.http_host,
        port=app.state.settings.http_port,
        reload=(env == "dev"),
        workers=1,
        log_level=("debug" if env == "dev" else "info"),
    )
