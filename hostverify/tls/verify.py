from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..settings import IdnaPolicy
from ..storage.events import NULL_EVENT_LOG, EventLog
from .identity import IdentityClaims, PeerSession, get_identity_claims
from .matcher import host_matches_with_policy


class Reason(str, Enum):
    SAN_MATCH = "SAN_MATCH"
    CN_MATCH = "CN_MATCH"
    NO_PEER_CERTIFICATE = "NO_PEER_CERTIFICATE"
    NO_IDENTITY = "NO_IDENTITY"
    MALFORMED_IDENTITY = "MALFORMED_IDENTITY"
    NO_MATCH = "NO_MATCH"


@dataclass(frozen=True)
class Verdict:
    matched: bool
    reason: Reason
    source: str = "none"  # san | cn | none
    matched_pattern: Optional[str] = None
    claims: Optional[IdentityClaims] = None

    def __bool__(self) -> bool:
        return self.matched


def match_claims(claims: IdentityClaims, hostname: str, idna_policy: IdnaPolicy = IdnaPolicy.OFF) -> Verdict:
    """Apply SAN-first-else-CN precedence to already extracted claims."""
    if claims.malformed:
        return Verdict(False, Reason.MALFORMED_IDENTITY, claims=claims)

    candidates = claims.candidates()
    if not candidates:
        return Verdict(False, Reason.NO_IDENTITY, claims=claims)

    for pattern in candidates:
        if host_matches_with_policy(pattern, hostname, idna_policy):
            reason = Reason.SAN_MATCH if claims.dns_names else Reason.CN_MATCH
            return Verdict(True, reason, source=claims.source, matched_pattern=pattern, claims=claims)

    return Verdict(False, Reason.NO_MATCH, source=claims.source, claims=claims)


def explain_peer_cert_match(
    session: PeerSession,
    hostname: str,
    idna_policy: IdnaPolicy = IdnaPolicy.OFF,
    events: EventLog = NULL_EVENT_LOG,
) -> Verdict:
    claims = get_identity_claims(session)
    if claims is None:
        events.log_event("PEER_CERT_MISSING", severity="ERROR", hostname=hostname)
        return Verdict(False, Reason.NO_PEER_CERTIFICATE)

    verdict = match_claims(claims, hostname, idna_policy)
    if verdict.matched:
        events.log_event(
            "PEER_CERT_MATCHED",
            hostname=hostname,
            source=verdict.source,
            pattern=verdict.matched_pattern,
        )
    else:
        events.log_event(
            "PEER_CERT_MISMATCH",
            severity="WARNING",
            hostname=hostname,
            reason=verdict.reason.value,
            source=verdict.source,
        )
    return verdict


def verify_peer_cert_matches_host(
    session: PeerSession,
    hostname: str,
    idna_policy: IdnaPolicy = IdnaPolicy.OFF,
    events: EventLog = NULL_EVENT_LOG,
) -> bool:
    """
    True if the peer certificate of `session` is valid for `hostname`.

    Only the identity is checked. Chain of trust, validity dates and
    revocation are the handshake's business.
    """
    return explain_peer_cert_match(session, hostname, idna_policy=idna_policy, events=events).matched
