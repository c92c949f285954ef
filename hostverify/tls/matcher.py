from __future__ import annotations

from typing import List, Optional

import idna

from ..settings import IdnaPolicy

WILDCARD_LABEL = "*"

# str.lower() would also fold non-ASCII letters
_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def ascii_lower(s: str) -> str:
    return s.translate(_ASCII_LOWER)


def split_labels(name: str) -> Optional[List[str]]:
    """Lower-cased labels of `name`, or None if any label is empty."""
    labels = ascii_lower(name).split(".")
    if any(label == "" for label in labels):
        return None
    return labels


def host_matches(pattern: str, hostname: str) -> bool:
    """
    Match one certificate name pattern against one hostname.

    A wildcard is recognised only when the entire leftmost label of the
    pattern is "*", and it stands for exactly one non-empty label. Anything
    else (e.g. "f*o.test", "a.*.test") is compared literally.
    """
    pattern_labels = split_labels(pattern)
    host_labels = split_labels(hostname)
    if pattern_labels is None or host_labels is None:
        return False

    if len(pattern_labels) != len(host_labels):
        return False

    if pattern_labels[0] == WILDCARD_LABEL:
        return pattern_labels[1:] == host_labels[1:]

    return pattern_labels == host_labels


def _encode_label(label: str) -> Optional[str]:
    if label.isascii():
        return label
    try:
        return idna.encode(label, uts46=True).decode("ascii")
    except (idna.IDNAError, UnicodeError):
        return None


def to_a_label(name: str) -> Optional[str]:
    """
    Punycode-encode the non-ASCII labels of `name`; None when one of them is
    not a valid IDNA label.

    ASCII labels, "*" included, are passed through untouched so they compare
    exactly as they do with the IDNA policy off.
    """
    out: List[str] = []
    for label in name.split("."):
        encoded = _encode_label(label)
        if encoded is None:
            return None
        out.append(encoded)
    return ".".join(out)


def normalize_pair(pattern: str, hostname: str, policy: IdnaPolicy) -> Optional[tuple[str, str]]:
    if policy is IdnaPolicy.OFF:
        return pattern, hostname
    p = to_a_label(pattern)
    h = to_a_label(hostname)
    if p is None or h is None:
        return None
    return p, h


def host_matches_with_policy(pattern: str, hostname: str, policy: IdnaPolicy = IdnaPolicy.OFF) -> bool:
    pair = normalize_pair(pattern, hostname, policy)
    if pair is None:
        return False
    return host_matches(*pair)
