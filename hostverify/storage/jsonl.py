from __future__ import annotations
from collections import deque
from enum import Enum
from pathlib import Path
from typing import Any, Deque, Dict, List
import json
import os

from ..constants import MIN_LOG_FREE_BYTES


def _default(value: Any) -> Any:
    # Reason / IdnaPolicy values, tuples of names from IdentityClaims
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


def append_jsonl(path: Path, record: Dict[str, Any]) -> None:
    line = json.dumps(record, separators=(",", ":"), default=_default)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(line + "\n")


def tail_jsonl(path: Path, limit: int = 200) -> List[Dict[str, Any]]:
    """Last `limit` decodable records, oldest first; the file is streamed, not slurped."""
    if limit <= 0 or not path.exists():
        return []
    with open(path, "r", encoding="utf-8") as f:
        last: Deque[str] = deque(f, maxlen=limit)
    out: List[Dict[str, Any]] = []
    for line in last:
        try:
            rec = json.loads(line)
        except json.JSONDecodeError:
            # partially written trailing line
            continue
        if isinstance(rec, dict):
            out.append(rec)
    return out


def has_min_disk_free(dir_path: Path, min_free_bytes: int = MIN_LOG_FREE_BYTES) -> bool:
    try:
        st = os.statvfs(str(dir_path))
    except (OSError, AttributeError):
        # missing dir or no statvfs on this platform; append_jsonl decides
        return True
    return st.f_bavail * st.f_frsize >= min_free_bytes
