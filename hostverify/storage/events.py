from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List

from ..constants import EVENTS_LOG
from .jsonl import append_jsonl, has_min_disk_free, tail_jsonl


@dataclass
class EventLog:
    path: Path = EVENTS_LOG
    enabled: bool = True

    _seq: Iterator[int] = field(default_factory=lambda: itertools.count(1), repr=False)

    def next_seq(self) -> int:
        return next(self._seq)

    def log_event(self, event_type: str, severity: str = "INFO", **extra: Any) -> None:
        if not self.enabled:
            return
        if not has_min_disk_free(self.path.parent):
            return
        record = {
            "ts": time.time(),
            "sequence_id": self.next_seq(),
            "event_type": event_type,
            "severity": severity,
            **extra,
        }
        try:
            append_jsonl(self.path, record)
        except OSError:
            # unwritable log dir: the record is dropped, callers carry on
            return

    def tail(self, limit: int = 200) -> List[Dict[str, Any]]:
        return tail_jsonl(self.path, limit=limit)


# stand-in for callers that don't want events written anywhere
NULL_EVENT_LOG = EventLog(enabled=False)
