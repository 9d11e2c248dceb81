"""Append-only JSONL trail of draft events.

One JSON object per line in date-partitioned files under data/audit/, named
YYYY-MM-DD.jsonl. Actions: saved, restored, file_stored, file_rejected,
file_promoted, file_discarded, cleared.

Field values are never written, only field names and sizes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data" / "audit"

ACTIONS = (
    "saved",
    "restored",
    "file_stored",
    "file_rejected",
    "file_promoted",
    "file_discarded",
    "cleared",
)


@dataclass
class DraftEvent:
    timestamp: str
    action: str
    field_name: str = ""
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> DraftEvent:
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


def _file_for_date(date_str: str, audit_dir: Path | None = None) -> Path:
    return (audit_dir or DATA_DIR) / f"{date_str}.jsonl"


def _today_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def log_event(
    action: str,
    field_name: str = "",
    details: dict | None = None,
    audit_dir: Path | None = None,
) -> DraftEvent | None:
    """Append a DraftEvent to today's file. Returns None if the write failed."""
    event = DraftEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        field_name=field_name,
        details=details or {},
    )
    try:
        path = _file_for_date(_today_str(), audit_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")
    except OSError as e:
        logger.warning("Draft event %s not recorded: %s", action, e)
        return None
    return event


def _read_events(path: Path) -> list[DraftEvent]:
    events: list[DraftEvent] = []
    if not path.exists():
        return events
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                events.append(DraftEvent.from_dict(json.loads(line)))
            except (ValueError, TypeError):
                continue
    return events


def get_recent_events(limit: int = 50, audit_dir: Path | None = None) -> list[DraftEvent]:
    """Most recent events across all files, newest first."""
    directory = audit_dir or DATA_DIR
    if not directory.exists():
        return []
    results: list[DraftEvent] = []
    for path in sorted(directory.glob("*.jsonl"), key=lambda p: p.stem, reverse=True):
        events = _read_events(path)
        events.reverse()
        results.extend(events)
        if len(results) >= limit:
            break
    return results[:limit]
