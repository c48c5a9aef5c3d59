"""
Alarm feed contracts.

The console consumes alarms through `AlarmSource`. A real vendor
normalization adapter, a replay database or the synthetic demo feed are all
interchangeable behind it; tests inject `StaticAlarmSource` fixtures.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Protocol, Sequence, runtime_checkable

from alarm_console.core.alarm.normalizer import FeedRecord
from alarm_console.core.time_mode.time_mode import TimeRange, parse_iso_datetime
from alarm_console.domain.errors import InvalidTimeRangeError
from alarm_console.domain.models import Alarm


@runtime_checkable
class AlarmSource(Protocol):
    """
    Protocol for live alarm feeds.

    Methods
    -------
    fetch()
        Return the current alarm records. May raise on transport failure;
        the caller treats any exception as a recoverable refresh failure.
    """

    def fetch(self) -> Sequence[FeedRecord]:
        ...


@runtime_checkable
class HistoricalAlarmSource(AlarmSource, Protocol):
    """Feed that can also replay a past window."""

    def fetch_range(self, rng: TimeRange) -> Sequence[FeedRecord]:
        ...


def _created_at(rec: FeedRecord):
    if isinstance(rec, Alarm):
        return rec.created_at
    try:
        return parse_iso_datetime(rec.get("createdAt"))
    except InvalidTimeRangeError:
        return None


@dataclass
class StaticAlarmSource:
    """
    Fixed list of records, returned on every fetch.

    Parameters
    ----------
    records
        Feed records (Alarm objects or camelCase mappings).
    """

    records: List[FeedRecord] = field(default_factory=list)
    fetch_count: int = 0

    def fetch(self) -> Sequence[FeedRecord]:
        self.fetch_count += 1
        return list(self.records)

    def fetch_range(self, rng: TimeRange) -> Sequence[FeedRecord]:
        """Records whose creation time falls within ``rng``."""
        out: List[FeedRecord] = []
        for rec in self.records:
            ts = _created_at(rec)
            if ts is not None and rng.contains(ts):
                out.append(rec)
        return out


def load_static_source(path: str) -> StaticAlarmSource:
    """
    Build a `StaticAlarmSource` from a JSON file holding a list of records.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file is not valid JSON or its root is not a list.
    """
    p = Path(path).expanduser()
    with p.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{p}: alarm feed file must contain a JSON list")
    return StaticAlarmSource(records=list(data))
