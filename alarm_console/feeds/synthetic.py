from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from alarm_console.core.time_mode.time_mode import TimeRange, utc_now
from alarm_console.domain.models import (
    AlarmCategory,
    AlarmSeverity,
    AlarmType,
    SourceSystem,
    Technology,
)

_TITLES = {
    AlarmType.EQUIPMENT: ["Board fault", "Power supply failure", "Fan failure"],
    AlarmType.COMMUNICATIONS: ["Link down", "S1 interface failure", "Loss of signal"],
    AlarmType.QUALITY_OF_SERVICE: ["High call drop rate", "Throughput degradation"],
    AlarmType.PROCESSING_ERROR: ["Software process restart", "Database overload"],
    AlarmType.ENVIRONMENTAL: ["High temperature", "Door open", "Mains failure"],
}

_REGIONS = ["North", "South", "East", "West", "Central"]
_SEVERITY_WEIGHTS = [
    (AlarmSeverity.CRITICAL, 1),
    (AlarmSeverity.MAJOR, 2),
    (AlarmSeverity.MINOR, 3),
    (AlarmSeverity.WARNING, 2),
    (AlarmSeverity.INFO, 1),
    (AlarmSeverity.CLEARED, 1),
]


@dataclass
class SyntheticAlarmSource:
    """
    Seeded demo feed producing camelCase alarm records.

    Behavior
    --------
    - The first fetch produces ``count`` alarms created within the last
      ``max_age`` before the clock.
    - Every following fetch re-delivers the set and raises ``new_per_fetch``
      fresh alarms, so the live view has something to refresh.
    - ``fetch_range`` only replays; it never raises new alarms.

    Parameters
    ----------
    count
        Initial number of alarms.
    new_per_fetch
        Alarms added on each subsequent fetch.
    max_age
        Oldest creation time relative to the clock.
    seed
        RNG seed for deterministic runs.
    clock
        Wall-clock provider.
    """

    count: int = 80
    new_per_fetch: int = 1
    max_age: timedelta = timedelta(hours=2)
    seed: Optional[int] = 123
    clock: Callable[[], datetime] = utc_now

    _rng: random.Random = field(init=False, repr=False)
    _records: List[Dict] = field(init=False, repr=False, default_factory=list)
    _seq: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def _seed(self, now: datetime) -> None:
        for _ in range(self.count):
            self._records.append(self._make(now - self.max_age * self._rng.random()))

    def fetch(self) -> Sequence[Dict]:
        now = self.clock()
        if not self._records:
            self._seed(now)
        else:
            for _ in range(self.new_per_fetch):
                self._records.append(self._make(now))
        return list(self._records)

    def fetch_range(self, rng: TimeRange) -> Sequence[Dict]:
        """Replay the already generated alarms raised within ``rng``."""
        if not self._records:
            self._seed(self.clock())
        return [r for r in self._records if rng.start <= datetime.fromisoformat(r["createdAt"]) <= rng.end]

    def _make(self, created_at: datetime) -> Dict:
        self._seq += 1
        rng = self._rng
        severity = rng.choices([s for s, _ in _SEVERITY_WEIGHTS], weights=[w for _, w in _SEVERITY_WEIGHTS])[0]
        alarm_type = rng.choice(list(AlarmType))
        source = rng.choice(list(SourceSystem))
        region = rng.choice(_REGIONS)
        cluster = f"{region}-C{rng.randint(1, 4)}"
        site = f"{cluster}-S{rng.randint(1, 20):02d}"
        node = f"{site}-N{rng.randint(1, 3)}"
        techs = rng.sample([t.value for t in Technology], k=rng.randint(1, 2))
        created = created_at.isoformat(timespec="seconds")

        return {
            "globalAlarmId": f"ALM-{self._seq:06d}",
            "vendorAlarmId": f"{source.value[:3].upper()}-{rng.randint(10000, 99999)}",
            "vendorAlarmCode": str(rng.randint(1000, 9999)),
            "sourceSystem": source.value,
            "severity": severity.value,
            "alarmType": alarm_type.value,
            "category": rng.choice(list(AlarmCategory)).value,
            "technologies": techs,
            "title": rng.choice(_TITLES[alarm_type]),
            "description": f"{alarm_type.value.replace('_', ' ')} reported by {source.value}",
            "objectType": "NE",
            "objectName": node,
            "hierarchy": {"region": region, "cluster": cluster, "site": site, "node": node},
            "createdAt": created,
            "updatedAt": created,
            "acknowledged": False,
            "rawVendorData": {"vendorSeverity": severity.value.upper(), "probableCause": rng.randint(1, 600)},
        }
