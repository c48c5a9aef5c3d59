"""
Domain models and enums.

This module defines the core domain-level types used across the console:
- Alarm classification enums (severity, type, category, technology, source system)
- Lifecycle enums (escalation level, comment tag, time mode)
- The network object hierarchy record
- AlarmComment and Alarm, the central entity

These are designed as immutable (frozen) dataclasses so that snapshots handed
out by the store can be shared with the filter, SLA and storm consumers (and
across threads) without any of them being able to mutate the store's data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class AlarmSeverity(str, Enum):
    """
    Severity level for alarms, highest first.

    Members
    -------
    CRITICAL : str
        Service-affecting condition requiring immediate intervention.
    MAJOR : str
        Service-degrading condition requiring urgent attention.
    MINOR : str
        Non-service-affecting fault.
    WARNING : str
        Potential or impending fault.
    INFO : str
        Informational event.
    CLEARED : str
        The fault condition has cleared; the alarm stays addressable.
    """

    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    WARNING = "warning"
    INFO = "info"
    CLEARED = "cleared"


class AlarmType(str, Enum):
    """X.733-style event type of the alarm."""

    EQUIPMENT = "equipment"
    COMMUNICATIONS = "communications"
    QUALITY_OF_SERVICE = "quality_of_service"
    PROCESSING_ERROR = "processing_error"
    ENVIRONMENTAL = "environmental"


class AlarmCategory(str, Enum):
    """Operational category used for triage."""

    ACCESSIBILITY = "accessibility"
    PERFORMANCE = "performance"
    CONFIGURATION = "configuration"
    SECURITY = "security"
    MAINTENANCE = "maintenance"


class Technology(str, Enum):
    """Radio/transport technology affected by the alarm."""

    G2 = "2G"
    G3 = "3G"
    G4 = "4G"
    G5 = "5G"
    FTTX = "FTTx"
    IP = "IP"
    OPEN_RAN = "OpenRAN"


class SourceSystem(str, Enum):
    """Vendor system the alarm was normalized from."""

    HUAWEI = "Huawei"
    ERICSSON = "Ericsson"
    NOKIA = "Nokia"
    OPENRAN_SMO = "OpenRAN_SMO"


class EscalationLevel(str, Enum):
    """
    Operator-assigned urgency tier.

    Only meaningful for unresolved major/critical alarms.
    """

    L1 = "L1"
    L2 = "L2"
    L3 = "L3"
    L4 = "L4"


class CommentTag(str, Enum):
    """Severity tag attached to an operator comment."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class TimeMode(str, Enum):
    """
    Viewing mode of the console.

    Members
    -------
    LIVE : str
        Auto-refreshing view of the current alarm set.
    SNAPSHOT : str
        Frozen window, no refresh.
    HISTORICAL : str
        Replay of a past range, no refresh.
    """

    LIVE = "live"
    SNAPSHOT = "snapshot"
    HISTORICAL = "historical"


ESCALATION_ELIGIBLE_SEVERITIES: FrozenSet[AlarmSeverity] = frozenset(
    {AlarmSeverity.CRITICAL, AlarmSeverity.MAJOR}
)

HIERARCHY_LEVELS: Tuple[str, ...] = ("region", "cluster", "site", "node", "cell", "interface")


@dataclass(frozen=True)
class Hierarchy:
    """
    Location of the alarmed object in the network hierarchy.

    Each present level implies that all coarser levels exist (a cell implies a
    site, which implies a region). The record does not enforce this; it is
    populated as-is at ingestion.
    """

    region: Optional[str] = None
    cluster: Optional[str] = None
    site: Optional[str] = None
    node: Optional[str] = None
    cell: Optional[str] = None
    interface: Optional[str] = None

    def levels(self) -> List[Tuple[str, str]]:
        """
        Return the present levels, coarse to fine.

        Returns
        -------
        list of (level, value)
            Only levels with a value are included.
        """
        return [(lvl, getattr(self, lvl)) for lvl in HIERARCHY_LEVELS if getattr(self, lvl)]

    def deepest_level(self) -> Optional[str]:
        """Name of the finest populated level, or None for an empty hierarchy."""
        present = self.levels()
        return present[-1][0] if present else None


@dataclass(frozen=True)
class AlarmComment:
    """
    Operator comment attached to an alarm.

    Parameters
    ----------
    id
        Unique comment identifier.
    author
        Operator who wrote the comment.
    timestamp
        When the comment was added.
    text
        Non-empty comment body.
    tag
        Optional severity tag.
    """

    id: str
    author: str
    timestamp: datetime
    text: str
    tag: Optional[CommentTag] = None


@dataclass(frozen=True)
class Alarm:
    """
    Normalized fault/event record surfaced from a vendor monitoring system.

    Identity
    --------
    ``global_alarm_id`` is stable and system-wide unique. ``vendor_alarm_id``
    and ``vendor_alarm_code`` are only meaningful together with
    ``source_system``.

    Invariants
    ----------
    - ``acknowledged`` is True iff ``acknowledged_at`` is set, and then
      ``acknowledged_at >= created_at``.
    - ``escalation_level`` is set only for major/critical severities.
    - ``updated_at >= created_at``.
    - ``comments`` only ever grows.

    These are established by the ingestion normalizer and preserved by the
    store operations; the dataclass itself does not validate.

    Notes
    -----
    Duration is never stored; use :meth:`duration`.
    """

    global_alarm_id: str
    severity: AlarmSeverity
    alarm_type: AlarmType
    category: AlarmCategory
    technologies: FrozenSet[Technology]
    source_system: SourceSystem
    created_at: datetime
    updated_at: datetime
    title: str = ""
    description: str = ""
    vendor_alarm_id: str = ""
    vendor_alarm_code: str = ""
    object_type: str = ""
    object_name: str = ""
    hierarchy: Hierarchy = field(default_factory=Hierarchy)
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    assigned_team: Optional[str] = None
    escalation_level: Optional[EscalationLevel] = None
    comments: Tuple[AlarmComment, ...] = ()
    raw_vendor_data: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_escalation_eligible(self) -> bool:
        """True when the severity allows an escalation level."""
        return self.severity in ESCALATION_ELIGIBLE_SEVERITIES

    def duration(self, now: datetime) -> timedelta:
        """
        Age of the alarm.

        Cleared alarms stop ageing at their last update; all other alarms
        age up to ``now``.

        Parameters
        ----------
        now
            Reference time (wall clock in live mode, range end otherwise).

        Returns
        -------
        timedelta
            Non-negative duration.
        """
        end = self.updated_at if self.severity == AlarmSeverity.CLEARED else now
        return max(timedelta(0), end - self.created_at)
