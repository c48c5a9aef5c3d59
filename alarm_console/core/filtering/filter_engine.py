"""
Multi-dimensional alarm filter pipeline.

Composition rules
-----------------
- Within one dimension, selected values are OR'ed; an empty selection means
  "no constraint".
- Dimensions are AND'ed.
- ``technologies`` is set-valued on the alarm: an alarm passes when any of
  its technologies is selected.
- Free-text search is a case-insensitive substring match on title,
  description, object name and global id (OR across the four).
- Acknowledgement flags are mutually exclusive; `FilterState` rejects both
  being set.
- Hierarchy filters (region/cluster/site/node) are exact-match AND
  constraints applied after the dimensions.

Input order is preserved; sorting is a presentation concern.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from alarm_console.domain.errors import InvalidFilterError
from alarm_console.domain.models import (
    Alarm,
    AlarmCategory,
    AlarmSeverity,
    AlarmType,
    SourceSystem,
    Technology,
)

FILTER_DIMENSIONS = ("severities", "alarm_types", "categories", "technologies", "source_systems")
HIERARCHY_FILTER_LEVELS = ("region", "cluster", "site", "node")

_DIMENSION_TYPES = {
    "severities": AlarmSeverity,
    "alarm_types": AlarmType,
    "categories": AlarmCategory,
    "technologies": Technology,
    "source_systems": SourceSystem,
}


@dataclass(frozen=True)
class FilterState:
    """
    Pure filter configuration.

    Parameters
    ----------
    severities, alarm_types, categories, technologies, source_systems
        Inclusion set per dimension; empty means unconstrained.
    search_text
        Free-text search; blank means unconstrained.
    show_acknowledged_only
        Keep only acknowledged alarms.
    show_unacknowledged_only
        Keep only unacknowledged alarms.

    Raises
    ------
    InvalidFilterError
        If both acknowledgement flags are set.
    """

    severities: FrozenSet[AlarmSeverity] = frozenset()
    alarm_types: FrozenSet[AlarmType] = frozenset()
    categories: FrozenSet[AlarmCategory] = frozenset()
    technologies: FrozenSet[Technology] = frozenset()
    source_systems: FrozenSet[SourceSystem] = frozenset()
    search_text: str = ""
    show_acknowledged_only: bool = False
    show_unacknowledged_only: bool = False

    def __post_init__(self) -> None:
        if self.show_acknowledged_only and self.show_unacknowledged_only:
            raise InvalidFilterError("show_acknowledged_only and show_unacknowledged_only are mutually exclusive")
        for dim in FILTER_DIMENSIONS:
            # Accept any iterable of enum members or raw values.
            enum_cls = _DIMENSION_TYPES[dim]
            try:
                values = frozenset(enum_cls(v) for v in getattr(self, dim))
            except ValueError as e:
                raise InvalidFilterError(f"invalid {dim} value: {e}") from None
            object.__setattr__(self, dim, values)

    @classmethod
    def default(cls) -> "FilterState":
        """Console start-up filter: critical and major alarms."""
        return cls(severities=frozenset({AlarmSeverity.CRITICAL, AlarmSeverity.MAJOR}))

    def cleared(self) -> "FilterState":
        """Filter with every constraint removed."""
        return FilterState()

    def toggled(self, dimension: str, value) -> "FilterState":
        """
        Add ``value`` to a dimension, or remove it if already selected.

        Raises
        ------
        InvalidFilterError
            If ``dimension`` is not a filter dimension.
        """
        if dimension not in FILTER_DIMENSIONS:
            raise InvalidFilterError(f"unknown filter dimension {dimension!r}")
        current = getattr(self, dimension)
        try:
            member = _DIMENSION_TYPES[dimension](value)
        except ValueError:
            raise InvalidFilterError(f"invalid {dimension} value {value!r}") from None
        new = current - {member} if member in current else current | {member}
        return dataclasses.replace(self, **{dimension: new})

    def with_acknowledgement(self, acknowledged: Optional[bool]) -> "FilterState":
        """
        Set the acknowledgement constraint.

        ``True`` keeps only acknowledged, ``False`` only unacknowledged,
        ``None`` removes the constraint. Setting one flag always clears the
        other.
        """
        return dataclasses.replace(
            self,
            show_acknowledged_only=acknowledged is True,
            show_unacknowledged_only=acknowledged is False,
        )

    def active_filter_count(self) -> int:
        """Number of active constraints (selected values + search + ack flags)."""
        count = sum(len(getattr(self, dim)) for dim in FILTER_DIMENSIONS)
        if self.search_text.strip():
            count += 1
        if self.show_acknowledged_only or self.show_unacknowledged_only:
            count += 1
        return count


@dataclass(frozen=True)
class HierarchyFilter:
    """Exact-match drill-down constraints on the object hierarchy."""

    region: Optional[str] = None
    cluster: Optional[str] = None
    site: Optional[str] = None
    node: Optional[str] = None

    def toggled(self, level: str, value: str) -> "HierarchyFilter":
        """Select ``value`` at ``level``; selecting the current value clears it."""
        if level not in HIERARCHY_FILTER_LEVELS:
            raise InvalidFilterError(f"unknown hierarchy level {level!r}")
        new = None if getattr(self, level) == value else value
        return dataclasses.replace(self, **{level: new})

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, lvl) is None for lvl in HIERARCHY_FILTER_LEVELS)


@dataclass(frozen=True)
class AlarmSummary:
    critical: int = 0
    major: int = 0
    unacknowledged: int = 0
    total: int = 0


def _matches_search(alarm: Alarm, needle: str) -> bool:
    return (
        needle in alarm.title.lower()
        or needle in alarm.description.lower()
        or needle in alarm.object_name.lower()
        or needle in alarm.global_alarm_id.lower()
    )


def matches(alarm: Alarm, fs: FilterState, hierarchy: Optional[HierarchyFilter] = None) -> bool:
    """True when ``alarm`` passes every active constraint."""
    if fs.severities and alarm.severity not in fs.severities:
        return False
    if fs.alarm_types and alarm.alarm_type not in fs.alarm_types:
        return False
    if fs.categories and alarm.category not in fs.categories:
        return False
    if fs.technologies and fs.technologies.isdisjoint(alarm.technologies):
        return False
    if fs.source_systems and alarm.source_system not in fs.source_systems:
        return False

    needle = fs.search_text.strip().lower()
    if needle and not _matches_search(alarm, needle):
        return False

    if fs.show_acknowledged_only and not alarm.acknowledged:
        return False
    if fs.show_unacknowledged_only and alarm.acknowledged:
        return False

    if hierarchy is not None:
        for lvl in HIERARCHY_FILTER_LEVELS:
            wanted = getattr(hierarchy, lvl)
            if wanted is not None and getattr(alarm.hierarchy, lvl) != wanted:
                return False
    return True


def filter_alarms(
    alarms: Iterable[Alarm],
    filter_state: FilterState,
    hierarchy: Optional[HierarchyFilter] = None,
) -> List[Alarm]:
    """
    Apply a filter to a store snapshot.

    Parameters
    ----------
    alarms
        Snapshot to filter; not modified.
    filter_state
        Dimension/search/acknowledgement constraints.
    hierarchy
        Optional drill-down constraints.

    Returns
    -------
    list of Alarm
        Matching alarms in input order.
    """
    return [a for a in alarms if matches(a, filter_state, hierarchy)]


def summarize(alarms: Iterable[Alarm]) -> AlarmSummary:
    """Critical/major/unacknowledged/total counts of a filtered view."""
    critical = major = unack = total = 0
    for a in alarms:
        total += 1
        if a.severity == AlarmSeverity.CRITICAL:
            critical += 1
        elif a.severity == AlarmSeverity.MAJOR:
            major += 1
        if not a.acknowledged:
            unack += 1
    return AlarmSummary(critical=critical, major=major, unacknowledged=unack, total=total)
