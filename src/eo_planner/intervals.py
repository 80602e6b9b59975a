"""
Interval algebra over labeled condition timelines.

A condition timeline is a chronologically sorted set of half-open
``[start, end)`` intervals, each tagged with the set of physical conditions
that hold during it. Conditions are a closed enum; combining two timelines
with ``intersect`` produces the conjunction label (the union of the two
condition sets), so combining three timelines in any order yields the same
result.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import FrozenSet, Iterable, Iterator, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class ConditionKind(Enum):
    """Physical conditions required to observe a ground target."""

    VISIBILITY = "visibility"
    ILLUMINATION = "illumination"
    NO_DAZZLING = "no_dazzling"


Label = FrozenSet[ConditionKind]

ALL_CONDITIONS: Label = frozenset(ConditionKind)


def label_of(*kinds: ConditionKind) -> Label:
    """Build a composite label from condition kinds."""
    return frozenset(kinds)


def describe_label(label: Label) -> str:
    """Stable human-readable form of a label, e.g. 'illumination+visibility'."""
    return "+".join(sorted(kind.value for kind in label)) or "none"


@dataclass(frozen=True)
class Interval:
    """Half-open time interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(
                f"Interval end {self.end.isoformat()} precedes start {self.start.isoformat()}"
            )

    @property
    def duration_s(self) -> float:
        return (self.end - self.start).total_seconds()

    @property
    def midpoint(self) -> datetime:
        return self.start + (self.end - self.start) / 2

    def is_empty(self) -> bool:
        return self.end <= self.start

    def contains(self, other: "Interval") -> bool:
        """True if ``other`` lies entirely inside this interval."""
        return self.start <= other.start and other.end <= self.end

    def contains_time(self, timestamp: datetime) -> bool:
        return self.start <= timestamp < self.end

    def overlaps(self, other: "Interval") -> bool:
        """Half-open overlap: touching intervals do not overlap."""
        return self.start < other.end and other.start < self.end

    def intersection(self, other: "Interval") -> Optional["Interval"]:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if end <= start:
            return None
        return Interval(start, end)

    def expanded(self, before_s: float, after_s: float) -> "Interval":
        return Interval(
            self.start - timedelta(seconds=before_s),
            self.end + timedelta(seconds=after_s),
        )

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"


@dataclass(frozen=True)
class ConditionInterval:
    """An interval during which the conditions in ``label`` all hold."""

    start: datetime
    end: datetime
    label: Label

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(
                f"ConditionInterval end {self.end.isoformat()} precedes start "
                f"{self.start.isoformat()}"
            )

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def duration_s(self) -> float:
        return (self.end - self.start).total_seconds()

    def _sort_key(self) -> Tuple[datetime, datetime, Tuple[str, ...]]:
        return (self.start, self.end, tuple(sorted(k.value for k in self.label)))


@dataclass(frozen=True)
class Timeline:
    """
    Immutable, chronologically sorted collection of condition intervals.

    Intervals carrying the same label are disjoint; intervals with different
    labels may overlap (e.g. a visibility window and the illumination window
    it sits in).
    """

    intervals: Tuple[ConditionInterval, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.intervals, key=ConditionInterval._sort_key))
        object.__setattr__(self, "intervals", ordered)

    @classmethod
    def from_intervals(cls, intervals: Iterable[ConditionInterval]) -> "Timeline":
        return cls(tuple(intervals))

    @classmethod
    def from_spans(
        cls, spans: Iterable[Tuple[datetime, datetime]], *kinds: ConditionKind
    ) -> "Timeline":
        """Build a single-label timeline from ``(start, end)`` pairs."""
        label = label_of(*kinds)
        return cls(tuple(ConditionInterval(s, e, label) for s, e in spans if e > s))

    def __iter__(self) -> Iterator[ConditionInterval]:
        return iter(self.intervals)

    def __len__(self) -> int:
        return len(self.intervals)

    def __bool__(self) -> bool:
        return bool(self.intervals)

    def labels(self) -> FrozenSet[Label]:
        return frozenset(i.label for i in self.intervals)

    def total_duration_s(self) -> float:
        return sum(i.duration_s for i in self.intervals)

    def spans(self) -> List[Interval]:
        return [i.interval for i in self.intervals]


def intersect(a: Timeline, b: Timeline) -> Timeline:
    """
    Conjunction of two timelines.

    Every overlap between an interval of ``a`` and an interval of ``b``
    becomes one result interval labeled with the union of both labels.
    Zero-length overlaps are dropped.
    """
    result: List[ConditionInterval] = []
    for ia in a:
        for ib in b:
            if ib.start >= ia.end:
                # b is sorted by start, nothing further can overlap ia
                break
            if ib.end <= ia.start:
                continue
            start = max(ia.start, ib.start)
            end = min(ia.end, ib.end)
            if end > start:
                result.append(ConditionInterval(start, end, ia.label | ib.label))
    return Timeline(tuple(result))


def filter_by_label(timeline: Timeline, label: Label, invert: bool = False) -> Timeline:
    """Keep only intervals carrying exactly ``label`` (or all others if ``invert``)."""
    return Timeline(
        tuple(i for i in timeline if (i.label == label) != invert)
    )


def coalesce(timeline: Timeline) -> Timeline:
    """Merge touching or overlapping intervals that share a label."""
    merged: List[ConditionInterval] = []
    by_label: dict = {}
    for interval in timeline:
        by_label.setdefault(interval.label, []).append(interval)

    for label, items in by_label.items():
        current_start, current_end = items[0].start, items[0].end
        for item in items[1:]:
            if item.start <= current_end:
                current_end = max(current_end, item.end)
            else:
                merged.append(ConditionInterval(current_start, current_end, label))
                current_start, current_end = item.start, item.end
        merged.append(ConditionInterval(current_start, current_end, label))

    return Timeline(tuple(m for m in merged if m.end > m.start))


def clip(timeline: Timeline, horizon: Interval) -> Timeline:
    """Restrict every interval to ``horizon``; empty results are dropped."""
    clipped = []
    for interval in timeline:
        start = max(interval.start, horizon.start)
        end = min(interval.end, horizon.end)
        if end > start:
            clipped.append(ConditionInterval(start, end, interval.label))
    dropped = len(timeline) - len(clipped)
    if dropped:
        logger.debug(f"Clipping to horizon {horizon} dropped {dropped} interval(s)")
    return Timeline(tuple(clipped))
