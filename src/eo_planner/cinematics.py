"""
Cinematic plan model: attitude legs over the mission horizon.

A cinematic plan is a contiguous sequence of legs. Default and observation
legs follow a pointing law; slew legs move the platform between the
boundary attitudes of their neighbours.

``layout_transition`` decides which legs fill the gap between two
observations (or between an observation and a horizon edge). The scheduler
uses it to test a candidate, and the sequencer uses it to build the plan,
so an admitted observation is always one the sequencer can sequence.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union
import logging

from .attitude import Attitude, PointingLaw, SlewModel
from .intervals import Interval

logger = logging.getLogger(__name__)

# Slew durations are compared on microsecond-resolution timestamps
SLEW_TOLERANCE_S = 1e-6

HORIZON_START = "horizon start"
HORIZON_END = "horizon end"


class LegKind(Enum):
    """Kinds of cinematic legs."""
    DEFAULT = "default"
    OBSERVATION = "observation"
    SLEW = "slew"


@dataclass(frozen=True)
class CinematicLeg:
    """
    One leg of the cinematic plan over ``[start, end)``.

    Default and observation legs carry a pointing law. Slew legs carry the
    attitudes they transition between instead.
    """

    kind: LegKind
    start: datetime
    end: datetime
    name: str
    law: Optional[PointingLaw] = None
    initial_attitude: Optional[Attitude] = None
    final_attitude: Optional[Attitude] = None

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Leg {self.name} ends before it starts")
        if self.kind is LegKind.SLEW:
            if self.initial_attitude is None or self.final_attitude is None:
                raise ValueError(f"Slew leg {self.name} needs both boundary attitudes")
        elif self.law is None:
            raise ValueError(f"{self.kind.value} leg {self.name} needs a pointing law")

    @property
    def duration_s(self) -> float:
        return (self.end - self.start).total_seconds()

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    def attitude_at(self, timestamp: datetime) -> Attitude:
        """Attitude during the leg; slews move at a constant rate between their end points."""
        if self.kind is LegKind.SLEW:
            if self.duration_s <= 0:
                return self.final_attitude
            fraction = (timestamp - self.start).total_seconds() / self.duration_s
            return self.initial_attitude.interpolate(self.final_attitude, fraction)
        return self.law.attitude_at(timestamp)

    def start_attitude(self) -> Attitude:
        return self.initial_attitude if self.kind is LegKind.SLEW else self.law.attitude_at(self.start)

    def end_attitude(self) -> Attitude:
        return self.final_attitude if self.kind is LegKind.SLEW else self.law.attitude_at(self.end)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "name": self.name,
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
            "duration_s": round(self.duration_s, 6),
        }
        if self.kind is LegKind.SLEW:
            result["initial_attitude"] = self.initial_attitude.to_dict()
            result["final_attitude"] = self.final_attitude.to_dict()
        else:
            result["law"] = self.law.name
        return result


@dataclass
class CinematicPlan:
    """Chronological, contiguous legs spanning the mission horizon."""

    horizon: Interval
    legs: List[CinematicLeg] = field(default_factory=list)

    def __iter__(self) -> Iterator[CinematicLeg]:
        return iter(self.legs)

    def __len__(self) -> int:
        return len(self.legs)

    def observation_legs(self) -> List[CinematicLeg]:
        return [leg for leg in self.legs if leg.kind is LegKind.OBSERVATION]

    def slew_legs(self) -> List[CinematicLeg]:
        return [leg for leg in self.legs if leg.kind is LegKind.SLEW]

    def default_legs(self) -> List[CinematicLeg]:
        return [leg for leg in self.legs if leg.kind is LegKind.DEFAULT]

    def leg_at(self, timestamp: datetime) -> CinematicLeg:
        """Leg active at ``timestamp``; the horizon end belongs to the last leg."""
        if not self.horizon.start <= timestamp <= self.horizon.end:
            raise ValueError(f"{timestamp.isoformat()} is outside the plan horizon {self.horizon}")
        for leg in self.legs:
            if leg.start <= timestamp < leg.end:
                return leg
        return self.legs[-1]

    def attitude_at(self, timestamp: datetime) -> Attitude:
        return self.leg_at(timestamp).attitude_at(timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "horizon": {
                "start_time": self.horizon.start.isoformat(),
                "end_time": self.horizon.end.isoformat(),
            },
            "legs": [leg.to_dict() for leg in self.legs],
            "observation_count": len(self.observation_legs()),
            "slew_count": len(self.slew_legs()),
        }


def _slew(
    start: datetime,
    end: datetime,
    initial: Attitude,
    final: Attitude,
    from_name: str,
    to_name: str,
) -> CinematicLeg:
    return CinematicLeg(
        LegKind.SLEW, start, end, f"Slew_{from_name}_to_{to_name}",
        initial_attitude=initial, final_attitude=final,
    )


def _default(start: datetime, end: datetime, default_law: PointingLaw) -> CinematicLeg:
    return CinematicLeg(LegKind.DEFAULT, start, end, default_law.name, law=default_law)


def layout_transition(
    gap_start: datetime,
    gap_end: datetime,
    previous: Optional[CinematicLeg],
    following: Optional[CinematicLeg],
    default_law: PointingLaw,
    max_slew_duration_s: float,
) -> List[CinematicLeg]:
    """
    Legs filling ``[gap_start, gap_end)`` between two plan legs.

    ``previous`` is None at the horizon start and ``following`` is None at
    the horizon end. Between two observations, a gap longer than two max
    slews becomes slew, default, slew; a shorter gap becomes one direct
    slew. At a horizon edge, a gap longer than one max slew becomes a
    default leg plus one slew; a shorter gap becomes one slew. Slews next to
    a default leg last exactly the max slew duration. Zero-length legs are
    dropped.
    """
    gap_s = (gap_end - gap_start).total_seconds()
    if gap_s < 0:
        raise ValueError(f"Transition gap ends before it starts ({gap_start} > {gap_end})")

    max_slew = timedelta(seconds=max_slew_duration_s)
    legs: List[CinematicLeg] = []

    if previous is None and following is None:
        legs.append(_default(gap_start, gap_end, default_law))

    elif previous is None:
        next_attitude = following.start_attitude()
        if gap_s > max_slew_duration_s:
            slew_start = gap_end - max_slew
            legs.append(_default(gap_start, slew_start, default_law))
            legs.append(_slew(
                slew_start, gap_end, default_law.attitude_at(slew_start), next_attitude,
                default_law.name, following.name,
            ))
        else:
            legs.append(_slew(
                gap_start, gap_end, default_law.attitude_at(gap_start), next_attitude,
                default_law.name, following.name,
            ))

    elif following is None:
        previous_attitude = previous.end_attitude()
        if gap_s > max_slew_duration_s:
            slew_end = gap_start + max_slew
            legs.append(_slew(
                gap_start, slew_end, previous_attitude, default_law.attitude_at(slew_end),
                previous.name, default_law.name,
            ))
            legs.append(_default(slew_end, gap_end, default_law))
        else:
            legs.append(_slew(
                gap_start, gap_end, previous_attitude, default_law.attitude_at(gap_end),
                previous.name, default_law.name,
            ))

    else:
        previous_attitude = previous.end_attitude()
        next_attitude = following.start_attitude()
        if gap_s > 2 * max_slew_duration_s:
            first_end = gap_start + max_slew
            second_start = gap_end - max_slew
            legs.append(_slew(
                gap_start, first_end, previous_attitude, default_law.attitude_at(first_end),
                previous.name, default_law.name,
            ))
            legs.append(_default(first_end, second_start, default_law))
            legs.append(_slew(
                second_start, gap_end, default_law.attitude_at(second_start), next_attitude,
                default_law.name, following.name,
            ))
        else:
            legs.append(_slew(
                gap_start, gap_end, previous_attitude, next_attitude,
                previous.name, following.name,
            ))

    return [leg for leg in legs if leg.end > leg.start]


@dataclass(frozen=True)
class SlewCheck:
    """Outcome of checking one transition."""

    feasible: bool
    required_s: float = 0.0
    allotted_s: float = 0.0
    reason: Optional[str] = None
    previous: Union[CinematicLeg, str, None] = None
    following: Union[CinematicLeg, str, None] = None


def check_slew(
    slew: CinematicLeg,
    slew_model: SlewModel,
    previous: Union[CinematicLeg, str, None] = None,
    following: Union[CinematicLeg, str, None] = None,
) -> SlewCheck:
    """Required slew duration against the slew's allotted time and the platform maximum."""
    required = slew_model.slew_duration(slew.initial_attitude, slew.final_attitude)
    allotted = slew.duration_s
    if required > allotted + SLEW_TOLERANCE_S:
        return SlewCheck(
            False, required, allotted, "slew duration exceeds allotted time", previous, following
        )
    if required > slew_model.max_slew_duration_s + SLEW_TOLERANCE_S:
        return SlewCheck(
            False, required, allotted,
            f"slew duration exceeds platform maximum of {slew_model.max_slew_duration_s:.3f}s",
            previous, following,
        )
    return SlewCheck(True, required, allotted, None, previous, following)


def check_transition(
    gap_start: datetime,
    gap_end: datetime,
    previous: Optional[CinematicLeg],
    following: Optional[CinematicLeg],
    default_law: PointingLaw,
    slew_model: SlewModel,
) -> SlewCheck:
    """
    Lay out a transition and check every slew in it.

    An observation is always entered and left through a slew, so a zero or
    negative gap is infeasible between two observations and at either
    horizon edge.
    """
    if gap_end <= gap_start and (previous is not None or following is not None):
        allotted = (gap_end - gap_start).total_seconds()
        if previous is None:
            required = slew_model.slew_duration(
                default_law.attitude_at(gap_end), following.start_attitude()
            )
            return SlewCheck(
                False, required, allotted, "observation starts at horizon start",
                HORIZON_START, following,
            )
        if following is None:
            required = slew_model.slew_duration(
                previous.end_attitude(), default_law.attitude_at(gap_start)
            )
            return SlewCheck(
                False, required, allotted, "observation ends at horizon end",
                previous, HORIZON_END,
            )
        required = slew_model.slew_duration(previous.end_attitude(), following.start_attitude())
        reason = "observations overlap" if gap_end < gap_start else "observations are adjacent"
        return SlewCheck(False, required, allotted, reason, previous, following)

    legs = layout_transition(
        gap_start, gap_end, previous, following, default_law, slew_model.max_slew_duration_s
    )
    sequence: List[Union[CinematicLeg, str]] = [
        previous if previous is not None else HORIZON_START,
        *legs,
        following if following is not None else HORIZON_END,
    ]
    for i in range(1, len(sequence) - 1):
        leg = sequence[i]
        if leg.kind is not LegKind.SLEW:
            continue
        result = check_slew(leg, slew_model, sequence[i - 1], sequence[i + 1])
        if not result.feasible:
            return result

    return SlewCheck(True)
