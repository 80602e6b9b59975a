"""
Cinematic sequencer: stitches observations into one attitude plan.

The plan starts and ends on the default pointing law. Every gap around an
observation is filled by ``layout_transition``; afterwards every slew is
checked against the slew-duration model and the plan is verified to be
sorted, contiguous and to span exactly the horizon. Any violation aborts
the construction: a plan is either fully valid or not returned at all.
"""

from dataclasses import replace
from typing import Iterable, List, Union
import logging

from .attitude import PointingLaw, SlewModel
from .cinematics import (
    HORIZON_END,
    HORIZON_START,
    CinematicLeg,
    CinematicPlan,
    LegKind,
    SlewCheck,
    check_slew,
    check_transition,
    layout_transition,
)
from .exceptions import CinematicInfeasibilityError, CinematicPlanError, PlanInvariantError
from .intervals import Interval
from .scheduler import ObservationTask

logger = logging.getLogger(__name__)


class CinematicSequencer:
    """
    Builds the cinematic plan of a mission horizon.

    Args:
        horizon: Mission horizon the plan must span
        slew_model: Platform slew-duration model
        default_law: Pointing law between observations
    """

    def __init__(self, horizon: Interval, slew_model: SlewModel, default_law: PointingLaw) -> None:
        self.horizon = horizon
        self.slew_model = slew_model
        self.default_law = default_law

    def build(self, observations: Iterable[Union[ObservationTask, CinematicLeg]]) -> CinematicPlan:
        """
        Sequence ``observations`` into a plan spanning the horizon.

        Raises:
            CinematicInfeasibilityError: If observations overlap or a slew
                cannot be performed in its allotted time
            PlanInvariantError: If the assembled plan is not contiguous
        """
        observation_legs = sorted(
            (o if isinstance(o, CinematicLeg) else o.to_leg() for o in observations),
            key=lambda leg: (leg.start, leg.end),
        )

        for leg in observation_legs:
            if not self.horizon.contains(leg.interval):
                raise CinematicPlanError(
                    f"Observation {leg.name} {leg.interval} lies outside horizon {self.horizon}"
                )

        for previous, following in zip(observation_legs, observation_legs[1:]):
            if following.start < previous.end:
                raise CinematicInfeasibilityError(
                    previous,
                    following,
                    self.slew_model.slew_duration(previous.end_attitude(), following.start_attitude()),
                    (following.start - previous.end).total_seconds(),
                    reason="observations overlap",
                )

        if observation_legs:
            first, last = observation_legs[0], observation_legs[-1]
            for check in (
                check_transition(
                    self.horizon.start, first.start, None, first, self.default_law, self.slew_model
                ),
                check_transition(
                    last.end, self.horizon.end, last, None, self.default_law, self.slew_model
                ),
            ):
                if not check.feasible:
                    raise CinematicInfeasibilityError(
                        check.previous, check.following, check.required_s, check.allotted_s,
                        reason=check.reason,
                    )

        max_slew_s = self.slew_model.max_slew_duration_s
        legs: List[CinematicLeg] = []
        cursor = self.horizon.start
        previous_leg = None
        for leg in observation_legs:
            legs.extend(layout_transition(
                cursor, leg.start, previous_leg, leg, self.default_law, max_slew_s
            ))
            legs.append(leg)
            previous_leg, cursor = leg, leg.end
        legs.extend(layout_transition(
            cursor, self.horizon.end, previous_leg, None, self.default_law, max_slew_s
        ))

        plan = CinematicPlan(self.horizon, self._number_default_legs(legs))
        check_cinematic_plan(plan, self.slew_model)
        verify_plan_invariants(plan)

        logger.info(
            f"Cinematic plan: {len(plan)} legs, {len(plan.observation_legs())} observations, "
            f"{len(plan.slew_legs())} slews"
        )
        return plan

    def _number_default_legs(self, legs: List[CinematicLeg]) -> List[CinematicLeg]:
        numbered = []
        count = 0
        for leg in legs:
            if leg.kind is LegKind.DEFAULT:
                count += 1
                leg = replace(leg, name=f"{self.default_law.name}_Law_{count}")
            numbered.append(leg)
        return numbered


def check_cinematic_plan(plan: CinematicPlan, slew_model: SlewModel) -> List[SlewCheck]:
    """
    Check every slew of ``plan`` against the slew-duration model.

    Returns:
        One SlewCheck per slew leg, in plan order

    Raises:
        CinematicInfeasibilityError: On the first slew whose required
            duration exceeds its allotted time or the platform maximum, or
            on two observation legs with no slew between them
    """
    checks: List[SlewCheck] = []
    legs = plan.legs
    for i, leg in enumerate(legs):
        previous = legs[i - 1] if i > 0 else HORIZON_START
        following = legs[i + 1] if i + 1 < len(legs) else HORIZON_END

        if leg.kind is LegKind.OBSERVATION and isinstance(following, CinematicLeg) \
                and following.kind is LegKind.OBSERVATION:
            raise CinematicInfeasibilityError(
                leg,
                following,
                slew_model.slew_duration(leg.end_attitude(), following.start_attitude()),
                0.0,
                reason="observations are adjacent",
            )

        if leg.kind is not LegKind.SLEW:
            continue

        check = check_slew(leg, slew_model, previous, following)
        logger.debug(
            f"[ATTITUDE] {leg.name}: required={check.required_s:.3f}s "
            f"allotted={check.allotted_s:.3f}s"
        )
        if not check.feasible:
            raise CinematicInfeasibilityError(
                previous, following, check.required_s, check.allotted_s, reason=check.reason
            )
        checks.append(check)
    return checks


def verify_plan_invariants(plan: CinematicPlan) -> None:
    """
    Verify that legs are sorted, contiguous, non-overlapping and span the horizon.

    Raises:
        PlanInvariantError: On the first violation found
    """
    legs = plan.legs
    if not legs:
        raise PlanInvariantError("Cinematic plan has no legs")
    if legs[0].start != plan.horizon.start:
        raise PlanInvariantError(
            f"First leg {legs[0].name} starts at {legs[0].start.isoformat()}, "
            f"not at horizon start {plan.horizon.start.isoformat()}"
        )
    if legs[-1].end != plan.horizon.end:
        raise PlanInvariantError(
            f"Last leg {legs[-1].name} ends at {legs[-1].end.isoformat()}, "
            f"not at horizon end {plan.horizon.end.isoformat()}"
        )

    for leg in (legs[0], legs[-1]):
        if leg.kind is LegKind.OBSERVATION:
            raise PlanInvariantError(f"Observation leg {leg.name} touches a horizon edge")

    for leg in legs:
        if leg.end <= leg.start:
            raise PlanInvariantError(f"Leg {leg.name} has no duration")

    for previous, following in zip(legs, legs[1:]):
        if previous.end != following.start:
            kind = "overlaps" if following.start < previous.end else "leaves a gap before"
            raise PlanInvariantError(
                f"Leg {previous.name} {kind} {following.name} "
                f"({previous.end.isoformat()} vs {following.start.isoformat()})"
            )
        if previous.kind is LegKind.OBSERVATION and following.kind is LegKind.OBSERVATION:
            raise PlanInvariantError(
                f"Observation legs {previous.name} and {following.name} are adjacent"
            )
