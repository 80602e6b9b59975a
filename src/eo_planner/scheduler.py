"""
Observation scheduler: greedy admission of one observation per target.

Targets are visited once, in a configurable order. For each target the
access windows are tried chronologically; a centering policy proposes a
fixed-duration candidate inside the window, and the candidate is admitted
only if it keeps every admitted observation reachable:

- it does not overlap any admitted observation widened by the slew needed
  between the two;
- the transitions the sequencer will lay out toward its nearest neighbours
  (or toward the default law at the horizon edges) are all feasible.

Admission order decides conflicts; the result is not a global optimum.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .access import AccessPlanResult, AccessWindow
from .attitude import NADIR, FixedPointing, PointingLaw, SlewModel
from .cinematics import CinematicLeg, LegKind, SlewCheck, check_transition
from .intervals import Interval
from .mission_config import CenteringPolicy, MissionConfig, TargetOrder
from .targets import Target

logger = logging.getLogger(__name__)

ObservationLawFactory = Callable[[Target], PointingLaw]


def fixed_nadir_observation_law(target: Target) -> PointingLaw:
    """Observation law keeping the platform at nadir (no ground-pointing model)."""
    return FixedPointing(f"OBS_{target.name}", NADIR)


@dataclass(frozen=True)
class ObservationTask:
    """A scheduled observation of ``target`` over ``[start, end)``."""

    target: Target
    start: datetime
    end: datetime
    law: PointingLaw

    @property
    def target_id(self) -> str:
        return self.target.id

    @property
    def name(self) -> str:
        return self.law.name

    @property
    def duration_s(self) -> float:
        return (self.end - self.start).total_seconds()

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    def to_leg(self) -> CinematicLeg:
        return CinematicLeg(LegKind.OBSERVATION, self.start, self.end, self.name, law=self.law)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target.id,
            "target_name": self.target.name,
            "score": self.target.score,
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
            "duration_s": round(self.duration_s, 6),
            "law": self.law.name,
        }


@dataclass(frozen=True)
class UnobservedTarget:
    """A target left out of the observation plan, with the reason."""

    target_id: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"target_id": self.target_id, "reason": self.reason}


@dataclass
class ScheduleMetrics:
    """Performance metrics for a schedule."""

    order: str
    centering: str
    runtime_ms: float

    targets_evaluated: int
    targets_admitted: int
    targets_unobserved: int
    candidates_evaluated: int

    total_score: float
    total_observation_time_s: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reports."""
        return {
            "order": self.order,
            "centering": self.centering,
            "runtime_ms": round(self.runtime_ms, 2),
            "targets_evaluated": self.targets_evaluated,
            "targets_admitted": self.targets_admitted,
            "targets_unobserved": self.targets_unobserved,
            "candidates_evaluated": self.candidates_evaluated,
            "total_score": round(self.total_score, 4),
            "total_observation_time_s": round(self.total_observation_time_s, 3),
        }


@dataclass
class ScheduleResult:
    """Observation plan keyed by target id, with unobserved targets and metrics."""

    observations: Dict[str, ObservationTask] = field(default_factory=dict)
    unobserved: List[UnobservedTarget] = field(default_factory=list)
    metrics: Optional[ScheduleMetrics] = None

    def chronological(self) -> List[ObservationTask]:
        return sorted(self.observations.values(), key=lambda o: (o.start, o.target_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "observations": [o.to_dict() for o in self.chronological()],
            "unobserved": [u.to_dict() for u in self.unobserved],
            "metrics": self.metrics.to_dict() if self.metrics else None,
        }


AccessPlan = Union[AccessPlanResult, Mapping[str, Sequence[AccessWindow]]]


class ObservationScheduler:
    """
    Greedy observation scheduler.

    Args:
        config: Mission configuration (horizon, integration time, policies)
        slew_model: Platform slew-duration model
        default_law: Pointing law used outside observations and slews
        observation_law_factory: Builds the pointing law observing a target
    """

    def __init__(
        self,
        config: MissionConfig,
        slew_model: SlewModel,
        default_law: PointingLaw,
        observation_law_factory: Optional[ObservationLawFactory] = None,
    ) -> None:
        self.config = config
        self.slew_model = slew_model
        self.default_law = default_law
        self.observation_law_factory = observation_law_factory or fixed_nadir_observation_law
        self.horizon = Interval(config.start_time, config.end_time)
        self._integration = timedelta(seconds=config.observation.integration_time_s)

    def order_targets(
        self,
        targets: Sequence[Target],
        windows: Mapping[str, Sequence[AccessWindow]],
        order: TargetOrder,
    ) -> List[Target]:
        """Targets in admission order."""
        if order is TargetOrder.PRIORITY:
            return sorted(targets, key=lambda t: (-t.score, t.id))
        if order is TargetOrder.FIRST_ACCESS:
            def first_access(target: Target) -> Tuple[int, datetime, str]:
                target_windows = windows.get(target.id) or []
                if not target_windows:
                    return (1, self.horizon.end, target.id)
                return (0, min(w.start for w in target_windows), target.id)
            return sorted(targets, key=first_access)
        return list(targets)

    def propose_candidate(self, window: AccessWindow) -> Optional[Tuple[datetime, datetime]]:
        """
        Candidate observation interval inside ``window`` per the centering policy.

        Returns None when the window is shorter than the integration time.
        """
        window_s = window.duration_s
        integration_s = self.config.observation.integration_time_s
        if window_s < integration_s:
            return None

        policy = self.config.centering
        if policy is CenteringPolicy.MIDPOINT:
            start = window.start + (window.end - window.start) / 2 - self._integration / 2
        else:
            margin = timedelta(seconds=min(self.slew_model.max_slew_duration_s, window_s - integration_s))
            if policy is CenteringPolicy.EARLIEST:
                start = window.start + margin
            else:
                start = window.end - margin - self._integration

        # Keep the candidate inside the window despite microsecond rounding
        start = max(window.start, min(start, window.end - self._integration))
        return start, start + self._integration

    def schedule(
        self,
        targets: Sequence[Target],
        access_plan: AccessPlan,
        order: Optional[TargetOrder] = None,
    ) -> ScheduleResult:
        """
        Admit at most one observation per target.

        Args:
            targets: Candidate targets
            access_plan: Access windows per target id
            order: Admission order (defaults to the configured one)

        Returns:
            ScheduleResult with admitted observations and unobserved targets
        """
        start_time = time.perf_counter()
        order = order or self.config.target_order
        windows: Mapping[str, Sequence[AccessWindow]] = getattr(access_plan, "windows", access_plan)

        result = ScheduleResult()
        admitted: List[ObservationTask] = []
        candidates_evaluated = 0

        for target in self.order_targets(targets, windows, order):
            if target.id in result.observations:
                continue

            if target.id not in windows:
                result.unobserved.append(UnobservedTarget(target.id, "excluded from access plan"))
                continue
            target_windows = sorted(windows[target.id], key=lambda w: w.start)
            if not target_windows:
                result.unobserved.append(UnobservedTarget(target.id, "no access window"))
                continue

            law = self.observation_law_factory(target)
            task: Optional[ObservationTask] = None
            last_reason = "no access window long enough for the integration time"

            for window in target_windows:
                candidate = self.propose_candidate(window)
                if candidate is None:
                    continue
                candidates_evaluated += 1
                proposal = ObservationTask(target, candidate[0], candidate[1], law)
                reason = self._rejection_reason(proposal, admitted)
                if reason is None:
                    task = proposal
                    break
                last_reason = reason
                logger.debug(
                    f"[SCHEDULE] Rejected {target.id} at {proposal.start.isoformat()}: {reason}"
                )

            if task is None:
                result.unobserved.append(UnobservedTarget(target.id, last_reason))
                logger.info(f"[SCHEDULE] {target.id} unobserved: {last_reason}")
                continue

            admitted.append(task)
            admitted.sort(key=lambda o: o.start)
            result.observations[target.id] = task
            logger.info(
                f"[SCHEDULE] Admitted {target.id} (score={target.score:g}) "
                f"{task.start.isoformat()} -> {task.end.isoformat()}"
            )

        runtime_ms = (time.perf_counter() - start_time) * 1000
        result.metrics = ScheduleMetrics(
            order=order.value,
            centering=self.config.centering.value,
            runtime_ms=runtime_ms,
            targets_evaluated=len(targets),
            targets_admitted=len(result.observations),
            targets_unobserved=len(result.unobserved),
            candidates_evaluated=candidates_evaluated,
            total_score=sum(o.target.score for o in result.observations.values()),
            total_observation_time_s=sum(o.duration_s for o in result.observations.values()),
        )
        logger.info(
            f"Scheduled {len(result.observations)}/{len(targets)} targets "
            f"({candidates_evaluated} candidates) in {runtime_ms:.2f}ms"
        )
        return result

    def _rejection_reason(
        self, candidate: ObservationTask, admitted: List[ObservationTask]
    ) -> Optional[str]:
        """Why ``candidate`` cannot join ``admitted`` (chronological), or None if it can."""
        if not self.horizon.contains(candidate.interval):
            return "candidate outside mission horizon"

        candidate_leg = candidate.to_leg()
        previous: Optional[ObservationTask] = None
        following: Optional[ObservationTask] = None

        for other in admitted:
            other_leg = other.to_leg()
            if other.end <= candidate.start:
                required = self.slew_model.slew_duration(
                    other_leg.end_attitude(), candidate_leg.start_attitude()
                )
                previous = other
            elif other.start >= candidate.end:
                required = self.slew_model.slew_duration(
                    candidate_leg.end_attitude(), other_leg.start_attitude()
                )
                if following is None:
                    following = other
            else:
                return f"overlaps observation of {other.target_id}"

            if other.interval.expanded(required, required).overlaps(candidate.interval):
                return (
                    f"within the {required:.2f}s slew buffer of observation of {other.target_id}"
                )

        before = check_transition(
            previous.end if previous else self.horizon.start,
            candidate.start,
            previous.to_leg() if previous else None,
            candidate_leg,
            self.default_law,
            self.slew_model,
        )
        if not before.feasible:
            return self._describe(before, "before")

        after = check_transition(
            candidate.end,
            following.start if following else self.horizon.end,
            candidate_leg,
            following.to_leg() if following else None,
            self.default_law,
            self.slew_model,
        )
        if not after.feasible:
            return self._describe(after, "after")
        return None

    @staticmethod
    def _describe(check: SlewCheck, side: str) -> str:
        return (
            f"transition {side} infeasible: {check.reason} "
            f"(required={check.required_s:.2f}s, allotted={check.allotted_s:.2f}s)"
        )
