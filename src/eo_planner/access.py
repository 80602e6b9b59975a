"""
Access window computation.

An access window is a maximal interval during which every observation
condition holds for a target: the target is visible from the platform, lit
by the sun, and the sensor is not dazzled. The three condition timelines are
detected independently and combined with the interval algebra.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
import logging
import time

from .detection import ConditionDetector
from .exceptions import DetectionError
from .intervals import (
    ALL_CONDITIONS,
    ConditionKind,
    Interval,
    clip,
    coalesce,
    filter_by_label,
    intersect,
)
from .targets import Target
from .utils import get_optimal_workers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessWindow:
    """Interval during which ``target_id`` can be observed."""

    target_id: str
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(
                f"Access window for {self.target_id} must have end after start "
                f"({self.start.isoformat()} .. {self.end.isoformat()})"
            )

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def duration_s(self) -> float:
        return (self.end - self.start).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
            "duration_s": round(self.duration_s, 3),
        }


@dataclass(frozen=True)
class DetectionDiagnostic:
    """Why a target was left out of the access plan."""

    target_id: str
    condition: Optional[ConditionKind]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "condition": getattr(self.condition, "value", self.condition),
            "message": self.message,
        }


@dataclass
class AccessPlanResult:
    """Access windows per target id, plus diagnostics for excluded targets."""

    windows: Dict[str, List[AccessWindow]] = field(default_factory=dict)
    diagnostics: List[DetectionDiagnostic] = field(default_factory=list)
    runtime_ms: float = 0.0

    def windows_for(self, target_id: str) -> List[AccessWindow]:
        return self.windows.get(target_id, [])

    @property
    def total_windows(self) -> int:
        return sum(len(w) for w in self.windows.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "windows": {
                target_id: [w.to_dict() for w in windows]
                for target_id, windows in self.windows.items()
            },
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "total_windows": self.total_windows,
            "runtime_ms": round(self.runtime_ms, 2),
        }


class AccessWindowBuilder:
    """
    Builds access windows for targets over a mission horizon.

    Args:
        detector: Condition detector producing one timeline per condition
        horizon: Mission horizon all windows are clipped to
    """

    def __init__(self, detector: ConditionDetector, horizon: Interval) -> None:
        self.detector = detector
        self.horizon = horizon

    def build(self, target: Target) -> List[AccessWindow]:
        """
        Access windows of ``target``, chronological and pairwise disjoint.

        Raises:
            DetectionError: If any of the three detections fails
        """
        visibility = self.detector.detect(target, ConditionKind.VISIBILITY, self.horizon)
        illumination = self.detector.detect(target, ConditionKind.ILLUMINATION, self.horizon)
        no_dazzling = self.detector.detect(target, ConditionKind.NO_DAZZLING, self.horizon)

        visible_and_lit = intersect(visibility, illumination)
        combined = intersect(visible_and_lit, no_dazzling)
        access = coalesce(clip(filter_by_label(combined, ALL_CONDITIONS), self.horizon))

        windows = [AccessWindow(target.id, i.start, i.end) for i in access]
        logger.debug(
            f"{target.id}: {len(visibility)} visibility, {len(illumination)} illumination, "
            f"{len(no_dazzling)} no-dazzling interval(s) -> {len(windows)} access window(s)"
        )
        return windows

    def compute_access_plan(
        self,
        targets: Iterable[Target],
        max_workers: Optional[int] = None,
        use_parallel: bool = False,
    ) -> AccessPlanResult:
        """
        Access windows for every target.

        A detection failure excludes only the affected target: it is logged,
        recorded as a diagnostic, and the other targets are still computed.

        Args:
            targets: Targets to compute
            max_workers: Worker count for parallel mode (None = auto)
            use_parallel: Compute targets concurrently

        Returns:
            AccessPlanResult keyed by target id, in input order
        """
        start = time.perf_counter()
        target_list = list(targets)
        outcomes: Dict[str, Any] = {}

        if use_parallel and len(target_list) > 1:
            num_workers = get_optimal_workers(max_workers, len(target_list))
            logger.info(
                f"Computing access windows for {len(target_list)} targets "
                f"with {num_workers} workers"
            )
            with ThreadPoolExecutor(max_workers=num_workers) as executor:
                futures = {executor.submit(self._build_guarded, t): t for t in target_list}
                for future in as_completed(futures):
                    target = futures[future]
                    outcomes[target.id] = future.result()
        else:
            logger.info(f"Computing access windows for {len(target_list)} targets")
            for target in target_list:
                outcomes[target.id] = self._build_guarded(target)

        result = AccessPlanResult()
        for target in target_list:
            outcome = outcomes[target.id]
            if isinstance(outcome, DetectionDiagnostic):
                result.diagnostics.append(outcome)
            else:
                result.windows[target.id] = outcome

        result.runtime_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Access plan: {result.total_windows} windows for {len(result.windows)} targets, "
            f"{len(result.diagnostics)} excluded ({result.runtime_ms:.1f}ms)"
        )
        return result

    def _build_guarded(self, target: Target) -> Any:
        try:
            return self.build(target)
        except DetectionError as e:
            logger.warning(f"Excluding target {target.id} from access plan: {e}")
            return DetectionDiagnostic(target.id, e.condition, e.message)
