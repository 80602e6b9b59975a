"""
Mission orchestration: access plan, observation plan and cinematic plan.

``CompleteMission`` validates the setup once, then runs the three planning
stages in order. Each stage keeps its result on the mission so that the
later stages, the final score and the summary can be computed from it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
import json
import logging

import pandas as pd

from .access import AccessPlanResult, AccessWindowBuilder
from .attitude import NadirPointing, PointingLaw, SlewModel, TargetGroundPointing
from .cinematics import CinematicPlan, LegKind
from .detection import ConditionDetector, EventHandler, GeometricConditionDetector, continue_on_event
from .exceptions import ConfigurationError
from .intervals import Interval
from .mission_config import MissionConfig, TargetOrder
from .orbit import SatelliteOrbit
from .scheduler import ObservationLawFactory, ObservationScheduler, ScheduleResult
from .sequencer import CinematicSequencer, check_cinematic_plan
from .targets import Target

logger = logging.getLogger(__name__)


@dataclass
class MissionResult:
    """Outputs of a complete planning run."""

    access_plan: AccessPlanResult
    schedule: ScheduleResult
    cinematic_plan: CinematicPlan
    final_score: float
    summary: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "access_plan": self.access_plan.to_dict(),
            "observation_plan": self.schedule.to_dict(),
            "cinematic_plan": self.cinematic_plan.to_dict(),
        }


class CompleteMission:
    """
    Plans observations of a set of targets by one platform over a horizon.

    Args:
        config: Mission configuration
        targets: Targets to observe (at least one, unique ids)
        detector: Condition detector used to build access windows
        slew_model: Platform slew model (built from the spacecraft config if omitted)
        default_law: Pointing law outside observations (nadir if omitted)
        observation_law_factory: Builds the law observing a target

    Raises:
        ConfigurationError: If the mission cannot be planned as configured
    """

    def __init__(
        self,
        config: MissionConfig,
        targets: Sequence[Target],
        detector: ConditionDetector,
        slew_model: Optional[SlewModel] = None,
        default_law: Optional[PointingLaw] = None,
        observation_law_factory: Optional[ObservationLawFactory] = None,
    ) -> None:
        self.targets: List[Target] = list(targets)
        if not self.targets:
            raise ConfigurationError("Mission needs at least one target")
        ids = [t.id for t in self.targets]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate target ids: {', '.join(duplicates)}")

        self.config = config
        self.slew_model = slew_model or SlewModel(config.spacecraft)
        self.default_law = default_law or NadirPointing()
        config.validate(self.slew_model.max_slew_duration_s)

        self.horizon = Interval(config.start_time, config.end_time)
        self.access_builder = AccessWindowBuilder(detector, self.horizon)
        self.scheduler = ObservationScheduler(
            config, self.slew_model, self.default_law, observation_law_factory
        )
        self.sequencer = CinematicSequencer(self.horizon, self.slew_model, self.default_law)

        self.access_plan: Optional[AccessPlanResult] = None
        self.observation_plan: Optional[ScheduleResult] = None
        self.cinematic_plan: Optional[CinematicPlan] = None

        logger.info(
            f"Initialized mission '{config.name}' with {len(self.targets)} targets over "
            f"{self.horizon} (max slew {self.slew_model.max_slew_duration_s:.2f}s)"
        )

    @classmethod
    def from_orbit(
        cls,
        config: MissionConfig,
        targets: Sequence[Target],
        orbit: SatelliteOrbit,
        on_event: EventHandler = continue_on_event,
    ) -> "CompleteMission":
        """Mission using geometric detection and ground-pointing observations for ``orbit``."""
        detector = GeometricConditionDetector(
            orbit.copy, config.observation, config.detection, on_event
        )
        return cls(
            config,
            targets,
            detector,
            observation_law_factory=lambda target: TargetGroundPointing(target, orbit),
        )

    def compute_access_plan(
        self, max_workers: Optional[int] = None, use_parallel: bool = False
    ) -> AccessPlanResult:
        """Access windows of every target."""
        self.access_plan = self.access_builder.compute_access_plan(
            self.targets, max_workers=max_workers, use_parallel=use_parallel
        )
        return self.access_plan

    def compute_observation_plan(self, order: Optional[TargetOrder] = None) -> ScheduleResult:
        """Observation per admitted target; computes the access plan first if needed."""
        if self.access_plan is None:
            self.compute_access_plan()
        self.observation_plan = self.scheduler.schedule(self.targets, self.access_plan, order)
        return self.observation_plan

    def compute_cinematic_plan(self) -> CinematicPlan:
        """
        Cinematic plan of the admitted observations.

        Raises:
            CinematicPlanError: If the plan cannot be built
        """
        if self.observation_plan is None:
            self.compute_observation_plan()
        self.cinematic_plan = self.sequencer.build(self.observation_plan.chronological())
        return self.cinematic_plan

    def check_cinematic_plan(self) -> bool:
        """Re-check every slew of the computed cinematic plan."""
        if self.cinematic_plan is None:
            raise ValueError("Cinematic plan has not been computed")
        check_cinematic_plan(self.cinematic_plan, self.slew_model)
        return True

    def compute_final_score(self) -> float:
        """Sum of the scores of the observed targets."""
        if self.observation_plan is None:
            return 0.0
        return sum(task.target.score for task in self.observation_plan.observations.values())

    def get_mission_summary(self) -> Dict[str, Any]:
        """
        Generate mission summary statistics.

        Returns:
            Dictionary with mission summary
        """
        summary: Dict[str, Any] = {
            "mission_name": self.config.name,
            "horizon_start": self.horizon.start.isoformat(),
            "horizon_end": self.horizon.end.isoformat(),
            "horizon_duration_s": self.horizon.duration_s,
            "targets_total": len(self.targets),
            "max_possible_score": sum(t.score for t in self.targets),
            "final_score": self.compute_final_score(),
        }

        if self.access_plan is not None:
            summary["targets_with_access"] = len(
                [w for w in self.access_plan.windows.values() if w]
            )
            summary["targets_excluded"] = len(self.access_plan.diagnostics)
            summary["total_access_windows"] = self.access_plan.total_windows

        if self.observation_plan is not None:
            summary["observations"] = len(self.observation_plan.observations)
            summary["unobserved"] = len(self.observation_plan.unobserved)

        if self.cinematic_plan is not None:
            time_by_kind = {kind.value: 0.0 for kind in LegKind}
            for leg in self.cinematic_plan:
                time_by_kind[leg.kind.value] += leg.duration_s
            summary["legs"] = len(self.cinematic_plan)
            summary["slews"] = len(self.cinematic_plan.slew_legs())
            summary["time_by_leg_kind_s"] = {k: round(v, 3) for k, v in time_by_kind.items()}

        logger.info(
            f"Generated mission summary: score {summary['final_score']:g}"
            f"/{summary['max_possible_score']:g}"
        )
        return summary

    def run(
        self,
        order: Optional[TargetOrder] = None,
        max_workers: Optional[int] = None,
        use_parallel: bool = False,
    ) -> MissionResult:
        """Run the access, observation and cinematic stages in order."""
        logger.info(f"Running mission '{self.config.name}'")
        access_plan = self.compute_access_plan(max_workers=max_workers, use_parallel=use_parallel)
        schedule = self.compute_observation_plan(order)
        cinematic_plan = self.compute_cinematic_plan()
        self.check_cinematic_plan()

        return MissionResult(
            access_plan=access_plan,
            schedule=schedule,
            cinematic_plan=cinematic_plan,
            final_score=self.compute_final_score(),
            summary=self.get_mission_summary(),
        )


def _leg_rows(plan: CinematicPlan) -> List[Dict[str, Any]]:
    rows = []
    for leg in plan:
        start_attitude = leg.start_attitude()
        end_attitude = leg.end_attitude()
        rows.append({
            "kind": leg.kind.value,
            "name": leg.name,
            "start_time": leg.start.isoformat(),
            "end_time": leg.end.isoformat(),
            "duration_s": round(leg.duration_s, 6),
            "start_roll_deg": round(start_attitude.roll_deg, 4),
            "start_pitch_deg": round(start_attitude.pitch_deg, 4),
            "end_roll_deg": round(end_attitude.roll_deg, 4),
            "end_pitch_deg": round(end_attitude.pitch_deg, 4),
        })
    return rows


def export_plan(
    result: MissionResult, output_file: Union[str, Path], format: str = "auto"
) -> Path:
    """
    Export a mission result to file.

    JSON holds the summary and all three plans; CSV holds one row per
    cinematic leg.

    Args:
        result: Result of CompleteMission.run
        output_file: Output file path
        format: Output format ("json", "csv", or "auto")

    Returns:
        Path written to
    """
    output_path = Path(output_file)

    if format == "auto":
        format = output_path.suffix.lower().lstrip('.')
        if format not in ["json", "csv"]:
            format = "json"

    if format == "json":
        export_data = {
            "metadata": {
                "export_time": datetime.now(timezone.utc).isoformat(),
                "final_score": result.final_score,
            },
            **result.to_dict(),
        }
        with open(output_path, 'w') as f:
            json.dump(export_data, f, indent=2)
    elif format == "csv":
        rows = _leg_rows(result.cinematic_plan)
        df = pd.DataFrame(rows, columns=[
            "kind", "name", "start_time", "end_time", "duration_s",
            "start_roll_deg", "start_pitch_deg", "end_roll_deg", "end_pitch_deg",
        ])
        df.to_csv(output_path, index=False)
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info(f"Exported mission plan to {output_path}")
    return output_path
