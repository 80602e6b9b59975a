"""
Exception hierarchy for mission planning.

Detection failures and scheduling infeasibility are recovered locally by the
planner (the affected target is skipped). Configuration and cinematic errors
abort the whole planning request.
"""

from typing import Any, Optional


class MissionPlanningError(Exception):
    """Base class for all planner errors."""


class ConfigurationError(MissionPlanningError, ValueError):
    """Invalid mission setup, raised before any planning runs."""


class DetectionError(MissionPlanningError):
    """An external condition detection failed for one target/condition."""

    def __init__(self, target_id: str, condition: Any, message: str) -> None:
        self.target_id = target_id
        self.condition = condition
        self.message = message
        super().__init__(
            f"Detection of {getattr(condition, 'value', condition)} failed "
            f"for target '{target_id}': {message}"
        )


class CinematicPlanError(MissionPlanningError):
    """The cinematic plan could not be produced."""


class CinematicInfeasibilityError(CinematicPlanError):
    """
    A slew cannot be performed in the time allotted to it.

    Carries the legs on both sides of the offending transition so the
    failure can be reported without access to planner internals.
    """

    def __init__(
        self,
        previous_leg: Any,
        next_leg: Any,
        required_s: float,
        allotted_s: float,
        reason: Optional[str] = None,
    ) -> None:
        self.previous_leg = previous_leg
        self.next_leg = next_leg
        self.required_s = required_s
        self.allotted_s = allotted_s
        prev_name = getattr(previous_leg, "name", previous_leg)
        next_name = getattr(next_leg, "name", next_leg)
        detail = reason or "slew duration exceeds allotted time"
        super().__init__(
            f"Infeasible transition {prev_name} -> {next_name}: {detail} "
            f"(required={required_s:.3f}s, allotted={allotted_s:.3f}s)"
        )


class PlanInvariantError(CinematicPlanError):
    """The assembled plan breaks ordering, contiguity or coverage rules."""
