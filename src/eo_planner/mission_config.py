"""
Mission configuration dataclasses for platform, observation and detection.

This module cleanly separates:
- Spacecraft capabilities (agility, pointing limits, slew reservation)
- Observation conditions (integration time, geometry and lighting limits)
- Event detection tuning (scan step, convergence threshold)
- Planning policies (target admission order, observation centering)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import yaml  # type: ignore[import-untyped]

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class CenteringPolicy(Enum):
    """Where an observation is placed inside its access window."""
    MIDPOINT = "midpoint"  # Centered on the window midpoint (default)
    EARLIEST = "earliest"  # As early as the window allows
    LATEST = "latest"  # As late as the window allows


class TargetOrder(Enum):
    """Order in which the greedy scheduler considers targets."""
    PRIORITY = "priority"  # Highest score first
    FIRST_ACCESS = "first_access"  # Chronological first access window
    GIVEN = "given"  # Caller-supplied order


@dataclass
class SpacecraftConfig:
    """
    Spacecraft bus configuration.

    Defines agility and pointing limits used by the slew-duration model.
    """
    max_roll_deg: float = 45.0  # Maximum roll angle from nadir
    max_pitch_deg: float = 30.0  # Maximum pitch angle from nadir
    max_roll_rate_dps: float = 1.0  # degrees per second
    max_roll_accel_dps2: float = 1.0  # degrees per second squared
    max_pitch_rate_dps: float = 1.0
    max_pitch_accel_dps2: float = 1.0

    # Settling time after maneuver (seconds)
    settling_time_s: float = 5.0

    # Duration reserved for an unconstrained slew; derived from the
    # roll/pitch envelope when not set
    max_slew_duration_s: Optional[float] = None

    def __post_init__(self) -> None:
        """Validate spacecraft configuration."""
        if not 0 <= self.max_roll_deg <= 90:
            raise ConfigurationError(
                f"max_roll_deg must be in [0, 90], got {self.max_roll_deg}"
            )
        if not 0 <= self.max_pitch_deg <= 90:
            raise ConfigurationError(
                f"max_pitch_deg must be in [0, 90], got {self.max_pitch_deg}"
            )
        for name in ("max_roll_rate_dps", "max_roll_accel_dps2"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be > 0, got {value}")
        for name in ("max_pitch_rate_dps", "max_pitch_accel_dps2", "settling_time_s"):
            value = getattr(self, name)
            if value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")
        if self.max_slew_duration_s is not None and self.max_slew_duration_s <= 0:
            raise ConfigurationError(
                f"max_slew_duration_s must be > 0, got {self.max_slew_duration_s}"
            )


@dataclass
class ObservationConfig:
    """
    Observation conditions.

    An access window requires the target to be inside the pointing cone
    above the elevation mask, lit by the sun at a low enough incidence, and
    the sun far enough from the line of sight to avoid dazzling the sensor.
    """
    integration_time_s: float = 10.0  # Duration of one observation
    elevation_mask_deg: float = 10.0  # Minimum satellite elevation seen from target
    max_off_nadir_deg: float = 30.0  # Pointing cone half-angle
    max_sun_incidence_deg: float = 60.0  # Maximum solar zenith angle at target
    max_sun_phase_deg: float = 90.0  # Maximum satellite-target-sun angle

    def __post_init__(self) -> None:
        """Validate observation configuration."""
        if self.integration_time_s <= 0:
            raise ConfigurationError(
                f"integration_time_s must be > 0, got {self.integration_time_s}"
            )
        if not 0 <= self.elevation_mask_deg <= 90:
            raise ConfigurationError(
                f"elevation_mask_deg must be in [0, 90], got {self.elevation_mask_deg}"
            )
        if not 0 < self.max_off_nadir_deg <= 90:
            raise ConfigurationError(
                f"max_off_nadir_deg must be in (0, 90], got {self.max_off_nadir_deg}"
            )
        if not 0 < self.max_sun_incidence_deg <= 180:
            raise ConfigurationError(
                f"max_sun_incidence_deg must be in (0, 180], got {self.max_sun_incidence_deg}"
            )
        if not 0 < self.max_sun_phase_deg <= 180:
            raise ConfigurationError(
                f"max_sun_phase_deg must be in (0, 180], got {self.max_sun_phase_deg}"
            )


@dataclass
class DetectionConfig:
    """Event detection tuning."""
    max_check_s: float = 120.0  # Coarse scan step
    threshold_s: float = 1e-4  # Edge convergence threshold
    max_refinement_iters: int = 64

    def __post_init__(self) -> None:
        if self.max_check_s <= 0:
            raise ConfigurationError(f"max_check_s must be > 0, got {self.max_check_s}")
        if self.threshold_s <= 0:
            raise ConfigurationError(f"threshold_s must be > 0, got {self.threshold_s}")
        if self.max_refinement_iters < 1:
            raise ConfigurationError(
                f"max_refinement_iters must be >= 1, got {self.max_refinement_iters}"
            )


@dataclass
class MissionConfig:
    """
    Complete mission configuration: horizon, platform, conditions and policies.
    """
    name: str
    start_time: datetime
    end_time: datetime
    spacecraft: SpacecraftConfig = field(default_factory=SpacecraftConfig)
    observation: ObservationConfig = field(default_factory=ObservationConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    centering: CenteringPolicy = CenteringPolicy.MIDPOINT
    target_order: TargetOrder = TargetOrder.PRIORITY

    def __post_init__(self) -> None:
        if self.end_time <= self.start_time:
            raise ConfigurationError(
                f"Mission horizon end {self.end_time} must be after start {self.start_time}"
            )

    @property
    def horizon_duration_s(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def validate(self, max_slew_duration_s: float) -> bool:
        """
        Check that the horizon can hold at least one observation.

        Args:
            max_slew_duration_s: Slew reservation of the platform model

        Returns:
            True if configuration is valid

        Raises:
            ConfigurationError if the horizon is too short
        """
        if max_slew_duration_s <= 0:
            raise ConfigurationError(
                f"max slew duration must be > 0, got {max_slew_duration_s}"
            )
        required = self.observation.integration_time_s + 2 * max_slew_duration_s
        if self.horizon_duration_s < required:
            raise ConfigurationError(
                f"Mission horizon of {self.horizon_duration_s:.1f}s is shorter than one "
                f"observation with its slews ({required:.1f}s = "
                f"{self.observation.integration_time_s:.1f}s + 2 x {max_slew_duration_s:.1f}s)"
            )
        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MissionConfig":
        """Create MissionConfig from a nested dictionary (e.g. parsed YAML)."""
        from .utils import parse_datetime

        def _time(value: Any) -> datetime:
            return value if isinstance(value, datetime) else parse_datetime(str(value))

        try:
            return cls(
                name=data.get("name", "mission"),
                start_time=_time(data["start_time"]),
                end_time=_time(data["end_time"]),
                spacecraft=SpacecraftConfig(**data.get("spacecraft", {})),
                observation=ObservationConfig(**data.get("observation", {})),
                detection=DetectionConfig(**data.get("detection", {})),
                centering=CenteringPolicy(data.get("centering", "midpoint")),
                target_order=TargetOrder(data.get("target_order", "priority")),
            )
        except KeyError as e:
            raise ConfigurationError(f"Missing mission configuration key: {e}") from e
        except TypeError as e:
            raise ConfigurationError(f"Invalid mission configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides: Any) -> "MissionConfig":
        """
        Load configuration from a YAML file.

        Keyword overrides (e.g. ``start_time``) replace top-level keys, so
        the CLI can supply the horizon separately from the platform file.
        """
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {config_path} must hold a mapping")

        data.update({k: v for k, v in overrides.items() if v is not None})
        logger.info(f"Loaded mission configuration from {config_path}")
        return cls.from_dict(data)
