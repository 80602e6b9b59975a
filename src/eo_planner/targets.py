"""
Ground target definitions and management.

A target is a ground site to be observed at most once during the mission,
carrying a score used to prioritise it during scheduling.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional
import json
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    """
    Ground site to observe.

    ``id`` is the stable identifier keys are built on; ``name`` is used in
    leg names (``OBS_<name>``) and reports.
    """

    id: str
    name: str
    latitude: float  # degrees, -90 to +90
    longitude: float  # degrees, -180 to +180
    score: float = 1.0  # priority value, higher is more valuable
    altitude_m: float = 0.0  # altitude above sea level in meters

    def __post_init__(self) -> None:
        """Validate target parameters after initialization."""
        if not self.id:
            raise ValueError("Target id must not be empty")
        if not -90 <= self.latitude <= 90:
            raise ValueError(
                f"Invalid latitude: {self.latitude}. Must be between -90 and 90 degrees."
            )
        if not -180 <= self.longitude <= 180:
            raise ValueError(
                f"Invalid longitude: {self.longitude}. Must be between -180 and 180 degrees."
            )
        if self.score < 0:
            raise ValueError(f"Invalid score for target '{self.id}': {self.score}. Must be >= 0.")

    @property
    def altitude_km(self) -> float:
        return self.altitude_m / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "score": self.score,
            "altitude_m": self.altitude_m,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Target":
        """Create Target from dictionary; ``id`` defaults to ``name``."""
        name = data.get("name") or data.get("id")
        if not name:
            raise ValueError(f"Target entry needs an 'id' or a 'name': {data}")
        return cls(
            id=str(data.get("id", name)),
            name=str(name),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            score=float(data.get("score", 1.0)),
            altitude_m=float(data.get("altitude_m", 0.0)),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.latitude:.4f}°, {self.longitude:.4f}°, score={self.score:g})"


class TargetManager:
    """
    Manages collections of ground targets.

    Provides functionality to load, save, and look up targets for mission
    planning operations.
    """

    def __init__(self, targets: Optional[List[Target]] = None) -> None:
        self.targets: List[Target] = list(targets or [])
        logger.debug(f"Initialized TargetManager with {len(self.targets)} targets")

    def add_target(self, target: Target) -> None:
        """
        Add a target to the collection.

        Raises:
            TypeError: If ``target`` is not a Target
            ValueError: If a target with the same id already exists
        """
        if not isinstance(target, Target):
            raise TypeError("Target must be a Target instance")
        if self.get_target(target.id) is not None:
            raise ValueError(f"Target with id '{target.id}' already exists")
        self.targets.append(target)
        logger.info(f"Added target: {target}")

    def get_target(self, target_id: str) -> Optional[Target]:
        for target in self.targets:
            if target.id == target_id:
                return target
        return None

    def save_to_file(self, file_path: str) -> None:
        """
        Save targets to JSON file.

        Args:
            file_path: Path to save file
        """
        targets_data = [target.to_dict() for target in self.targets]
        try:
            with open(file_path, "w") as f:
                json.dump({"targets": targets_data, "count": len(targets_data)}, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving targets to {file_path}: {e}")
            raise

        logger.info(f"Saved {len(self.targets)} targets to {file_path}")

    @classmethod
    def load_from_file(cls, file_path: str) -> "TargetManager":
        """
        Load targets from JSON file.

        Args:
            file_path: Path to load file

        Returns:
            TargetManager instance with loaded targets
        """
        try:
            with open(file_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading targets from {file_path}: {e}")
            raise

        manager = cls()
        for target_data in data.get("targets", []):
            manager.add_target(Target.from_dict(target_data))

        logger.info(f"Loaded {len(manager)} targets from {file_path}")
        return manager

    def __len__(self) -> int:
        return len(self.targets)

    def __iter__(self) -> Iterator[Target]:
        return iter(self.targets)

    def __repr__(self) -> str:
        return f"TargetManager({len(self.targets)} targets)"
