"""
Satellite orbit propagation and TLE handling module.

This module loads TLE data and propagates the satellite orbit using the
orbit-predictor library. Every detection run works on its own copy of the
orbit so that propagation state is never shared between computations.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Tuple, Union
import logging

from orbit_predictor.sources import get_predictor_from_tle_lines

logger = logging.getLogger(__name__)


class SatelliteOrbit:
    """
    Represents a satellite orbit with TLE-based propagation capabilities.
    """

    def __init__(self, tle_lines: List[str], satellite_name: str) -> None:
        """
        Initialize satellite orbit from TLE data.

        Args:
            tle_lines: TLE lines, either [name, line1, line2] or [line1, line2]
            satellite_name: Name of the satellite

        Raises:
            ValueError: If TLE data is invalid
        """
        self.satellite_name = satellite_name
        self.tle_lines = list(tle_lines)

        predictor_lines = self.tle_lines[1:3] if len(self.tle_lines) == 3 else self.tle_lines
        try:
            self.predictor = get_predictor_from_tle_lines(predictor_lines)
        except Exception as e:
            logger.error(f"Failed to initialize satellite orbit: {e}")
            raise ValueError(f"Invalid TLE data for satellite {satellite_name}: {e}") from e
        logger.debug(f"Loaded orbit for satellite: {satellite_name}")

    @classmethod
    def from_tle_file(cls, tle_file_path: Union[str, Path], satellite_name: str) -> "SatelliteOrbit":
        """
        Create SatelliteOrbit instance from a three-line TLE file.

        Raises:
            FileNotFoundError: If TLE file doesn't exist
            ValueError: If satellite not found in TLE file
        """
        tle_path = Path(tle_file_path)
        if not tle_path.exists():
            raise FileNotFoundError(f"TLE file not found: {tle_file_path}")

        with open(tle_path, "r") as f:
            lines = [line.strip() for line in f.readlines() if line.strip()]

        for i in range(0, len(lines) - 2, 3):
            if satellite_name.upper() in lines[i].upper():
                return cls(lines[i:i + 3], satellite_name)

        raise ValueError(f"Satellite '{satellite_name}' not found in TLE file {tle_file_path}")

    def copy(self) -> "SatelliteOrbit":
        """Independent orbit with its own propagator state."""
        return SatelliteOrbit(self.tle_lines, self.satellite_name)

    def get_position(self, timestamp: datetime) -> Tuple[float, float, float]:
        """
        Get satellite position at specific timestamp.

        Args:
            timestamp: UTC datetime for position calculation

        Returns:
            Tuple of (latitude, longitude, altitude_km)
        """
        if timestamp.tzinfo is not None:
            timestamp = timestamp.replace(tzinfo=None)
        position = self.predictor.get_position(timestamp)
        lat, lon, alt = position.position_llh
        return (lat, lon, alt)

    def __repr__(self) -> str:
        return f"SatelliteOrbit(name='{self.satellite_name}')"
