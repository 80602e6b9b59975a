"""
Platform attitude model: attitudes, pointing laws and the slew-duration model.

Attitudes are expressed as signed roll (cross-track) and pitch (along-track)
angles from nadir, the way the agility limits of the spacecraft bus are
specified. A slew between two attitudes follows a trapezoidal rate profile on
each axis; both axes move simultaneously, so the slew takes as long as the
slowest axis plus the settling time.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from .mission_config import SpacecraftConfig
    from .orbit import SatelliteOrbit
    from .targets import Target

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# Attitudes closer than this are the same pointing (no slew, no settling)
ATTITUDE_EPSILON_DEG = 1e-9


@dataclass(frozen=True)
class Attitude:
    """Platform pointing as signed roll/pitch angles from nadir (degrees)."""

    roll_deg: float = 0.0
    pitch_deg: float = 0.0

    def delta_to(self, other: "Attitude") -> Tuple[float, float]:
        """Signed (delta_roll, delta_pitch) from this attitude to ``other``."""
        return other.roll_deg - self.roll_deg, other.pitch_deg - self.pitch_deg

    def off_nadir_deg(self) -> float:
        return math.hypot(self.roll_deg, self.pitch_deg)

    def interpolate(self, other: "Attitude", fraction: float) -> "Attitude":
        """Attitude at ``fraction`` (0..1) of a constant-rate slew toward ``other``."""
        fraction = min(max(fraction, 0.0), 1.0)
        return Attitude(
            self.roll_deg + (other.roll_deg - self.roll_deg) * fraction,
            self.pitch_deg + (other.pitch_deg - self.pitch_deg) * fraction,
        )

    def to_dict(self) -> dict:
        return {"roll_deg": round(self.roll_deg, 4), "pitch_deg": round(self.pitch_deg, 4)}


NADIR = Attitude(0.0, 0.0)


class PointingLaw:
    """A guidance law giving the platform attitude at any time."""

    name: str = "law"

    def attitude_at(self, timestamp: datetime) -> Attitude:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name='{self.name}')"


class NadirPointing(PointingLaw):
    """Default law: boresight along the local vertical."""

    def __init__(self, name: str = "Nadir") -> None:
        self.name = name

    def attitude_at(self, timestamp: datetime) -> Attitude:
        return NADIR


class FixedPointing(PointingLaw):
    """Constant attitude, independent of time."""

    def __init__(self, name: str, attitude: Attitude) -> None:
        self.name = name
        self.attitude = attitude

    def attitude_at(self, timestamp: datetime) -> Attitude:
        return self.attitude


class TargetGroundPointing(PointingLaw):
    """
    Keeps the boresight on a fixed ground point.

    The roll/pitch decomposition uses the satellite sub-point at ``t`` and
    ``t + 1s`` to find the along-track direction, then converts the
    cross-track and along-track Earth-central angles into look angles from
    the satellite, solving the Earth centre / satellite / target triangle.
    """

    def __init__(self, target: "Target", orbit: "SatelliteOrbit") -> None:
        self.target = target
        self.orbit = orbit
        self.name = f"OBS_{target.name}"

    def attitude_at(self, timestamp: datetime) -> Attitude:
        sat_now = self.orbit.get_position(timestamp)
        sat_next = self.orbit.get_position(timestamp + timedelta(seconds=1))
        roll, pitch = roll_pitch_to_ground_point(
            (self.target.latitude, self.target.longitude), sat_now, sat_next
        )
        return Attitude(roll, pitch)


def _look_angle_deg(central_angle_deg: float, altitude_km: float) -> float:
    """Signed look angle from the satellite toward a ground point at an Earth-central angle."""
    central = math.radians(abs(central_angle_deg))
    orbit_radius = EARTH_RADIUS_KM + altitude_km
    look = math.degrees(math.atan2(
        EARTH_RADIUS_KM * math.sin(central),
        orbit_radius - EARTH_RADIUS_KM * math.cos(central),
    ))
    return math.copysign(look, central_angle_deg)


def roll_pitch_to_ground_point(
    target_position: Tuple[float, float],
    satellite_position: Tuple[float, float, float],
    satellite_position_next: Tuple[float, float, float],
) -> Tuple[float, float]:
    """
    Signed (roll, pitch) in degrees needed to point at a ground target.

    Args:
        target_position: (lat, lon) of the target in degrees
        satellite_position: (lat, lon, alt_km) of the satellite at t
        satellite_position_next: (lat, lon, alt_km) one second later

    Returns:
        Tuple of (roll_deg, pitch_deg); roll positive to the right of the
        ground track, pitch positive looking forward
    """
    sat_lat, sat_lon, sat_alt = satellite_position
    next_lat, next_lon, _ = satellite_position_next
    target_lat, target_lon = target_position

    cos_lat = math.cos(math.radians(sat_lat))

    vel_lat = next_lat - sat_lat
    vel_lon = _wrap_lon(next_lon - sat_lon) * cos_lat
    vel_mag = math.hypot(vel_lat, vel_lon)
    if vel_mag > 0:
        vel_lat_norm, vel_lon_norm = vel_lat / vel_mag, vel_lon / vel_mag
    else:
        # Degenerate sub-point motion: assume northward track
        vel_lat_norm, vel_lon_norm = 1.0, 0.0

    d_lat = target_lat - sat_lat
    d_lon = _wrap_lon(target_lon - sat_lon) * cos_lat

    along_track = d_lat * vel_lat_norm + d_lon * vel_lon_norm
    # (-vel_lon, vel_lat) points to the right of the ground track
    cross_track = d_lat * (-vel_lon_norm) + d_lon * vel_lat_norm

    roll = _look_angle_deg(cross_track, sat_alt) if abs(cross_track) > 1e-9 else 0.0
    pitch = _look_angle_deg(along_track, sat_alt) if abs(along_track) > 1e-9 else 0.0
    return roll, pitch


def _wrap_lon(delta_lon: float) -> float:
    return (delta_lon + 180.0) % 360.0 - 180.0


def axis_maneuver_time(delta_deg: float, max_rate_dps: float, max_accel_dps2: float) -> float:
    """
    Minimum time to rotate one axis by ``delta_deg``.

    Uses a trapezoidal velocity profile; short rotations never reach the
    cruise rate and follow a triangular profile instead.
    """
    delta = abs(delta_deg)
    if delta == 0:
        return 0.0

    t_accel = max_rate_dps / max_accel_dps2
    d_total_accel = max_accel_dps2 * t_accel * t_accel  # accel + decel phases

    if delta <= d_total_accel:
        return 2 * math.sqrt(delta / max_accel_dps2)

    t_cruise = (delta - d_total_accel) / max_rate_dps
    return 2 * t_accel + t_cruise


class SlewModel:
    """
    Platform slew-duration model.

    ``slew_duration(a, b)`` is the minimum time the platform needs to go
    from attitude ``a`` to attitude ``b``. ``max_slew_duration_s`` is the
    duration reserved for a slew when nothing constrains it; it is either
    configured or derived from the full roll/pitch envelope.
    """

    def __init__(self, config: "SpacecraftConfig") -> None:
        self.config = config
        self._max_slew_duration_s: Optional[float] = config.max_slew_duration_s

    def slew_duration(self, initial: Attitude, final: Attitude) -> float:
        delta_roll, delta_pitch = initial.delta_to(final)
        if abs(delta_roll) <= ATTITUDE_EPSILON_DEG and abs(delta_pitch) <= ATTITUDE_EPSILON_DEG:
            return 0.0

        roll_time = axis_maneuver_time(
            delta_roll, self.config.max_roll_rate_dps, self.config.max_roll_accel_dps2
        )
        pitch_rate = self.config.max_pitch_rate_dps or self.config.max_roll_rate_dps
        pitch_accel = self.config.max_pitch_accel_dps2 or self.config.max_roll_accel_dps2
        pitch_time = axis_maneuver_time(delta_pitch, pitch_rate, pitch_accel)

        return max(roll_time, pitch_time) + self.config.settling_time_s

    @property
    def max_slew_duration_s(self) -> float:
        if self._max_slew_duration_s is None:
            corner_a = Attitude(-self.config.max_roll_deg, -self.config.max_pitch_deg)
            corner_b = Attitude(self.config.max_roll_deg, self.config.max_pitch_deg)
            self._max_slew_duration_s = self.slew_duration(corner_a, corner_b)
            logger.debug(
                f"Derived max slew duration {self._max_slew_duration_s:.2f}s "
                f"from roll ±{self.config.max_roll_deg}°, pitch ±{self.config.max_pitch_deg}°"
            )
        return self._max_slew_duration_s

    def __call__(self, initial: Attitude, final: Attitude) -> float:
        return self.slew_duration(initial, final)


def attitude_at(law: PointingLaw, timestamp: datetime) -> Attitude:
    """Attitude given by ``law`` at ``timestamp``."""
    return law.attitude_at(timestamp)
