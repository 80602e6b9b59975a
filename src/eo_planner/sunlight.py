"""
Sunlight and lighting geometry for optical observations.

Provides the sun position, Earth rotation (GMST) and the two lighting
angles the observation conditions are expressed in:

- sun incidence: angle between the local vertical at the target and the
  direction of the sun (the solar zenith angle);
- sun phase: angle satellite - target - sun, measured at the target.
"""

import math
from datetime import datetime
from typing import Tuple

import numpy as np

# Constants
EARTH_RADIUS_KM = 6371.0
AU_KM = 149597870.7  # Astronomical Unit in kilometers


def _days_since_j2000(timestamp: datetime) -> float:
    if timestamp.tzinfo is not None:
        timestamp = timestamp.replace(tzinfo=None)
    j2000 = datetime(2000, 1, 1, 12, 0, 0)
    return (timestamp - j2000).total_seconds() / 86400.0


def calculate_sun_position(timestamp: datetime) -> Tuple[float, float, float]:
    """
    Calculate the sun's position in Earth-Centered Inertial (ECI) coordinates.

    Uses simplified astronomical calculations for the sun's position.

    Args:
        timestamp: UTC datetime

    Returns:
        Tuple of (x, y, z) coordinates in kilometers
    """
    days = _days_since_j2000(timestamp)

    # Mean anomaly
    M = math.radians(357.52911 + 0.98560028 * days) % (2 * math.pi)

    # Equation of center
    C = math.radians(1.914602 * math.sin(M) + 0.019993 * math.sin(2 * M))

    # Ecliptic longitude
    lambda_sun = math.radians(280.46646 + 0.98564736 * days) + C

    # Obliquity of ecliptic
    epsilon = math.radians(23.439291)

    x = AU_KM * math.cos(lambda_sun)
    y = AU_KM * math.sin(lambda_sun) * math.cos(epsilon)
    z = AU_KM * math.sin(lambda_sun) * math.sin(epsilon)

    return x, y, z


def calculate_gmst(timestamp: datetime) -> float:
    """
    Calculate Greenwich Mean Sidereal Time (GMST) in degrees.
    """
    days = _days_since_j2000(timestamp)
    T = days / 36525.0  # Julian centuries
    gmst = 280.46061837 + 360.98564736629 * days + 0.000387933 * T * T
    return gmst % 360.0


def geodetic_to_eci(
    lat_deg: float, lon_deg: float, altitude_km: float, timestamp: datetime
) -> np.ndarray:
    """Spherical-Earth ECI position (km) of a point given in lat/lon/alt."""
    gmst = calculate_gmst(timestamp)
    lat_rad = math.radians(lat_deg)
    lon_rad = math.radians(lon_deg + gmst)
    radius = EARTH_RADIUS_KM + altitude_km
    return np.array([
        radius * math.cos(lat_rad) * math.cos(lon_rad),
        radius * math.cos(lat_rad) * math.sin(lon_rad),
        radius * math.sin(lat_rad),
    ])


def _angle_deg(u: np.ndarray, v: np.ndarray) -> float:
    cos_angle = float(np.dot(u, v) / (np.linalg.norm(u) * np.linalg.norm(v)))
    return math.degrees(math.acos(max(-1.0, min(1.0, cos_angle))))


def calculate_sun_incidence_angle(
    target_lat: float, target_lon: float, timestamp: datetime, target_alt_km: float = 0.0
) -> float:
    """
    Angle between the local vertical at the target and the sun direction.

    0° means the sun is overhead, 90° on the horizon, above 90° below it.
    """
    target = geodetic_to_eci(target_lat, target_lon, target_alt_km, timestamp)
    sun = np.array(calculate_sun_position(timestamp))
    return _angle_deg(target, sun - target)


def calculate_sun_phase_angle(
    target_lat: float,
    target_lon: float,
    satellite_position: Tuple[float, float, float],
    timestamp: datetime,
    target_alt_km: float = 0.0,
) -> float:
    """
    Angle satellite - target - sun, with its vertex at the target.

    Args:
        target_lat: Target latitude in degrees
        target_lon: Target longitude in degrees
        satellite_position: (lat, lon, alt_km) of the satellite
        timestamp: UTC datetime
        target_alt_km: Target altitude above the reference sphere

    Returns:
        Phase angle in degrees
    """
    target = geodetic_to_eci(target_lat, target_lon, target_alt_km, timestamp)
    sat_lat, sat_lon, sat_alt = satellite_position
    satellite = geodetic_to_eci(sat_lat, sat_lon, sat_alt, timestamp)
    sun = np.array(calculate_sun_position(timestamp))
    return _angle_deg(satellite - target, sun - target)
