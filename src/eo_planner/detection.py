"""
Condition detection: turns observation geometry into condition timelines.

Each condition is expressed as a signed margin function of time, positive
while the condition holds. A detector scans the horizon with a coarse step
(``max_check_s``) and refines every sign change by bisection until the edge
is known to within ``threshold_s``. Every detected edge is reported to an
event handler, which decides whether detection continues.

Each (target x condition) detection runs in its own simulation context with
a fresh orbit propagator, disposed of when the detection finishes, so
detections can run concurrently without sharing propagation state.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple
import logging
import math

import numpy as np

from .exceptions import DetectionError
from .intervals import ConditionKind, Interval, Timeline, coalesce
from .mission_config import DetectionConfig, ObservationConfig
from .orbit import SatelliteOrbit
from .sunlight import (
    calculate_sun_incidence_angle,
    calculate_sun_phase_angle,
    geodetic_to_eci,
)
from .targets import Target

logger = logging.getLogger(__name__)


class EventAction(Enum):
    """What detection does after an event has been reported."""
    CONTINUE = "continue"
    STOP = "stop"


@dataclass(frozen=True)
class DetectionEvent:
    """A condition starting (``rising``) or ending at ``time``."""
    time: datetime
    kind: ConditionKind
    target_id: str
    rising: bool


EventHandler = Callable[[DetectionEvent], EventAction]


def continue_on_event(event: DetectionEvent) -> EventAction:
    """Default handler: log the event and keep detecting."""
    logger.debug(
        f"{event.kind.value} {'start' if event.rising else 'end'} "
        f"for {event.target_id} at {event.time.isoformat()}"
    )
    return EventAction.CONTINUE


OrbitFactory = Callable[[], SatelliteOrbit]


class SimulationContext:
    """Propagation state owned by a single detection run."""

    def __init__(self, orbit: SatelliteOrbit) -> None:
        self._orbit: Optional[SatelliteOrbit] = orbit
        self.evaluations = 0

    @property
    def orbit(self) -> SatelliteOrbit:
        if self._orbit is None:
            raise RuntimeError("Simulation context used after it was closed")
        return self._orbit

    @property
    def closed(self) -> bool:
        return self._orbit is None

    def position(self, timestamp: datetime) -> Tuple[float, float, float]:
        self.evaluations += 1
        return self.orbit.get_position(timestamp)

    def close(self) -> None:
        self._orbit = None


@contextmanager
def simulation_context(orbit_factory: OrbitFactory) -> Iterator[SimulationContext]:
    """Fresh simulation context, disposed of on exit."""
    context = SimulationContext(orbit_factory())
    try:
        yield context
    finally:
        context.close()


def _elevation_and_off_nadir(
    target: Target, satellite_position: Tuple[float, float, float], timestamp: datetime
) -> Tuple[float, float]:
    """Satellite elevation seen from the target and target off-nadir angle seen from the satellite."""
    sat_lat, sat_lon, sat_alt = satellite_position
    ground = geodetic_to_eci(target.latitude, target.longitude, target.altitude_km, timestamp)
    satellite = geodetic_to_eci(sat_lat, sat_lon, sat_alt, timestamp)

    line_of_sight = satellite - ground
    range_km = np.linalg.norm(line_of_sight)
    if range_km == 0:
        return 90.0, 0.0

    up = ground / np.linalg.norm(ground)
    sin_elevation = float(np.dot(line_of_sight, up) / range_km)
    elevation = math.degrees(math.asin(max(-1.0, min(1.0, sin_elevation))))

    nadir = -satellite / np.linalg.norm(satellite)
    cos_off_nadir = float(np.dot(-line_of_sight, nadir) / range_km)
    off_nadir = math.degrees(math.acos(max(-1.0, min(1.0, cos_off_nadir))))
    return elevation, off_nadir


def visibility_margin(
    target: Target,
    satellite_position: Tuple[float, float, float],
    timestamp: datetime,
    config: ObservationConfig,
) -> float:
    """
    Positive while the target is inside the pointing cone and above the mask.

    The margin is the smaller of the elevation margin and the off-nadir
    margin, both in degrees.
    """
    elevation, off_nadir = _elevation_and_off_nadir(target, satellite_position, timestamp)
    return min(elevation - config.elevation_mask_deg, config.max_off_nadir_deg - off_nadir)


def illumination_margin(target: Target, timestamp: datetime, config: ObservationConfig) -> float:
    """Positive while the sun incidence at the target is below the limit."""
    incidence = calculate_sun_incidence_angle(
        target.latitude, target.longitude, timestamp, target.altitude_km
    )
    return config.max_sun_incidence_deg - incidence


def no_dazzling_margin(
    target: Target,
    satellite_position: Tuple[float, float, float],
    timestamp: datetime,
    config: ObservationConfig,
) -> float:
    """Positive while the angle satellite - target - sun stays below the maximum phase angle."""
    phase = calculate_sun_phase_angle(
        target.latitude, target.longitude, satellite_position, timestamp, target.altitude_km
    )
    return config.max_sun_phase_deg - phase


class ConditionDetector:
    """Produces the timeline of one condition for one target over a horizon."""

    def detect(self, target: Target, kind: ConditionKind, horizon: Interval) -> Timeline:
        raise NotImplementedError


class GeometricConditionDetector(ConditionDetector):
    """
    Margin-based detector over a TLE-propagated orbit.

    Args:
        orbit_factory: Callable returning an independent orbit per detection
        observation_config: Geometry and lighting limits
        detection_config: Scan step and convergence threshold
        on_event: Handler called for every detected edge
    """

    def __init__(
        self,
        orbit_factory: OrbitFactory,
        observation_config: ObservationConfig,
        detection_config: Optional[DetectionConfig] = None,
        on_event: EventHandler = continue_on_event,
    ) -> None:
        self.orbit_factory = orbit_factory
        self.observation_config = observation_config
        self.detection_config = detection_config or DetectionConfig()
        self.on_event = on_event

    def _margin(
        self, context: SimulationContext, target: Target, kind: ConditionKind, timestamp: datetime
    ) -> float:
        if kind is ConditionKind.ILLUMINATION:
            context.evaluations += 1
            return illumination_margin(target, timestamp, self.observation_config)

        position = context.position(timestamp)
        if kind is ConditionKind.VISIBILITY:
            return visibility_margin(target, position, timestamp, self.observation_config)
        return no_dazzling_margin(target, position, timestamp, self.observation_config)

    def detect(self, target: Target, kind: ConditionKind, horizon: Interval) -> Timeline:
        """
        Timeline of the intervals during which ``kind`` holds for ``target``.

        Raises:
            DetectionError: If propagation or geometry evaluation fails
        """
        try:
            with simulation_context(self.orbit_factory) as context:
                spans = self._scan(context, target, kind, horizon)
                logger.debug(
                    f"Detected {len(spans)} {kind.value} interval(s) for {target.id} "
                    f"({context.evaluations} evaluations)"
                )
        except DetectionError:
            raise
        except Exception as e:
            raise DetectionError(target.id, kind, str(e)) from e

        return coalesce(Timeline.from_spans(spans, kind))

    def _scan(
        self, context: SimulationContext, target: Target, kind: ConditionKind, horizon: Interval
    ) -> List[Tuple[datetime, datetime]]:
        step = timedelta(seconds=self.detection_config.max_check_s)
        spans: List[Tuple[datetime, datetime]] = []

        t_prev = horizon.start
        g_prev = self._margin(context, target, kind, t_prev)
        window_start: Optional[datetime] = t_prev if g_prev >= 0 else None

        while t_prev < horizon.end:
            t_next = min(t_prev + step, horizon.end)
            g_next = self._margin(context, target, kind, t_next)

            if (g_prev >= 0) != (g_next >= 0):
                edge = self._refine_edge_time(context, target, kind, t_prev, t_next, g_prev)
                rising = g_next >= 0
                if rising:
                    window_start = edge
                elif window_start is not None:
                    spans.append((window_start, edge))
                    window_start = None

                action = self.on_event(DetectionEvent(edge, kind, target.id, rising))
                if action is EventAction.STOP:
                    logger.debug(f"Detection of {kind.value} for {target.id} stopped at {edge}")
                    # An interval still open when detection stops is discarded
                    return spans

            t_prev, g_prev = t_next, g_next

        if window_start is not None:
            spans.append((window_start, horizon.end))
        return spans

    def _refine_edge_time(
        self,
        context: SimulationContext,
        target: Target,
        kind: ConditionKind,
        t_before: datetime,
        t_after: datetime,
        g_before: float,
    ) -> datetime:
        """
        Refine edge time using bisection root-finding.

        Returns the first time known to be on the ``t_after`` side of the
        edge, accurate to ``threshold_s``.
        """
        inside_before = g_before >= 0
        t_left, t_right = t_before, t_after

        for _ in range(self.detection_config.max_refinement_iters):
            if (t_right - t_left).total_seconds() <= self.detection_config.threshold_s:
                break
            t_mid = t_left + (t_right - t_left) / 2
            if (self._margin(context, target, kind, t_mid) >= 0) == inside_before:
                t_left = t_mid
            else:
                t_right = t_mid

        return t_right
