"""
Earth Observation Mission Planner

Plans ground observations for one agile satellite over a fixed horizon:
access windows from visibility, illumination and dazzling conditions,
greedy observation scheduling, and a contiguous cinematic attitude plan.
"""

from .access import AccessWindow, AccessWindowBuilder
from .attitude import Attitude, NadirPointing, SlewModel, TargetGroundPointing
from .cinematics import CinematicLeg, CinematicPlan, LegKind
from .mission import CompleteMission, export_plan
from .mission_config import MissionConfig
from .orbit import SatelliteOrbit
from .scheduler import ObservationScheduler, ObservationTask
from .sequencer import CinematicSequencer
from .targets import Target, TargetManager

__version__ = "0.1.0"
__author__ = "Mission Planner Team"

__all__ = [
    "AccessWindow",
    "AccessWindowBuilder",
    "Attitude",
    "CinematicLeg",
    "CinematicPlan",
    "CinematicSequencer",
    "CompleteMission",
    "LegKind",
    "MissionConfig",
    "NadirPointing",
    "ObservationScheduler",
    "ObservationTask",
    "SatelliteOrbit",
    "SlewModel",
    "Target",
    "TargetGroundPointing",
    "TargetManager",
    "export_plan",
]
