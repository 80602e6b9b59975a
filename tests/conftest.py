"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides:
- Custom markers for test categorization
- Shared fixtures for missions built on hand-made access windows
- Fake detectors and orbits so planning tests never propagate a real TLE
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple
from unittest.mock import MagicMock

import pytest
from _pytest.config import Config

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from eo_planner.access import AccessWindow  # noqa: E402
from eo_planner.attitude import Attitude, FixedPointing, NadirPointing, SlewModel  # noqa: E402
from eo_planner.intervals import ConditionKind, Interval, Timeline  # noqa: E402
from eo_planner.mission_config import (  # noqa: E402
    MissionConfig,
    ObservationConfig,
    SpacecraftConfig,
)
from eo_planner.targets import Target  # noqa: E402


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# =============================================================================
# FIXTURES - Common test setup
# =============================================================================


@pytest.fixture
def sample_tle_lines() -> Tuple[str, str]:
    """Sample TLE data for ICEYE-X44."""
    return (
        "1 62707U 25009DC  25306.22031033  .00004207  00000+0  39848-3 0  9995",
        "2 62707  97.7269  23.9854 0002193 135.9671 224.1724 14.94137357 66022",
    )


@pytest.fixture
def tle_file(sample_tle_lines: Tuple[str, str], tmp_path: Path) -> Path:
    """Three-line TLE file holding ICEYE-X44."""
    path = tmp_path / "test.tle"
    path.write_text(f"ICEYE-X44\n{sample_tle_lines[0]}\n{sample_tle_lines[1]}\n")
    return path


@pytest.fixture
def base_datetime() -> datetime:
    """Standard base datetime for tests."""
    return datetime(2025, 11, 8, 0, 0, 0)


@pytest.fixture
def at(base_datetime: datetime) -> Callable[[float], datetime]:
    """Timestamp ``seconds`` after the base datetime."""

    def _at(seconds: float) -> datetime:
        return base_datetime + timedelta(seconds=seconds)

    return _at


@pytest.fixture
def spacecraft_config() -> SpacecraftConfig:
    """Agile platform: 1 deg/s, 1 deg/s^2, 5 s settling, 60 s slew reservation."""
    return SpacecraftConfig(
        max_roll_deg=45.0,
        max_pitch_deg=30.0,
        max_roll_rate_dps=1.0,
        max_roll_accel_dps2=1.0,
        max_pitch_rate_dps=1.0,
        max_pitch_accel_dps2=1.0,
        settling_time_s=5.0,
        max_slew_duration_s=60.0,
    )


@pytest.fixture
def slew_model(spacecraft_config: SpacecraftConfig) -> SlewModel:
    return SlewModel(spacecraft_config)


@pytest.fixture
def mission_config(base_datetime: datetime, spacecraft_config: SpacecraftConfig) -> MissionConfig:
    """1000 s horizon with 10 s observations."""
    return MissionConfig(
        name="test mission",
        start_time=base_datetime,
        end_time=base_datetime + timedelta(seconds=1000),
        spacecraft=spacecraft_config,
        observation=ObservationConfig(integration_time_s=10.0),
    )


@pytest.fixture
def horizon(mission_config: MissionConfig) -> Interval:
    return Interval(mission_config.start_time, mission_config.end_time)


@pytest.fixture
def nadir() -> NadirPointing:
    return NadirPointing()


@pytest.fixture
def sample_targets() -> List[Target]:
    """Three targets with decreasing scores."""
    return [
        Target(id="paris", name="Paris", latitude=48.8566, longitude=2.3522, score=5.0),
        Target(id="lyon", name="Lyon", latitude=45.7640, longitude=4.8357, score=3.0),
        Target(id="nice", name="Nice", latitude=43.7102, longitude=7.2620, score=1.0),
    ]


@pytest.fixture
def roll_law_factory() -> Callable[[Dict[str, float]], Callable[[Target], FixedPointing]]:
    """Builds observation-law factories pointing each target id at a fixed roll."""

    def _factory(rolls: Dict[str, float]) -> Callable[[Target], FixedPointing]:
        def law_for(target: Target) -> FixedPointing:
            return FixedPointing(f"OBS_{target.name}", Attitude(rolls.get(target.id, 0.0), 0.0))
        return law_for

    return _factory


@pytest.fixture
def make_windows(at: Callable[[float], datetime]) -> Callable[..., Dict[str, List[AccessWindow]]]:
    """Access windows from ``{target_id: [(start_s, end_s), ...]}``."""

    def _make(spans: Dict[str, List[Tuple[float, float]]]) -> Dict[str, List[AccessWindow]]:
        return {
            target_id: [AccessWindow(target_id, at(s), at(e)) for s, e in target_spans]
            for target_id, target_spans in spans.items()
        }

    return _make


@pytest.fixture
def fake_detector(at: Callable[[float], datetime]) -> Callable[..., MagicMock]:
    """
    Detector returning canned condition spans.

    ``spans`` maps ``(target_id, ConditionKind)`` to ``[(start_s, end_s), ...]``;
    missing entries yield an empty timeline.
    """

    def _make(spans: Dict[Tuple[str, ConditionKind], List[Tuple[float, float]]]) -> MagicMock:
        def detect(target: Target, kind: ConditionKind, horizon: Interval) -> Timeline:
            target_spans = spans.get((target.id, kind), [])
            return Timeline.from_spans(((at(s), at(e)) for s, e in target_spans), kind)

        detector = MagicMock()
        detector.detect.side_effect = detect
        return detector

    return _make


@pytest.fixture
def mock_orbit() -> MagicMock:
    """Orbit flying north along the prime meridian at 500 km, 0.06 deg/s."""

    def get_position(timestamp: datetime) -> Tuple[float, float, float]:
        seconds = (timestamp - datetime(2025, 11, 8)).total_seconds()
        return (0.06 * seconds, 0.0, 500.0)

    orbit = MagicMock()
    orbit.get_position.side_effect = get_position
    orbit.copy.return_value = orbit
    return orbit


@pytest.fixture
def all_conditions() -> Callable[..., Dict[Tuple[str, ConditionKind], Any]]:
    """Same spans for every condition of one target."""

    def _make(target_id: str, spans: List[Tuple[float, float]]) -> Dict[Tuple[str, ConditionKind], Any]:
        return {(target_id, kind): spans for kind in ConditionKind}

    return _make
