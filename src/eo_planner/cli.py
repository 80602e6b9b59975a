"""
Command-line interface for the observation mission planner.

This module provides a CLI for computing access windows and running the
complete planning chain from the command line.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import sys

import click

from .exceptions import MissionPlanningError
from .mission import CompleteMission, export_plan
from .mission_config import CenteringPolicy, MissionConfig, TargetOrder
from .orbit import SatelliteOrbit
from .targets import TargetManager
from .utils import format_duration, parse_datetime, setup_logging

logger = logging.getLogger(__name__)


def _build_mission(
    tle: str,
    satellite: str,
    targets: str,
    config: Optional[str],
    start_time: Optional[str],
    duration: Optional[float],
    order: Optional[str] = None,
    centering: Optional[str] = None,
) -> CompleteMission:
    start_dt: Optional[datetime] = parse_datetime(start_time) if start_time else None
    end_dt = start_dt + timedelta(hours=duration) if start_dt and duration else None

    if config:
        mission_config = MissionConfig.from_yaml(
            config,
            start_time=start_dt,
            end_time=end_dt,
            target_order=order,
            centering=centering,
        )
        if duration and end_dt is None:
            # Horizon starts where the file says and lasts --duration hours
            mission_config = replace(
                mission_config,
                end_time=mission_config.start_time + timedelta(hours=duration),
            )
    else:
        start_dt = start_dt or datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)
        mission_config = MissionConfig(
            name=f"{satellite} observation plan",
            start_time=start_dt,
            end_time=start_dt + timedelta(hours=duration or 24.0),
            centering=CenteringPolicy(centering or "midpoint"),
            target_order=TargetOrder(order or "priority"),
        )

    click.echo(f"Loading satellite '{satellite}' from {tle}")
    orbit = SatelliteOrbit.from_tle_file(tle, satellite)

    target_list = list(TargetManager.load_from_file(targets))
    click.echo(f"Loaded {len(target_list)} targets")

    return CompleteMission.from_orbit(mission_config, target_list, orbit)


_common_options = [
    click.option('--tle', required=True, type=click.Path(exists=True),
                 help='Path to TLE file'),
    click.option('--satellite', required=True,
                 help='Satellite name (must match name in TLE file)'),
    click.option('--targets', required=True, type=click.Path(exists=True),
                 help='JSON file with target definitions'),
    click.option('--config', type=click.Path(exists=True),
                 help='YAML mission configuration'),
    click.option('--start-time', type=str,
                 help='Start time (YYYY-MM-DD HH:MM:SS UTC, default: now)'),
    click.option('--duration', type=float,
                 help='Horizon duration in hours (default: 24)'),
]


def common_options(func):
    for option in reversed(_common_options):
        func = option(func)
    return func


@click.group()
@click.option('--log-level', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set logging level')
@click.option('--log-file', type=click.Path(), help='Log file path')
def main(log_level: str, log_file: Optional[str]) -> None:
    """Earth Observation Mission Planner - plan observations and attitude legs for one satellite."""
    setup_logging(log_level, log_file)
    logger.debug("Starting EO mission planner CLI")


@main.command()
@common_options
@click.option('--parallel/--no-parallel', default=False,
              help='Compute targets concurrently')
def access(
    tle: str,
    satellite: str,
    targets: str,
    config: Optional[str],
    start_time: Optional[str],
    duration: Optional[float],
    parallel: bool,
) -> None:
    """Print the access windows of every target."""
    try:
        mission = _build_mission(tle, satellite, targets, config, start_time, duration)
        access_plan = mission.compute_access_plan(use_parallel=parallel)
    except (MissionPlanningError, ValueError, OSError) as e:
        logger.error(f"Access computation failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("\n=== Access Windows ===")
    for target_id, windows in access_plan.windows.items():
        click.echo(f"{target_id}: {len(windows)} window(s)")
        for window in windows:
            click.echo(
                f"  {window.start.strftime('%Y-%m-%d %H:%M:%S')} -> "
                f"{window.end.strftime('%H:%M:%S')} UTC ({format_duration(window.duration_s)})"
            )
    for diagnostic in access_plan.diagnostics:
        click.echo(f"{diagnostic.target_id}: excluded ({diagnostic.message})", err=True)


@main.command()
@common_options
@click.option('--order', type=click.Choice([o.value for o in TargetOrder]),
              help='Target admission order (default: priority)')
@click.option('--centering', type=click.Choice([c.value for c in CenteringPolicy]),
              help='Observation placement inside access windows (default: midpoint)')
@click.option('--parallel/--no-parallel', default=False,
              help='Compute access windows concurrently')
@click.option('--output', type=click.Path(),
              help='Export the plan to this file')
@click.option('--format', 'output_format', default='auto',
              type=click.Choice(['auto', 'json', 'csv']),
              help='Export format (default: from file extension)')
def plan(
    tle: str,
    satellite: str,
    targets: str,
    config: Optional[str],
    start_time: Optional[str],
    duration: Optional[float],
    order: Optional[str],
    centering: Optional[str],
    parallel: bool,
    output: Optional[str],
    output_format: str,
) -> None:
    """Plan observations and the cinematic plan for the horizon.

    Example:
    plan --tle data.tle --satellite "SENTINEL-2A" --targets sites.json --duration 24 --output plan.json
    """
    try:
        mission = _build_mission(
            tle, satellite, targets, config, start_time, duration, order, centering
        )
        result = mission.run(use_parallel=parallel)
        if output:
            export_plan(result, output, output_format)
    except (MissionPlanningError, ValueError, OSError) as e:
        logger.error(f"Mission planning failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    summary = result.summary
    click.echo("\n=== Mission Summary ===")
    click.echo(f"Mission: {summary['mission_name']}")
    click.echo(f"Horizon: {summary['horizon_start']} -> {summary['horizon_end']}")
    click.echo(f"Targets with access: {summary['targets_with_access']}/{summary['targets_total']}")
    click.echo(f"Observations: {summary['observations']} ({summary['unobserved']} unobserved)")
    click.echo(f"Cinematic legs: {summary['legs']} ({summary['slews']} slews)")
    click.echo(f"Final score: {summary['final_score']:g}/{summary['max_possible_score']:g}")

    for task in result.schedule.chronological():
        click.echo(
            f"  {task.start.strftime('%Y-%m-%d %H:%M:%S')} {task.name} "
            f"(score {task.target.score:g})"
        )

    if output:
        click.echo(f"\nResults saved to: {output}")


if __name__ == '__main__':
    main()
