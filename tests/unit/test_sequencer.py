"""
Tests for the cinematic plan model and the sequencer.
"""

from datetime import datetime
from typing import List

import pytest

from eo_planner.attitude import NADIR, Attitude, FixedPointing, NadirPointing, SlewModel
from eo_planner.cinematics import (
    HORIZON_END,
    HORIZON_START,
    CinematicLeg,
    CinematicPlan,
    LegKind,
    check_slew,
    check_transition,
    layout_transition,
)
from eo_planner.exceptions import (
    CinematicInfeasibilityError,
    CinematicPlanError,
    PlanInvariantError,
)
from eo_planner.intervals import Interval
from eo_planner.sequencer import CinematicSequencer, check_cinematic_plan, verify_plan_invariants


def obs_leg(name: str, start: datetime, end: datetime, roll: float = 0.0) -> CinematicLeg:
    law = FixedPointing(f"OBS_{name}", Attitude(roll, 0.0))
    return CinematicLeg(LegKind.OBSERVATION, start, end, law.name, law=law)


def assert_contiguous(plan: CinematicPlan) -> None:
    assert plan.legs[0].start == plan.horizon.start
    assert plan.legs[-1].end == plan.horizon.end
    for previous, following in zip(plan.legs, plan.legs[1:]):
        assert previous.end == following.start


@pytest.fixture
def sequencer(horizon: Interval, slew_model: SlewModel, nadir: NadirPointing) -> CinematicSequencer:
    return CinematicSequencer(horizon, slew_model, nadir)


class TestCinematicLeg:
    """Tests for leg validation and attitude evaluation."""

    def test_slew_needs_attitudes(self, at) -> None:
        with pytest.raises(ValueError):
            CinematicLeg(LegKind.SLEW, at(0), at(10), "Slew")

    def test_default_leg_needs_law(self, at) -> None:
        with pytest.raises(ValueError):
            CinematicLeg(LegKind.DEFAULT, at(0), at(10), "Nadir")

    def test_slew_interpolates(self, at) -> None:
        leg = CinematicLeg(
            LegKind.SLEW, at(0), at(10), "Slew",
            initial_attitude=Attitude(0, 0), final_attitude=Attitude(20, -10),
        )
        assert leg.attitude_at(at(5)) == Attitude(10, -5)
        assert leg.start_attitude() == Attitude(0, 0)
        assert leg.end_attitude() == Attitude(20, -10)

    def test_to_dict(self, at) -> None:
        data = obs_leg("A", at(0), at(10)).to_dict()
        assert data["kind"] == "observation"
        assert data["law"] == "OBS_A"
        assert data["duration_s"] == 10.0


class TestLayoutTransition:
    """Tests for the legs filling a gap."""

    def test_no_observations(self, at, nadir: NadirPointing) -> None:
        legs = layout_transition(at(0), at(1000), None, None, nadir, 60.0)
        assert [leg.kind for leg in legs] == [LegKind.DEFAULT]

    def test_long_gap_between_observations(self, at, nadir: NadirPointing) -> None:
        a = obs_leg("A", at(100), at(110))
        b = obs_leg("B", at(300), at(310))

        legs = layout_transition(at(110), at(300), a, b, nadir, 60.0)

        assert [leg.kind for leg in legs] == [LegKind.SLEW, LegKind.DEFAULT, LegKind.SLEW]
        assert [(leg.start, leg.end) for leg in legs] == [
            (at(110), at(170)), (at(170), at(240)), (at(240), at(300)),
        ]
        assert legs[0].name == "Slew_OBS_A_to_Nadir"
        assert legs[2].name == "Slew_Nadir_to_OBS_B"

    def test_short_gap_between_observations(self, at, nadir: NadirPointing) -> None:
        a = obs_leg("A", at(100), at(110))
        b = obs_leg("B", at(200), at(210))

        legs = layout_transition(at(110), at(200), a, b, nadir, 60.0)

        assert len(legs) == 1
        assert legs[0].name == "Slew_OBS_A_to_OBS_B"
        assert legs[0].duration_s == 90.0

    def test_exactly_two_max_slews_is_direct(self, at, nadir: NadirPointing) -> None:
        a = obs_leg("A", at(100), at(110))
        b = obs_leg("B", at(230), at(240))
        legs = layout_transition(at(110), at(230), a, b, nadir, 60.0)
        assert [leg.kind for leg in legs] == [LegKind.SLEW]

    def test_horizon_start(self, at, nadir: NadirPointing) -> None:
        b = obs_leg("B", at(100), at(110), roll=10.0)

        legs = layout_transition(at(0), at(100), None, b, nadir, 60.0)

        assert [leg.kind for leg in legs] == [LegKind.DEFAULT, LegKind.SLEW]
        assert legs[1].start == at(40)
        assert legs[1].initial_attitude == NADIR
        assert legs[1].final_attitude == Attitude(10.0, 0.0)

    def test_short_horizon_start(self, at, nadir: NadirPointing) -> None:
        b = obs_leg("B", at(30), at(40))
        legs = layout_transition(at(0), at(30), None, b, nadir, 60.0)
        assert [leg.kind for leg in legs] == [LegKind.SLEW]

    def test_horizon_end(self, at, nadir: NadirPointing) -> None:
        a = obs_leg("A", at(900), at(910))

        legs = layout_transition(at(910), at(1000), a, None, nadir, 60.0)

        assert [leg.kind for leg in legs] == [LegKind.SLEW, LegKind.DEFAULT]
        assert legs[0].end == at(970)



class TestCheckTransition:
    """Tests for transition feasibility."""

    def test_adjacent_observations(self, at, nadir: NadirPointing, slew_model: SlewModel) -> None:
        a = obs_leg("A", at(100), at(110))
        b = obs_leg("B", at(110), at(120))

        check = check_transition(at(110), at(110), a, b, nadir, slew_model)

        assert not check.feasible
        assert check.reason == "observations are adjacent"

    def test_overlapping_observations(self, at, nadir: NadirPointing, slew_model: SlewModel) -> None:
        a = obs_leg("A", at(100), at(110))
        b = obs_leg("B", at(105), at(115))
        check = check_transition(at(110), at(105), a, b, nadir, slew_model)
        assert check.reason == "observations overlap"

    def test_infeasible_horizon_start_reports_edge(
        self, at, nadir: NadirPointing, slew_model: SlewModel
    ) -> None:
        b = obs_leg("B", at(5), at(15), roll=45.0)

        check = check_transition(at(0), at(5), None, b, nadir, slew_model)

        assert not check.feasible
        assert check.previous == HORIZON_START
        assert check.following is b

    def test_observation_at_horizon_start(
        self, at, nadir: NadirPointing, slew_model: SlewModel
    ) -> None:
        b = obs_leg("B", at(0), at(10), roll=45.0)

        check = check_transition(at(0), at(0), None, b, nadir, slew_model)

        assert not check.feasible
        assert check.reason == "observation starts at horizon start"
        assert check.required_s == pytest.approx(51.0)
        assert check.allotted_s == 0.0
        assert (check.previous, check.following) == (HORIZON_START, b)

    def test_observation_at_horizon_end(
        self, at, nadir: NadirPointing, slew_model: SlewModel
    ) -> None:
        a = obs_leg("A", at(990), at(1000), roll=45.0)

        check = check_transition(at(1000), at(1000), a, None, nadir, slew_model)

        assert not check.feasible
        assert check.reason == "observation ends at horizon end"
        assert (check.previous, check.following) == (a, HORIZON_END)

    def test_nadir_observation_at_horizon_edge(
        self, at, nadir: NadirPointing, slew_model: SlewModel
    ) -> None:
        # No slew is needed, but the plan still has to leave the default law
        b = obs_leg("B", at(0), at(10))

        check = check_transition(at(0), at(0), None, b, nadir, slew_model)

        assert not check.feasible
        assert check.required_s == 0.0

    def test_feasible(self, at, nadir: NadirPointing, slew_model: SlewModel) -> None:
        a = obs_leg("A", at(100), at(110), roll=10.0)
        assert check_transition(at(110), at(1000), a, None, nadir, slew_model).feasible

    def test_check_slew_against_platform_maximum(self, at) -> None:
        from eo_planner.mission_config import SpacecraftConfig

        model = SlewModel(SpacecraftConfig(max_slew_duration_s=10.0))
        slew = CinematicLeg(
            LegKind.SLEW, at(0), at(100), "Slew",
            initial_attitude=NADIR, final_attitude=Attitude(20, 0),
        )

        check = check_slew(slew, model)

        assert not check.feasible
        assert "platform maximum" in check.reason


class TestCinematicSequencer:
    """Tests for plan construction."""

    def test_empty_plan_is_one_default_leg(self, sequencer: CinematicSequencer, horizon) -> None:
        plan = sequencer.build([])

        assert len(plan) == 1
        assert plan.legs[0].kind is LegKind.DEFAULT
        assert plan.legs[0].name == "Nadir_Law_1"
        assert (plan.legs[0].start, plan.legs[0].end) == (horizon.start, horizon.end)

    def test_single_observation(self, sequencer: CinematicSequencer, at) -> None:
        plan = sequencer.build([obs_leg("A", at(400), at(410), roll=10.0)])

        assert [leg.kind for leg in plan] == [
            LegKind.DEFAULT, LegKind.SLEW, LegKind.OBSERVATION, LegKind.SLEW, LegKind.DEFAULT,
        ]
        assert [leg.name for leg in plan.default_legs()] == ["Nadir_Law_1", "Nadir_Law_2"]
        assert_contiguous(plan)

    def test_two_observations_with_long_gap(self, sequencer: CinematicSequencer, at) -> None:
        plan = sequencer.build([
            obs_leg("B", at(600), at(610), roll=-10.0),
            obs_leg("A", at(100), at(110), roll=10.0),
        ])

        names: List[str] = [leg.name for leg in plan]
        assert names == [
            "Nadir_Law_1", "Slew_Nadir_to_OBS_A", "OBS_A", "Slew_OBS_A_to_Nadir",
            "Nadir_Law_2", "Slew_Nadir_to_OBS_B", "OBS_B", "Slew_OBS_B_to_Nadir", "Nadir_Law_3",
        ]
        assert_contiguous(plan)

    def test_direct_slew_between_close_observations(self, sequencer: CinematicSequencer, at) -> None:
        plan = sequencer.build([
            obs_leg("A", at(100), at(110), roll=10.0),
            obs_leg("B", at(150), at(160), roll=-10.0),
        ])

        assert "Slew_OBS_A_to_OBS_B" in [leg.name for leg in plan]
        assert_contiguous(plan)

    def test_accepts_observation_tasks(self, sequencer: CinematicSequencer, sample_targets, at) -> None:
        from eo_planner.scheduler import ObservationTask, fixed_nadir_observation_law

        paris = sample_targets[0]
        task = ObservationTask(paris, at(500), at(510), fixed_nadir_observation_law(paris))

        plan = sequencer.build([task])

        assert [leg.name for leg in plan.observation_legs()] == ["OBS_Paris"]

    def test_adjacent_observations_raise(self, sequencer: CinematicSequencer, at) -> None:
        with pytest.raises(CinematicInfeasibilityError) as exc_info:
            sequencer.build([
                obs_leg("A", at(100), at(110)),
                obs_leg("B", at(110), at(120)),
            ])

        assert exc_info.value.previous_leg.name == "OBS_A"
        assert exc_info.value.next_leg.name == "OBS_B"

    def test_gap_too_small_for_slew_raises(self, sequencer: CinematicSequencer, at) -> None:
        with pytest.raises(CinematicInfeasibilityError) as exc_info:
            sequencer.build([
                obs_leg("A", at(100), at(110), roll=20.0),
                obs_leg("B", at(115), at(125), roll=-20.0),
            ])

        error = exc_info.value
        assert error.previous_leg.name == "OBS_A"
        assert error.next_leg.name == "OBS_B"
        assert error.required_s == pytest.approx(46.0)
        assert error.allotted_s == pytest.approx(5.0)

    def test_slew_above_maximum_raises(self, horizon, nadir: NadirPointing, at) -> None:
        from eo_planner.mission_config import SpacecraftConfig

        # 40 deg needs 46 s; the 50 s gap fits it but the platform maximum is 30 s
        model = SlewModel(SpacecraftConfig(max_slew_duration_s=30.0))
        sequencer = CinematicSequencer(horizon, model, nadir)

        with pytest.raises(CinematicInfeasibilityError) as exc_info:
            sequencer.build([
                obs_leg("A", at(100), at(110), roll=20.0),
                obs_leg("B", at(160), at(170), roll=-20.0),
            ])

        assert "platform maximum" in str(exc_info.value)

    def test_overlapping_observations_raise(self, sequencer: CinematicSequencer, at) -> None:
        with pytest.raises(CinematicInfeasibilityError, match="observations overlap"):
            sequencer.build([
                obs_leg("A", at(100), at(120)),
                obs_leg("B", at(110), at(130)),
            ])

    def test_observation_outside_horizon_raises(self, sequencer: CinematicSequencer, at) -> None:
        with pytest.raises(CinematicPlanError):
            sequencer.build([obs_leg("A", at(995), at(1005))])

    def test_infeasible_horizon_start_names_edge(self, sequencer: CinematicSequencer, at) -> None:
        with pytest.raises(CinematicInfeasibilityError) as exc_info:
            sequencer.build([obs_leg("A", at(5), at(15), roll=45.0)])

        assert exc_info.value.previous_leg == HORIZON_START
        assert exc_info.value.next_leg.name == "OBS_A"

    @pytest.mark.parametrize("start,end,reason", [
        (0, 10, "observation starts at horizon start"),
        (990, 1000, "observation ends at horizon end"),
    ])
    @pytest.mark.parametrize("roll", [0.0, 45.0])
    def test_observation_touching_horizon_edge_raises(
        self, sequencer: CinematicSequencer, at, start: float, end: float, reason: str, roll: float
    ) -> None:
        with pytest.raises(CinematicInfeasibilityError, match=reason):
            sequencer.build([obs_leg("A", at(start), at(end), roll=roll)])

    def test_infeasible_horizon_end_names_edge(self, sequencer: CinematicSequencer, at) -> None:
        with pytest.raises(CinematicInfeasibilityError) as exc_info:
            sequencer.build([obs_leg("A", at(985), at(995), roll=45.0)])

        assert exc_info.value.previous_leg.name == "OBS_A"
        assert exc_info.value.next_leg == HORIZON_END


class TestCinematicPlan:
    """Tests for plan queries and invariant checks."""

    def test_attitude_at(self, sequencer: CinematicSequencer, at) -> None:
        plan = sequencer.build([obs_leg("A", at(400), at(410), roll=10.0)])

        assert plan.attitude_at(at(0)) == NADIR
        assert plan.attitude_at(at(405)) == Attitude(10.0, 0.0)
        # Slew [340, 400) from nadir to +10 deg roll
        assert plan.attitude_at(at(370)) == Attitude(5.0, 0.0)
        assert plan.attitude_at(at(1000)) == NADIR

    def test_leg_at_outside_horizon(self, sequencer: CinematicSequencer, at) -> None:
        plan = sequencer.build([])
        with pytest.raises(ValueError):
            plan.leg_at(at(1001))

    def test_check_cinematic_plan_returns_slew_checks(
        self, sequencer: CinematicSequencer, slew_model: SlewModel, at
    ) -> None:
        plan = sequencer.build([obs_leg("A", at(400), at(410), roll=10.0)])

        checks = check_cinematic_plan(plan, slew_model)

        assert len(checks) == 2
        assert all(c.feasible for c in checks)
        assert checks[0].required_s == pytest.approx(16.0)

    def test_verify_detects_gap(self, horizon, nadir: NadirPointing, at) -> None:
        plan = CinematicPlan(horizon, [
            CinematicLeg(LegKind.DEFAULT, at(0), at(400), "Nadir", law=nadir),
            CinematicLeg(LegKind.DEFAULT, at(500), at(1000), "Nadir", law=nadir),
        ])
        with pytest.raises(PlanInvariantError, match="gap"):
            verify_plan_invariants(plan)

    def test_verify_detects_short_coverage(self, horizon, nadir: NadirPointing, at) -> None:
        plan = CinematicPlan(horizon, [
            CinematicLeg(LegKind.DEFAULT, at(0), at(900), "Nadir", law=nadir),
        ])
        with pytest.raises(PlanInvariantError):
            verify_plan_invariants(plan)

    def test_verify_detects_observation_at_horizon_edge(
        self, horizon, nadir: NadirPointing, at
    ) -> None:
        observation = obs_leg("A", at(0), at(10))
        plan = CinematicPlan(horizon, [
            observation,
            CinematicLeg(
                LegKind.SLEW, at(10), at(70), "Slew_OBS_A_to_Nadir",
                initial_attitude=NADIR, final_attitude=NADIR,
            ),
            CinematicLeg(LegKind.DEFAULT, at(70), at(1000), "Nadir", law=nadir),
        ])
        with pytest.raises(PlanInvariantError, match="horizon edge"):
            verify_plan_invariants(plan)

    def test_verify_detects_empty_plan(self, horizon) -> None:
        with pytest.raises(PlanInvariantError):
            verify_plan_invariants(CinematicPlan(horizon, []))

    def test_to_dict(self, sequencer: CinematicSequencer, at) -> None:
        data = sequencer.build([obs_leg("A", at(400), at(410))]).to_dict()
        assert data["observation_count"] == 1
        assert data["slew_count"] == 2
        assert len(data["legs"]) == 5
