"""
Orchestrator behaviour against in-process stage servers.

Run with: pytest tests/
"""
import pytest

from channels import Outcome
from orchestrator import InFlightSlot, Stage, StageInFlightError, end_session, get_session
from orchestrator.stages import HOME_SERVICE, BLOCK_DETECTION, INTERACTIVE_MANIPULATION, PICK_PLACE

from conftest import Rig, scripted


FULL_CYCLE = [HOME_SERVICE, BLOCK_DETECTION, INTERACTIVE_MANIPULATION, PICK_PLACE]


# ─────────────────────────────────────────────────────────────
# End-to-end scenarios
# ─────────────────────────────────────────────────────────────

def test_run_once_halts_after_one_cycle():
    """All stages succeed with once=True: one request per stage, clean halt."""
    rig = Rig()
    result = rig.build(once=True).run()

    assert result.cycles == 1
    assert result.fatal is False
    assert rig.log == FULL_CYCLE
    assert rig.orchestrator.session.cycles_completed == 1
    assert rig.completions.pending == 0


def test_detection_failure_halts_before_selection():
    rig = Rig(detect=scripted(Outcome.ABORTED))
    result = rig.build(once=False).run()

    assert result.fatal is True
    assert "detect" in result.reason.lower()
    assert rig.log == [HOME_SERVICE, BLOCK_DETECTION]
    assert rig.count(INTERACTIVE_MANIPULATION) == 0
    assert rig.count(PICK_PLACE) == 0


def test_three_looped_cycles_in_strict_order():
    rig = Rig()
    result = rig.build(once=False).run(max_cycles=3)

    assert result.cycles == 3
    assert result.fatal is False
    assert rig.log == FULL_CYCLE * 3
    for name in FULL_CYCLE:
        assert rig.count(name) == 3


# ─────────────────────────────────────────────────────────────
# Failure branches
# ─────────────────────────────────────────────────────────────

def test_reset_failure_halts_without_detection(capsys):
    rig = Rig(home=lambda request: (False, "arm controller not responding"))
    result = rig.build(once=False).run()

    assert result.fatal is True
    assert rig.log == [HOME_SERVICE]
    assert rig.count(BLOCK_DETECTION) == 0

    err = capsys.readouterr().err
    assert "❌" in err
    assert "arm controller not responding" in err


def test_selection_failure_halts_before_pick_place():
    rig = Rig(select=scripted(Outcome.PREEMPTED))
    result = rig.build(once=False).run()

    assert result.fatal is True
    assert rig.log == [HOME_SERVICE, BLOCK_DETECTION, INTERACTIVE_MANIPULATION]
    assert rig.count(PICK_PLACE) == 0


def test_lost_detection_goal_is_fatal():
    rig = Rig(detect=scripted(Outcome.LOST))
    result = rig.build(once=True).run()

    assert result.fatal is True
    assert rig.count(INTERACTIVE_MANIPULATION) == 0


def test_pick_place_failure_restarts_when_looping(capsys):
    """A failed pick & place is reported but the loop carries on."""
    rig = Rig(place=scripted(Outcome.ABORTED))
    result = rig.build(once=False).run(max_cycles=2)

    assert result.fatal is False
    assert result.cycles == 2
    assert rig.log == FULL_CYCLE * 2
    assert rig.orchestrator.session.failures[Stage.PLACING.value] == 1
    assert "Pick and place did not succeed" in capsys.readouterr().err


def test_pick_place_success_restarts_when_looping():
    rig = Rig()
    result = rig.build(once=False).run(max_cycles=2)

    assert result.cycles == 2
    assert rig.count(HOME_SERVICE) == 2


def test_pick_place_failure_halts_cleanly_when_run_once():
    rig = Rig(place=scripted(Outcome.ABORTED))
    result = rig.build(once=True).run()

    assert result.fatal is False
    assert result.cycles == 1
    assert rig.log == FULL_CYCLE


def test_fatal_halt_in_second_cycle():
    rig = Rig(detect=scripted(Outcome.SUCCEEDED, Outcome.ABORTED))
    result = rig.build(once=False).run()

    assert result.fatal is True
    assert result.cycles == 2
    assert rig.log == FULL_CYCLE + [HOME_SERVICE, BLOCK_DETECTION]


def test_skip_perception_goes_straight_to_pick_place():
    rig = Rig()
    result = rig.build(once=True, skip_perception=True).run()

    assert result.fatal is False
    assert rig.log == [HOME_SERVICE, PICK_PLACE]


# ─────────────────────────────────────────────────────────────
# One request at a time
# ─────────────────────────────────────────────────────────────

def test_never_more_than_one_stage_in_flight():
    rig = Rig()
    rig.build(once=False).run(max_cycles=2)

    assert rig.overlaps == []
    expected = [Stage.RESETTING, Stage.DETECTING, Stage.SELECTING, Stage.PLACING] * 2
    assert rig.in_flight == expected
    assert rig.orchestrator.in_flight.current is None


def test_submission_counts_match_requests():
    rig = Rig()
    orchestrator = rig.build(once=False)
    orchestrator.run(max_cycles=2)

    submissions = orchestrator.session.submissions
    assert submissions[Stage.RESETTING.value] == 2
    assert submissions[Stage.DETECTING.value] == 2
    assert submissions[Stage.SELECTING.value] == 2
    assert submissions[Stage.PLACING.value] == 2


def test_in_flight_slot_rejects_second_claim():
    slot = InFlightSlot()
    slot.claim(Stage.DETECTING)

    with pytest.raises(StageInFlightError):
        slot.claim(Stage.SELECTING)

    slot.release(Stage.DETECTING)
    slot.claim(Stage.SELECTING)
    assert slot.current is Stage.SELECTING


def test_in_flight_slot_rejects_wrong_release():
    slot = InFlightSlot()
    slot.claim(Stage.PLACING)

    with pytest.raises(StageInFlightError):
        slot.release(Stage.DETECTING)


# ─────────────────────────────────────────────────────────────
# Goals
# ─────────────────────────────────────────────────────────────

def test_goals_identical_across_cycles():
    rig = Rig()
    rig.build(once=False, block_size=0.025).run(max_cycles=3)

    for channel in (rig.endpoints.detection, rig.endpoints.selection, rig.endpoints.pick_place):
        payloads = {goal.model_dump_json() for goal in channel.received}
        assert len(channel.received) == 3
        assert len(payloads) == 1


def test_goals_carry_config():
    rig = Rig()
    rig.build(once=True, arm_link="/arm_base", z_up=0.2, table_height=0.05).run()

    detection = rig.endpoints.detection.received[0]
    assert detection.frame == "/arm_base"
    assert detection.table_height == 0.05

    pick_place = rig.endpoints.pick_place.received[0]
    assert pick_place.z_up == 0.2
    assert pick_place.topic == "/pick_place"

    home = rig.endpoints.home.received[0]
    assert home.send_home is True


# ─────────────────────────────────────────────────────────────
# Startup
# ─────────────────────────────────────────────────────────────

def test_waits_for_every_server_in_order():
    rig = Rig()
    waited = []

    for endpoint in (rig.endpoints.home, rig.endpoints.detection, rig.endpoints.selection, rig.endpoints.pick_place):
        endpoint.wait_for_server = (lambda name: lambda: waited.append(name))(endpoint.name)

    rig.build(once=True)

    assert waited == [BLOCK_DETECTION, INTERACTIVE_MANIPULATION, PICK_PLACE, HOME_SERVICE]


def test_nothing_sent_before_run():
    rig = Rig()
    rig.build(once=True)

    assert rig.log == []
    assert rig.orchestrator.session.current_stage == "not_started"


def test_constructed_orchestrator_starts_in_resetting():
    rig = Rig()
    orchestrator = rig.build(once=True)

    assert orchestrator.stage is Stage.RESETTING
    assert orchestrator.in_flight.current is None

    orchestrator.run()
    assert orchestrator.stage is Stage.HALTED


@pytest.mark.parametrize("max_cycles", [0, -1])
def test_run_rejects_non_positive_cycle_limit(max_cycles):
    rig = Rig()
    orchestrator = rig.build(once=False)

    with pytest.raises(ValueError):
        orchestrator.run(max_cycles=max_cycles)

    assert rig.log == []
    assert orchestrator.session.cycles_started == 0
    assert orchestrator.session.is_running is False


def test_single_cycle_limit_runs_exactly_one_cycle():
    rig = Rig()
    result = rig.build(once=False).run(max_cycles=1)

    assert result.cycles == 1
    assert result.fatal is False
    assert rig.log == FULL_CYCLE
    assert rig.orchestrator.stage is Stage.RESTART


def test_orchestrator_owns_the_shared_session():
    """The Ctrl+C handler sees the counts of the run in progress."""
    rig = Rig()
    orchestrator = rig.build(once=True)
    assert get_session() is orchestrator.session

    orchestrator.run()
    assert get_session().get_summary()["cycles_completed"] == 1

    end_session()
    fresh = get_session()
    assert fresh is not orchestrator.session
    assert fresh.cycles_started == 0
    assert get_session() is fresh
