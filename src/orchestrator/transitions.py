"""
Stage transition table.

A pure function of (current stage, outcome, config flags). The graph in
graph.py asks this table where to go after every stage finishes.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from channels import Outcome


class Stage(str, Enum):
    RESETTING = "RESETTING"
    DETECTING = "DETECTING"
    SELECTING = "SELECTING"
    PLACING = "PLACING"
    RESTART = "RESTART"
    HALTED = "HALTED"


class InvalidTransitionError(RuntimeError):
    """Asked to leave a stage that has no outgoing outcome transitions."""


@dataclass(frozen=True)
class Transition:
    next_stage: Stage
    fatal: bool = False
    reason: Optional[str] = None


_FAILURE_REASONS = {
    Stage.RESETTING: "Failed to send the arm home",
    Stage.DETECTING: "Failed to detect blocks",
    Stage.SELECTING: "Interactive selection did not succeed",
}


def next_transition(
    stage: Stage,
    outcome: Outcome,
    once: bool,
    skip_perception: bool = False,
) -> Transition:
    """
    Decide where the pipeline goes after `stage` finishes with `outcome`.

    Detection and selection failures leave nothing to act on, so they halt.
    Pick-and-place never halts on its own outcome: only `once` decides
    between stopping and running another cycle.
    """
    stage = Stage(stage)
    outcome = Outcome.parse(outcome)

    if stage is Stage.PLACING:
        if once:
            return Transition(Stage.HALTED, reason="Run-once cycle complete")
        return Transition(Stage.RESTART)

    if stage not in _FAILURE_REASONS:
        raise InvalidTransitionError(f"No outcome transitions out of {stage.value}")

    if not outcome.succeeded:
        return Transition(
            Stage.HALTED,
            fatal=True,
            reason=f"{_FAILURE_REASONS[stage]}: {outcome.value}",
        )

    if stage is Stage.RESETTING:
        return Transition(Stage.PLACING if skip_perception else Stage.DETECTING)
    if stage is Stage.DETECTING:
        return Transition(Stage.SELECTING)
    return Transition(Stage.PLACING)
