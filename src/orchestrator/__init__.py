"""
Orchestrator package.

Architecture:
    START → reset → detect → select → pick_place → restart | halt → END

One graph run per cycle. Each goal stage suspends the graph until its
completion callback resumes it; the run loop restarts from reset unless
the pipeline halted.
"""
from .graph import Orchestrator, RunResult, InFlightSlot, StageInFlightError
from .transitions import Stage, Transition, next_transition, InvalidTransitionError
from .stages import StageEndpoints
from .session import get_session, reset_session, end_session, DemoSession

__all__ = [
    "Orchestrator",
    "RunResult",
    "InFlightSlot",
    "StageInFlightError",
    "Stage",
    "Transition",
    "next_transition",
    "InvalidTransitionError",
    "StageEndpoints",
    "get_session",
    "reset_session",
    "end_session",
    "DemoSession",
]
