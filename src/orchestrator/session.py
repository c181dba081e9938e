"""
Session tracking for a demo run.

Used for the progress summary printed on Ctrl+C and at exit.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional
import threading


@dataclass
class DemoSession:
    """
    Tracks what the orchestrator has done during a single run.
    """
    # Execution state
    is_running: bool = False
    was_interrupted: bool = False
    current_stage: str = "not_started"  # resetting, detecting, selecting, placing, halted

    # Progress tracking
    cycles_started: int = 0
    cycles_completed: int = 0
    submissions: Counter = field(default_factory=Counter)  # stage name → requests sent
    failures: Counter = field(default_factory=Counter)     # stage name → failed outcomes
    halt_reason: Optional[str] = None

    def record_submission(self, stage: str) -> None:
        """Count a request sent for a stage."""
        self.submissions[stage] += 1

    def record_failure(self, stage: str) -> None:
        self.failures[stage] += 1

    def get_summary(self) -> dict:
        """Get session summary for display."""
        return {
            "stage": self.current_stage,
            "cycles_started": self.cycles_started,
            "cycles_completed": self.cycles_completed,
            "submissions": dict(self.submissions),
            "failures": dict(self.failures),
            "halt_reason": self.halt_reason,
            "interrupted": self.was_interrupted,
        }


# The running demo, shared with the Ctrl+C handler so it can print counts
_current_session: Optional[DemoSession] = None
_session_lock = threading.Lock()


def get_session() -> DemoSession:
    """
    Counters for the demo run in progress.

    The signal handler reads this to print a summary; outside a run it
    returns an empty session rather than None.
    """
    global _current_session
    with _session_lock:
        if _current_session is None:
            _current_session = DemoSession()
        return _current_session


def reset_session() -> DemoSession:
    """Start counting a new demo run. Called when an Orchestrator is built."""
    global _current_session
    with _session_lock:
        _current_session = DemoSession()
        return _current_session


def end_session() -> None:
    """Forget the finished run once its summary has been printed."""
    global _current_session
    with _session_lock:
        _current_session = None
