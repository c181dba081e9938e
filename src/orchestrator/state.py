"""State definitions for the block manipulation graph."""
from typing import Optional
from typing_extensions import TypedDict


class DemoState(TypedDict, total=False):
    """State for one cycle: reset → detect → select → pick & place."""
    cycle: int                      # 1-based cycle number
    stage: str                      # Stage whose request is outstanding or just finished
    last_outcome: Optional[str]     # Outcome of that request
    next_stage: Optional[str]       # Where the transition table sent us
    fatal: bool                     # Halted because a stage failed
    halt_reason: Optional[str]
