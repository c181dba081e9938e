"""Terminal states a remote goal can finish in."""
from enum import Enum


class Outcome(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    ABORTED = "ABORTED"
    REJECTED = "REJECTED"
    PREEMPTED = "PREEMPTED"
    RECALLED = "RECALLED"
    # Transport error: the server was unreachable or replied with garbage
    LOST = "LOST"

    @property
    def succeeded(self) -> bool:
        return self is Outcome.SUCCEEDED

    @classmethod
    def parse(cls, value) -> "Outcome":
        """Parse a status string from the wire. Anything unknown is LOST."""
        if isinstance(value, Outcome):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.LOST
