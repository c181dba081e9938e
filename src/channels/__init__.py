"""
Transport layer between the orchestrator and the stage servers.

- GoalChannel: asynchronous goals, one completion each
- ServiceCall: blocking request/response
- CompletionQueue: serializes completions onto the control thread
"""
from .outcome import Outcome
from .completion import CompletionQueue
from .goal_channel import GoalChannel, HttpGoalChannel, ChannelBusyError
from .service_call import ServiceCall, HttpServiceCall
from .local import LocalGoalChannel, LocalServiceCall, always

__all__ = [
    "Outcome",
    "CompletionQueue",
    "GoalChannel",
    "HttpGoalChannel",
    "ChannelBusyError",
    "ServiceCall",
    "HttpServiceCall",
    "LocalGoalChannel",
    "LocalServiceCall",
    "always",
]
