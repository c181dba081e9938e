"""
In-process channels backed by plain Python callables.

Used for dry runs and tests: the handler plays the remote server.
Completions still go through the CompletionQueue, so from the caller's side
a local goal behaves exactly like a remote one: submit() returns, the
callback fires on the next spin.
"""
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel

from .completion import CompletionQueue
from .goal_channel import GoalChannel
from .outcome import Outcome
from .service_call import ServiceCall


GoalHandler = Callable[[BaseModel], Union[Outcome, tuple[Outcome, Optional[dict]]]]
ServiceHandler = Callable[[BaseModel], tuple[bool, Any]]


def always(outcome: Outcome = Outcome.SUCCEEDED) -> GoalHandler:
    """Handler that finishes every goal with the same outcome."""
    return lambda goal: outcome


class LocalGoalChannel(GoalChannel):

    def __init__(self, name: str, handler: GoalHandler, completions: CompletionQueue):
        super().__init__(name, completions)
        self.handler = handler
        self.received: list[BaseModel] = []

    def wait_for_server(self) -> None:
        return None

    def _dispatch(self, goal: BaseModel, done: Callable[..., None]) -> None:
        self.received.append(goal)
        reply = self.handler(goal)
        if isinstance(reply, tuple):
            outcome, result = reply
        else:
            outcome, result = reply, None
        done(outcome, result)


class LocalServiceCall(ServiceCall):

    def __init__(self, name: str, handler: Optional[ServiceHandler] = None):
        super().__init__(name)
        self.handler = handler or (lambda request: (True, {"success": True}))
        self.received: list[BaseModel] = []

    def wait_for_server(self) -> None:
        return None

    def invoke(self, request: BaseModel) -> tuple[bool, Any]:
        self.received.append(request)
        return self.handler(request)
