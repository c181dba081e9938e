"""Shared test helpers: an orchestrator wired to in-process stage servers."""
from config import DemoConfig
from channels import CompletionQueue, LocalGoalChannel, LocalServiceCall, Outcome
from orchestrator import Orchestrator, StageEndpoints
from orchestrator.stages import HOME_SERVICE, BLOCK_DETECTION, INTERACTIVE_MANIPULATION, PICK_PLACE


def scripted(*outcomes, then=Outcome.SUCCEEDED):
    """Handler returning the given outcomes in order, then `then` forever."""
    queue = list(outcomes)

    def handler(goal):
        return queue.pop(0) if queue else then

    return handler


class Rig:
    """
    Local stage servers plus a log of every request, in the order sent.

    `log` entries are endpoint names. Each handler also records which
    stage the orchestrator had in flight and whether any other channel
    was busy at the time.
    """

    def __init__(self, home=None, detect=None, select=None, place=None):
        self.completions = CompletionQueue()
        self.log: list[str] = []
        self.overlaps: list[str] = []
        self.in_flight: list = []
        self.orchestrator = None

        self.endpoints = StageEndpoints(
            home=LocalServiceCall(HOME_SERVICE, self._record(HOME_SERVICE, home or (lambda r: (True, {"success": True})))),
            detection=LocalGoalChannel(BLOCK_DETECTION, self._record(BLOCK_DETECTION, detect or scripted()), self.completions),
            selection=LocalGoalChannel(INTERACTIVE_MANIPULATION, self._record(INTERACTIVE_MANIPULATION, select or scripted()), self.completions),
            pick_place=LocalGoalChannel(PICK_PLACE, self._record(PICK_PLACE, place or scripted()), self.completions),
        )

    def _record(self, name, handler):
        def wrapped(request):
            self.log.append(name)
            others = [
                channel.name
                for channel in (self.endpoints.detection, self.endpoints.selection, self.endpoints.pick_place)
                if channel.name != name and channel.busy
            ]
            if others or self.completions.pending:
                self.overlaps.append(name)
            if self.orchestrator is not None:
                self.in_flight.append(self.orchestrator.in_flight.current)
            return handler(request)
        return wrapped

    def build(self, **config) -> Orchestrator:
        self.orchestrator = Orchestrator(DemoConfig(**config), self.endpoints, self.completions)
        return self.orchestrator

    def count(self, name: str) -> int:
        return self.log.count(name)


