"""
Goal request channels.

A goal channel hands a long-running goal to a named remote server and
delivers exactly one completion (Outcome + optional result payload) back
on the control thread.

Usage:
    completions = CompletionQueue()
    channel = HttpGoalChannel("block_detection", base_url, completions)
    channel.wait_for_server()
    channel.submit(goal, on_complete)
    completions.spin_once()   # runs on_complete(outcome, result)
"""
import threading
import time
from typing import Any, Callable, Optional

import requests
from pydantic import BaseModel

from .completion import CompletionQueue
from .outcome import Outcome


CompletionCallback = Callable[[Outcome, Optional[dict]], Any]


class ChannelBusyError(RuntimeError):
    """A goal was submitted while the previous one on the channel is still open."""


class GoalChannel:
    """
    Base class for goal channels.

    Subclasses implement `wait_for_server()` and `_dispatch()`. The base
    class owns the one-goal-at-a-time discipline and guarantees each
    submission's callback fires once, on the control thread.
    """

    def __init__(self, name: str, completions: CompletionQueue):
        self.name = name
        self.completions = completions
        self._busy = False
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy

    def wait_for_server(self) -> None:
        raise NotImplementedError

    def submit(self, goal: BaseModel, on_complete: CompletionCallback) -> None:
        """
        Send a goal. Returns immediately.

        Raises:
            ChannelBusyError: If the previous goal's callback hasn't fired yet
        """
        with self._lock:
            if self._busy:
                raise ChannelBusyError(f"Goal already in flight on '{self.name}'")
            self._busy = True

        delivered = threading.Event()

        def done(outcome: Outcome, result: Optional[dict] = None) -> None:
            # Transports may report twice (e.g. a late error after a reply)
            with self._lock:
                if delivered.is_set():
                    return
                delivered.set()
            self.completions.post(self._complete, on_complete, Outcome.parse(outcome), result)

        self._dispatch(goal, done)

    def _complete(self, on_complete: CompletionCallback, outcome: Outcome, result: Optional[dict]) -> None:
        with self._lock:
            self._busy = False
        on_complete(outcome, result)

    def _dispatch(self, goal: BaseModel, done: Callable[..., None]) -> None:
        raise NotImplementedError


class HttpGoalChannel(GoalChannel):
    """
    Goal channel over HTTP.

    Protocol:
        GET  {base_url}/{name}/status  → 200 once the server is up
        POST {base_url}/{name}/goals   → {"status": "<Outcome>", "result": {...}}

    The POST is held open until the goal finishes, on a daemon thread, so a
    process shutdown simply abandons it.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        completions: CompletionQueue,
        session=None,
        poll_interval: float = 1.0,
    ):
        super().__init__(name, completions)
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.poll_interval = poll_interval

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.name}"

    def wait_for_server(self) -> None:
        """Block until the server answers its status probe. No timeout."""
        wait_until_reachable(self.session, f"{self.url}/status", self.poll_interval)

    def _dispatch(self, goal: BaseModel, done: Callable[..., None]) -> None:
        worker = threading.Thread(
            target=self._post_goal,
            args=(goal, done),
            name=f"goal-{self.name}",
            daemon=True,
        )
        worker.start()

    def _post_goal(self, goal: BaseModel, done: Callable[..., None]) -> None:
        # Runs on the worker thread: every path must end in done()
        try:
            self._exchange(goal, done)
        except Exception as e:
            done(Outcome.LOST, {"error": f"{type(e).__name__}: {e}"})

    def _exchange(self, goal: BaseModel, done: Callable[..., None]) -> None:
        try:
            response = self.session.post(f"{self.url}/goals", json=goal.model_dump())
        except requests.RequestException as e:
            done(Outcome.LOST, {"error": str(e)})
            return

        if response.status_code >= 400:
            done(Outcome.LOST, {"error": f"HTTP {response.status_code}: {response.text}"})
            return

        try:
            body = response.json()
        except ValueError:
            done(Outcome.LOST, {"error": "Malformed reply body"})
            return

        if not isinstance(body, dict):
            done(Outcome.LOST, {"error": "Malformed reply body"})
            return

        done(Outcome.parse(body.get("status")), body.get("result"))


def wait_until_reachable(session, url: str, poll_interval: float) -> None:
    """Poll `url` until it returns 200. Connection errors are retried."""
    # Each probe gets at most one poll interval to answer
    probe = {"timeout": poll_interval} if poll_interval else {}
    while True:
        try:
            response = session.get(url, **probe)
            if response.status_code == 200:
                return
        except requests.RequestException:
            pass
        time.sleep(poll_interval)
