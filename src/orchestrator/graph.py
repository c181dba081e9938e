"""
Orchestrator: graph builder and run loop.

Each cycle is one graph run:

    START → reset → detect → await_completion → select → await_completion
          → pick_place → await_completion → restart | halt → END

Routing after reset and after every goal completion goes through the
transition table (transitions.py). Any failure before pick-and-place
routes to halt.

Goals are asynchronous. A submit node hands its goal to the stage's channel
and returns; await_completion then suspends the graph with interrupt().
The channel's completion callback, run on the control thread by
CompletionQueue.spin_once(), resumes the graph with the outcome. The
send-home call in reset is the only step that blocks.
"""
import sys
import threading
from dataclasses import dataclass
from functools import partial
from typing import Optional

from langgraph.graph import StateGraph, START, END
from langgraph.types import Command, interrupt
from langgraph.checkpoint.memory import InMemorySaver

from config import Config, DemoConfig
from channels import CompletionQueue, Outcome

from .state import DemoState
from .session import reset_session
from .stages import (
    StageEndpoints,
    build_home_request,
    build_detection_goal,
    build_interactive_goal,
    build_pick_place_goal,
)
from .transitions import Stage, next_transition


class StageInFlightError(RuntimeError):
    """A stage was started while another stage's request is still outstanding."""


class InFlightSlot:
    """
    The single slot for the stage with an outstanding request.

    claim() before sending a request, release() when its reply has been
    handled. A second claim while the slot is taken is a bug in the
    pipeline, not a runtime condition.
    """

    def __init__(self):
        self._stage: Optional[Stage] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[Stage]:
        return self._stage

    def claim(self, stage: Stage) -> None:
        with self._lock:
            if self._stage is not None:
                raise StageInFlightError(
                    f"Cannot start {stage.value}: {self._stage.value} is still in flight"
                )
            self._stage = stage

    def release(self, stage: Stage) -> None:
        with self._lock:
            if self._stage is not stage:
                holder = self._stage.value if self._stage else "nothing"
                raise StageInFlightError(f"Completion for {stage.value}, but {holder} is in flight")
            self._stage = None


@dataclass(frozen=True)
class RunResult:
    """How a run ended. The caller decides what to do with the process."""
    cycles: int
    fatal: bool
    reason: Optional[str] = None


# Node each stage is entered through
STAGE_NODES = {
    Stage.RESETTING: "reset",
    Stage.DETECTING: "detect",
    Stage.SELECTING: "select",
    Stage.PLACING: "pick_place",
    Stage.RESTART: "restart",
    Stage.HALTED: "halt",
}

# (success, failure) lines printed when a goal completes
_COMPLETION_MESSAGES = {
    Stage.DETECTING: (
        "3. Detected blocks, waiting for user input",
        "3. Failed to detect blocks",
    ),
    Stage.SELECTING: (
        "4. Interactive marker received, moving arm",
        "4. Interactive marker input did not succeed",
    ),
    Stage.PLACING: (
        "5. Pick and place commands successful",
        "5. Pick and place did not succeed",
    ),
}


class Orchestrator:
    """
    Drives reset → detect → select → pick & place, then halts or loops.

    Construction waits (without timeout) until all four endpoints are
    reachable and leaves the orchestrator in RESETTING; the send-home call
    itself is made by run(), so nothing moves until the caller starts it.
    run() returns a RunResult instead of exiting the process.
    """

    def __init__(
        self,
        config: DemoConfig,
        endpoints: StageEndpoints,
        completions: CompletionQueue,
        wait_for_servers: bool = True,
    ):
        self.config = config
        self.endpoints = endpoints
        self.completions = completions
        self.session = reset_session()
        self.in_flight = InFlightSlot()
        # Current stage; the first cycle starts in RESETTING
        self.stage = Stage.RESETTING
        self.checkpointer = InMemorySaver()
        self.graph = self.build_graph()
        self._thread_config: Optional[dict] = None

        # Side-effect table: what each asynchronous stage sends, and where
        self._goals = {
            Stage.DETECTING: (endpoints.detection, build_detection_goal, "🔍 2. Detecting blocks"),
            Stage.SELECTING: (endpoints.selection, build_interactive_goal, "👆 Waiting for interactive block selection"),
            Stage.PLACING: (endpoints.pick_place, build_pick_place_goal, "🦾 Sending pick and place goal"),
        }

        print(f"📐 Block size {config.block_size:f}")
        print(f"📐 Table height {config.table_height:f}")

        if wait_for_servers:
            self.wait_for_servers()

    def wait_for_servers(self) -> None:
        """Block until every stage endpoint is reachable."""
        print("\n⏳ Finished initializing, waiting for servers:")
        waits = [
            ("block detection server", self.endpoints.detection),
            ("interactive manipulation", self.endpoints.selection),
            ("pick and place server", self.endpoints.pick_place),
            ("send home service", self.endpoints.home),
        ]
        for label, endpoint in waits:
            print(f"   - Waiting for {label}.", flush=True)
            endpoint.wait_for_server()
        print("✓ All servers reachable")

    # ─────────────────────────────────────────────────────────
    # Nodes
    # ─────────────────────────────────────────────────────────

    def reset_node(self, state: DemoState) -> dict:
        """Send the arm home. Blocks until the service replies."""
        self.stage = Stage.RESETTING
        self.session.current_stage = "resetting"
        print("\n🏠 1. Resetting arm to home position", flush=True)

        self.in_flight.claim(Stage.RESETTING)
        try:
            ok, response = self.endpoints.home.invoke(build_home_request())
        finally:
            self.in_flight.release(Stage.RESETTING)
        self.session.record_submission(Stage.RESETTING.value)

        if not ok:
            self.session.record_failure(Stage.RESETTING.value)
            print(f"❌ Failed to call service {self.endpoints.home.name}: {response}", file=sys.stderr)
            return self._decide(Stage.RESETTING, Outcome.LOST)

        if self.config.skip_perception:
            print("⏭️  1.1 Skipping perception")
        return self._decide(Stage.RESETTING, Outcome.SUCCEEDED)

    def detect_node(self, state: DemoState) -> dict:
        return self._submit(Stage.DETECTING)

    def select_node(self, state: DemoState) -> dict:
        return self._submit(Stage.SELECTING)

    def pick_place_node(self, state: DemoState) -> dict:
        return self._submit(Stage.PLACING)

    def await_completion_node(self, state: DemoState) -> dict:
        """
        Suspend until the outstanding goal completes.

        Re-runs from the top on resume; interrupt() then returns the outcome
        the completion callback resumed with.
        """
        stage = Stage(state["stage"])
        outcome = Outcome.parse(interrupt({"stage": stage.value, "cycle": state.get("cycle")}))

        success_line, failure_line = _COMPLETION_MESSAGES[stage]
        if outcome.succeeded:
            print(f"✓ {success_line}")
        else:
            self.session.record_failure(stage.value)
            print(f"❌ {failure_line}: {outcome.value}", file=sys.stderr)

        if stage is Stage.PLACING:
            self.session.cycles_completed += 1

        return self._decide(stage, outcome)

    def restart_node(self, state: DemoState) -> dict:
        self.stage = Stage.RESTART
        self.session.current_stage = "restarting"
        return {"stage": Stage.RESTART.value}

    def halt_node(self, state: DemoState) -> dict:
        reason = state.get("halt_reason")
        self.stage = Stage.HALTED
        self.session.current_stage = "halted"
        self.session.halt_reason = reason

        if state.get("fatal"):
            print(f"\n❌ Halting: {reason}", file=sys.stderr)
        else:
            print("\n🛑 Shutting down")
        return {"stage": Stage.HALTED.value}

    # ─────────────────────────────────────────────────────────
    # Routing
    # ─────────────────────────────────────────────────────────

    def route_next(self, state: DemoState) -> str:
        """Follow the transition recorded by the previous node."""
        return STAGE_NODES[Stage(state["next_stage"])]

    def _decide(self, stage: Stage, outcome: Outcome) -> dict:
        transition = next_transition(
            stage,
            outcome,
            once=self.config.once,
            skip_perception=self.config.skip_perception,
        )
        return {
            "stage": stage.value,
            "last_outcome": outcome.value,
            "next_stage": transition.next_stage.value,
            "fatal": transition.fatal,
            "halt_reason": transition.reason,
        }

    def _submit(self, stage: Stage) -> dict:
        channel, build_goal, message = self._goals[stage]
        self.stage = stage
        self.session.current_stage = stage.value.lower()
        print(f"\n{message}", flush=True)

        goal = build_goal(self.config)
        self.in_flight.claim(stage)
        try:
            channel.submit(goal, partial(self._on_complete, stage))
        except Exception:
            self.in_flight.release(stage)
            raise
        self.session.record_submission(stage.value)

        return {"stage": stage.value, "last_outcome": None, "next_stage": None}

    def _on_complete(self, stage: Stage, outcome: Outcome, result: Optional[dict]) -> None:
        """Completion callback: hand the outcome to the suspended graph."""
        self.in_flight.release(stage)
        if Config.DEBUG and result:
            print(f"   {stage.value} result: {result}")
        self.graph.invoke(Command(resume=outcome.value), self._thread_config)

    # ─────────────────────────────────────────────────────────
    # Graph
    # ─────────────────────────────────────────────────────────

    def build_graph(self):
        """
        Build the per-cycle graph.

        Flow:
            START → reset ─┬─→ detect ─────┐
                           ├─→ pick_place ─┤ (skip_perception)
                           └─→ halt        ↓
                                    await_completion ─┬─→ select → await_completion
                                                      ├─→ pick_place → await_completion
                                                      ├─→ restart → END
                                                      └─→ halt → END
        """
        builder = StateGraph(DemoState)

        # Nodes
        builder.add_node("reset", self.reset_node)
        builder.add_node("detect", self.detect_node)
        builder.add_node("select", self.select_node)
        builder.add_node("pick_place", self.pick_place_node)
        builder.add_node("await_completion", self.await_completion_node)
        builder.add_node("restart", self.restart_node)
        builder.add_node("halt", self.halt_node)

        # Edges
        builder.add_edge(START, "reset")
        builder.add_conditional_edges("reset", self.route_next, ["detect", "pick_place", "halt"])

        # Every goal submission waits for its completion
        builder.add_edge("detect", "await_completion")
        builder.add_edge("select", "await_completion")
        builder.add_edge("pick_place", "await_completion")

        builder.add_conditional_edges(
            "await_completion",
            self.route_next,
            ["select", "pick_place", "restart", "halt"],
        )

        builder.add_edge("restart", END)
        builder.add_edge("halt", END)

        return builder.compile(checkpointer=self.checkpointer)

    # ─────────────────────────────────────────────────────────
    # Run
    # ─────────────────────────────────────────────────────────

    def run_cycle(self, cycle: int) -> DemoState:
        """
        Run one reset → ... → pick & place cycle to the end.

        Completions are processed here, one at a time, until the graph
        reaches END. Each cycle has its own checkpoint thread, dropped when
        the cycle finishes.
        """
        thread_id = f"cycle-{cycle}"
        self._thread_config = {"configurable": {"thread_id": thread_id}}
        self.session.cycles_started += 1

        try:
            self.graph.invoke({"cycle": cycle, "fatal": False}, self._thread_config)
            while self.graph.get_state(self._thread_config).next:
                self.completions.spin_once()
            return self.graph.get_state(self._thread_config).values
        finally:
            self.checkpointer.delete_thread(thread_id)

    def run(self, max_cycles: Optional[int] = None) -> RunResult:
        """
        Run cycles until the pipeline halts.

        Args:
            max_cycles: Stop after this many complete cycles (None = no limit)

        Returns:
            RunResult. fatal=True means a stage failure halted the pipeline.

        Raises:
            ValueError: If max_cycles is less than 1
        """
        if max_cycles is not None and max_cycles < 1:
            raise ValueError(f"max_cycles must be at least 1, got {max_cycles}")

        self.session.is_running = True
        cycle = 0

        try:
            while True:
                cycle += 1
                if cycle > 1:
                    print("\n🔄 Restarting demo " + "-" * 44)

                final = self.run_cycle(cycle)

                if Stage(final["next_stage"]) is Stage.HALTED:
                    return RunResult(
                        cycles=cycle,
                        fatal=bool(final.get("fatal")),
                        reason=final.get("halt_reason"),
                    )

                if max_cycles is not None and cycle >= max_cycles:
                    print(f"\n🏁 Completed {cycle} cycle(s), stopping")
                    self.session.current_stage = "stopped"
                    return RunResult(cycles=cycle, fatal=False, reason=f"Reached {max_cycles} cycle(s)")
        finally:
            self.session.is_running = False
