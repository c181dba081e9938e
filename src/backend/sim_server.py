"""
Simulated stage servers over HTTP.

Stands in for the real detection / interactive manipulation / pick and
place servers and the send-home service, so the orchestrator can be run
end to end without hardware. Every goal finishes immediately with the
configured outcome.

Run:
    cd src
    python -m backend.sim_server

Or:
    python -m uvicorn backend.sim_server:app --port 8100
"""
from typing import Optional

from fastapi import FastAPI, HTTPException

from config import Config
from channels import Outcome
from orchestrator.stages import (
    HOME_SERVICE,
    BLOCK_DETECTION,
    INTERACTIVE_MANIPULATION,
    PICK_PLACE,
    SendHomeRequest,
    BlockDetectionGoal,
    InteractiveManipulationGoal,
    PickPlaceGoal,
)


ENDPOINTS = (HOME_SERVICE, BLOCK_DETECTION, INTERACTIVE_MANIPULATION, PICK_PLACE)


def create_app(
    outcomes: Optional[dict[str, str]] = None,
    home_ok: Optional[bool] = None,
) -> FastAPI:
    """
    Build the simulator app.

    Args:
        outcomes: Goal endpoint → outcome name. Missing entries come from Config.
        home_ok: Whether send-home succeeds. Defaults to Config.SIM_HOME_OK.
    """
    goal_outcomes = {
        BLOCK_DETECTION: Config.SIM_DETECTION_OUTCOME,
        INTERACTIVE_MANIPULATION: Config.SIM_SELECTION_OUTCOME,
        PICK_PLACE: Config.SIM_PICK_PLACE_OUTCOME,
    }
    goal_outcomes.update(outcomes or {})
    home_reachable = Config.SIM_HOME_OK if home_ok is None else home_ok

    app = FastAPI(
        title="Block Manipulation Simulator",
        description="Simulated stage servers for the block manipulation demo",
        version="1.0.0",
    )
    # Requests received per endpoint, for inspection
    app.state.received = {name: [] for name in ENDPOINTS}

    def finish(endpoint: str, goal, result: dict) -> dict:
        app.state.received[endpoint].append(goal.model_dump())
        outcome = Outcome.parse(goal_outcomes[endpoint])
        print(f"🤖 [SIM] {endpoint} → {outcome.value}", flush=True)
        return {"status": outcome.value, "result": result}

    # ─────────────────────────────────────────────────────────
    # Reachability
    # ─────────────────────────────────────────────────────────

    @app.get("/{endpoint}/status")
    async def status(endpoint: str):
        if endpoint not in ENDPOINTS:
            raise HTTPException(status_code=404, detail=f"Unknown endpoint: {endpoint}")
        return {"endpoint": endpoint, "ready": True}

    # ─────────────────────────────────────────────────────────
    # Send home (synchronous service)
    # ─────────────────────────────────────────────────────────

    @app.post(f"/{HOME_SERVICE}/call")
    async def send_home(request: SendHomeRequest):
        app.state.received[HOME_SERVICE].append(request.model_dump())
        if not home_reachable:
            raise HTTPException(status_code=503, detail="Arm did not reach home position")
        return {"success": True}

    # ─────────────────────────────────────────────────────────
    # Goals
    # ─────────────────────────────────────────────────────────

    @app.post(f"/{BLOCK_DETECTION}/goals")
    async def detect_blocks(goal: BlockDetectionGoal):
        return finish(BLOCK_DETECTION, goal, {"blocks": []})

    @app.post(f"/{INTERACTIVE_MANIPULATION}/goals")
    async def interactive_manipulation(goal: InteractiveManipulationGoal):
        return finish(INTERACTIVE_MANIPULATION, goal, {"pick_pose": None, "place_pose": None})

    @app.post(f"/{PICK_PLACE}/goals")
    async def pick_place(goal: PickPlaceGoal):
        return finish(PICK_PLACE, goal, {})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=Config.SIM_HOST, port=Config.SIM_PORT)
