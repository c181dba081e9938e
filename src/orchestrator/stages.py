"""
Stage definitions: which endpoint each stage talks to, and the goal it sends.

Every goal is a pure function of DemoConfig, so the same config always
produces byte-identical goals from one cycle to the next.
"""
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from config import DemoConfig
from channels import CompletionQueue, GoalChannel, HttpGoalChannel, ServiceCall, HttpServiceCall


# ─────────────────────────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────────────────────────

HOME_SERVICE = "send_home"
BLOCK_DETECTION = "block_detection"
INTERACTIVE_MANIPULATION = "interactive_manipulation"
PICK_PLACE = "pick_place"

# Topic the pick-and-place server publishes its target poses on
PICK_PLACE_TOPIC = "/pick_place"


# ─────────────────────────────────────────────────────────────
# Goals
# ─────────────────────────────────────────────────────────────

class SendHomeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    send_home: bool = True


class BlockDetectionGoal(BaseModel):
    model_config = ConfigDict(frozen=True)

    frame: str
    table_height: float
    block_size: float


class InteractiveManipulationGoal(BaseModel):
    model_config = ConfigDict(frozen=True)

    block_size: float
    frame: str


class PickPlaceGoal(BaseModel):
    model_config = ConfigDict(frozen=True)

    frame: str
    z_up: float
    gripper_open: float
    gripper_closed: float
    topic: str = PICK_PLACE_TOPIC


def build_home_request() -> SendHomeRequest:
    return SendHomeRequest(send_home=True)


def build_detection_goal(config: DemoConfig) -> BlockDetectionGoal:
    return BlockDetectionGoal(
        frame=config.arm_link,
        table_height=config.table_height,
        block_size=config.block_size,
    )


def build_interactive_goal(config: DemoConfig) -> InteractiveManipulationGoal:
    return InteractiveManipulationGoal(
        block_size=config.block_size,
        frame=config.arm_link,
    )


def build_pick_place_goal(config: DemoConfig) -> PickPlaceGoal:
    return PickPlaceGoal(
        frame=config.arm_link,
        z_up=config.z_up,
        gripper_open=config.gripper_open,
        gripper_closed=config.gripper_closed,
        topic=PICK_PLACE_TOPIC,
    )


# ─────────────────────────────────────────────────────────────
# Endpoint bundle
# ─────────────────────────────────────────────────────────────

@dataclass
class StageEndpoints:
    """One client per stage. Each is used by exactly one stage."""
    home: ServiceCall
    detection: GoalChannel
    selection: GoalChannel
    pick_place: GoalChannel

    @classmethod
    def over_http(
        cls,
        base_url: str,
        completions: CompletionQueue,
        poll_interval: float = 1.0,
    ) -> "StageEndpoints":
        return cls(
            home=HttpServiceCall(HOME_SERVICE, base_url, poll_interval=poll_interval),
            detection=HttpGoalChannel(BLOCK_DETECTION, base_url, completions, poll_interval=poll_interval),
            selection=HttpGoalChannel(INTERACTIVE_MANIPULATION, base_url, completions, poll_interval=poll_interval),
            pick_place=HttpGoalChannel(PICK_PLACE, base_url, completions, poll_interval=poll_interval),
        )
