"""Goal builders: fixed config in, identical goals out."""
from config import DemoConfig
from orchestrator.stages import (
    PICK_PLACE_TOPIC,
    build_home_request,
    build_detection_goal,
    build_interactive_goal,
    build_pick_place_goal,
)


def test_detection_goal_fields():
    goal = build_detection_goal(DemoConfig(arm_link="/arm", table_height=0.02, block_size=0.04))

    assert goal.model_dump() == {"frame": "/arm", "table_height": 0.02, "block_size": 0.04}


def test_interactive_goal_fields():
    goal = build_interactive_goal(DemoConfig(arm_link="/arm", block_size=0.04))

    assert goal.model_dump() == {"block_size": 0.04, "frame": "/arm"}


def test_pick_place_goal_fields():
    goal = build_pick_place_goal(DemoConfig(z_up=0.15, gripper_open=0.05, gripper_closed=0.02))

    assert goal.frame == "/base_link"
    assert goal.z_up == 0.15
    assert goal.gripper_open == 0.05
    assert goal.gripper_closed == 0.02
    assert goal.topic == PICK_PLACE_TOPIC


def test_home_request():
    assert build_home_request().model_dump() == {"send_home": True}


def test_goals_are_deterministic():
    config = DemoConfig(block_size=0.035)

    for build in (build_detection_goal, build_interactive_goal, build_pick_place_goal):
        assert build(config).model_dump_json() == build(config).model_dump_json()
