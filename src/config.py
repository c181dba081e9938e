"""
Centralized configuration. Load once, use everywhere.
"""
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # ─────────────────────────────────────────────────────────────
    # Remote endpoints
    # ─────────────────────────────────────────────────────────────
    # All four stage services are served under one base URL
    ENDPOINT_BASE_URL = os.getenv("ENDPOINT_BASE_URL", "http://localhost:8100")

    # Seconds between reachability probes while waiting for a server
    SERVER_POLL_INTERVAL = float(os.getenv("SERVER_POLL_INTERVAL", "1.0"))

    # ─────────────────────────────────────────────────────────────
    # Simulated endpoint server (backend/sim_server.py)
    # ─────────────────────────────────────────────────────────────
    SIM_HOST = os.getenv("SIM_HOST", "127.0.0.1")
    SIM_PORT = int(os.getenv("SIM_PORT", "8100"))
    SIM_HOME_OK = _env_bool(os.getenv("SIM_HOME_OK"), default=True)
    SIM_DETECTION_OUTCOME = os.getenv("SIM_DETECTION_OUTCOME", "SUCCEEDED")
    SIM_SELECTION_OUTCOME = os.getenv("SIM_SELECTION_OUTCOME", "SUCCEEDED")
    SIM_PICK_PLACE_OUTCOME = os.getenv("SIM_PICK_PLACE_OUTCOME", "SUCCEEDED")

    # Debug mode - set DEBUG=1 in env to enable verbose output
    DEBUG = _env_bool(os.getenv("DEBUG"))


class DemoConfig(BaseModel):
    """
    Demo parameters, resolved once at startup and read-only afterwards.

    Defaults match the arm's stock calibration. Distances are in meters.
    """
    model_config = ConfigDict(frozen=True)

    arm_link: str = "/base_link"
    gripper_open: float = Field(0.042, ge=0)
    gripper_closed: float = Field(0.024, ge=0)
    z_up: float = 0.12
    table_height: float = 0.01
    block_size: float = Field(0.03, gt=0)
    once: bool = False
    skip_perception: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "DemoConfig":
        """
        Build the config from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Explicit values (e.g. from the CLI). None values are ignored.

        Raises:
            pydantic.ValidationError: If a value is malformed or out of range
        """
        env = os.environ if environ is None else environ
        values = {}

        for field_name, env_name in _ENV_NAMES.items():
            raw = env.get(env_name)
            if raw is None or raw == "":
                continue
            if field_name in ("once", "skip_perception"):
                values[field_name] = _env_bool(raw)
            else:
                values[field_name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


_ENV_NAMES = {
    "arm_link": "ARM_LINK",
    "gripper_open": "GRIPPER_OPEN",
    "gripper_closed": "GRIPPER_CLOSED",
    "z_up": "Z_UP",
    "table_height": "TABLE_HEIGHT",
    "block_size": "BLOCK_SIZE",
    "once": "ONCE",
    "skip_perception": "SKIP_PERCEPTION",
}
