"""
Simulated stage servers.

Usage:
    # Start server
    cd src
    python -m backend.sim_server

    # Or with reload
    python -m uvicorn backend.sim_server:app --reload --port 8100
"""

from .sim_server import app, create_app, ENDPOINTS

__all__ = [
    "app",
    "create_app",
    "ENDPOINTS",
]
