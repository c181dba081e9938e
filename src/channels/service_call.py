"""
Synchronous service calls: one blocking request/response exchange.

`invoke()` returns (ok, response). ok=False means the exchange itself failed
(unreachable, HTTP error); services have no semantic "reject".
"""
from typing import Any

import requests
from pydantic import BaseModel

from .goal_channel import wait_until_reachable


class ServiceCall:
    """Base class for synchronous service calls."""

    def __init__(self, name: str):
        self.name = name

    def wait_for_server(self) -> None:
        raise NotImplementedError

    def invoke(self, request: BaseModel) -> tuple[bool, Any]:
        raise NotImplementedError


class HttpServiceCall(ServiceCall):
    """
    Service call over HTTP.

    Protocol:
        GET  {base_url}/{name}/status  → 200 once the service is up
        POST {base_url}/{name}/call    → response JSON
    """

    def __init__(self, name: str, base_url: str, session=None, poll_interval: float = 1.0):
        super().__init__(name)
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.poll_interval = poll_interval

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.name}"

    def wait_for_server(self) -> None:
        wait_until_reachable(self.session, f"{self.url}/status", self.poll_interval)

    def invoke(self, request: BaseModel) -> tuple[bool, Any]:
        try:
            response = self.session.post(f"{self.url}/call", json=request.model_dump())
        except requests.RequestException as e:
            return (False, str(e))

        if response.status_code >= 400:
            return (False, response.text or f"HTTP {response.status_code}")

        try:
            return (True, response.json())
        except ValueError:
            return (True, response.text)
