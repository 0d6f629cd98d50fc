"""Synthetic responses — route table and the interceptor handed to handlers.

A handler registered for a route is awaited with the request and an
``Interceptor``.  It either serves a response (``intercept``), sends the
request to the network untouched (``passthrough``), or does neither, in
which case the request continues through normal record/replay handling.

Usage::

    routes = RouteTable()

    async def fake_user(request, interceptor):
        interceptor.intercept(200, body={"id": 1, "name": "Ada"})

    routes.add("GET", "https://api.example.com/users/*", fake_user)
    routes.passthrough("*", "http://localhost:*")
"""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Mapping

from fixturenet.exceptions import InterceptorError
from fixturenet.protocol.headers import HeaderValue, HTTPHeaders
from fixturenet.protocol.models import CapturedRequest, CapturedResponse

SyntheticHandler = Callable[[CapturedRequest, "Interceptor"], "Awaitable[None] | None"]

_INTERCEPT = "intercept"
_PASSTHROUGH = "passthrough"


class Interceptor:
    def __init__(self) -> None:
        self._action: str | None = None
        self.response: CapturedResponse | None = None

    @property
    def should_intercept(self) -> bool:
        return self._action == _INTERCEPT

    @property
    def should_passthrough(self) -> bool:
        return self._action == _PASSTHROUGH

    def _claim(self, action: str) -> None:
        if self._action is not None:
            raise InterceptorError(
                f"Cannot {action}: the handler already chose '{self._action}'",
                context={"current": self._action, "requested": action},
            )
        self._action = action

    def intercept(
        self,
        status_code: int = 200,
        headers: Mapping[str, HeaderValue | None] | None = None,
        body: Any = None,
    ) -> CapturedResponse:
        """Serve a synthetic response instead of contacting the network."""
        self._claim(_INTERCEPT)
        response_headers = HTTPHeaders(headers)
        if body is not None and not isinstance(body, str):
            body = json.dumps(body, sort_keys=True)
            if "content-type" not in response_headers:
                response_headers["Content-Type"] = "application/json; charset=utf-8"
        self.response = CapturedResponse(status_code=status_code, headers=response_headers, body=body)
        return self.response

    def passthrough(self) -> None:
        """Skip this handler and send the request to the network."""
        self._claim(_PASSTHROUGH)


@dataclass
class Route:
    method: str
    pattern: str
    handler: SyntheticHandler | None = None
    passthrough: bool = False

    def matches(self, request: CapturedRequest) -> bool:
        if self.method != "*" and self.method != request.method:
            return False
        return fnmatchcase(request.url, self.pattern)

    async def invoke(self, request: CapturedRequest, interceptor: Interceptor) -> None:
        if self.handler is None:
            return
        result = self.handler(request, interceptor)
        if inspect.isawaitable(result):
            await result


class RouteTable:
    """Ordered list of routes; the first matching route wins."""

    def __init__(self) -> None:
        self._routes: list[Route] = []

    def add(self, method: str, pattern: str, handler: SyntheticHandler) -> Route:
        route = Route(method=method.upper(), pattern=pattern, handler=handler)
        self._routes.append(route)
        return route

    def passthrough(self, method: str, pattern: str) -> Route:
        """Always send matching requests to the network, whatever the mode."""
        route = Route(method=method.upper(), pattern=pattern, passthrough=True)
        self._routes.append(route)
        return route

    def match(self, request: CapturedRequest) -> Route | None:
        for route in self._routes:
            if route.matches(request):
                return route
        return None

    def clear(self) -> None:
        self._routes.clear()

    def __len__(self) -> int:
        return len(self._routes)
