"""ASGI middleware tying each HTTP request to a request id, a latency sample
and one ``request`` log line.
"""

from typing import Any, Callable, List, Tuple
import re
import time
import uuid

from fastapi import FastAPI

from planner.obs.context import clear_context, request_id_var
from planner.obs.logger import log_event
from planner.obs.metrics import inc_counter, record_timing

REQUEST_ID_HEADER = b"x-request-id"

# Session ids are unbounded; keep them out of metric labels
_SESSION_SEGMENT = re.compile(r"/planner/sessions/[^/]+")


def route_label(path: str) -> str:
    return _SESSION_SEGMENT.sub("/planner/sessions/{id}", path)


def _incoming_request_id(headers: List[Tuple[bytes, bytes]]) -> str:
    for name, value in headers:
        if name.lower() == REQUEST_ID_HEADER and value:
            return value.decode("latin-1")[:64]
    return uuid.uuid4().hex


class ObservabilityMiddleware:
    def __init__(self, app: FastAPI):
        self.app = app

    async def __call__(self, scope: dict, receive: Callable, send: Callable[[dict], Any]):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        req_id = _incoming_request_id(scope.get("headers") or [])
        request_id_var.set(req_id)
        route = route_label(scope.get("path", ""))
        start = time.monotonic()
        status_code = 500

        async def send_wrapper(message: dict):
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 200))
                headers = list(message.get("headers") or [])
                headers.append((REQUEST_ID_HEADER, req_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.monotonic() - start) * 1000.0
            labels = {"route": route}
            record_timing("request_latency_ms", elapsed_ms, labels)
            inc_counter("requests_total", {**labels, "status": str(status_code)})
            log_event(
                "request",
                level="INFO" if status_code < 500 else "ERROR",
                method=scope.get("method", ""),
                route=route,
                status=status_code,
                ms_total=round(elapsed_ms, 2),
            )
            clear_context()
