"""Prometheus request metrics.

`RequestMetrics` owns its own `CollectorRegistry`; the app factory creates one
and hands it to both `RequestMetricsMiddleware` and the `/metrics` route, so
tests can build isolated instances.

Usage:
    metrics = RequestMetrics()
    app.add_middleware(RequestMetricsMiddleware, metrics=metrics)
    app.include_router(create_metrics_router(metrics))
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from starlette.routing import Match
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

REQUEST_DURATION_METRIC = "http_request_duration_seconds"


class RequestMetrics:
    """HTTP latency histogram plus process-level default collectors."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, default_collectors: bool = True) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        if default_collectors:
            ProcessCollector(registry=self.registry)
            PlatformCollector(registry=self.registry)
            GCCollector(registry=self.registry)

        self.request_duration = Histogram(
            REQUEST_DURATION_METRIC,
            "Duration of HTTP requests in seconds",
            ["method", "route", "status_code"],
            registry=self.registry,
        )

    def observe(self, method: str, route: str, status_code: int, duration: float) -> None:
        self.request_duration.labels(method, route, str(status_code)).observe(duration)

    def render(self) -> bytes:
        """Serialize every registered metric in the Prometheus text format."""
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST


def _route_label(scope: Scope) -> str:
    """Path template of the route that handles `scope`, or the raw path.

    Apps built by `create_app` keep their mounted routes in
    `app.state.route_table`; other apps are matched against their own
    top-level routes.
    """
    app = scope.get("app")
    method = scope.get("method", "")
    path = scope.get("path", "")

    route_table = getattr(getattr(app, "state", None), "route_table", None)
    if route_table is not None:
        for descriptor in route_table:
            if descriptor.matches(method, path):
                return descriptor.path
        return path

    router = getattr(app, "router", None)
    for route in getattr(router, "routes", []):
        route_path = getattr(route, "path", None)
        if route_path and route.matches(scope)[0] == Match.FULL:
            return route_path
    return path


class RequestMetricsMiddleware:
    """ASGI middleware observing one duration per completed HTTP request.

    The observation happens after the downstream app returns, i.e. once the
    final response body chunk has been sent.
    """

    def __init__(self, app: ASGIApp, metrics: RequestMetrics) -> None:
        self.app = app
        self.metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            self._record(scope, status_code, time.perf_counter() - start)

    def _record(self, scope: Scope, status_code: int, duration: float) -> None:
        try:
            self.metrics.observe(scope.get("method", ""), _route_label(scope), status_code, duration)
        except Exception:
            logger.exception("Failed to record request metric for %s", scope.get("path"))


# PUBLIC_INTERFACE
def create_metrics_router(metrics: RequestMetrics) -> APIRouter:
    """Router exposing the scrape endpoint for `metrics`."""
    router = APIRouter()

    @router.get("/metrics", tags=["Metrics"], summary="Prometheus metrics", include_in_schema=False)
    def scrape() -> Response:
        return Response(content=metrics.render(), media_type=metrics.content_type)

    return router
