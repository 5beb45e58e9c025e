from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from starlette.routing import compile_path

from src.api import auth_routes, user_routes
from src.api.config import cors_allow_origins
from src.api.metrics import RequestMetrics, RequestMetricsMiddleware, create_metrics_router
from src.api.schemas import HealthResponse

openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "Auth", "description": "Registration, login and current user."},
    {"name": "Users", "description": "User management."},
]


@dataclass(frozen=True)
class RouteDescriptor:
    methods: Tuple[str, ...]
    path: str
    name: str
    pattern: Pattern[str] = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        regex, _, _ = compile_path(self.path)
        object.__setattr__(self, "pattern", regex)

    def matches(self, method: str, path: str) -> bool:
        return method in self.methods and self.pattern.match(path) is not None


def _mount(app: FastAPI, router: APIRouter, table: List[RouteDescriptor], prefix: str = "", tags: Optional[List[str]] = None) -> None:
    """Include `router` and record what it added to the route table."""
    app.include_router(router, prefix=prefix, tags=tags)
    for route in router.routes:
        if isinstance(route, APIRoute):
            table.append(RouteDescriptor(tuple(sorted(route.methods)), prefix + route.path, route.name))


health_router = APIRouter()


@health_router.get("/health", response_model=HealthResponse, tags=["Health"], summary="Health check")
def health_check() -> HealthResponse:
    """Liveness check; does not touch the database."""
    return HealthResponse(status="healthy")


# PUBLIC_INTERFACE
def create_app(metrics: Optional[RequestMetrics] = None) -> FastAPI:
    """Build the API with metrics, health and both route groups mounted."""
    metrics = metrics if metrics is not None else RequestMetrics()

    app = FastAPI(
        title="User Service API",
        description=(
            "User authentication and management API.\n\n"
            "Auth: Use the `Authorization: Bearer <token>` header for protected routes."
        ),
        version="1.0.0",
        openapi_tags=openapi_tags,
    )

    # Added last so it wraps CORS too and times every request.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_allow_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestMetricsMiddleware, metrics=metrics)

    route_table: List[RouteDescriptor] = []
    _mount(app, create_metrics_router(metrics), route_table)
    _mount(app, health_router, route_table)
    _mount(app, auth_routes.router, route_table, prefix="/api/auth", tags=["Auth"])
    _mount(app, user_routes.router, route_table, prefix="/api/users", tags=["Users"])

    app.state.metrics = metrics
    app.state.route_table = route_table
    return app
