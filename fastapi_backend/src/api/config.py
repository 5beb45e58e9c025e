import os
from typing import List

from src.api.schemas import AdminAccountSpec


def required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"Missing required environment variable '{name}'. "
            "Set it in the service environment or the .env file."
        )
    return value


# PUBLIC_INTERFACE
def server_port() -> int:
    """Port the HTTP listener binds to."""
    return int(os.getenv("PORT") or "5000")


# PUBLIC_INTERFACE
def admin_account() -> AdminAccountSpec:
    """Default admin account seeded at startup."""
    return AdminAccountSpec(
        name=os.getenv("ADMIN_NAME") or "Admin User",
        email=os.getenv("ADMIN_EMAIL") or "admin@example.com",
        password=os.getenv("ADMIN_PASSWORD") or "admin123",
        role=os.getenv("ADMIN_ROLE") or "admin",
    )


# PUBLIC_INTERFACE
def readiness_retries() -> int:
    return int(os.getenv("DB_READY_RETRIES") or "30")


# PUBLIC_INTERFACE
def readiness_delay_seconds() -> float:
    return float(os.getenv("DB_READY_DELAY_SECONDS") or "2")


# PUBLIC_INTERFACE
def cors_allow_origins() -> List[str]:
    """Allowed CORS origins; all by default, restrict via CORS_ALLOW_ORIGINS (comma separated)."""
    env_val = os.getenv("CORS_ALLOW_ORIGINS")
    if not env_val:
        return ["*"]
    return [o.strip() for o in env_val.split(",") if o.strip()]


# PUBLIC_INTERFACE
def log_level() -> str:
    return (os.getenv("LOG_LEVEL") or "INFO").upper()
