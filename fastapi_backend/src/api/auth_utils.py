import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from src.api import db
from src.api.config import required_env

# 10 rounds keeps seeded hashes compatible with the existing user store.
_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
_bearer = HTTPBearer(auto_error=False)

USER_COLUMNS = "id, name, email, role"


def _jwt_secret() -> str:
    return required_env("JWT_SECRET")


def _jwt_algorithm() -> str:
    return os.getenv("JWT_ALGORITHM", "HS256")


def _jwt_exp_minutes() -> int:
    return int(os.getenv("JWT_EXPIRES_MINUTES", "60"))


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash."""
    try:
        return _pwd_context.verify(password, password_hash)
    except ValueError:
        # Not a recognizable hash (e.g. a legacy plaintext value).
        return False


# PUBLIC_INTERFACE
def create_access_token(user_id: int, role: str, email: str) -> str:
    """Create a JWT access token for a user."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=_jwt_exp_minutes())
    payload = {"sub": str(user_id), "role": role, "email": email, "exp": expire}
    return jwt.encode(payload, _jwt_secret(), algorithm=_jwt_algorithm())


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> Dict[str, Any]:
    """Dependency that returns the current authenticated user row."""
    if credentials is None:
        raise _unauthorized()

    try:
        payload = jwt.decode(credentials.credentials, _jwt_secret(), algorithms=[_jwt_algorithm()])
        user_id = int(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise _unauthorized("Invalid token")

    user = db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id=%s", [user_id])
    if not user:
        raise _unauthorized("User not found")
    return user


# PUBLIC_INTERFACE
def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Dependency that ensures the current user has admin role."""
    if user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
