import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from src.api import db
from src.api.auth_utils import USER_COLUMNS, create_access_token, get_current_user, hash_password, verify_password
from src.api.schemas import LoginRequest, RegisterRequest, TokenResponse, User, UserRole

logger = logging.getLogger(__name__)

router = APIRouter()


def _token_response(user: Dict[str, Any]) -> TokenResponse:
    token = create_access_token(int(user["id"]), user["role"], user["email"])
    return TokenResponse(access_token=token, user=User(**user))


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
)
def register(payload: RegisterRequest) -> TokenResponse:
    """Create a new user with the default role and return an access token."""
    email = payload.email.lower()
    if db.fetch_one("SELECT id FROM users WHERE email=%s", [email]):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = db.execute_returning_one(
        f"INSERT INTO users (name, email, password, role) VALUES (%s, %s, %s, %s) RETURNING {USER_COLUMNS}",
        [payload.name, email, hash_password(payload.password), UserRole.user.value],
    )
    logger.info("Registered user %s", email)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse, summary="Login")
def login(payload: LoginRequest) -> TokenResponse:
    """Authenticate user and return an access token."""
    user = db.fetch_one(
        f"SELECT {USER_COLUMNS}, password FROM users WHERE email=%s",
        [payload.email.lower()],
    )
    if not user or not verify_password(payload.password, user.pop("password")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _token_response(user)


@router.get("/me", response_model=User, summary="Get current user")
def me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Return the current authenticated user."""
    return user
