import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from src.api import db
from src.api.auth_utils import USER_COLUMNS, get_current_user, hash_password, require_admin
from src.api.schemas import APIMessage, User, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


def _conflict() -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")


def _forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")


def _is_admin(user: Dict[str, Any]) -> bool:
    return user.get("role") == "admin"


def _email_taken(email: str, exclude_id: int = 0) -> bool:
    row = db.fetch_one("SELECT id FROM users WHERE email=%s", [email])
    return bool(row) and row["id"] != exclude_id


@router.get("", response_model=List[User], summary="List users")
def list_users(_: Dict[str, Any] = Depends(require_admin)) -> List[Dict[str, Any]]:
    """Admin: list all users."""
    return db.fetch_all(f"SELECT {USER_COLUMNS} FROM users ORDER BY id ASC")


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED, summary="Create user")
def create_user(payload: UserCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    """Admin: create a user with an explicit role."""
    email = payload.email.lower()
    if _email_taken(email):
        raise _conflict()
    return db.execute_returning_one(
        f"INSERT INTO users (name, email, password, role) VALUES (%s, %s, %s, %s) RETURNING {USER_COLUMNS}",
        [payload.name, email, hash_password(payload.password), payload.role.value],
    )


@router.get("/{user_id}", response_model=User, summary="Get user")
def get_user(user_id: int, current: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Get a user by id (self, or any user for admins)."""
    if current["id"] != user_id and not _is_admin(current):
        raise _forbidden()
    user = db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id=%s", [user_id])
    if not user:
        raise _not_found()
    return user


@router.put("/{user_id}", response_model=User, summary="Update user")
def update_user(user_id: int, payload: UserUpdate, current: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Update a user. Users may edit themselves; only admins may change roles."""
    if current["id"] != user_id and not _is_admin(current):
        raise _forbidden()
    if payload.role is not None and not _is_admin(current):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")

    existing = db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id=%s", [user_id])
    if not existing:
        raise _not_found()

    email = payload.email.lower() if payload.email else None
    if email and _email_taken(email, exclude_id=user_id):
        raise _conflict()

    fields = []
    params: List[Any] = []
    for col, val in [
        ("name", payload.name),
        ("email", email),
        ("password", hash_password(payload.password) if payload.password else None),
        ("role", payload.role.value if payload.role else None),
    ]:
        if val is not None:
            fields.append(f"{col}=%s")
            params.append(val)

    if not fields:
        return existing

    params.append(user_id)
    return db.execute_returning_one(
        f"UPDATE users SET {', '.join(fields)} WHERE id=%s RETURNING {USER_COLUMNS}",
        params,
    )


@router.delete("/{user_id}", response_model=APIMessage, summary="Delete user")
def delete_user(user_id: int, current: Dict[str, Any] = Depends(require_admin)) -> APIMessage:
    """Admin: delete a user."""
    if current["id"] == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot delete themselves")
    affected = db.execute("DELETE FROM users WHERE id=%s", [user_id])
    if affected == 0:
        raise _not_found()
    logger.info("Deleted user %d", user_id)
    return APIMessage(message="Deleted")
