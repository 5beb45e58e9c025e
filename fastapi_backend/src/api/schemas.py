from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserRole(str, Enum):
    user = "user"
    admin = "admin"


class AdminAccountSpec(BaseModel):
    """Default administrative account, read once from the environment."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    # Plain str: seeding must not be blocked by strict address validation.
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    role: str = Field("admin", min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        # Stored and looked up lowercased, like every email the API accepts.
        return value.strip().lower()


class APIMessage(BaseModel):
    message: str = Field(..., description="Human readable message")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Always 'healthy' while the process serves requests")


class User(BaseModel):
    id: int
    name: str
    email: str
    role: str


class TokenResponse(BaseModel):
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type (bearer)")
    user: User


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Display name")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="Password (min 6 chars)")


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="Password")


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.user


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None
