from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional

from homecare.core.constants import RoleEnum
from homecare.schemas.base import CamelModel

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("password")
    def validate_password(cls, v):
        if not v or not v.strip():
            raise ValueError("Password cannot be empty or contain only whitespace.")
        return v

class TokenPair(CamelModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None

class User(CamelModel):
    """Authenticated staff member as reported by the auth service."""
    id: str
    name: str
    email: Optional[str] = None
    role: RoleEnum

    @field_validator("role", mode="before")
    @classmethod
    def lower_role(cls, v):
        return v.lower() if isinstance(v, str) else v

class LoginResult(TokenPair):
    user: Optional[User] = None

class UserContext(BaseModel):
    user: User
    access_token: str
    refresh_token: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def role(self) -> RoleEnum:
        return self.user.role
