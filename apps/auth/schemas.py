from pydantic import BaseModel, Field
from typing import Optional

from apps.auth.permissions import PositionPermissions


class UserBase(BaseModel):
    id: int
    username: str
    name: str
    email: Optional[str] = None
    dept: Optional[str] = None
    position: Optional[str] = None
    role: str = 'user'


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = None
    dept: Optional[str] = None
    position: Optional[str] = None
    role: str = 'user'
    password: str = Field(..., min_length=1)


class UserMe(UserBase):
    permissions: PositionPermissions


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    username: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(Token):
    user: UserMe


class UserSession(BaseModel):
    """The authenticated actor, passed explicitly to every workflow operation."""
    user_id: int
    username: str
    name: str
    dept: Optional[str] = None
    position: Optional[str] = None
    permissions: PositionPermissions

    model_config = {"frozen": True}
