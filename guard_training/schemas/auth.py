from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .common import CamelModel


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: Literal["admin", "guard"] = "guard"


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(CamelModel):
    id: str
    username: str
    name: str
    role: str
    company: Optional[str] = None
    phone: Optional[str] = None
    site_id: Optional[str] = None
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True
