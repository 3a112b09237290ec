from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from .common import CamelModel
from .sites import Company


class GuardCreate(CamelModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    company: Optional[Company] = None
    site_id: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    role: Literal["admin", "guard"] = "guard"


class GuardUpdate(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[Company] = None
    site_id: Optional[str] = None


class GuardSite(CamelModel):
    id: str
    name: str
    company: str

    class Config:
        from_attributes = True


class GuardResponse(CamelModel):
    id: str
    username: str
    name: str
    phone: Optional[str] = None
    role: str
    company: Optional[str] = None
    site_id: Optional[str] = None
    site: Optional[GuardSite] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ImportSummary(CamelModel):
    created: int
    updated: int
    skipped: int
    errors: int
    error_messages: List[str] = []
