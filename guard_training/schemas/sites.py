from datetime import datetime
from typing import List, Literal, Optional

from .common import CamelModel


Company = Literal["mirae_abm", "dawon_pmc"]


class SiteCreate(CamelModel):
    name: str
    company: Company
    address: Optional[str] = None


class SiteUpdate(CamelModel):
    name: Optional[str] = None
    company: Optional[Company] = None
    address: Optional[str] = None


class SiteGuard(CamelModel):
    id: str
    name: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class SiteResponse(CamelModel):
    id: str
    name: str
    company: str
    address: Optional[str] = None
    created_at: datetime
    guards: List[SiteGuard] = []

    class Config:
        from_attributes = True


class SiteStat(CamelModel):
    id: str
    name: str
    company: str
    completion_rate: int
    total_guards: int
    completed: int
