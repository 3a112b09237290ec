from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from .common import CamelModel
from .guards import GuardSite


class RecordCreate(CamelModel):
    material_id: str = Field(min_length=1)
    material_type: Literal["card", "video"]
    material_title: str = Field(min_length=1)
    score: Optional[int] = Field(default=None, ge=0, le=100)
    passed: Optional[bool] = None


class RecordGuard(CamelModel):
    id: str
    name: str
    phone: Optional[str] = None
    company: Optional[str] = None
    site: Optional[GuardSite] = None

    class Config:
        from_attributes = True


class RecordResponse(CamelModel):
    id: str
    guard_id: str
    material_id: str
    material_type: str
    material_title: str
    completed_at: datetime
    score: Optional[int] = None
    passed: Optional[bool] = None

    class Config:
        from_attributes = True


class RecordWithGuard(RecordResponse):
    guard: Optional[RecordGuard] = None
