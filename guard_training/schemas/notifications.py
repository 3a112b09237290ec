from datetime import datetime
from typing import Optional

from .common import CamelModel
from .materials import MaterialResponse


class NotificationResponse(CamelModel):
    id: str
    guard_id: str
    material_id: str
    is_read: bool
    created_at: datetime
    material: Optional[MaterialResponse] = None
