from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db
from ..models.models import User
from ..schemas.sites import SiteStat
from ..services.stats import site_completion_stats


router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("/sites", response_model=List[SiteStat])
def site_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Per-site completion rate, highest first."""
    return site_completion_stats(db)
