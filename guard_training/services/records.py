from datetime import datetime, timezone
from typing import List, Optional

import pytz
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..models.models import TrainingRecord, User


def to_local(dt: datetime) -> datetime:
    """Stored timestamps are UTC (naive on SQLite); convert to the configured zone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(pytz.timezone(settings.tz_default))


def query_records(
    db: Session,
    site_id: Optional[str] = None,
    guard_id: Optional[str] = None,
    month: Optional[int] = None,
    q: Optional[str] = None,
) -> List[TrainingRecord]:
    query = (
        db.query(TrainingRecord)
        .options(joinedload(TrainingRecord.guard).joinedload(User.site))
        .order_by(TrainingRecord.completed_at.desc())
    )
    if guard_id:
        query = query.filter(TrainingRecord.guard_id == guard_id)
    if site_id:
        query = query.join(User, TrainingRecord.guard_id == User.id).filter(User.site_id == site_id)
    records = query.all()

    if month:
        records = [r for r in records if to_local(r.completed_at).month == month]
    if q:
        needle = q.strip().lower()
        records = [
            r for r in records
            if needle in (r.material_title or "").lower()
            or (r.guard is not None and needle in (r.guard.name or "").lower())
        ]
    return records
