from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import Site, TrainingMaterial, TrainingRecord, User


def completion_rate(completed: int, required: int) -> int:
    """Percentage rounded half up; 0 when nothing is required."""
    if required <= 0:
        return 0
    return (200 * completed + required) // (2 * required)


def site_completion_stats(db: Session) -> List[Dict]:
    material_count = db.query(func.count(TrainingMaterial.id)).scalar() or 0
    guard_counts = dict(
        db.query(User.site_id, func.count(User.id))
        .filter(User.role == "guard", User.site_id.isnot(None))
        .group_by(User.site_id)
        .all()
    )
    completed_counts = dict(
        db.query(User.site_id, func.count(TrainingRecord.id))
        .join(TrainingRecord, TrainingRecord.guard_id == User.id)
        .filter(User.role == "guard", User.site_id.isnot(None))
        .group_by(User.site_id)
        .all()
    )
    out = []
    for site in db.query(Site).all():
        guards = guard_counts.get(site.id, 0)
        completed = completed_counts.get(site.id, 0)
        out.append({
            "id": site.id,
            "name": site.name,
            "company": site.company,
            "completion_rate": completion_rate(completed, guards * material_count),
            "total_guards": guards,
            "completed": completed,
        })
    out.sort(key=lambda s: s["completion_rate"], reverse=True)
    return out
