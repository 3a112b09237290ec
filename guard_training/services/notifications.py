from typing import List

import structlog
from sqlalchemy.orm import Session

from ..models.models import Notification, User


logger = structlog.get_logger(__name__)


def fan_out_material(db: Session, material_id: str) -> int:
    """Queue one unread notification per guard for a newly created material."""
    guard_ids = [row[0] for row in db.query(User.id).filter(User.role == "guard").all()]
    for guard_id in guard_ids:
        db.add(Notification(guard_id=guard_id, material_id=material_id, is_read=False))
    db.commit()
    logger.info("material_notifications_created", material_id=material_id, count=len(guard_ids))
    return len(guard_ids)


def list_for_guard(db: Session, guard_id: str) -> List[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.guard_id == guard_id)
        .order_by(Notification.created_at.desc())
        .all()
    )


def mark_all_read(db: Session, guard_id: str) -> int:
    count = (
        db.query(Notification)
        .filter(Notification.guard_id == guard_id, Notification.is_read == False)  # noqa: E712
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return count
