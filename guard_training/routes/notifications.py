from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import Notification, User
from ..schemas.notifications import NotificationResponse
from ..services.content_repository import material_payload
from ..services.notifications import list_for_guard, mark_all_read


router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def my_notifications(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    out = []
    for n in list_for_guard(db, user.id):
        out.append({
            "id": n.id,
            "guard_id": n.guard_id,
            "material_id": n.material_id,
            "is_read": n.is_read,
            "created_at": n.created_at,
            "material": material_payload(n.material) if n.material is not None else None,
        })
    return out


@router.post("/read-all")
def read_all(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = mark_all_read(db, user.id)
    return {"status": "ok", "updated": count}


def _own_notification(db: Session, notification_id: str, user: User) -> Notification:
    n = db.query(Notification).filter(Notification.id == notification_id).first()
    if not n or n.guard_id != user.id:
        raise HTTPException(status_code=404, detail="Notification not found")
    return n


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = _own_notification(db, notification_id, user)
    n.is_read = True
    db.commit()
    return {"status": "ok"}


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = _own_notification(db, notification_id, user)
    db.delete(n)
    db.commit()
    return {"status": "ok"}
