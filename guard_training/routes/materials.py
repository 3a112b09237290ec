from datetime import datetime
from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_admin
from ..db import get_db
from ..models.models import Notification, TrainingMaterial, TrainingRecord, User
from ..playback.hub import hub
from ..schemas.materials import MaterialCreate, MaterialResponse, MaterialUpdate
from ..services.content_repository import material_payload
from ..services.notifications import fan_out_material


router = APIRouter(prefix="/api/materials", tags=["materials"])
logger = structlog.get_logger(__name__)


def _clean_urls(urls):
    if urls is None:
        return None
    return [u.strip() for u in urls if u and u.strip()]


@router.get("", response_model=List[MaterialResponse])
def list_materials(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = db.query(TrainingMaterial).order_by(TrainingMaterial.created_at.desc()).all()
    return [material_payload(r) for r in rows]


@router.get("/{material_id}", response_model=MaterialResponse)
def get_material(material_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    row = db.query(TrainingMaterial).filter(TrainingMaterial.id == material_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Material not found")
    return material_payload(row)


@router.post("", response_model=MaterialResponse)
def create_material(body: MaterialCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    row = TrainingMaterial(
        title=body.title.strip(),
        description=body.description,
        type=body.type,
        month=body.month,
        video_url=(body.video_url or "").strip() or None,
        video_urls=_clean_urls(body.video_urls) or [],
        card_images=_clean_urls(body.card_images) or [],
        audio_urls=[(a or "").strip() for a in (body.audio_urls or [])],
        quizzes=[q.model_dump() for q in (body.quizzes or [])],
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    fan_out_material(db, row.id)
    logger.info("material_created", material_id=row.id, type=row.type)
    return material_payload(row)


@router.patch("/{material_id}", response_model=MaterialResponse)
def update_material(
    material_id: str,
    body: MaterialUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    row = db.query(TrainingMaterial).filter(TrainingMaterial.id == material_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Material not found")
    fields = body.model_dump(exclude_unset=True)
    for key in ("video_urls", "card_images"):
        if key in fields:
            fields[key] = _clean_urls(fields[key]) or []
    if "audio_urls" in fields:
        fields["audio_urls"] = [(a or "").strip() for a in (fields["audio_urls"] or [])]
    if "quizzes" in fields:
        fields["quizzes"] = fields["quizzes"] or []
    for key, value in fields.items():
        setattr(row, key, value)
    if row.type == "card" and not row.card_images:
        raise HTTPException(status_code=400, detail="card materials need at least one image")
    if row.type == "video" and not (row.video_urls or (row.video_url or "").strip()):
        raise HTTPException(status_code=400, detail="video materials need at least one video URL")
    row.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(row)
    return material_payload(row)


@router.delete("/{material_id}")
def delete_material(material_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    row = db.query(TrainingMaterial).filter(TrainingMaterial.id == material_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Material not found")
    db.query(Notification).filter(Notification.material_id == material_id).delete(synchronize_session=False)
    db.query(TrainingRecord).filter(TrainingRecord.material_id == material_id).delete(synchronize_session=False)
    db.delete(row)
    db.commit()
    hub.discard_material(material_id)
    return {"status": "ok"}
