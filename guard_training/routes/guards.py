from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session, joinedload

from ..auth.security import require_admin
from ..db import get_db
from ..models.models import Notification, Site, TrainingRecord, User
from ..schemas.guards import GuardCreate, GuardResponse, GuardUpdate, ImportSummary
from ..services.accounts import DuplicateUsername, create_guard, update_guard
from ..services.excel_import import ImportFormatError, import_guards


router = APIRouter(prefix="/api/guards", tags=["guards"])


def _check_site(db: Session, site_id):
    if site_id and db.query(Site).filter(Site.id == site_id).first() is None:
        raise HTTPException(status_code=400, detail="Unknown site")


@router.get("", response_model=List[GuardResponse])
def list_guards(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return (
        db.query(User)
        .options(joinedload(User.site))
        .filter(User.role == "guard")
        .order_by(User.created_at.desc())
        .all()
    )


@router.post("", response_model=GuardResponse)
def create(body: GuardCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    _check_site(db, body.site_id)
    try:
        return create_guard(
            db,
            name=body.name,
            phone=body.phone,
            company=body.company,
            site_id=body.site_id,
            username=body.username,
            password=body.password,
            role=body.role,
        )
    except DuplicateUsername:
        raise HTTPException(status_code=400, detail="Username already registered")


@router.patch("/{guard_id}", response_model=GuardResponse)
def update(guard_id: str, body: GuardUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    guard = db.query(User).filter(User.id == guard_id).first()
    if not guard:
        raise HTTPException(status_code=404, detail="Guard not found")
    fields = body.model_dump(exclude_unset=True)
    _check_site(db, fields.get("site_id"))
    try:
        return update_guard(
            db,
            guard,
            name=body.name,
            phone=body.phone,
            company=body.company,
            site_id=fields.get("site_id"),
            clear_site="site_id" in fields and not fields["site_id"],
        )
    except DuplicateUsername:
        raise HTTPException(status_code=400, detail="Username already registered")


@router.delete("/{guard_id}")
def delete(guard_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    guard = db.query(User).filter(User.id == guard_id).first()
    if not guard:
        raise HTTPException(status_code=404, detail="Guard not found")
    if guard.role == "admin":
        raise HTTPException(status_code=400, detail="Admin accounts cannot be deleted here")
    db.query(TrainingRecord).filter(TrainingRecord.guard_id == guard_id).delete(synchronize_session=False)
    db.query(Notification).filter(Notification.guard_id == guard_id).delete(synchronize_session=False)
    db.delete(guard)
    db.commit()
    return {"status": "ok"}


@router.post("/import", response_model=ImportSummary)
async def import_roster(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Upsert guards from an .xlsx roster (one sheet per company)."""
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")
    try:
        return import_guards(db, data)
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
