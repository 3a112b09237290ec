from datetime import datetime
from typing import List, Literal, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..auth.security import require_admin, require_guard
from ..db import get_db
from ..models.models import Site, TrainingMaterial, TrainingRecord, User
from ..playback.types import MaterialKind
from ..reports.pdf_records import create_records_pdf
from ..schemas.records import RecordCreate, RecordResponse, RecordWithGuard
from ..services.content_repository import ContentRepository
from ..services.records import query_records, to_local


router = APIRouter(prefix="/api/training-records", tags=["training-records"])


@router.get("", response_model=List[RecordWithGuard])
def list_records(
    site_id: Optional[str] = None,
    guard_id: Optional[str] = None,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return query_records(db, site_id=site_id, guard_id=guard_id, month=month, q=q)


@router.get("/my", response_model=List[RecordResponse])
def my_records(db: Session = Depends(get_db), guard: User = Depends(require_guard)):
    return (
        db.query(TrainingRecord)
        .filter(TrainingRecord.guard_id == guard.id)
        .order_by(TrainingRecord.completed_at.desc())
        .all()
    )


@router.post("", response_model=RecordResponse)
def create_record(body: RecordCreate, db: Session = Depends(get_db), guard: User = Depends(require_guard)):
    if body.passed is False:
        raise HTTPException(status_code=400, detail="Only passing attempts are recorded")
    if db.query(TrainingMaterial).filter(TrainingMaterial.id == body.material_id).first() is None:
        raise HTTPException(status_code=404, detail="Material not found")
    return ContentRepository(db).create_completion_record(
        guard.id,
        body.material_id,
        MaterialKind(body.material_type),
        body.material_title,
        score=body.score,
        passed=body.passed,
    )


@router.get("/export.pdf")
def export_pdf(
    scope: Literal["all", "guard", "site"] = "all",
    id: Optional[str] = None,
    site_id: Optional[str] = None,
    guard_id: Optional[str] = None,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    title = "교육 이수 내역"
    if scope != "all":
        if not id:
            raise HTTPException(status_code=400, detail="id is required for this scope")
        if scope == "guard":
            target = db.query(User).filter(User.id == id).first()
            if not target:
                raise HTTPException(status_code=404, detail="Guard not found")
            guard_id = id
        else:
            target = db.query(Site).filter(Site.id == id).first()
            if not target:
                raise HTTPException(status_code=404, detail="Site not found")
            site_id = id
        title = f"{target.name} - {title}"

    records = query_records(db, site_id=site_id, guard_id=guard_id, month=month, q=q)
    buffer = create_records_pdf(records, title=title)
    filename = f"{title}_{to_local(datetime.utcnow()).strftime('%Y-%m-%d')}.pdf"
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
