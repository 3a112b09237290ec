from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from ..auth.security import get_current_user, require_admin
from ..db import get_db
from ..models.models import Site, User
from ..schemas.sites import SiteCreate, SiteResponse, SiteUpdate


router = APIRouter(prefix="/api/sites", tags=["sites"])


@router.get("", response_model=List[SiteResponse])
def list_sites(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return (
        db.query(Site)
        .options(selectinload(Site.guards))
        .order_by(Site.created_at.desc())
        .all()
    )


@router.post("", response_model=SiteResponse)
def create_site(body: SiteCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    site = Site(name=body.name.strip(), company=body.company, address=body.address)
    db.add(site)
    db.commit()
    db.refresh(site)
    return site


@router.patch("/{site_id}", response_model=SiteResponse)
def update_site(site_id: str, body: SiteUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    site = db.query(Site).filter(Site.id == site_id).first()
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(site, field, value)
    db.commit()
    db.refresh(site)
    return site


@router.delete("/{site_id}")
def delete_site(site_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    site = db.query(Site).filter(Site.id == site_id).first()
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")
    # Guards stay; they lose their site assignment
    db.query(User).filter(User.site_id == site_id).update({User.site_id: None}, synchronize_session=False)
    db.delete(site)
    db.commit()
    return {"status": "ok"}
