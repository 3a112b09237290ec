import mimetypes
import os
import uuid
from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from slugify import slugify
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..config import settings
from ..db import get_db
from ..models.models import FileObject, User
from ..schemas.files import UploadResponse, UploadUrlRequest, UploadUrlResponse
from ..storage.blob_provider import BlobStorageProvider
from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider


router = APIRouter(tags=["files"])
logger = structlog.get_logger(__name__)


def get_storage() -> StorageProvider:
    """Azure Blob when configured, local filesystem otherwise."""
    if settings.azure_blob_connection and settings.azure_blob_container:
        return BlobStorageProvider()
    return LocalStorageProvider()


def canonical_key(original_name: str, category: Optional[str] = None) -> str:
    now = datetime.utcnow()
    base, ext = os.path.splitext(original_name or "upload")
    safe_name = slugify(base) or "file"
    folder = slugify(category or "materials")
    return f"/{folder}/{now.strftime('%Y')}/{now.strftime('%Y-%m-%d')}_{uuid.uuid4().hex[:8]}_{safe_name}{ext.lower()}"


@router.post("/api/uploads", response_model=UploadResponse)
async def upload_proxy(
    file: UploadFile = File(...),
    category: str = Form("materials"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    storage: StorageProvider = Depends(get_storage),
):
    """Receive the file and store it through the configured provider."""
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    original_name = file.filename or "upload"
    content_type = file.content_type or mimetypes.guess_type(original_name)[0] or "application/octet-stream"
    key = canonical_key(original_name, category)
    try:
        storage.copy_in(content, key, content_type=content_type)
    except Exception as e:
        logger.warning("upload_failed", key=key, error=str(e))
        raise HTTPException(status_code=502, detail=f"Failed to store file: {e}")

    fo = FileObject(
        provider=storage.name,
        container=storage.container,
        key=key,
        size_bytes=len(content),
        content_type=content_type,
        original_name=original_name,
        created_by=admin.id,
    )
    db.add(fo)
    db.commit()
    db.refresh(fo)
    return UploadResponse(id=fo.id, key=key, object_path=storage.public_url(key))


@router.post("/api/uploads/request-url", response_model=UploadUrlResponse)
def request_upload_url(
    req: UploadUrlRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    storage: StorageProvider = Depends(get_storage),
):
    key = canonical_key(req.name)
    upload_url = storage.generate_upload_url(key, req.content_type, expires_s=settings.upload_url_ttl_seconds)
    db.add(FileObject(
        provider=storage.name,
        container=storage.container,
        key=key,
        size_bytes=req.size,
        content_type=req.content_type,
        original_name=req.name,
        created_by=admin.id,
    ))
    db.commit()
    return UploadUrlResponse(upload_url=upload_url, object_path=storage.public_url(key), key=key)


@router.get("/files/local/{key:path}")
def serve_local(key: str):
    path = LocalStorageProvider().path_for(key)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type=mimetypes.guess_type(path.name)[0] or "application/octet-stream")
