from typing import Optional

from pydantic import Field

from .common import CamelModel


class UploadUrlRequest(CamelModel):
    name: str = Field(min_length=1)
    size: Optional[int] = Field(default=None, ge=0)
    content_type: str = "application/octet-stream"


class UploadUrlResponse(CamelModel):
    upload_url: str = Field(alias="uploadURL")
    object_path: str
    key: str


class UploadResponse(CamelModel):
    id: str
    key: str
    object_path: str
