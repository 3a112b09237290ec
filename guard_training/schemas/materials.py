import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from .common import CamelModel


MONTH_PATTERN = re.compile(r"^(수시|([1-9]|1[0-2])월)$")


class QuizItem(CamelModel):
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=1)
    answer: int

    @model_validator(mode="after")
    def _answer_in_range(self):
        if not 0 <= self.answer < len(self.options):
            raise ValueError("answer must index one of the options")
        return self


class MaterialBase(CamelModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    type: Literal["card", "video"]
    month: str = "수시"
    video_url: Optional[str] = None
    video_urls: Optional[List[str]] = None
    card_images: Optional[List[str]] = None
    audio_urls: Optional[List[str]] = None
    quizzes: Optional[List[QuizItem]] = None

    @field_validator("month")
    @classmethod
    def _month(cls, v: str) -> str:
        v = (v or "수시").strip()
        if not MONTH_PATTERN.match(v):
            raise ValueError("month must be '수시' or '1월'..'12월'")
        return v


class MaterialCreate(MaterialBase):
    @model_validator(mode="after")
    def _content_for_type(self):
        if self.type == "card" and not [i for i in (self.card_images or []) if i and i.strip()]:
            raise ValueError("card materials need at least one image")
        if self.type == "video":
            urls = [u for u in (self.video_urls or []) if u and u.strip()]
            if not urls and not (self.video_url or "").strip():
                raise ValueError("video materials need at least one video URL")
        return self


class MaterialUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    month: Optional[str] = None
    video_url: Optional[str] = None
    video_urls: Optional[List[str]] = None
    card_images: Optional[List[str]] = None
    audio_urls: Optional[List[str]] = None
    quizzes: Optional[List[QuizItem]] = None

    @field_validator("month")
    @classmethod
    def _month(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not MONTH_PATTERN.match(v.strip()):
            raise ValueError("month must be '수시' or '1월'..'12월'")
        return v.strip() if v is not None else v


class MaterialResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    type: str
    month: str
    video_url: Optional[str] = None
    video_urls: List[str] = []
    card_images: List[str] = []
    audio_urls: List[str] = []
    quizzes: List[QuizItem] = []
    created_at: datetime
    updated_at: Optional[datetime] = None
