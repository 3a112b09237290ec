import json
from datetime import datetime
from typing import Any, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import Notification, TrainingMaterial, TrainingRecord
from ..playback.types import Material, MaterialKind, QuizQuestion, Slide


logger = structlog.get_logger(__name__)


class MaterialNotFound(LookupError):
    pass


def _as_list(value: Any) -> List[Any]:
    """List columns may be stored as arrays or as JSON-encoded strings (legacy rows)."""
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            value = json.loads(text)
        except ValueError:
            return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def video_sequence(row: TrainingMaterial) -> List[str]:
    urls = [str(u).strip() for u in _as_list(row.video_urls) if u is not None]
    urls = [u for u in urls if u]
    if urls:
        return urls
    single = (row.video_url or "").strip()
    return [single] if single else []


def card_slides(row: TrainingMaterial) -> List[Slide]:
    images = [str(i).strip() for i in _as_list(row.card_images) if i]
    audio = _as_list(row.audio_urls)
    slides = []
    for idx, image in enumerate(images):
        if not image:
            continue
        clip = audio[idx] if idx < len(audio) else None
        clip = str(clip).strip() if clip else None
        slides.append(Slide(image=image, audio=clip or None))
    return slides


def quiz_questions(row: TrainingMaterial) -> List[QuizQuestion]:
    questions = []
    for item in _as_list(row.quizzes):
        if not isinstance(item, dict):
            continue
        options = [str(o) for o in (item.get("options") or [])]
        try:
            answer = int(item.get("answer"))
        except (TypeError, ValueError):
            continue
        if not options or not 0 <= answer < len(options):
            continue
        questions.append(QuizQuestion(question=str(item.get("question") or ""), options=options, answer=answer))
    return questions


def to_material(row: TrainingMaterial) -> Material:
    kind = MaterialKind(row.type)
    return Material(
        id=str(row.id),
        title=row.title,
        kind=kind,
        slides=card_slides(row) if kind == MaterialKind.CARD else [],
        videos=video_sequence(row) if kind == MaterialKind.VIDEO else [],
        quiz=quiz_questions(row),
    )


class ContentRepository:
    """Reads materials as typed playback content and writes completion records."""

    def __init__(self, db: Session):
        self.db = db

    def get_material(self, material_id: str) -> Material:
        row = self.db.query(TrainingMaterial).filter(TrainingMaterial.id == str(material_id)).first()
        if row is None:
            raise MaterialNotFound(material_id)
        return to_material(row)

    def list_materials_for_guard(self) -> List[Material]:
        rows = self.db.query(TrainingMaterial).order_by(TrainingMaterial.created_at.desc()).all()
        return [to_material(r) for r in rows]

    def create_completion_record(
        self,
        guard_id: str,
        material_id: str,
        kind: MaterialKind,
        title: str,
        score: Optional[int] = None,
        passed: Optional[bool] = None,
    ) -> TrainingRecord:
        record = TrainingRecord(
            guard_id=str(guard_id),
            material_id=str(material_id),
            material_type=MaterialKind(kind).value,
            material_title=title,
            score=score,
            passed=passed,
            completed_at=datetime.utcnow(),
        )
        try:
            self.db.add(record)
            # Completing a material clears its pending notice
            self.db.query(Notification).filter(
                Notification.guard_id == str(guard_id),
                Notification.material_id == str(material_id),
            ).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(record)
        logger.info("training_record_created", guard_id=str(guard_id), material_id=str(material_id), score=score)
        return record


def material_payload(row: TrainingMaterial) -> dict:
    """Wire shape of a material with list columns normalized."""
    return {
        "id": row.id,
        "title": row.title,
        "description": row.description,
        "type": row.type,
        "month": row.month,
        "video_url": row.video_url,
        "video_urls": [str(u) for u in _as_list(row.video_urls)],
        "card_images": [str(i) for i in _as_list(row.card_images)],
        "audio_urls": [str(a) if a else "" for a in _as_list(row.audio_urls)],
        "quizzes": [
            {"question": q.question, "options": q.options, "answer": q.answer}
            for q in quiz_questions(row)
        ],
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }
