"""
Guard playback sessions driven over REST.

The client reports media events (audio ended, video progress, the
embedded player clock, player errors) and navigation intents; the
server-side session decides what is allowed and writes the completion
record on a pass. Embedded videos are polled server-side from the last
reported player clock.
"""
import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import require_guard
from ..db import get_db
from ..models.models import User
from ..playback.hub import hub
from ..playback.machine import CompletionStatus, PlaybackError, PlaybackSession
from ..playback.media import ReportedPlayer
from ..playback.types import CompletionWriter, MaterialKind
from ..schemas.playback import PlaybackEvent
from ..services.content_repository import ContentRepository, MaterialNotFound


router = APIRouter(prefix="/api/playback", tags=["playback"])
logger = structlog.get_logger(__name__)


def _session_or_404(guard: User, material_id: str) -> PlaybackSession:
    session = hub.get(guard.id, material_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No open playback session for this material")
    return session


def _dispatch(session: PlaybackSession, event: PlaybackEvent, writer: CompletionWriter) -> None:
    if event.type == "video_progress":
        session.video_progress(event.percent)
    elif event.type == "player_position":
        session.player_position(event.position, event.duration)
    elif event.type == "answer":
        session.answer(event.question, event.option)
    elif event.type in ("next", "start_quiz", "submit"):
        # Completion writes go through this request's database session
        getattr(session, event.type)(writer=writer)
    else:
        getattr(session, event.type)()


@router.post("/{material_id}")
def open_session(material_id: str, db: Session = Depends(get_db), guard: User = Depends(require_guard)):
    repo = ContentRepository(db)
    try:
        material = repo.get_material(material_id)
    except MaterialNotFound:
        raise HTTPException(status_code=404, detail="Material not found")
    try:
        session = PlaybackSession(material, guard.id, repo.create_completion_record)
    except PlaybackError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if material.kind == MaterialKind.VIDEO:
        session.attach_player(ReportedPlayer())
    hub.open(session)
    logger.info("playback_opened", material_id=material_id, guard_id=guard.id)
    return session.snapshot()


@router.get("/{material_id}")
def get_session(material_id: str, guard: User = Depends(require_guard)):
    return _session_or_404(guard, material_id).snapshot()


@router.delete("/{material_id}")
def abandon_session(material_id: str, guard: User = Depends(require_guard)):
    if not hub.discard(guard.id, material_id):
        raise HTTPException(status_code=404, detail="No open playback session for this material")
    return {"status": "ok"}


@router.post("/{material_id}/events")
def post_event(
    material_id: str,
    event: PlaybackEvent,
    db: Session = Depends(get_db),
    guard: User = Depends(require_guard),
):
    session = _session_or_404(guard, material_id)
    writer = ContentRepository(db).create_completion_record
    try:
        _dispatch(session, event, writer)
    except PlaybackError as e:
        raise HTTPException(status_code=409, detail=str(e))
    snapshot = session.snapshot()
    if session.completion_status == CompletionStatus.SAVED:
        hub.discard(guard.id, material_id)
    return snapshot
