"""
Guard training playback.

A PlaybackSession drives one guard through one Material: it sequences the
card slides or videos, gates forward movement on audio completion or video
progress, administers the quiz, and issues exactly one completion write
for a passing attempt. Sessions live only in memory.
"""
import functools
import math
import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import structlog

from ..config import settings
from .media import EmbeddedPlayer, ProgressPoller, ReportedPlayer, Scheduler, extract_video_id, player_reader
from .types import CompletionWriter, Material, MaterialKind, QuizQuestion, QuizResult


logger = structlog.get_logger(__name__)


class Step(str, Enum):
    CONTENT = "content"
    QUIZ = "quiz"
    RESULT = "result"


class CompletionStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    SAVED = "saved"
    FAILED = "failed"


class PlaybackError(Exception):
    """An event that is not valid in the session's current state."""


def score_quiz(questions: Sequence[QuizQuestion], answers: Sequence[Optional[int]], passing_score: int = 60) -> QuizResult:
    total = len(questions)
    if total == 0:
        raise ValueError("cannot score an empty quiz")
    correct = sum(1 for q, a in zip(questions, answers) if a is not None and a == q.answer)
    # Round half up
    score = (200 * correct + total) // (2 * total)
    return QuizResult(score=score, passed=score >= passing_score)


def _transition(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            if self.closed:
                raise PlaybackError("Session is closed")
            return method(self, *args, **kwargs)

    return wrapper


class PlaybackSession:
    def __init__(
        self,
        material: Material,
        guard_id: str,
        completion_writer: CompletionWriter,
        *,
        passing_score: Optional[int] = None,
        unlock_percent: Optional[float] = None,
        poll_interval_s: Optional[float] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        if not guard_id:
            raise PlaybackError("A signed-in guard is required")
        if not material.playable:
            raise PlaybackError("Material has no playable content")

        self.material = material
        self.guard_id = guard_id
        self.completion_writer = completion_writer
        self.passing_score = settings.quiz_passing_score if passing_score is None else passing_score
        self.unlock_percent = settings.video_unlock_percent if unlock_percent is None else unlock_percent
        self._poll_interval_s = settings.player_poll_interval_s if poll_interval_s is None else poll_interval_s
        self._scheduler = scheduler
        self._lock = threading.RLock()

        self.step = Step.CONTENT
        self.content_cursor = 0
        self.per_slide_unlocked = False
        self.audio_playing = False
        self.video_progress_percent = 0.0
        self.video_unlocked = False
        self.has_played = False
        self.player_error = False
        self.quiz_answers: List[Optional[int]] = [None] * len(material.quiz)
        self.result: Optional[QuizResult] = None
        self.completion_status = CompletionStatus.NONE
        self.completion_error: Optional[str] = None
        self.completion_record: Any = None
        self.closed = False

        self._player: Optional[EmbeddedPlayer] = None
        self._poller: Optional[ProgressPoller] = None
        self._enter_content_item()

    # ------------------------------------------------------------------
    # Derived state

    @property
    def is_card(self) -> bool:
        return self.material.kind == MaterialKind.CARD

    @property
    def is_last_item(self) -> bool:
        return self.content_cursor == self.material.content_length - 1

    @property
    def current_has_audio(self) -> bool:
        return self.is_card and self.material.slides[self.content_cursor].has_audio

    @property
    def current_video_url(self) -> Optional[str]:
        if self.is_card:
            return None
        return self.material.videos[self.content_cursor]

    @property
    def can_proceed(self) -> bool:
        if self.step != Step.CONTENT:
            return False
        if self.is_card:
            return self.per_slide_unlocked
        return self.video_unlocked and not self.player_error

    @property
    def can_take_quiz(self) -> bool:
        return self.can_proceed and self.is_last_item

    @property
    def can_submit(self) -> bool:
        return self.step == Step.QUIZ and all(a is not None for a in self.quiz_answers)

    @property
    def can_retry_quiz(self) -> bool:
        return self.step == Step.RESULT and self.result is not None and not self.result.passed and bool(self.material.quiz)

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.running

    # ------------------------------------------------------------------
    # Content navigation

    def _enter_content_item(self) -> None:
        self._stop_polling()
        if self.is_card:
            # Slides with narration start locked; autoplay outcome arrives as an event
            self.per_slide_unlocked = not self.current_has_audio
            self.audio_playing = False
        else:
            self.video_progress_percent = 0.0
            self.video_unlocked = False
            self.has_played = False
            self.player_error = False
            if isinstance(self._player, ReportedPlayer):
                self._player.reset()

    @_transition
    def next(self, writer: Optional[CompletionWriter] = None) -> None:
        self._require_step(Step.CONTENT)
        if not self.can_proceed:
            raise PlaybackError("Current content has not been completed yet")
        if self.is_last_item:
            self._finish_content(writer)
            return
        self.content_cursor += 1
        self._enter_content_item()

    @_transition
    def previous(self) -> None:
        self._require_step(Step.CONTENT)
        if self.content_cursor == 0:
            raise PlaybackError("Already at the first item")
        self.content_cursor -= 1
        self._enter_content_item()

    @_transition
    def start_quiz(self, writer: Optional[CompletionWriter] = None) -> None:
        self._require_step(Step.CONTENT)
        if not self.can_take_quiz:
            raise PlaybackError("All content must be completed before the quiz")
        self._finish_content(writer)

    def _finish_content(self, writer: Optional[CompletionWriter]) -> None:
        self._stop_polling()
        if not self.material.quiz:
            # No quiz to take: completing the content is a pass
            self.result = QuizResult(score=100, passed=True)
            self.step = Step.RESULT
            self._commit_completion(writer)
            return
        self.quiz_answers = [None] * len(self.material.quiz)
        self.result = None
        self.step = Step.QUIZ

    # ------------------------------------------------------------------
    # Card audio

    def _require_audio(self) -> None:
        self._require_step(Step.CONTENT)
        if not self.current_has_audio:
            raise PlaybackError("Current slide has no audio")

    @_transition
    def audio_started(self) -> None:
        self._require_audio()
        self.audio_playing = True

    @_transition
    def audio_blocked(self) -> None:
        """Autoplay was refused; the slide stays locked until a manual play ends."""
        self._require_audio()
        self.audio_playing = False

    @_transition
    def audio_toggle(self) -> None:
        self._require_audio()
        self.audio_playing = not self.audio_playing

    @_transition
    def audio_ended(self) -> None:
        self._require_audio()
        self.audio_playing = False
        self.per_slide_unlocked = True

    # ------------------------------------------------------------------
    # Video

    def _require_video(self) -> None:
        self._require_step(Step.CONTENT)
        if self.is_card:
            raise PlaybackError("Material is not a video")

    @_transition
    def attach_player(self, player: EmbeddedPlayer) -> None:
        self._require_video()
        self._stop_polling()
        self._player = player

    @_transition
    def player_position(self, position: float, duration: float) -> None:
        """Client-forwarded clock of the embedded player, sampled by the poller."""
        self._require_video()
        if not isinstance(self._player, ReportedPlayer):
            raise PlaybackError("No reporting player is attached")
        position, duration = float(position), float(duration)
        if not (math.isfinite(position) and math.isfinite(duration)) or position < 0 or duration < 0:
            raise PlaybackError("Player position must be a finite, non-negative number")
        self._player.report(position, duration)

    @_transition
    def video_playing(self) -> None:
        self._require_video()
        if self.player_error:
            raise PlaybackError("Player is in an error state; retry first")
        self.has_played = True
        if self._player is not None and extract_video_id(self.current_video_url):
            self._start_polling()

    @_transition
    def video_paused(self) -> None:
        self._require_video()
        self._stop_polling()

    @_transition
    def video_progress(self, percent: float) -> None:
        self._require_video()
        percent = float(percent)
        # NaN would survive the clamp below as 100
        if not math.isfinite(percent):
            raise PlaybackError("Progress must be a finite number")
        if self.player_error:
            return
        percent = max(0.0, min(100.0, percent))
        self.has_played = True
        if percent > self.video_progress_percent:
            self.video_progress_percent = percent
        if self.video_progress_percent >= self.unlock_percent:
            self.video_unlocked = True

    @_transition
    def video_ended(self) -> None:
        self._require_video()
        self._stop_polling()
        if self.player_error:
            return
        self.has_played = True
        self.video_progress_percent = 100.0
        self.video_unlocked = True

    @_transition
    def video_error(self) -> None:
        self._require_video()
        self._stop_polling()
        self.player_error = True
        logger.info("playback_player_error", material_id=self.material.id, video=self.content_cursor)

    @_transition
    def player_retry(self) -> None:
        self._require_video()
        self.player_error = False

    def _start_polling(self) -> None:
        self._stop_polling()
        cursor = self.content_cursor

        def _on_progress(percent: float) -> None:
            with self._lock:
                # Drop ticks that outlived their video
                if self.closed or self.step != Step.CONTENT or self.content_cursor != cursor:
                    return
                self.video_progress(percent)

        self._poller = ProgressPoller(
            player_reader(self._player),
            _on_progress,
            interval_s=self._poll_interval_s,
            scheduler=self._scheduler,
        )
        self._poller.start()

    def _stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

    # ------------------------------------------------------------------
    # Quiz

    @_transition
    def answer(self, question: int, option: int) -> None:
        self._require_step(Step.QUIZ)
        if not 0 <= question < len(self.material.quiz):
            raise PlaybackError(f"No question at index {question}")
        if not 0 <= option < len(self.material.quiz[question].options):
            raise PlaybackError(f"No option {option} for question {question}")
        self.quiz_answers[question] = option

    @_transition
    def submit(self, writer: Optional[CompletionWriter] = None) -> QuizResult:
        self._require_step(Step.QUIZ)
        if not self.can_submit:
            raise PlaybackError("Every question must be answered before submitting")
        self.result = score_quiz(self.material.quiz, self.quiz_answers, self.passing_score)
        self.step = Step.RESULT
        logger.info(
            "playback_quiz_submitted",
            material_id=self.material.id,
            guard_id=self.guard_id,
            score=self.result.score,
            passed=self.result.passed,
        )
        if self.result.passed:
            self._commit_completion(writer)
        return self.result

    @_transition
    def retry_quiz(self) -> None:
        if not self.can_retry_quiz:
            raise PlaybackError("Quiz can only be retried after a failed attempt")
        self.quiz_answers = [None] * len(self.material.quiz)
        self.result = None
        self.step = Step.QUIZ

    def _commit_completion(self, writer: Optional[CompletionWriter]) -> None:
        writer = writer or self.completion_writer
        self.completion_status = CompletionStatus.PENDING
        try:
            self.completion_record = writer(
                self.guard_id,
                self.material.id,
                self.material.kind,
                self.material.title,
                score=self.result.score,
                passed=self.result.passed,
            )
        except Exception as e:
            # Reported to the guard; there is no automatic retry
            self.completion_status = CompletionStatus.FAILED
            self.completion_error = str(e) or e.__class__.__name__
            logger.warning(
                "playback_completion_write_failed",
                material_id=self.material.id,
                guard_id=self.guard_id,
                error=self.completion_error,
            )
            return
        self.completion_status = CompletionStatus.SAVED
        self.completion_error = None

    # ------------------------------------------------------------------

    def _require_step(self, step: Step) -> None:
        if self.step != step:
            raise PlaybackError(f"Not allowed during the {self.step.value} step")

    def close(self) -> None:
        with self._lock:
            self._stop_polling()
            self._player = None
            self.closed = True

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            data: Dict[str, Any] = {
                "material_id": self.material.id,
                "material_type": self.material.kind.value,
                "title": self.material.title,
                "step": self.step.value,
                "content_cursor": self.content_cursor,
                "content_count": self.material.content_length,
                "can_proceed": self.can_proceed,
                "can_take_quiz": self.can_take_quiz,
                "question_count": len(self.material.quiz),
                "quiz_answers": list(self.quiz_answers),
                "can_submit": self.can_submit,
                "can_retry_quiz": self.can_retry_quiz,
                "result": {"score": self.result.score, "passed": self.result.passed} if self.result else None,
                "completion_status": self.completion_status.value,
                "completion_error": self.completion_error,
            }
            if self.is_card:
                slide = self.material.slides[self.content_cursor]
                data.update({
                    "image": slide.image,
                    "audio": slide.audio,
                    "audio_controls": slide.has_audio,
                    "audio_playing": self.audio_playing,
                    "slide_unlocked": self.per_slide_unlocked,
                })
            else:
                url = self.current_video_url
                video_id = extract_video_id(url)
                data.update({
                    "video_url": url,
                    "video_id": video_id,
                    "embedded": video_id is not None,
                    "video_progress_percent": round(self.video_progress_percent, 2),
                    "has_played": self.has_played,
                    "player_error": self.player_error,
                    "polling": self.polling,
                })
            return data
