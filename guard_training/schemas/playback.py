from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


EventType = Literal[
    "audio_started",
    "audio_blocked",
    "audio_toggle",
    "audio_ended",
    "player_position",
    "video_playing",
    "video_paused",
    "video_progress",
    "video_ended",
    "video_error",
    "player_retry",
    "next",
    "previous",
    "start_quiz",
    "answer",
    "submit",
    "retry_quiz",
]


class PlaybackEvent(BaseModel):
    type: EventType
    # Non-finite numbers are rejected by the session (409)
    percent: Optional[float] = None
    position: Optional[float] = None
    duration: Optional[float] = None
    question: Optional[int] = Field(default=None, ge=0)
    option: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _payload(self):
        if self.type == "video_progress" and self.percent is None:
            raise ValueError("video_progress requires percent")
        if self.type == "player_position" and (self.position is None or self.duration is None):
            raise ValueError("player_position requires position and duration")
        if self.type == "answer" and (self.question is None or self.option is None):
            raise ValueError("answer requires question and option")
        return self
