"""
Typed training content as seen by the playback state machine.

Values here are always fully normalized: the content repository converts
stored rows (which may carry JSON-encoded strings for list columns) into
these before anything else touches them.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, Any


class MaterialKind(str, Enum):
    CARD = "card"
    VIDEO = "video"


@dataclass(frozen=True)
class Slide:
    image: str
    audio: Optional[str] = None

    @property
    def has_audio(self) -> bool:
        return bool(self.audio)


@dataclass(frozen=True)
class QuizQuestion:
    question: str
    options: List[str]
    answer: int


@dataclass(frozen=True)
class Material:
    id: str
    title: str
    kind: MaterialKind
    slides: List[Slide] = field(default_factory=list)
    videos: List[str] = field(default_factory=list)
    quiz: List[QuizQuestion] = field(default_factory=list)

    @property
    def content_length(self) -> int:
        return len(self.slides) if self.kind == MaterialKind.CARD else len(self.videos)

    @property
    def playable(self) -> bool:
        return self.content_length > 0


@dataclass(frozen=True)
class QuizResult:
    score: int
    passed: bool


class CompletionWriter(Protocol):
    def __call__(
        self,
        guard_id: str,
        material_id: str,
        kind: MaterialKind,
        title: str,
        score: Optional[int] = None,
        passed: Optional[bool] = None,
    ) -> Any:
        ...
