import math
import re
import threading
from typing import Callable, Optional, Protocol, Tuple


# Bare 11-char id, or an id following youtu.be/, /v/, /u/<x>/, /embed/, watch?v= or &v=
_VIDEO_ID_PATTERN = re.compile(
    r"^(?:.*(?:youtu\.be/|/v/|/u/\w/|/embed/|watch\?v=|&v=))?([A-Za-z0-9_-]{11})(?:[#&?/].*)?$"
)


def extract_video_id(url: str) -> Optional[str]:
    """Return the embedded-player video id for a URL, or None for a direct media file."""
    if not url:
        return None
    match = _VIDEO_ID_PATTERN.match(url.strip())
    return match.group(1) if match else None


def is_embedded(url: str) -> bool:
    return extract_video_id(url) is not None


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


def thread_scheduler(interval_s: float, fn: Callable[[], None]) -> Cancellable:
    timer = threading.Timer(interval_s, fn)
    timer.daemon = True
    timer.start()
    return timer


class EmbeddedPlayer(Protocol):
    def current_time(self) -> float:
        ...

    def duration(self) -> float:
        ...


class ProgressPoller:
    """
    Fixed-interval progress polling for embedded players, which do not emit
    fine-grained progress events. Owned by exactly one playback session and
    one video; stop() must be called on pause, end, error and video change.
    """

    def __init__(
        self,
        read_position: Callable[[], Tuple[float, float]],
        on_progress: Callable[[float], None],
        interval_s: float = 1.0,
        scheduler: Optional[Scheduler] = None,
    ):
        self._read_position = read_position
        self._on_progress = on_progress
        self._interval_s = interval_s
        self._scheduler = scheduler or thread_scheduler
        self._handle: Optional[Cancellable] = None
        self._running = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._handle = self._scheduler(self._interval_s, self._tick)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _tick(self) -> None:
        if not self._running:
            return
        position, duration = self._read_position()
        if duration > 0 and math.isfinite(position) and math.isfinite(duration):
            self._on_progress(position / duration * 100)
        with self._lock:
            if self._running:
                self._handle = self._scheduler(self._interval_s, self._tick)


def player_reader(player: EmbeddedPlayer) -> Callable[[], Tuple[float, float]]:
    def _read() -> Tuple[float, float]:
        return player.current_time(), player.duration()

    return _read


class ReportedPlayer:
    """
    Player position as last reported by the client. Embedded players only
    expose their clock to the page, so the page forwards it and the session
    polls this object on its own interval.
    """

    def __init__(self):
        self._position = 0.0
        self._duration = 0.0
        self._lock = threading.Lock()

    def report(self, position: float, duration: float) -> None:
        if not (math.isfinite(position) and math.isfinite(duration)):
            return
        with self._lock:
            self._position = max(0.0, position)
            self._duration = max(0.0, duration)

    def reset(self) -> None:
        with self._lock:
            self._position = 0.0
            self._duration = 0.0

    def current_time(self) -> float:
        with self._lock:
            return self._position

    def duration(self) -> float:
        with self._lock:
            return self._duration
