import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from ..config import settings
from .machine import PlaybackSession


logger = structlog.get_logger(__name__)

Key = Tuple[str, str]


class PlaybackHub:
    """
    In-memory registry of open playback sessions, one per (guard, material).

    Sessions untouched for longer than the idle TTL are closed and dropped
    the next time the registry is used.
    """

    def __init__(self, idle_ttl_s: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._sessions: Dict[Key, PlaybackSession] = {}
        self._touched: Dict[Key, float] = {}
        self._idle_ttl_s = idle_ttl_s
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def idle_ttl_s(self) -> float:
        return settings.playback_idle_ttl_s if self._idle_ttl_s is None else self._idle_ttl_s

    def _pop(self, key: Key) -> Optional[PlaybackSession]:
        self._touched.pop(key, None)
        return self._sessions.pop(key, None)

    def _pop_idle(self, now: float) -> List[PlaybackSession]:
        cutoff = now - self.idle_ttl_s
        stale = [k for k, touched in self._touched.items() if touched < cutoff]
        return [self._pop(k) for k in stale]

    def _close_all(self, sessions: List[PlaybackSession], reason: str) -> None:
        for session in sessions:
            session.close()
            logger.info(
                "playback_session_closed",
                reason=reason,
                guard_id=session.guard_id,
                material_id=session.material.id,
            )

    def open(self, session: PlaybackSession) -> PlaybackSession:
        key = (session.guard_id, session.material.id)
        now = self._clock()
        with self._lock:
            idle = self._pop_idle(now)
            previous = self._pop(key)
            self._sessions[key] = session
            self._touched[key] = now
        self._close_all(idle, "idle")
        if previous is not None:
            previous.close()
        return session

    def get(self, guard_id: str, material_id: str) -> Optional[PlaybackSession]:
        key = (guard_id, material_id)
        now = self._clock()
        with self._lock:
            idle = self._pop_idle(now)
            session = self._sessions.get(key)
            if session is not None:
                self._touched[key] = now
        self._close_all(idle, "idle")
        return session

    def discard(self, guard_id: str, material_id: str) -> bool:
        with self._lock:
            session = self._pop((guard_id, material_id))
        if session is None:
            return False
        session.close()
        return True

    def discard_material(self, material_id: str) -> int:
        with self._lock:
            keys = [k for k in self._sessions if k[1] == material_id]
            sessions = [self._pop(k) for k in keys]
        for session in sessions:
            session.close()
        return len(sessions)

    def clear(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._touched.clear()
        for session in sessions:
            session.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


hub = PlaybackHub()
