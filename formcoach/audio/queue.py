"""
Serialized playback of synthesized feedback clips.

Only one clip plays at a time. New clips wait in a FIFO and start as soon as
the current one finishes or fails; a playback error never stalls the queue.
A clip whose dedup key was already enqueued within the dedup window is
dropped, which absorbs identical results arriving late from slow synthesis.

The player is an external collaborator: it receives the audio reference and
a completion callback, and must call the callback exactly once, with the
error (if any) as argument.
"""

import time
import logging
import threading
from collections import deque
from typing import Callable, Optional, Protocol

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_WINDOW_S: float = 30.0

CompletionCallback = Callable[[Optional[BaseException]], None]


class AudioPlayer(Protocol):
    def play(self, audio_ref: str, on_complete: CompletionCallback) -> None:
        ...


class QueuedClip(BaseModel):
    model_config = ConfigDict(frozen=True)

    audio_ref: str
    dedup_key: str
    created_at: float


class FeedbackAudioQueue:
    """FIFO audio queue with a single playback slot and time-window dedup."""

    def __init__(
        self,
        player: AudioPlayer,
        dedup_window_s: float = DEFAULT_DEDUP_WINDOW_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.player = player
        self.dedup_window_s = dedup_window_s
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: deque = deque()
        self._current: Optional[QueuedClip] = None
        self._recent: dict[str, float] = {}

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._current is not None

    @property
    def current(self) -> Optional[QueuedClip]:
        with self._lock:
            return self._current

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def enqueue(self, audio_ref: str, dedup_key: Optional[str] = None) -> bool:
        """Queue a clip, starting playback right away when idle.

        Args:
            audio_ref: Reference the player understands (URL, path, ...).
            dedup_key: Identity used for deduplication; defaults to *audio_ref*.

        Returns:
            False if the clip was dropped as a duplicate, True otherwise.
        """
        key = dedup_key if dedup_key is not None else audio_ref
        with self._lock:
            now = self._clock()
            self._expire_recent(now)
            if key in self._recent:
                logger.debug("Duplicate audio clip, skipping: %s", key)
                return False

            self._recent[key] = now
            self._pending.append(QueuedClip(audio_ref=audio_ref, dedup_key=key, created_at=now))
            logger.debug("Audio queued (%d in queue)", len(self._pending))

            if self._current is not None:
                return True
            clip = self._advance_locked()

        if clip is not None:
            self._start(clip)
        return True

    def clear(self) -> None:
        """Drop pending clips, stop the current one and forget dedup keys."""
        with self._lock:
            self._pending.clear()
            stopped = self._current
            self._current = None
            self._recent.clear()

        stop = getattr(self.player, "stop", None)
        if stopped is not None and callable(stop):
            stop()
        logger.debug("Audio queue cleared")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _expire_recent(self, now: float) -> None:
        expired = [k for k, t in self._recent.items() if now - t >= self.dedup_window_s]
        for key in expired:
            del self._recent[key]

    def _advance_locked(self) -> Optional[QueuedClip]:
        self._current = self._pending.popleft() if self._pending else None
        return self._current

    def _start(self, clip: QueuedClip) -> None:
        # The callback may run synchronously inside play(), so no lock is held here
        try:
            self.player.play(clip.audio_ref, lambda error=None: self._on_finished(clip, error))
        except Exception as exc:
            self._on_finished(clip, exc)

    def _on_finished(self, clip: QueuedClip, error: Optional[BaseException]) -> None:
        if error is not None:
            logger.warning("Audio playback error for %s: %s", clip.dedup_key, error)

        with self._lock:
            if self._current is not clip:
                # Stale callback from a clip dropped by clear()
                return
            next_clip = self._advance_locked()

        if next_clip is not None:
            self._start(next_clip)
