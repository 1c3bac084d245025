"""
Progress Reporting for Frame Enhancer
"""

import threading
import time
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict

from core.models import EnhancedImage, RawFrame


class ProgressSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = ""
    current: int = 0
    total: int = 0
    found: int = 0
    fraction: float = 0.0
    preview: Optional[Union[RawFrame, EnhancedImage]] = None
    eta_seconds: Optional[float] = None
    eta_formatted: str = "—"


class ProgressReporter:
    """
    Latest-value sink that the pipelines write into after each unit of work.

    Every update is applied under a lock and observers read an immutable
    snapshot, so a reader never sees half of an update. Nothing is queued: a
    slow observer simply misses intermediate values.
    """

    def __init__(self, progress: Optional[Callable] = None, throttle_interval: float = 0.1):
        """
        Args:
            progress: Optional Gradio-style callback ``progress(fraction, desc=...)``.
            throttle_interval: Minimum seconds between callback invocations.
        """
        self.progress = progress
        self.throttle_interval = throttle_interval
        self._lock = threading.Lock()
        self._snapshot = ProgressSnapshot()
        self._last_ts = time.time()
        self._ema_dt: Optional[float] = None
        self._alpha = 0.2
        self._last_callback_ts = 0.0

    def start(self, total: int, message: str):
        """Resets the counters for a new run."""
        with self._lock:
            self._last_ts = time.time()
            self._ema_dt = None
            self._snapshot = ProgressSnapshot(message=message, total=max(0, int(total)))
            snap = self._snapshot
        self._notify(snap, force=True)

    def update(
        self,
        message: Optional[str] = None,
        current: Optional[int] = None,
        found: Optional[int] = None,
        preview: Optional[Union[RawFrame, EnhancedImage]] = None,
    ):
        """Applies any subset of fields as one atomic update."""
        with self._lock:
            prev = self._snapshot
            changes = {}
            if message is not None:
                changes["message"] = message
            if found is not None:
                changes["found"] = found
            if preview is not None:
                changes["preview"] = preview
            if current is not None:
                current = min(max(0, int(current)), prev.total) if prev.total else max(0, int(current))
                if current > prev.current:
                    self._record_step(current - prev.current)
                changes["current"] = current
                changes["fraction"] = current / prev.total if prev.total else 0.0
                changes["eta_seconds"] = self._eta_seconds(prev.total - current)
                changes["eta_formatted"] = self._fmt_eta(changes["eta_seconds"])
            self._snapshot = prev.model_copy(update=changes)
            snap = self._snapshot
        self._notify(snap)

    def finish(self, message: str):
        """Records the final summary message; counters are left as they are."""
        with self._lock:
            self._snapshot = self._snapshot.model_copy(update={"message": message, "eta_seconds": None, "eta_formatted": "—"})
            snap = self._snapshot
        self._notify(snap, force=True)

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot

    def _record_step(self, n: int):
        now = time.time()
        dt = (now - self._last_ts) / max(1, n)
        self._last_ts = now
        if dt > 0:
            self._ema_dt = dt if self._ema_dt is None else self._alpha * dt + (1 - self._alpha) * self._ema_dt

    def _eta_seconds(self, remaining: int) -> Optional[float]:
        if self._ema_dt is None:
            return None
        return self._ema_dt * max(0, remaining)

    def _notify(self, snap: ProgressSnapshot, force: bool = False):
        """Forwards to the progress callback, throttled."""
        if not self.progress:
            return
        now = time.time()
        if not force and now - self._last_callback_ts < self.throttle_interval:
            return
        self._last_callback_ts = now
        desc = f"{snap.message} ({snap.current}/{snap.total})"
        if snap.eta_seconds is not None:
            desc += f" • ETA {snap.eta_formatted}"
        self.progress(snap.fraction, desc=desc)

    @staticmethod
    def _fmt_eta(eta_s: Optional[float]) -> str:
        """Formats seconds into a human-readable string."""
        if eta_s is None:
            return "—"
        if eta_s < 60:
            return f"{int(eta_s)}s"
        m, s = divmod(int(eta_s), 60)
        if m < 60:
            return f"{m}m {s}s"
        h, m = divmod(m, 60)
        return f"{h}h {m}m"
