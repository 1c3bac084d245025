"""
Processing Session for Frame Enhancer

Owns the run state machine and the per-session results (accepted frames,
selection, enhanced images). The UI and CLI talk to the core only through
this class.
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple, Union

from core.error_handling import PipelineBusyError
from core.events import EnhancementEvent, ExtractionEvent
from core.models import AcceptedFrame, EnhancedImage, EnhancementResult, ExtractionResult, RunState, VideoItem
from core.pipelines import EnhancementPipeline, ExtractionPipeline
from core.progress import ProgressReporter, ProgressSnapshot
from core.selection import SelectionStore
from core.video import MediaSource

if TYPE_CHECKING:
    from core.config import Config
    from core.logger import AppLogger
    from core.remote import FrameClassifier, FrameEnhancer


EXTRACTION_FAILED_MESSAGE = "Extraction failed. Could not read the video."

CropBox = Tuple[int, int, int, int]


class ProcessingSession:
    """
    One user's working session.

    Only one run (extraction or enhancement) can be active at a time. State
    transitions happen under ``_lock``; the pipelines themselves run without
    it so that ``cancel()`` and ``snapshot()`` stay responsive.
    """

    def __init__(
        self,
        config: "Config",
        logger: "AppLogger",
        classifier: "FrameClassifier",
        enhancer: "FrameEnhancer",
        reporter: Optional[ProgressReporter] = None,
        media_opener: Callable[[str], MediaSource] = MediaSource,
    ):
        self.config = config
        self.logger = logger
        self.reporter = reporter or ProgressReporter(throttle_interval=config.progress_throttle_seconds)
        self.cancel_event = threading.Event()
        self.selection = SelectionStore(config.max_selected)
        self._lock = threading.RLock()
        self._state = RunState.IDLE
        self.video: Optional[VideoItem] = None
        self.accepted_frames: List[AcceptedFrame] = []
        self.enhanced_images: List[EnhancedImage] = []
        self.reference_timestamp: Optional[float] = None
        self.last_message = ""
        self.extraction = ExtractionPipeline(
            config, logger, self.reporter, self.cancel_event, classifier, media_opener=media_opener
        )
        self.enhancement = EnhancementPipeline(config, logger, self.reporter, self.cancel_event, enhancer)

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    def _begin(self, state: RunState):
        """Moves from a resting state into ``state``. Caller holds the lock."""
        if self._state.is_active:
            raise PipelineBusyError(f"Cannot start while {self._state.value}.")
        if self._state != RunState.IDLE:
            self.logger.debug(f"Returning to idle from {self._state.value}", component="session")
            self._state = RunState.IDLE
        self.cancel_event.clear()
        self._state = state

    def _require_resting(self, action: str):
        if self._state.is_active:
            raise PipelineBusyError(f"Cannot {action} while {self._state.value}.")

    def load_video(self, path: Union[str, Path]) -> VideoItem:
        """Clears the session and remembers ``path`` as the current video."""
        item = VideoItem.from_path(path)
        with self._lock:
            self._require_resting("change video")
            self._clear()
            self.video = item
        self.logger.info(f"Loaded video {item.name}", component="session", custom_fields={"size_bytes": item.size_bytes})
        return item

    def start_extraction(self, event: ExtractionEvent) -> ExtractionResult:
        with self._lock:
            self._begin(RunState.EXTRACTING)
            self.accepted_frames = []
            self.selection.deselect_all()
            self.enhanced_images = []
            self.reference_timestamp = None

        try:
            result = self.extraction.run(
                event.video_path,
                start_time=event.start_time,
                end_time=event.end_time,
                fps=event.fps,
                gender=event.gender,
            )
        except Exception as e:
            self.logger.error(
                f"Extraction failed: {e}", component="session", exc_info=True, error_type=type(e).__name__
            )
            self.reporter.finish(EXTRACTION_FAILED_MESSAGE)
            with self._lock:
                self._state = RunState.ERROR
                self.last_message = EXTRACTION_FAILED_MESSAGE
            return ExtractionResult(message=EXTRACTION_FAILED_MESSAGE)

        with self._lock:
            self.accepted_frames = list(result.frames)
            self.last_message = result.message
            self._state = RunState.IDLE
        return result

    def start_enhancement(self, event: EnhancementEvent) -> EnhancementResult:
        with self._lock:
            self._require_resting("start enhancement")
            frames = self.selection.pick(self.accepted_frames)
            if not frames:
                raise ValueError("Select at least one frame to enhance.")
            self._begin(RunState.ENHANCING)
            self.enhanced_images = []
            self.reference_timestamp = None

        try:
            result = self.enhancement.run(frames, colorize=event.colorize)
        except Exception:
            with self._lock:
                self._state = RunState.ERROR
            raise

        with self._lock:
            self.enhanced_images = list(result.images)
            self.reference_timestamp = result.reference_timestamp
            self.last_message = result.message
            self._state = RunState.DONE
        return result

    def cancel(self):
        """Requests cooperative cancellation; the in-flight frame still completes."""
        self.cancel_event.set()
        self.logger.info("Cancellation requested", component="session")

    def snapshot(self) -> ProgressSnapshot:
        return self.reporter.snapshot()

    def toggle_frame(self, timestamp: float) -> bool:
        with self._lock:
            return self.selection.toggle(timestamp)

    def select_all(self):
        with self._lock:
            self.selection.select_all(f.timestamp for f in self.accepted_frames)

    def deselect_all(self):
        with self._lock:
            self.selection.deselect_all()

    def selected_frames(self) -> List[AcceptedFrame]:
        with self._lock:
            return self.selection.pick(self.accepted_frames)

    def crop_frame(self, position: int, box: Union[CropBox, Sequence[int]]) -> AcceptedFrame:
        """Replaces the accepted frame at ``position`` with a cropped copy (left, top, width, height)."""
        left, top, width, height = box
        with self._lock:
            self._require_resting("crop")
            if not 0 <= position < len(self.accepted_frames):
                raise IndexError(f"No accepted frame at position {position}.")
            cropped = self.accepted_frames[position].cropped(left, top, width, height)
            self.accepted_frames[position] = cropped
        self.logger.debug(
            f"Cropped frame to {width}x{height}", component="session", frame_timestamp=cropped.timestamp
        )
        return cropped

    def reset(self):
        """Forgets the video and every result, back to idle."""
        with self._lock:
            self._require_resting("reset")
            self._clear()

    def _clear(self):
        self.video = None
        self.accepted_frames = []
        self.enhanced_images = []
        self.reference_timestamp = None
        self.selection.deselect_all()
        self.cancel_event.clear()
        self.last_message = ""
        self._state = RunState.IDLE
        self.reporter.start(0, "")
