from __future__ import annotations

import math
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, Optional, Union

import cv2
import numpy as np

from core.error_handling import FrameDecodeError, MediaError
from core.models import RawFrame, Segment

if TYPE_CHECKING:
    from core.logger import AppLogger


def sample_count(duration: float, fps: int) -> int:
    """Number of samples taken from ``duration`` seconds at ``fps`` samples per second."""
    if not isinstance(fps, int) or isinstance(fps, bool) or fps <= 0:
        raise ValueError(f"fps must be a positive integer, got {fps!r}")
    if duration <= 0:
        return 0
    # 0.29 * 100 == 28.999999999999996 would otherwise floor to 28
    return math.floor(round(duration * fps, 9))


def sample_timestamps(segment: Segment, fps: int) -> List[float]:
    """
    Evenly spaced sample times covering ``segment``.

    Sample ``i`` sits at ``start + i * (duration / count)``, so the first sample is
    at the segment start and no sample reaches the segment end.
    """
    count = sample_count(segment.duration, fps)
    if count == 0:
        return []
    step = segment.duration / count
    return [segment.start_time + i * step for i in range(count)]


class MediaSource:
    """Decodable video opened with OpenCV. Release it (or use it as a context manager) when done."""

    def __init__(self, video_path: Union[str, Path]):
        self.video_path = str(video_path)
        self._cap = cv2.VideoCapture(self.video_path)
        if not self._cap.isOpened():
            self._cap.release()
            raise MediaError(f"Could not open video: {self.video_path}")
        fps = self._cap.get(cv2.CAP_PROP_FPS)
        frame_count = self._cap.get(cv2.CAP_PROP_FRAME_COUNT)
        if not np.isfinite(fps) or fps <= 0 or not np.isfinite(frame_count) or frame_count <= 0:
            self._cap.release()
            raise MediaError(f"Could not read duration of video: {self.video_path}")
        self.fps = float(fps)
        self.frame_count = int(frame_count)
        self.duration = self.frame_count / self.fps
        self.width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._released = False

    def read_at(self, timestamp: float) -> np.ndarray:
        """Seeks to ``timestamp`` seconds and returns the decoded BGR picture."""
        if self._released:
            raise MediaError("Media source has been released.")
        if not self._cap.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0):
            raise FrameDecodeError(timestamp, "seek failed")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise FrameDecodeError(timestamp)
        return frame

    def release(self):
        if not self._released:
            self._cap.release()
            self._released = True

    def __enter__(self) -> "MediaSource":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()


class VideoSampler:
    """Captures JPEG stills from a media source at evenly spaced timestamps."""

    def __init__(self, media: MediaSource, logger: "AppLogger", jpeg_quality: int = 90):
        self.media = media
        self.logger = logger
        self.jpeg_quality = jpeg_quality

    def capture(self, timestamp: float, index: int = 0) -> RawFrame:
        """Snapshots the picture at ``timestamp``. Raises FrameDecodeError on failure."""
        picture = self.media.read_at(timestamp)
        ok, encoded = cv2.imencode(".jpg", picture, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        if not ok:
            raise FrameDecodeError(timestamp, "jpeg encode failed")
        return RawFrame(timestamp=timestamp, index=index, image=encoded.tobytes(), mime_type="image/jpeg")

    def iter_frames(
        self, segment: Segment, fps: int, cancel_event: Optional[threading.Event] = None
    ) -> Iterator[RawFrame]:
        """
        Lazily yields one RawFrame per sample of ``segment``.

        The cancel event is checked before every capture. Samples that fail to
        decode are logged and skipped, so the yielded ``index`` values may have gaps.
        """
        for index, timestamp in enumerate(sample_timestamps(segment, fps)):
            if cancel_event is not None and cancel_event.is_set():
                return
            try:
                frame = self.capture(timestamp, index)
            except FrameDecodeError as e:
                self.logger.warning(f"Skipping sample: {e}", component="sampler", frame_timestamp=timestamp)
                continue
            yield frame
