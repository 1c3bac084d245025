from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import cv2
import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from core.utils import encode_data_uri


MIME_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


def extension_for(mime_type: str) -> str:
    """File extension for an image MIME type, defaulting to jpg."""
    return MIME_EXTENSIONS.get(mime_type.lower(), "jpg")


class GenderFilter(str, Enum):
    """Face filter applied during extraction. ALL keeps any frame with a prominent face."""

    ALL = "All"
    MALE = "Male"
    FEMALE = "Female"


class RunState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    ENHANCING = "enhancing"
    DONE = "done"
    ERROR = "error"

    @property
    def is_active(self) -> bool:
        return self in (RunState.EXTRACTING, RunState.ENHANCING)


class Segment(BaseModel):
    """Half-open time range [start_time, end_time) of a video, in seconds."""

    model_config = ConfigDict(frozen=True)

    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def is_valid(self) -> bool:
        return self.duration > 0

    @classmethod
    def resolve(cls, media_duration: float, start: Optional[float] = None, end: Optional[float] = None) -> "Segment":
        """
        Builds a segment bounded by the media duration.

        A missing end means "until the end of the video". An end at or before
        the start produces an invalid (empty) segment rather than an error.
        """
        start_time = min(max(0.0, start or 0.0), media_duration)
        end_time = media_duration if end is None else min(max(0.0, end), media_duration)
        return cls(start_time=start_time, end_time=end_time)


class RawFrame(BaseModel):
    """An encoded still captured from the video at ``timestamp`` seconds."""

    model_config = ConfigDict(frozen=True)

    timestamp: float
    index: int = 0
    image: bytes = Field(repr=False)
    mime_type: str = "image/jpeg"

    @property
    def data_uri(self) -> str:
        return encode_data_uri(self.image, self.mime_type)

    def to_rgb(self) -> np.ndarray:
        """Decodes the still into an RGB array."""
        buf = np.frombuffer(self.image, dtype=np.uint8)
        bgr = cv2.imdecode(buf, cv2.IMREAD_COLOR)
        if bgr is None:
            raise ValueError(f"Frame at {self.timestamp:.2f}s is not a decodable image.")
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    def cropped(self, left: int, top: int, width: int, height: int, quality: int = 95) -> "RawFrame":
        """Returns a new frame holding the given region; the box is clipped to the image bounds."""
        rgb = self.to_rgb()
        img_h, img_w = rgb.shape[:2]
        x0, y0 = max(0, int(left)), max(0, int(top))
        x1, y1 = min(img_w, int(left) + int(width)), min(img_h, int(top) + int(height))
        if x1 <= x0 or y1 <= y0:
            raise ValueError(f"Crop box ({left}, {top}, {width}, {height}) is outside the {img_w}x{img_h} frame.")
        region = cv2.cvtColor(np.ascontiguousarray(rgb[y0:y1, x0:x1]), cv2.COLOR_RGB2BGR)
        ok, encoded = cv2.imencode(".jpg", region, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
        if not ok:
            raise ValueError("Could not encode cropped frame.")
        return self.model_copy(update={"image": encoded.tobytes(), "mime_type": "image/jpeg"})


class AcceptedFrame(RawFrame):
    """A frame that passed the face filter. ``label`` is the classifier answer that accepted it."""

    label: Optional[str] = None

    @classmethod
    def from_raw(cls, frame: RawFrame, label: Optional[str] = None) -> "AcceptedFrame":
        return cls(timestamp=frame.timestamp, index=frame.index, image=frame.image, mime_type=frame.mime_type, label=label)


class GeneratedImage(BaseModel):
    """Image bytes returned by the enhancement service."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime_type: str = "image/png"


class EnhancedImage(BaseModel):
    """
    An enhanced still derived from the accepted frame at ``original_timestamp``.

    ``id`` is ``enhanced-<position>-<timestamp>``, where position is the zero-based
    processing position within the run, so ids never collide inside one run.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    original_timestamp: float
    image: bytes = Field(repr=False)
    mime_type: str = "image/png"

    @classmethod
    def create(cls, position: int, source: RawFrame, generated: GeneratedImage) -> "EnhancedImage":
        return cls(
            id=f"enhanced-{position:03d}-{source.timestamp:.3f}",
            original_timestamp=source.timestamp,
            image=generated.data,
            mime_type=generated.mime_type,
        )

    @property
    def data_uri(self) -> str:
        return encode_data_uri(self.image, self.mime_type)

    @property
    def filename(self) -> str:
        return f"enhanced_frame_{self.original_timestamp:.2f}.{extension_for(self.mime_type)}"


class VideoItem(BaseModel):
    """A video chosen by the user together with its segment bounds."""

    id: str
    path: str
    name: str
    size_bytes: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "VideoItem":
        p = Path(path)
        stat = p.stat()
        return cls(
            id=f"{p.name}-{int(stat.st_mtime * 1000)}-{stat.st_size}",
            path=str(p),
            name=p.name,
            size_bytes=stat.st_size,
        )


class ExtractionResult(BaseModel):
    frames: List[AcceptedFrame] = Field(default_factory=list)
    total: int = 0
    cancelled: bool = False
    message: str = ""


class EnhancementResult(BaseModel):
    images: List[EnhancedImage] = Field(default_factory=list)
    reference_timestamp: Optional[float] = None
    total: int = 0
    cancelled: bool = False
    message: str = ""
