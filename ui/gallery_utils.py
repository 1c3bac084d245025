from __future__ import annotations

from typing import Container, List, Sequence, Tuple

from PIL import Image

from core.models import EnhancedImage, RawFrame
from core.utils import format_time, image_from_bytes


def frame_caption(frame: RawFrame, selected: bool) -> str:
    caption = f"{format_time(frame.timestamp)} ({frame.timestamp:.2f}s)"
    return f"✅ {caption}" if selected else caption


def build_frame_gallery_items(
    frames: Sequence[RawFrame], selected: Container[float]
) -> List[Tuple[Image.Image, str]]:
    """Gallery items for accepted frames, with selected frames marked in the caption."""
    return [(image_from_bytes(f.image), frame_caption(f, f.timestamp in selected)) for f in frames]


def build_enhanced_gallery_items(images: Sequence[EnhancedImage]) -> List[Tuple[Image.Image, str]]:
    return [(image_from_bytes(img.image), f"From {format_time(img.original_timestamp)}") for img in images]


def selection_summary(count: int, max_selected: int) -> str:
    return f"**Selected:** {count}/{max_selected}"
