from __future__ import annotations

import base64
import binascii
import io
import math
import re
from typing import Tuple

from PIL import Image

_BYTE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]*)*?);base64,(?P<data>.*)$", re.DOTALL)


def format_bytes(num_bytes: int, decimals: int = 2) -> str:
    """Human-readable size, e.g. ``1536 -> '1.5 KB'``. Trailing zeros are dropped."""
    if num_bytes <= 0:
        return "0 Bytes"
    decimals = max(0, decimals)
    i, value = 0, float(num_bytes)
    while value >= 1024 and i < len(_BYTE_UNITS) - 1:
        value /= 1024
        i += 1
    text = f"{value:.{decimals}f}"
    if decimals:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {_BYTE_UNITS[i]}"


def format_time(total_seconds: float) -> str:
    """``MM:SS``, or ``H:MM:SS`` from one hour on. Negative or NaN input gives ``00:00``."""
    if total_seconds is None or math.isnan(total_seconds) or total_seconds < 0:
        return "00:00"
    seconds = int(total_seconds % 60)
    minutes = int((total_seconds // 60) % 60)
    hours = int(total_seconds // 3600)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def encode_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(uri: str) -> Tuple[bytes, str]:
    """Splits a base64 data URI into its payload and MIME type."""
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        raise ValueError("Not a base64 data URI.")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
    return data, match.group("mime") or "application/octet-stream"


def sanitize_filename(name: str, max_length: int = 100) -> str:
    """Sanitizes a string to be safe for use as a filename."""
    return re.sub(r"[^\w\-_.]", "_", name)[:max_length]


def image_from_bytes(data: bytes) -> Image.Image:
    """Decodes encoded image bytes into an RGB PIL image for display."""
    with Image.open(io.BytesIO(data)) as img:
        return img.convert("RGB")
