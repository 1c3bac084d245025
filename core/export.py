from __future__ import annotations

import json
import zipfile
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Union

from core.models import EnhancedImage, RawFrame, extension_for
from core.utils import sanitize_filename

if TYPE_CHECKING:
    from core.config import Config
    from core.logger import AppLogger


ZIP_NAME = "enhanced_frames.zip"


def _unique_name(name: str, used: Dict[str, int]) -> str:
    """Appends ``_<n>`` before the extension when ``name`` was already used."""
    if name not in used:
        used[name] = 0
        return name
    stem, dot, ext = name.rpartition(".")
    while True:
        used[name] += 1
        candidate = f"{stem}_{used[name]}{dot}{ext}"
        if candidate not in used:
            used[candidate] = 0
            return candidate


def default_export_path(config: "Config", video_name: Optional[str] = None) -> Path:
    """A fresh timestamped directory under ``output_dir`` holding the zip, named after the video when given."""
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    label = f"{sanitize_filename(Path(video_name).stem, 60)}_" if video_name else ""
    export_dir = Path(config.output_dir) / f"export_{label}{stamp}"
    export_dir.mkdir(parents=True, exist_ok=True)
    return export_dir / ZIP_NAME


def export_enhanced_zip(
    images: Sequence[EnhancedImage],
    destination: Union[str, Path],
    logger: Optional["AppLogger"] = None,
) -> Path:
    """
    Writes every enhanced image into a zip archive at ``destination``.

    Entries are named ``enhanced_frame_<ts>.<ext>``; images that share a
    timestamp get a ``_<n>`` suffix. A ``metadata.json`` entry maps each file
    name back to its image id and source timestamp.
    """
    if not images:
        raise ValueError("No enhanced images to export.")
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    used: Dict[str, int] = {}
    manifest = []
    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for image in images:
            name = _unique_name(image.filename, used)
            zf.writestr(name, image.image)
            manifest.append({"filename": name, "id": image.id, "original_timestamp": image.original_timestamp})
        zf.writestr("metadata.json", json.dumps(manifest, indent=2))
    if logger:
        logger.success(f"Exported {len(images)} images to {destination.name}", component="export")
    return destination


def save_frames(
    frames: Iterable[RawFrame],
    directory: Union[str, Path],
    prefix: str = "frame",
    logger: Optional["AppLogger"] = None,
) -> List[Path]:
    """Writes frames to ``directory`` as ``<prefix>_<ts>.<ext>`` and returns the written paths."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    used: Dict[str, int] = {}
    written: List[Path] = []
    for frame in frames:
        name = _unique_name(f"{prefix}_{frame.timestamp:.2f}.{extension_for(frame.mime_type)}", used)
        path = directory / name
        path.write_bytes(frame.image)
        written.append(path)
    if logger:
        logger.info(f"Saved {len(written)} frames to {directory}", component="export")
    return written
