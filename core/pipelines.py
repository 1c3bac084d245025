from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Union

from core.models import (
    AcceptedFrame,
    EnhancedImage,
    EnhancementResult,
    ExtractionResult,
    GenderFilter,
    RawFrame,
    Segment,
)
from core.video import MediaSource, VideoSampler, sample_count

if TYPE_CHECKING:
    from core.config import Config
    from core.logger import AppLogger
    from core.progress import ProgressReporter
    from core.remote import FrameClassifier, FrameEnhancer


INVALID_SEGMENT_MESSAGE = "Invalid or zero-length segment selected."


def label_matches(label: str, requested: GenderFilter) -> bool:
    """Whether a classifier answer accepts the frame for the requested filter."""
    answer = label.strip().lower()
    if requested == GenderFilter.ALL:
        return answer == "yes"
    return answer == requested.value.lower()


class Pipeline:
    """Base class for processing pipelines."""

    def __init__(
        self,
        config: "Config",
        logger: "AppLogger",
        reporter: "ProgressReporter",
        cancel_event: threading.Event,
    ):
        self.config = config
        self.logger = logger
        self.reporter = reporter
        self.cancel_event = cancel_event


class ExtractionPipeline(Pipeline):
    """Samples a video segment and keeps the frames the classifier accepts."""

    def __init__(
        self,
        config: "Config",
        logger: "AppLogger",
        reporter: "ProgressReporter",
        cancel_event: threading.Event,
        classifier: "FrameClassifier",
        media_opener: Callable[[str], MediaSource] = MediaSource,
    ):
        super().__init__(config, logger, reporter, cancel_event)
        self.classifier = classifier
        self.media_opener = media_opener

    def run(
        self,
        video_path: Union[str, Path],
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
        fps: int = 4,
        gender: GenderFilter = GenderFilter.ALL,
    ) -> ExtractionResult:
        """
        Extracts and filters frames from ``video_path``.

        Raises MediaError when the video cannot be opened. Per-frame decode and
        classifier failures are logged and skipped.
        """
        gender = GenderFilter(gender)
        with self.media_opener(str(video_path)) as media:
            segment = Segment.resolve(media.duration, start_time, end_time)
            if not segment.is_valid:
                self.logger.warning(
                    INVALID_SEGMENT_MESSAGE,
                    component="extraction",
                    custom_fields={"start_time": start_time, "end_time": end_time, "duration": media.duration},
                )
                self.reporter.start(0, INVALID_SEGMENT_MESSAGE)
                return ExtractionResult(frames=[], total=0, message=INVALID_SEGMENT_MESSAGE)

            total = sample_count(segment.duration, fps)
            self.logger.info(
                f"Sampling {total} frames from {segment.start_time:.2f}s to {segment.end_time:.2f}s at {fps} fps",
                component="extraction",
                custom_fields={"filter": gender.value},
            )
            self.reporter.start(total, "Extracting frames...")
            sampler = VideoSampler(media, self.logger, jpeg_quality=self.config.jpeg_quality)
            accepted: List[AcceptedFrame] = []

            for frame in sampler.iter_frames(segment, fps, self.cancel_event):
                self.reporter.update(
                    message=f"Analyzing frame {frame.index + 1} of {total}...",
                    current=frame.index + 1,
                    preview=frame,
                )
                label = self._classify(frame, gender)
                if label is not None and label_matches(label, gender):
                    accepted.append(AcceptedFrame.from_raw(frame, label))
                    self.reporter.update(found=len(accepted))

        cancelled = self.cancel_event.is_set()
        if cancelled:
            message = f"Extraction cancelled. {len(accepted)} frames found."
            self.logger.info(message, component="extraction")
        else:
            message = f"{len(accepted)} frames found. Ready for selection."
            self.reporter.update(current=total)
            self.logger.success(message, component="extraction")
        self.reporter.finish(message)
        return ExtractionResult(frames=accepted, total=total, cancelled=cancelled, message=message)

    def _classify(self, frame: RawFrame, gender: GenderFilter) -> Optional[str]:
        try:
            return self.classifier.classify(frame.image, gender)
        except Exception as e:
            self.logger.warning(
                f"Classification failed, treating frame as no match: {e}",
                component="extraction",
                frame_timestamp=frame.timestamp,
                error_type=type(e).__name__,
            )
            return None


class EnhancementPipeline(Pipeline):
    """Enhances selected frames one at a time against a single reference frame."""

    def __init__(
        self,
        config: "Config",
        logger: "AppLogger",
        reporter: "ProgressReporter",
        cancel_event: threading.Event,
        enhancer: "FrameEnhancer",
    ):
        super().__init__(config, logger, reporter, cancel_event)
        self.enhancer = enhancer

    @staticmethod
    def reference_for(frames: Sequence[RawFrame]) -> RawFrame:
        return frames[len(frames) // 2]

    def run(self, frames: Sequence[RawFrame], colorize: bool = True) -> EnhancementResult:
        if not frames:
            raise ValueError("At least one frame is required for enhancement.")
        total = len(frames)
        reference = self.reference_for(frames)
        self.logger.info(
            f"Enhancing {total} frames, reference at {reference.timestamp:.2f}s",
            component="enhancement",
            custom_fields={"colorize": colorize},
        )
        self.reporter.start(total, "Enhancing frames...")
        images: List[EnhancedImage] = []

        for position, frame in enumerate(frames):
            if self.cancel_event.is_set():
                break
            self.reporter.update(message=f"Enhancing frame {position + 1} of {total}...")
            try:
                generated = self.enhancer.enhance(frame.image, reference.image, colorize)
            except Exception as e:
                self.logger.warning(
                    f"Enhancement failed, skipping frame: {e}",
                    component="enhancement",
                    frame_timestamp=frame.timestamp,
                    error_type=type(e).__name__,
                )
                generated = None
            else:
                if generated is None:
                    self.logger.warning(
                        "Enhancer returned no image, skipping frame",
                        component="enhancement",
                        frame_timestamp=frame.timestamp,
                    )

            if generated is not None:
                image = EnhancedImage.create(position, frame, generated)
                images.append(image)
                self.reporter.update(current=position + 1, found=len(images), preview=image)
            else:
                self.reporter.update(current=position + 1)

        cancelled = self.cancel_event.is_set()
        if cancelled:
            message = f"Enhancement cancelled. Produced {len(images)} images."
            self.logger.info(message, component="enhancement")
        else:
            message = f"Processing complete. Produced {len(images)} images."
            self.logger.success(message, component="enhancement")
        self.reporter.finish(message)
        return EnhancementResult(
            images=images,
            reference_timestamp=reference.timestamp,
            total=total,
            cancelled=cancelled,
            message=message,
        )
