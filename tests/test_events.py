import pytest
from pydantic import ValidationError

from core.events import EnhancementEvent, ExtractionEvent
from core.models import GenderFilter


def test_extraction_event_defaults():
    event = ExtractionEvent(video_path="clip.mp4")
    assert event.start_time == 0.0
    assert event.end_time is None
    assert event.fps == 4
    assert event.gender == GenderFilter.ALL


def test_gender_from_string():
    assert ExtractionEvent(video_path="clip.mp4", gender="Female").gender == GenderFilter.FEMALE


@pytest.mark.parametrize("fps", [0, -1])
def test_fps_must_be_positive(fps):
    with pytest.raises(ValidationError):
        ExtractionEvent(video_path="clip.mp4", fps=fps)


def test_video_is_required():
    with pytest.raises(ValidationError, match="upload a video"):
        ExtractionEvent(video_path="  ")


def test_negative_start_rejected():
    with pytest.raises(ValidationError):
        ExtractionEvent(video_path="clip.mp4", start_time=-0.5)


def test_blank_end_time_means_until_end():
    assert ExtractionEvent(video_path="clip.mp4", end_time="").end_time is None


def test_unknown_gender_rejected():
    with pytest.raises(ValidationError):
        ExtractionEvent(video_path="clip.mp4", gender="Robot")


def test_enhancement_event():
    assert EnhancementEvent().colorize is True
    assert EnhancementEvent(colorize=False).colorize is False
