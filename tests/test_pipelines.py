"""
Tests for the extraction and enhancement pipelines.
"""
from unittest.mock import patch

import pytest

from core.error_handling import MediaError
from core.models import GenderFilter, RawFrame
from core.pipelines import (
    INVALID_SEGMENT_MESSAGE,
    EnhancementPipeline,
    ExtractionPipeline,
    label_matches,
)
from tests.fakes import FakeClassifier, FakeEnhancer, FakeMediaOpener


def make_extraction(config, mock_logger, reporter, cancel_event, classifier, media_opener):
    return ExtractionPipeline(config, mock_logger, reporter, cancel_event, classifier, media_opener=media_opener)


def make_frames(timestamps):
    return [RawFrame(timestamp=ts, index=i, image=f"img-{ts}".encode()) for i, ts in enumerate(timestamps)]


class TestLabelMatching:
    @pytest.mark.parametrize("label", ["Yes", "yes", " YES \n"])
    def test_any_face_accepts_yes(self, label):
        assert label_matches(label, GenderFilter.ALL)

    @pytest.mark.parametrize("label", ["No", "Male", "", "yess"])
    def test_any_face_rejects_other_answers(self, label):
        assert not label_matches(label, GenderFilter.ALL)

    def test_gender_is_case_insensitive(self):
        assert label_matches("female", GenderFilter.FEMALE)
        assert label_matches("MALE", GenderFilter.MALE)
        assert not label_matches("Male", GenderFilter.FEMALE)
        assert not label_matches("None", GenderFilter.MALE)


class TestExtractionPipeline:
    def test_two_second_segment_at_four_fps(self, config, mock_logger, reporter, cancel_event, media_opener):
        classifier = FakeClassifier("Yes")
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, media_opener)

        result = pipeline.run("clip.mp4", 0.0, 2.0, fps=4, gender=GenderFilter.ALL)

        assert [f.timestamp for f in result.frames] == pytest.approx([0, 0.25, 0.5, 0.75, 1.0, 1.25, 1.5, 1.75])
        assert result.total == 8
        assert not result.cancelled
        assert result.message == "8 frames found. Ready for selection."
        assert all(f.label == "Yes" for f in result.frames)
        assert all(requested == GenderFilter.ALL for _, requested in classifier.calls)
        snap = reporter.snapshot()
        assert (snap.current, snap.total, snap.found) == (8, 8, 8)
        assert snap.fraction == 1.0

    def test_frames_are_kept_in_extraction_order(self, config, mock_logger, reporter, cancel_event, media_opener):
        classifier = FakeClassifier(["No", "Yes", "No", "Yes"])
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, media_opener)

        result = pipeline.run("clip.mp4", 0.0, 1.0, fps=4)

        assert [f.timestamp for f in result.frames] == [0.25, 0.75]
        assert [f.index for f in result.frames] == [1, 3]

    def test_gender_filter(self, config, mock_logger, reporter, cancel_event, media_opener):
        classifier = FakeClassifier(["Male", "Female", "None", "female"])
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, media_opener)

        result = pipeline.run("clip.mp4", 0.0, 1.0, fps=4, gender=GenderFilter.FEMALE)

        assert [f.timestamp for f in result.frames] == [0.25, 0.75]
        assert [f.label for f in result.frames] == ["Female", "female"]

    @pytest.mark.parametrize("start,end", [(1.0, 1.0), (1.5, 0.5), (5.0, None)])
    def test_invalid_segment_never_samples(self, config, mock_logger, reporter, cancel_event, start, end):
        opener = FakeMediaOpener(duration=2.0)
        classifier = FakeClassifier("Yes")
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, opener)

        with patch("core.pipelines.VideoSampler") as sampler_cls:
            result = pipeline.run("clip.mp4", start, end, fps=4)

        sampler_cls.assert_not_called()
        assert result.frames == []
        assert result.message == INVALID_SEGMENT_MESSAGE
        assert reporter.snapshot().message == INVALID_SEGMENT_MESSAGE
        assert classifier.calls == []
        assert opener.opened[0].reads == []
        assert opener.opened[0].released

    def test_missing_end_runs_to_end_of_video(self, config, mock_logger, reporter, cancel_event):
        opener = FakeMediaOpener(duration=1.5)
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, FakeClassifier("Yes"), opener)

        result = pipeline.run("clip.mp4", 0.5, None, fps=2)

        assert [f.timestamp for f in result.frames] == [0.5, 1.0]

    def test_classifier_never_matching(self, config, mock_logger, reporter, cancel_event, media_opener):
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, FakeClassifier("No"), media_opener)

        result = pipeline.run("clip.mp4", 0.0, 2.0, fps=2)

        assert result.frames == []
        assert result.message == "0 frames found. Ready for selection."
        assert reporter.snapshot().current == 4

    def test_classifier_failures_are_skipped(self, config, mock_logger, reporter, cancel_event, media_opener, remote_failure):
        classifier = FakeClassifier(["Yes", remote_failure, "Yes", remote_failure])
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, media_opener)

        result = pipeline.run("clip.mp4", 0.0, 1.0, fps=4)

        assert [f.timestamp for f in result.frames] == [0.0, 0.5]
        assert len(classifier.calls) == 4
        assert mock_logger.warning.call_count == 2
        assert "service unavailable" not in result.message

    def test_all_classifier_calls_failing_still_completes(self, config, mock_logger, reporter, cancel_event, media_opener):
        classifier = FakeClassifier(TimeoutError("timed out"))
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, media_opener)

        result = pipeline.run("clip.mp4", 0.0, 1.0, fps=4)

        assert result.frames == []
        assert not result.cancelled
        assert len(classifier.calls) == 4

    def test_undecodable_sample_is_skipped(self, config, mock_logger, reporter, cancel_event):
        opener = FakeMediaOpener(duration=1.0, fail_at=[0.5])
        classifier = FakeClassifier("Yes")
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, opener)

        result = pipeline.run("clip.mp4", 0.0, 1.0, fps=4)

        assert [f.timestamp for f in result.frames] == [0.0, 0.25, 0.75]
        assert len(classifier.calls) == 3
        assert reporter.snapshot().current == 4

    def test_cancellation_keeps_in_flight_frame_only(self, config, mock_logger, reporter, cancel_event, media_opener):
        def answer(index):
            if index == 2:
                cancel_event.set()
            return "Yes"

        classifier = FakeClassifier(answer)
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, media_opener)

        result = pipeline.run("clip.mp4", 0.0, 2.0, fps=4)

        assert len(classifier.calls) == 3
        assert [f.timestamp for f in result.frames] == [0.0, 0.25, 0.5]
        assert media_opener.opened[0].reads == [0.0, 0.25, 0.5]
        assert result.cancelled
        assert result.message == "Extraction cancelled. 3 frames found."
        assert reporter.snapshot().current == 3

    def test_media_error_propagates_and_nothing_is_classified(self, config, mock_logger, reporter, cancel_event):
        def broken_opener(path):
            raise MediaError(f"Could not open video: {path}")

        classifier = FakeClassifier("Yes")
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, classifier, broken_opener)

        with pytest.raises(MediaError):
            pipeline.run("missing.mp4", 0.0, 2.0, fps=4)
        assert classifier.calls == []

    def test_media_released_after_run(self, config, mock_logger, reporter, cancel_event, media_opener):
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, FakeClassifier("Yes"), media_opener)
        pipeline.run("clip.mp4", 0.0, 1.0, fps=1)
        assert media_opener.opened[0].released

    def test_preview_tracks_latest_sample(self, config, mock_logger, reporter, cancel_event, media_opener):
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, FakeClassifier("No"), media_opener)
        pipeline.run("clip.mp4", 0.0, 1.0, fps=4)
        assert reporter.snapshot().preview.timestamp == 0.75

    def test_invalid_fps_is_rejected(self, config, mock_logger, reporter, cancel_event, media_opener):
        pipeline = make_extraction(config, mock_logger, reporter, cancel_event, FakeClassifier("Yes"), media_opener)
        with pytest.raises(ValueError):
            pipeline.run("clip.mp4", 0.0, 1.0, fps=0)


class TestEnhancementPipeline:
    def test_reference_is_middle_frame(self):
        frames = make_frames([0.0, 1.0, 2.0, 3.0])
        assert EnhancementPipeline.reference_for(frames).timestamp == 2.0
        assert EnhancementPipeline.reference_for(frames[:3]).timestamp == 1.0
        assert EnhancementPipeline.reference_for(frames[:1]).timestamp == 0.0

    def test_three_selected_frames(self, config, mock_logger, reporter, cancel_event):
        frames = make_frames([0.25, 0.5, 0.75])
        enhancer = FakeEnhancer()
        pipeline = EnhancementPipeline(config, mock_logger, reporter, cancel_event, enhancer)

        result = pipeline.run(frames, colorize=True)

        assert [call[1] for call in enhancer.calls] == [frames[1].image] * 3
        assert [call[0] for call in enhancer.calls] == [f.image for f in frames]
        assert all(call[2] is True for call in enhancer.calls)
        assert [img.original_timestamp for img in result.images] == [0.25, 0.5, 0.75]
        assert len({img.id for img in result.images}) == 3
        assert result.reference_timestamp == 0.5
        assert result.message == "Processing complete. Produced 3 images."
        snap = reporter.snapshot()
        assert (snap.current, snap.total, snap.found) == (3, 3, 3)
        assert snap.preview == result.images[-1]

    def test_no_images_produced(self, config, mock_logger, reporter, cancel_event):
        enhancer = FakeEnhancer(outcomes=[None])
        pipeline = EnhancementPipeline(config, mock_logger, reporter, cancel_event, enhancer)

        result = pipeline.run(make_frames([0.0, 1.0]), colorize=False)

        assert result.images == []
        assert len(enhancer.calls) == 2
        assert result.message == "Processing complete. Produced 0 images."
        assert reporter.snapshot().current == 2

    def test_failures_skip_the_frame(self, config, mock_logger, reporter, cancel_event, remote_failure):
        enhancer = FakeEnhancer(outcomes=["image", remote_failure, None, "image"])
        pipeline = EnhancementPipeline(config, mock_logger, reporter, cancel_event, enhancer)

        result = pipeline.run(make_frames([0.0, 1.0, 2.0, 3.0]))

        assert [img.original_timestamp for img in result.images] == [0.0, 3.0]
        assert mock_logger.warning.call_count == 2

    def test_cancellation_stops_before_next_frame(self, config, mock_logger, reporter, cancel_event):
        enhancer = FakeEnhancer(on_call=lambda i: cancel_event.set() if i == 1 else None)
        pipeline = EnhancementPipeline(config, mock_logger, reporter, cancel_event, enhancer)

        result = pipeline.run(make_frames([0.0, 1.0, 2.0, 3.0]))

        assert len(enhancer.calls) == 2
        assert [img.original_timestamp for img in result.images] == [0.0, 1.0]
        assert result.cancelled
        assert result.message == "Enhancement cancelled. Produced 2 images."

    def test_empty_input_is_rejected(self, config, mock_logger, reporter, cancel_event):
        pipeline = EnhancementPipeline(config, mock_logger, reporter, cancel_event, FakeEnhancer())
        with pytest.raises(ValueError):
            pipeline.run([])
