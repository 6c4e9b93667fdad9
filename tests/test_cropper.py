"""Tests for range cropping and time-axis renormalisation."""
import numpy as np
import pytest

from signal_label_lab.core.data_models import (
    HeaderMetadata,
    LabelSegment,
    SampleStream,
    TimeRange,
)
from signal_label_lab.core.errors import ValidationError
from signal_label_lab.processing.cropper import (
    crop_recording,
    crop_segments,
    initial_display_window,
)


@pytest.fixture
def samples():
    """51 samples at 10 Hz spanning [0, 5.0]; A4 equals the timestamp."""
    timestamps = np.arange(51, dtype=np.float64) / 10.0
    channels = np.zeros((51, 6))
    channels[:, 3] = timestamps
    return SampleStream(timestamps=timestamps, channels=channels, sampling_rate=10.0)


@pytest.fixture
def metadata():
    return (
        HeaderMetadata(absolute_start_ms=1_000_000.0, sampling_rate=10.0, device_id="dev"),
        HeaderMetadata(absolute_start_ms=999_500.0, sampling_rate=100.0),
    )


class TestCropRecording:
    """Tests for crop_recording."""

    def test_clip_then_shift(self, samples, metadata):
        signal_md, label_md = metadata
        segments = [LabelSegment(3.0, 4.5, "Z")]
        result = crop_recording(samples, segments, signal_md, label_md, 1.0, 4.0)

        assert result.time_range.start == 0.0
        assert result.time_range.end == pytest.approx(3.0)
        assert len(result.samples) == 31
        assert result.segments == [LabelSegment(2.0, 3.0, "Z")]
        assert result.offset == 1.0

    def test_headers_advance_by_offset(self, samples, metadata):
        signal_md, label_md = metadata
        result = crop_recording(samples, [], signal_md, label_md, 1.0, 4.0)

        assert result.signal_metadata.absolute_start_ms == pytest.approx(1_001_000.0)
        assert result.label_metadata.absolute_start_ms == pytest.approx(1_000_500.0)
        assert result.signal_metadata.device_id == "dev"
        assert result.label_metadata.sampling_rate == 100.0

    def test_segments_outside_dropped(self, samples, metadata):
        segments = [
            LabelSegment(0.0, 0.5, "before"),
            LabelSegment(0.5, 1.5, "straddle"),
            LabelSegment(4.2, 5.0, "after"),
        ]
        result = crop_recording(samples, segments, *metadata, 1.0, 4.0)
        assert [s.label for s in result.segments] == ["straddle"]
        assert result.segments[0].start == 0.0
        assert result.segments[0].end == pytest.approx(0.5)

    def test_channel_range_and_window_recomputed(self, samples, metadata):
        result = crop_recording(samples, [], *metadata, 1.0, 4.0)
        low, high = result.channel_range
        assert low == pytest.approx(1.0)
        assert high == pytest.approx(4.0)
        assert result.display_window == TimeRange(0.0, result.time_range.end)

    def test_off_grid_start_still_zero_based(self, samples, metadata):
        result = crop_recording(samples, [LabelSegment(1.0, 2.0, "a")], *metadata, 1.05, 2.0)
        assert result.time_range.start == 0.0
        assert result.offset == pytest.approx(1.1)
        assert result.segments[0].start == 0.0
        assert result.segments[0].end == pytest.approx(0.9)

    def test_source_untouched(self, samples, metadata):
        crop_recording(samples, [], *metadata, 1.0, 4.0)
        assert len(samples) == 51
        assert samples.timestamps[0] == 0.0

    def test_full_range_crop_ends_segments_at_last_sample(self, samples, metadata):
        """A crop ends at a sample time, so the interval past the last sample is dropped."""
        assert samples.coverage.end == pytest.approx(5.1)
        segments = [LabelSegment(0.0, 2.0, "a"), LabelSegment(2.0, samples.coverage.end, "b")]
        result = crop_recording(samples, segments, *metadata, 0.0, 5.0)

        assert len(result.samples) == 51
        assert result.segments[0] == LabelSegment(0.0, 2.0, "a")
        assert result.segments[1].end == pytest.approx(5.0)
        assert result.segments[1].end < result.samples.coverage.end

    @pytest.mark.parametrize(
        "start, end, message",
        [
            (2.0, 2.0, "less than end"),
            (3.0, 1.0, "less than end"),
            (-1.0, 2.0, "within data range"),
            (1.0, 6.0, "within data range"),
            (1.01, 1.05, "no data points"),
        ],
    )
    def test_rejections(self, samples, metadata, start, end, message):
        with pytest.raises(ValidationError, match=message):
            crop_recording(samples, [], *metadata, start, end)

    def test_empty_samples_rejected(self, metadata):
        with pytest.raises(ValidationError, match="No signal data"):
            crop_recording(SampleStream.empty(), [], *metadata, 0.0, 1.0)


class TestHelpers:
    """Tests for crop_segments and initial_display_window."""

    def test_crop_segments(self):
        segments = [LabelSegment(0.0, 2.0, "a"), LabelSegment(2.0, 3.0, "b")]
        assert crop_segments(segments, 1.0, 2.0, 1.0) == [LabelSegment(0.0, 1.0, "a")]

    def test_initial_window_capped(self):
        assert initial_display_window(TimeRange(0.0, 30.0)) == TimeRange(0.0, 10.0)
        assert initial_display_window(TimeRange(0.0, 4.0)) == TimeRange(0.0, 4.0)
        assert initial_display_window(TimeRange(0.0, 30.0), max_window=5.0) == TimeRange(0.0, 5.0)
