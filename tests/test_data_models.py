"""Unit tests for core data models."""
import numpy as np
import pytest

from signal_label_lab.core import (
    CHANNEL_NAMES,
    HeaderMetadata,
    LabelSegment,
    ParseDiagnostic,
    SampleStream,
    SegmentDraft,
    TimeRange,
)
from signal_label_lab.core.data_models import channel_index, unique_labels


def make_stream(n=5, rate=10.0):
    timestamps = np.arange(n, dtype=np.float64) / rate
    channels = np.tile(np.arange(6, dtype=np.float64), (n, 1)) + timestamps[:, None]
    return SampleStream(timestamps=timestamps, channels=channels, sampling_rate=rate)


class TestTimeRange:
    """Tests for TimeRange."""

    def test_duration_and_contains(self):
        time_range = TimeRange(1.0, 3.0)
        assert time_range.duration == 2.0
        assert time_range.contains(1.0)
        assert time_range.contains(3.0)
        assert not time_range.contains(3.5)

    def test_reversed_range_rejected(self):
        with pytest.raises(ValueError, match="must be >= start"):
            TimeRange(2.0, 1.0)

    def test_clip(self):
        assert TimeRange(0.0, 5.0).clip(-1.0, 2.0) == (0.0, 2.0)
        assert TimeRange(0.0, 5.0).clip(4.0, 9.0) == (4.0, 5.0)


class TestLabelSegment:
    """Tests for LabelSegment."""

    def test_creation(self):
        segment = LabelSegment(0.5, 1.25, "blink")
        assert segment.duration == pytest.approx(0.75)
        assert segment.label == "blink"

    def test_zero_width_rejected(self):
        """start == end is not a valid segment."""
        with pytest.raises(ValueError):
            LabelSegment(1.0, 1.0, "x")

    def test_reversed_rejected(self):
        with pytest.raises(ValueError):
            LabelSegment(2.0, 1.0, "x")

    def test_overlaps_is_half_open(self):
        segment = LabelSegment(1.0, 2.0, "x")
        assert segment.overlaps(1.5, 3.0)
        assert not segment.overlaps(2.0, 3.0)
        assert not segment.overlaps(0.0, 1.0)

    def test_clipped(self):
        segment = LabelSegment(1.0, 4.0, "x")
        assert segment.clipped(2.0, 3.0) == LabelSegment(2.0, 3.0, "x")
        assert segment.clipped(4.0, 5.0) is None

    def test_shifted(self):
        assert LabelSegment(3.0, 4.0, "z").shifted(-1.0) == LabelSegment(2.0, 3.0, "z")

    def test_frozen(self):
        segment = LabelSegment(0.0, 1.0, "x")
        with pytest.raises(AttributeError):
            segment.start = 0.5

    def test_unique_labels_keep_first_appearance(self):
        segments = [LabelSegment(0, 1, "b"), LabelSegment(1, 2, "a"), LabelSegment(2, 3, "b")]
        assert unique_labels(segments) == ["b", "a"]


class TestHeaderMetadata:
    """Tests for HeaderMetadata."""

    def test_defaults(self):
        metadata = HeaderMetadata()
        assert metadata.absolute_start_ms is None
        assert not metadata.has_absolute_start
        assert metadata.sampling_rate == 1000.0
        assert metadata.sample_interval_ms == 1.0

    def test_shifted_advances_origin(self):
        metadata = HeaderMetadata(absolute_start_ms=1_000_000.0, sampling_rate=100)
        shifted = metadata.shifted(1.5)
        assert shifted.absolute_start_ms == pytest.approx(1_001_500.0)
        assert shifted.sampling_rate == 100.0

    def test_shifted_without_origin(self):
        metadata = HeaderMetadata()
        assert metadata.shifted(2.0) is metadata

    def test_nonpositive_rate_rejected(self):
        with pytest.raises(ValueError, match="must be positive"):
            HeaderMetadata(sampling_rate=0)


class TestSampleStream:
    """Tests for SampleStream."""

    def test_creation(self):
        stream = make_stream()
        assert len(stream) == 5
        assert stream.num_samples == 5
        assert stream.sample_interval == pytest.approx(0.1)

    def test_time_range_and_coverage(self):
        stream = make_stream(n=5, rate=10.0)
        assert stream.time_range.start == 0.0
        assert stream.time_range.end == pytest.approx(0.4)
        assert stream.coverage.end == pytest.approx(0.5)

    def test_empty(self):
        stream = SampleStream.empty()
        assert stream.is_empty
        assert stream.time_range == TimeRange(0.0, 0.0)
        assert stream.coverage == TimeRange(0.0, 0.0)
        assert stream.channel_range("A4") is None

    def test_unsorted_timestamps_rejected(self):
        with pytest.raises(ValueError, match="non-decreasing"):
            SampleStream(timestamps=np.array([0.0, 0.2, 0.1]), channels=np.zeros((3, 6)))

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError, match="same length"):
            SampleStream(timestamps=np.array([0.0, 0.1]), channels=np.zeros((3, 6)))

    def test_wrong_channel_count_rejected(self):
        with pytest.raises(ValueError, match="shape"):
            SampleStream(timestamps=np.array([0.0]), channels=np.zeros((1, 4)))

    def test_sample_access(self):
        stream = make_stream()
        sample = stream[2]
        assert sample.timestamp == pytest.approx(0.2)
        assert sample["A1"] == pytest.approx(0.2)
        assert sample["a6"] == pytest.approx(5.2)
        assert len(list(stream)) == 5

    def test_channel_range(self):
        stream = make_stream()
        low, high = stream.channel_range("A4")
        assert low == pytest.approx(3.0)
        assert high == pytest.approx(3.4)

    def test_slice_time_is_inclusive(self):
        stream = make_stream(n=11, rate=10.0)
        sliced = stream.slice_time(0.2, 0.5)
        np.testing.assert_allclose(sliced.timestamps, [0.2, 0.3, 0.4, 0.5])
        assert sliced.channels.shape == (4, 6)

    def test_shifted(self):
        stream = make_stream().shifted(-0.1)
        assert stream.timestamps[0] == pytest.approx(-0.1)

    def test_take_every(self):
        stream = make_stream(n=10)
        assert len(stream.take_every(3)) == 4
        with pytest.raises(ValueError):
            stream.take_every(0)

    def test_to_dataframe(self):
        df = make_stream().to_dataframe()
        assert list(df.columns) == ["time_s", *CHANNEL_NAMES]
        assert len(df) == 5


class TestMisc:
    """Tests for small helpers and value types."""

    def test_channel_index(self):
        assert channel_index("A1") == 0
        assert channel_index("a4") == 3
        with pytest.raises(ValueError, match="Unknown channel"):
            channel_index("B1")

    def test_segment_draft_defaults_to_unlabeled(self):
        draft = SegmentDraft(1.0, 1.2)
        assert draft.label is None

    def test_parse_diagnostic(self):
        diagnostic = ParseDiagnostic(4, "A3", "Unparseable value")
        assert diagnostic.line_number == 4
        assert diagnostic.field_name == "A3"
