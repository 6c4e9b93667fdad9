"""Data models for the aligned signal + label recording.

Uses attrs with validators for type-safe, validated data containers.
"""
from __future__ import annotations

from typing import Iterable, Iterator

import attrs
import numpy as np
import pandas as pd
from attrs import define, field

# OpenSignals analog columns A1..A6 (fields 5-10 of a data row)
CHANNEL_NAMES = ("A1", "A2", "A3", "A4", "A5", "A6")
NUM_CHANNELS = len(CHANNEL_NAMES)

DEFAULT_SAMPLING_RATE = 1000.0


def _validate_positive(instance, attribute, value):
    """Validator: ensure value is positive."""
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


def _validate_ndarray_1d(instance, attribute, value):
    """Validator: ensure value is a 1D numpy array."""
    if not isinstance(value, np.ndarray):
        raise TypeError(f"{attribute.name} must be ndarray, got {type(value).__name__}")
    if value.ndim != 1:
        raise ValueError(f"{attribute.name} must be 1D, got shape {value.shape}")


def _validate_timestamps_sorted(instance, attribute, value):
    """Validator: ensure timestamps never decrease."""
    _validate_ndarray_1d(instance, attribute, value)
    if len(value) > 1:
        diffs = np.diff(value)
        if not np.all(diffs >= 0):
            bad_idx = np.where(diffs < 0)[0]
            raise ValueError(
                f"{attribute.name} must be non-decreasing. "
                f"Out of order at indices: {bad_idx[:5].tolist()}"
            )


def _validate_channel_matrix(instance, attribute, value):
    """Validator: ensure value is an (N, 6) numpy array."""
    if not isinstance(value, np.ndarray):
        raise TypeError(f"{attribute.name} must be ndarray, got {type(value).__name__}")
    if value.ndim != 2 or value.shape[1] != NUM_CHANNELS:
        raise ValueError(f"{attribute.name} must have shape (N, {NUM_CHANNELS}), got {value.shape}")


def _optional_float(value):
    return None if value is None else float(value)


def channel_index(name: str) -> int:
    """Column index of a channel name (A1..A6)."""
    try:
        return CHANNEL_NAMES.index(name.upper())
    except ValueError:
        raise ValueError(f"Unknown channel {name!r}, expected one of {', '.join(CHANNEL_NAMES)}") from None


@define(frozen=True)
class ParseDiagnostic:
    """A field that was defaulted or a row that was skipped while parsing.

    line_number is 0-based within the parsed text; field_name names the
    header field, channel or column involved ("row" for a skipped row).
    """

    line_number: int = field(validator=attrs.validators.instance_of(int))
    field_name: str = field(validator=attrs.validators.instance_of(str))
    message: str = field(validator=attrs.validators.instance_of(str))


@define(frozen=True)
class TimeRange:
    """Closed time range [start, end] in seconds."""

    start: float = field(converter=float)
    end: float = field(converter=float)

    @end.validator
    def _check_order(self, attribute, value):
        """Ensure end >= start."""
        if value < self.start:
            raise ValueError(f"TimeRange end ({value}) must be >= start ({self.start})")

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, t: float) -> bool:
        return self.start <= t <= self.end

    def clip(self, start: float, end: float) -> tuple[float, float]:
        """Clamp an interval to this range (result may be empty or inverted)."""
        return max(start, self.start), min(end, self.end)


@define(frozen=True)
class LabelSegment:
    """Half-open labeled interval [start, end) on the relative time axis."""

    start: float = field(converter=float)
    end: float = field(converter=float)
    label: str = field(validator=attrs.validators.instance_of(str))

    def __attrs_post_init__(self):
        """Reject zero or negative width segments."""
        if not self.end > self.start:
            raise ValueError(
                f"LabelSegment end ({self.end}) must be greater than start ({self.start})"
            )

    @property
    def duration(self) -> float:
        return self.end - self.start

    def overlaps(self, start: float, end: float) -> bool:
        """True if [start, end) shares any positive-width span with this segment."""
        return not (self.end <= start or self.start >= end)

    def clipped(self, start: float, end: float) -> LabelSegment | None:
        """Segment clipped to [start, end], or None if nothing remains."""
        new_start = max(self.start, start)
        new_end = min(self.end, end)
        if new_end <= new_start:
            return None
        return attrs.evolve(self, start=new_start, end=new_end)

    def shifted(self, offset: float) -> LabelSegment:
        """Segment moved by offset seconds."""
        return attrs.evolve(self, start=self.start + offset, end=self.end + offset)


def unique_labels(segments: Iterable[LabelSegment]) -> list[str]:
    """Distinct labels in order of first appearance."""
    return list(dict.fromkeys(s.label for s in segments))


@define(frozen=True)
class SegmentDraft:
    """Proposed segment awaiting a label (see quick_append)."""

    start: float = field(converter=float)
    end: float = field(converter=float)
    label: str | None = field(default=None)


@define(frozen=True)
class HeaderMetadata:
    """Recording origin of one stream.

    absolute_start_ms is the wall-clock epoch time of the first sample/row,
    or None when the header did not carry a parseable start time.
    """

    absolute_start_ms: float | None = field(default=None, converter=_optional_float)
    sampling_rate: float = field(
        default=DEFAULT_SAMPLING_RATE, converter=float, validator=_validate_positive
    )
    device_id: str | None = field(
        default=None, validator=attrs.validators.optional(attrs.validators.instance_of(str))
    )

    @property
    def has_absolute_start(self) -> bool:
        return self.absolute_start_ms is not None

    @property
    def sample_interval_ms(self) -> float:
        return 1000.0 / self.sampling_rate

    def shifted(self, offset_s: float) -> HeaderMetadata:
        """Copy with the absolute origin advanced by offset_s seconds."""
        if self.absolute_start_ms is None:
            return self
        return attrs.evolve(self, absolute_start_ms=self.absolute_start_ms + offset_s * 1000.0)


@define(frozen=True)
class Sample:
    """One instant of the signal stream."""

    timestamp: float
    values: tuple[float, ...]

    def __getitem__(self, name: str) -> float:
        return self.values[channel_index(name)]


@define(frozen=True, eq=False)
class SampleStream:
    """Ordered multi-channel samples stored column-wise.

    timestamps are relative seconds (zero-based within the current window);
    channels holds one column per analog channel A1..A6.
    """

    timestamps: np.ndarray = field(validator=_validate_timestamps_sorted)
    channels: np.ndarray = field(validator=_validate_channel_matrix)
    sampling_rate: float = field(
        default=DEFAULT_SAMPLING_RATE, converter=float, validator=_validate_positive
    )

    def __attrs_post_init__(self):
        """Validate timestamps and channel rows have same length."""
        if len(self.timestamps) != len(self.channels):
            raise ValueError(
                f"timestamps ({len(self.timestamps)}) and channels ({len(self.channels)}) "
                f"must have same length"
            )

    @classmethod
    def empty(cls, sampling_rate: float = DEFAULT_SAMPLING_RATE) -> SampleStream:
        return cls(
            timestamps=np.array([], dtype=np.float64),
            channels=np.empty((0, NUM_CHANNELS), dtype=np.float64),
            sampling_rate=sampling_rate,
        )

    def __len__(self) -> int:
        return len(self.timestamps)

    def __getitem__(self, index: int) -> Sample:
        return Sample(
            timestamp=float(self.timestamps[index]),
            values=tuple(float(v) for v in self.channels[index]),
        )

    def __iter__(self) -> Iterator[Sample]:
        for i in range(len(self)):
            yield self[i]

    @property
    def num_samples(self) -> int:
        return len(self.timestamps)

    @property
    def is_empty(self) -> bool:
        return len(self.timestamps) == 0

    @property
    def sample_interval(self) -> float:
        return 1.0 / self.sampling_rate

    @property
    def time_range(self) -> TimeRange:
        """First and last sample timestamps ([0, 0] when empty)."""
        if self.is_empty:
            return TimeRange(0.0, 0.0)
        return TimeRange(float(self.timestamps[0]), float(self.timestamps[-1]))

    @property
    def coverage(self) -> TimeRange:
        """Half-open extent occupied by the samples: the last sample lasts one interval."""
        if self.is_empty:
            return TimeRange(0.0, 0.0)
        return TimeRange(
            float(self.timestamps[0]), float(self.timestamps[-1]) + self.sample_interval
        )

    def channel(self, name: str) -> np.ndarray:
        """Values of one channel (A1..A6)."""
        return self.channels[:, channel_index(name)]

    def channel_range(self, name: str) -> tuple[float, float] | None:
        """(min, max) of one channel, or None when there are no samples."""
        if self.is_empty:
            return None
        values = self.channel(name)
        return float(np.min(values)), float(np.max(values))

    def slice_time(self, start: float, end: float) -> SampleStream:
        """Samples with start <= timestamp <= end."""
        mask = (self.timestamps >= start) & (self.timestamps <= end)
        return attrs.evolve(self, timestamps=self.timestamps[mask], channels=self.channels[mask])

    def shifted(self, offset: float) -> SampleStream:
        """Copy with every timestamp moved by offset seconds."""
        return attrs.evolve(self, timestamps=self.timestamps + offset)

    def take_every(self, step: int) -> SampleStream:
        """Every step-th sample (display decimation)."""
        if step < 1:
            raise ValueError(f"step must be >= 1, got {step}")
        return attrs.evolve(
            self, timestamps=self.timestamps[::step], channels=self.channels[::step]
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Samples as a DataFrame with a time_s column and one column per channel."""
        df = pd.DataFrame(self.channels, columns=list(CHANNEL_NAMES))
        df.insert(0, "time_s", self.timestamps)
        return df
