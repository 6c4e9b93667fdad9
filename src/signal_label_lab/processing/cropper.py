"""Crop samples and segments to a sub-range and re-zero the time axis.

The crop is computed in full before anything is handed back, so callers
either receive a complete CropResult or a ValidationError and nothing else.
"""
from __future__ import annotations

from typing import Sequence

from attrs import define
from loguru import logger

from signal_label_lab.core.data_models import (
    HeaderMetadata,
    LabelSegment,
    SampleStream,
    TimeRange,
)
from signal_label_lab.core.decoder import DEFAULT_DISPLAY_CHANNEL
from signal_label_lab.core.errors import ValidationError
from signal_label_lab.processing.interval_editor import check_interval, validate_segments

INITIAL_WINDOW_S = 10.0


@define(frozen=True)
class CropResult:
    """Complete replacement state produced by a crop."""

    samples: SampleStream
    segments: list[LabelSegment]
    signal_metadata: HeaderMetadata
    label_metadata: HeaderMetadata
    channel_range: tuple[float, float] | None
    display_window: TimeRange
    offset: float

    @property
    def time_range(self) -> TimeRange:
        return self.samples.time_range


def initial_display_window(time_range: TimeRange, max_window: float = INITIAL_WINDOW_S) -> TimeRange:
    """Visible window after load/crop: the first max_window seconds of the range."""
    window = min(max(time_range.duration, 0.0), max_window)
    return TimeRange(time_range.start, time_range.start + window)


def crop_segments(
    segments: Sequence[LabelSegment],
    start: float,
    end: float,
    offset: float,
) -> list[LabelSegment]:
    """Clip segments to [start, end], drop empty ones, then shift by -offset."""
    cropped = []
    for segment in segments:
        clipped = segment.clipped(start, end)
        if clipped is not None:
            cropped.append(clipped.shifted(-offset))
    return cropped


def crop_recording(
    samples: SampleStream,
    segments: Sequence[LabelSegment],
    signal_metadata: HeaderMetadata,
    label_metadata: HeaderMetadata,
    crop_start: float,
    crop_end: float,
    *,
    display_channel: str = DEFAULT_DISPLAY_CHANNEL,
    max_window: float = INITIAL_WINDOW_S,
) -> CropResult:
    """Keep [crop_start, crop_end] of both streams and renormalize to a zero origin.

    The new origin is the first retained sample, which is crop_start itself
    whenever the crop starts on a sample. Both streams' absolute start times
    advance by the same offset so absolute timestamps stay correct.

    Args:
        samples: Authoritative (non-decimated) samples
        segments: Current segment list
        signal_metadata: Signal stream origin
        label_metadata: Label stream origin
        crop_start: Start of the kept range (s)
        crop_end: End of the kept range (s), inclusive for samples
        display_channel: Channel whose min/max is recomputed
        max_window: Length of the reset display window (s)

    Returns:
        CropResult

    Raises:
        ValidationError: Inverted/empty or out-of-range bounds, or no samples retained
    """
    if samples.is_empty:
        raise ValidationError("No signal data to crop.")

    check_interval(crop_start, crop_end, samples.time_range, what="Crop")

    retained = samples.slice_time(crop_start, crop_end)
    if retained.is_empty:
        raise ValidationError("Crop range contains no data points.")

    offset = float(retained.timestamps[0])
    normalized = retained.shifted(-offset)
    cropped_segments = crop_segments(segments, offset, crop_end, offset)
    validate_segments(cropped_segments)

    result = CropResult(
        samples=normalized,
        segments=cropped_segments,
        signal_metadata=signal_metadata.shifted(offset),
        label_metadata=label_metadata.shifted(offset),
        channel_range=normalized.channel_range(display_channel),
        display_window=initial_display_window(normalized.time_range, max_window),
        offset=offset,
    )
    logger.info(
        f"Cropped to [{crop_start:.3f}s, {crop_end:.3f}s]: {len(normalized)} samples, "
        f"{len(cropped_segments)} segments kept"
    )
    return result
