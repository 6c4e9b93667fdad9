"""Interval algebra over sorted label segment lists.

Every operation takes the current segment list and returns a new list; the
input is never modified. Invalid requests raise ValidationError before any
work is done. After each structural edit the result is re-validated so the
sort/non-overlap/positive-width invariants are checked rather than assumed.
"""
from __future__ import annotations

import math
from typing import Literal, Sequence

import attrs
from loguru import logger

from signal_label_lab.core.data_models import LabelSegment, SegmentDraft, TimeRange
from signal_label_lab.core.errors import ValidationError

Edge = Literal["start", "end"]

DEFAULT_MIN_SEPARATION = 0.01  # seconds
DEFAULT_QUICK_APPEND_DURATION = 0.2  # seconds
SEGMENT_MATCH_EPSILON = 0.002  # seconds


def validate_segments(segments: Sequence[LabelSegment]) -> None:
    """Check sort order, positive width and non-overlap.

    Raises:
        ValueError: On the first invariant violation found
    """
    for i, segment in enumerate(segments):
        if not segment.end > segment.start:
            raise ValueError(f"Segment {i} has non-positive width: {segment}")
        if i > 0:
            previous = segments[i - 1]
            if segment.start < previous.start:
                raise ValueError(f"Segments {i - 1} and {i} are out of order")
            if segment.start < previous.end:
                raise ValueError(
                    f"Segments {i - 1} and {i} overlap "
                    f"({previous.end:.6f}s > {segment.start:.6f}s)"
                )


def normalize_segments(segments: Sequence[LabelSegment]) -> list[LabelSegment]:
    """Sort by start and trim any overlap so the list satisfies the invariants.

    An earlier segment that reaches past the next one's start is cut back to
    it; segments left with no width are dropped.
    """
    ordered = sorted(segments, key=lambda s: (s.start, s.end))
    result: list[LabelSegment] = []
    for segment in ordered:
        if result and segment.start < result[-1].end:
            previous = result.pop()
            if segment.start > previous.start:
                result.append(attrs.evolve(previous, end=segment.start))
            else:
                logger.debug(f"Dropping segment swallowed by overlap repair: {previous}")
        result.append(segment)
    validate_segments(result)
    return result


def check_interval(start: float, end: float, valid_range: TimeRange, what: str = "Segment") -> None:
    """Reject non-finite, inverted/empty or out-of-range intervals.

    Raises:
        ValidationError: With a user-facing message
    """
    if not (math.isfinite(start) and math.isfinite(end)):
        raise ValidationError(f"Invalid {what.lower()} times. Please enter valid numbers.")
    if start >= end:
        raise ValidationError(f"{what} start time must be less than end time.")
    if start < valid_range.start or end > valid_range.end:
        raise ValidationError(
            f"{what} times must be within data range "
            f"({valid_range.start:.2f}s - {valid_range.end:.2f}s)."
        )


def insert_segment(
    segments: Sequence[LabelSegment],
    start: float,
    end: float,
    label: str,
    valid_range: TimeRange,
) -> list[LabelSegment]:
    """Insert a labeled interval; the new segment wins wherever it overlaps.

    Existing segments fully covered by [start, end) are dropped, segments
    overlapping one side are truncated to the new boundary, and a segment
    strictly containing the new one is split in two (both halves keep the
    original label).

    Args:
        segments: Current sorted segment list
        start: New segment start (s)
        end: New segment end (s)
        label: Label text (surrounding whitespace is stripped)
        valid_range: Range both boundaries must lie in

    Returns:
        New sorted segment list

    Raises:
        ValidationError: Blank label, inverted/empty interval or out of range
    """
    label = (label or "").strip()
    if not label:
        raise ValidationError("Please enter a label for the new segment.")
    check_interval(start, end, valid_range)

    new_segment = LabelSegment(start=start, end=end, label=label)
    kept: list[LabelSegment] = []

    for segment in segments:
        if not segment.overlaps(start, end):
            kept.append(segment)
        elif start <= segment.start and end >= segment.end:
            # Fully covered
            continue
        elif segment.start < start and segment.end > end:
            kept.append(attrs.evolve(segment, end=start))
            kept.append(attrs.evolve(segment, start=end))
        elif start <= segment.start:
            kept.append(attrs.evolve(segment, start=end))
        else:
            kept.append(attrs.evolve(segment, end=start))

    result = sorted(kept + [new_segment], key=lambda s: s.start)
    validate_segments(result)
    logger.info(f"Inserted segment '{label}' [{start:.3f}s, {end:.3f}s)")
    return result


def delete_segment(segments: Sequence[LabelSegment], index: int) -> list[LabelSegment]:
    """Remove one segment; neighbours keep their boundaries (a gap may remain).

    Raises:
        ValidationError: If index is out of range
    """
    if not 0 <= index < len(segments):
        raise ValidationError(f"Invalid segment index: {index}")
    removed = segments[index]
    result = [s for i, s in enumerate(segments) if i != index]
    logger.info(f"Deleted segment '{removed.label}' ({format_segment_range(removed)})")
    return result


def drag_boundary(
    segments: Sequence[LabelSegment],
    index: int,
    edge: Edge,
    proposed_time: float,
    *,
    min_separation: float = DEFAULT_MIN_SEPARATION,
    valid_range: TimeRange | None = None,
) -> list[LabelSegment]:
    """Move one boundary of segment `index`, dragging the neighbour's boundary with it.

    Moving `start` also moves the previous segment's `end`; moving `end`
    also moves the next segment's `start`, so touching segments stay
    touching. The moved boundary is clamped so that neither segment becomes
    narrower than min_separation. The first segment's start and the last
    segment's end are additionally clamped to valid_range when given. When
    no position satisfies the clamp the list is returned unchanged.

    Raises:
        ValidationError: Bad index, edge name or non-finite time
    """
    if not 0 <= index < len(segments):
        raise ValidationError(f"Invalid segment index: {index}")
    if edge not in ("start", "end"):
        raise ValidationError(f"Invalid edge {edge!r}, expected 'start' or 'end'")
    if not math.isfinite(proposed_time):
        raise ValidationError("Invalid drag time.")

    result = list(segments)
    segment = result[index]

    if edge == "start":
        upper = segment.end - min_separation
        if index > 0:
            lower = result[index - 1].start + min_separation
        else:
            lower = valid_range.start if valid_range is not None else -math.inf
        if lower > upper:
            logger.debug(f"Segment {index} start cannot move (clamp window empty)")
            return result
        new_time = min(max(proposed_time, lower), upper)
        result[index] = attrs.evolve(segment, start=new_time)
        if index > 0:
            result[index - 1] = attrs.evolve(result[index - 1], end=new_time)
    else:
        lower = segment.start + min_separation
        if index + 1 < len(result):
            upper = result[index + 1].end - min_separation
        else:
            upper = valid_range.end if valid_range is not None else math.inf
        if lower > upper:
            logger.debug(f"Segment {index} end cannot move (clamp window empty)")
            return result
        new_time = min(max(proposed_time, lower), upper)
        result[index] = attrs.evolve(segment, end=new_time)
        if index + 1 < len(result):
            result[index + 1] = attrs.evolve(result[index + 1], start=new_time)

    validate_segments(result)
    return result


def quick_append(
    after_time: float,
    valid_range: TimeRange,
    duration: float = DEFAULT_QUICK_APPEND_DURATION,
) -> SegmentDraft:
    """Propose a short unlabeled segment starting at after_time.

    The end is clamped to the end of valid_range. The draft still needs a
    label and must go through insert_segment.

    Raises:
        ValidationError: after_time outside the range or no room left
    """
    if not math.isfinite(after_time) or not valid_range.contains(after_time):
        raise ValidationError(
            f"Segment times must be within data range "
            f"({valid_range.start:.2f}s - {valid_range.end:.2f}s)."
        )
    end = min(after_time + duration, valid_range.end)
    if end <= after_time:
        raise ValidationError("No room for a new segment at the end of the data range.")
    return SegmentDraft(start=after_time, end=end)


def find_segment_at(
    segments: Sequence[LabelSegment],
    timestamp: float,
    epsilon: float = SEGMENT_MATCH_EPSILON,
) -> int | None:
    """Index of the first segment containing timestamp (with epsilon slack), or None."""
    for i, segment in enumerate(segments):
        if segment.start - epsilon <= timestamp <= segment.end + epsilon:
            return i
    return None


def find_edge_near(
    segments: Sequence[LabelSegment],
    timestamp: float,
    threshold: float,
) -> tuple[int, Edge, float] | None:
    """First segment boundary within threshold seconds of timestamp.

    Returns:
        (segment index, edge, boundary time) or None
    """
    for i, segment in enumerate(segments):
        if abs(timestamp - segment.start) <= threshold:
            return i, "start", segment.start
        if abs(timestamp - segment.end) <= threshold:
            return i, "end", segment.end
    return None


def format_segment_range(segment: LabelSegment) -> str:
    return f"{segment.start:.2f}s - {segment.end:.2f}s"
