"""Boundary drag gesture as an explicit state machine.

    IdleDrag --begin_drag--> ActiveDrag --update_drag*--> ActiveDrag
    ActiveDrag --end_drag/cancel_drag--> IdleDrag

A gesture snapshots the segment list when it begins. Each update recomputes
the drag from that snapshot, so the result depends only on the state and the
proposed time, never on how many pointer events arrived in between.
Cancelling restores the snapshot, so an abandoned gesture cannot leave a
half-applied edit behind.
"""
from __future__ import annotations

from typing import Sequence, Union

import attrs
from attrs import define, field
from loguru import logger

from signal_label_lab.core.data_models import LabelSegment, TimeRange
from signal_label_lab.core.errors import ValidationError
from signal_label_lab.processing.interval_editor import (
    DEFAULT_MIN_SEPARATION,
    Edge,
    drag_boundary,
)


@define(frozen=True)
class IdleDrag:
    """No gesture in progress."""

    @property
    def is_active(self) -> bool:
        return False


@define(frozen=True)
class ActiveDrag:
    """A boundary of segment_index is being dragged.

    origin is the list at pointer-down; current is the live result of the
    latest update.
    """

    segment_index: int
    edge: Edge
    anchor_time: float
    origin: tuple[LabelSegment, ...]
    current: tuple[LabelSegment, ...]
    min_separation: float = field(default=DEFAULT_MIN_SEPARATION)
    valid_range: TimeRange | None = field(default=None)

    @property
    def is_active(self) -> bool:
        return True


DragState = Union[IdleDrag, ActiveDrag]


def begin_drag(
    segments: Sequence[LabelSegment],
    index: int,
    edge: Edge,
    *,
    min_separation: float = DEFAULT_MIN_SEPARATION,
    valid_range: TimeRange | None = None,
) -> ActiveDrag:
    """Start dragging one boundary (pointer-down).

    Raises:
        ValidationError: Bad index or edge name
    """
    if not 0 <= index < len(segments):
        raise ValidationError(f"Invalid segment index: {index}")
    if edge not in ("start", "end"):
        raise ValidationError(f"Invalid edge {edge!r}, expected 'start' or 'end'")

    anchor = segments[index].start if edge == "start" else segments[index].end
    snapshot = tuple(segments)
    logger.debug(f"Begin drag: segment {index} {edge} at {anchor:.3f}s")
    return ActiveDrag(
        segment_index=index,
        edge=edge,
        anchor_time=anchor,
        origin=snapshot,
        current=snapshot,
        min_separation=min_separation,
        valid_range=valid_range,
    )


def update_drag(state: ActiveDrag, proposed_time: float) -> ActiveDrag:
    """Move the dragged boundary to proposed_time (clamped), pointer-move."""
    updated = drag_boundary(
        state.origin,
        state.segment_index,
        state.edge,
        proposed_time,
        min_separation=state.min_separation,
        valid_range=state.valid_range,
    )
    return attrs.evolve(state, current=tuple(updated))


def end_drag(state: ActiveDrag, proposed_time: float | None = None) -> tuple[IdleDrag, list[LabelSegment]]:
    """Finish the gesture (pointer-up) and return the committed list."""
    if proposed_time is not None:
        state = update_drag(state, proposed_time)
    logger.debug(f"End drag: segment {state.segment_index} {state.edge}")
    return IdleDrag(), list(state.current)


def cancel_drag(state: ActiveDrag) -> tuple[IdleDrag, list[LabelSegment]]:
    """Abandon the gesture and return the list as it was at pointer-down."""
    logger.debug(f"Cancel drag: segment {state.segment_index} {state.edge}")
    return IdleDrag(), list(state.origin)
