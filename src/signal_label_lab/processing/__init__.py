"""Segment editing modules for SignalLabelLab.

Provides the interval algebra over label segments, the boundary drag
state machine and range cropping with time-axis renormalisation.
"""

from signal_label_lab.processing.interval_editor import (
    delete_segment,
    drag_boundary,
    find_edge_near,
    find_segment_at,
    insert_segment,
    normalize_segments,
    quick_append,
    validate_segments,
)
from signal_label_lab.processing.boundary_drag import (
    ActiveDrag,
    IdleDrag,
    begin_drag,
    cancel_drag,
    end_drag,
    update_drag,
)
from signal_label_lab.processing.cropper import CropResult, crop_recording

__all__ = [
    # Interval editing
    "insert_segment",
    "delete_segment",
    "drag_boundary",
    "quick_append",
    "normalize_segments",
    "validate_segments",
    "find_segment_at",
    "find_edge_near",
    # Boundary drag
    "IdleDrag",
    "ActiveDrag",
    "begin_drag",
    "update_drag",
    "end_drag",
    "cancel_drag",
    # Cropping
    "CropResult",
    "crop_recording",
]
