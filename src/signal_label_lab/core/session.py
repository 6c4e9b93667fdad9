"""Alignment session: the aggregate that owns a loaded recording and its edits.

Holds the authoritative samples, the display copy, the label segments and
both streams' header metadata. Every command validates first and then
replaces the whole SessionState in one assignment, so a failed command
leaves the session exactly as it was.

Edits (insert, delete, drag, crop) are recorded on a bounded undo stack of
full state snapshots; loading a new recording or resetting clears it.
"""
from __future__ import annotations

from collections import deque
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import attrs
from attrs import define, field
from loguru import logger

from signal_label_lab.config.settings import AppConfig
from signal_label_lab.core.data_models import (
    HeaderMetadata,
    LabelSegment,
    ParseDiagnostic,
    SampleStream,
    SegmentDraft,
    TimeRange,
)
from signal_label_lab.core.decoder import decode_signal_text, downsample_for_display
from signal_label_lab.core.errors import ValidationError
from signal_label_lab.core.exporter import (
    export_label_file,
    export_segments_csv,
    export_signal_file,
    format_label_text,
    format_signal_text,
)
from signal_label_lab.core.segment_builder import build_label_segments
from signal_label_lab.processing import boundary_drag, interval_editor
from signal_label_lab.processing.boundary_drag import ActiveDrag, DragState, IdleDrag
from signal_label_lab.processing.cropper import (
    CropResult,
    crop_recording,
    initial_display_window,
)
from signal_label_lab.processing.interval_editor import (
    Edge,
    find_segment_at,
    validate_segments,
)


def _empty_range() -> TimeRange:
    return TimeRange(0.0, 0.0)


@define(frozen=True)
class SessionState:
    """Everything a command may replace, as one immutable value."""

    samples: SampleStream = field(factory=SampleStream.empty)
    display_samples: SampleStream = field(factory=SampleStream.empty)
    segments: tuple[LabelSegment, ...] = field(default=(), converter=tuple)
    signal_metadata: HeaderMetadata = field(factory=HeaderMetadata)
    label_metadata: HeaderMetadata = field(factory=HeaderMetadata)
    channel_range: tuple[float, float] | None = field(default=None)
    display_window: TimeRange = field(factory=_empty_range)
    diagnostics: tuple[ParseDiagnostic, ...] = field(default=(), converter=tuple)


@define(frozen=True)
class _Snapshot:
    state: SessionState
    selected_index: int | None


def read_text_file(path: Path | str) -> str:
    """Read a recording text file.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_text(encoding="utf-8", errors="replace")


class AlignmentSession:
    """Aligned signal + label recording with undoable segment edits.

    Usage:
        session = AlignmentSession()
        session.load_files("signal.txt", "labels.txt")
        session.insert_segment(1.0, 1.5, "blink")
        session.crop(0.5, 20.0)
        text = session.export_labels()
    """

    def __init__(self, config: AppConfig | None = None):
        """Initialize an empty session.

        Args:
            config: Application configuration (defaults to AppConfig.default())
        """
        self.config = config or AppConfig.default()
        self.state = SessionState()
        self.drag: DragState = IdleDrag()
        self.selected_index: int | None = None

        undo_levels = self.config.editing.undo_levels
        self.undo_stack: deque[_Snapshot] = deque(maxlen=undo_levels)
        self.redo_stack: deque[_Snapshot] = deque(maxlen=undo_levels)

    # ---- Queries ----

    @property
    def is_loaded(self) -> bool:
        return not self.state.samples.is_empty

    @property
    def samples(self) -> SampleStream:
        return self.state.samples

    @property
    def display_samples(self) -> SampleStream:
        return self.state.display_samples

    @property
    def segments(self) -> list[LabelSegment]:
        """Current segments, including the live result of an active drag."""
        if isinstance(self.drag, ActiveDrag):
            return list(self.drag.current)
        return list(self.state.segments)

    @property
    def time_range(self) -> TimeRange:
        """First to last sample timestamp."""
        return self.state.samples.time_range

    @property
    def coverage(self) -> TimeRange:
        """Extent segments may occupy (the last sample lasts one interval)."""
        return self.state.samples.coverage

    @property
    def diagnostics(self) -> list[ParseDiagnostic]:
        return list(self.state.diagnostics)

    @property
    def can_undo(self) -> bool:
        """Whether undo is available."""
        return len(self.undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        """Whether redo is available."""
        return len(self.redo_stack) > 0

    # ---- Loading ----

    def load(self, signal_text: str, label_text: str | None = None) -> list[ParseDiagnostic]:
        """Parse both files and replace the session contents.

        Labels are aligned onto the signal's time axis through the absolute
        start times in both headers. An abandoned drag, the selection and the
        undo history are all discarded.

        Args:
            signal_text: OpenSignals text file contents
            label_text: Keypress label file contents (None or "" for none)

        Returns:
            Diagnostics collected while parsing both files

        Raises:
            ValidationError: If the signal file holds no usable samples
        """
        parsing = self.config.parsing
        decoded = decode_signal_text(
            signal_text,
            display_channel=parsing.display_channel,
            default_sampling_rate=parsing.default_sampling_rate,
        )
        if decoded.samples.is_empty:
            raise ValidationError("No signal samples found in the signal file.")

        samples = decoded.samples
        labels = build_label_segments(
            label_text or "",
            decoded.metadata.absolute_start_ms,
            samples.coverage,
            parsing.default_sampling_rate,
        )
        validate_segments(labels.segments)

        new_state = SessionState(
            samples=samples,
            display_samples=downsample_for_display(samples, self.config.display.max_display_points),
            segments=labels.segments,
            signal_metadata=decoded.metadata,
            label_metadata=labels.metadata,
            channel_range=decoded.channel_range,
            display_window=initial_display_window(
                samples.time_range, self.config.display.initial_window_s
            ),
            diagnostics=decoded.diagnostics + labels.diagnostics,
        )

        self.state = new_state
        self.drag = IdleDrag()
        self.selected_index = None
        self.undo_stack.clear()
        self.redo_stack.clear()

        logger.info(
            f"Loaded {len(samples)} samples ({samples.time_range.duration:.3f}s) "
            f"and {len(labels.segments)} label segments"
        )
        return list(new_state.diagnostics)

    def load_files(
        self,
        signal_path: Path | str,
        label_path: Path | str | None = None,
    ) -> list[ParseDiagnostic]:
        """Read both files concurrently, then load them.

        Raises:
            FileNotFoundError: If either file doesn't exist
            ValidationError: If the signal file holds no usable samples
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            signal_future = executor.submit(read_text_file, signal_path)
            label_future = executor.submit(read_text_file, label_path) if label_path else None
            signal_text = signal_future.result()
            label_text = label_future.result() if label_future is not None else None

        logger.info(f"Read signal file {signal_path} (labels: {label_path or 'none'})")
        return self.load(signal_text, label_text)

    def reset(self) -> None:
        """Discard the recording, any drag in progress and the undo history."""
        if isinstance(self.drag, ActiveDrag):
            logger.debug("Reset abandoned an active drag")
        self.state = SessionState()
        self.drag = IdleDrag()
        self.selected_index = None
        self.undo_stack.clear()
        self.redo_stack.clear()
        logger.info("Session reset")

    # ---- Segment editing ----

    def insert_segment(self, start: float, end: float, label: str) -> list[LabelSegment]:
        """Insert a labeled interval; it replaces whatever it overlaps.

        Raises:
            ValidationError: Blank label, inverted/empty or out-of-range interval
        """
        self._require_idle()
        segments = interval_editor.insert_segment(
            self.state.segments, start, end, label, self.coverage
        )
        self._commit(segments, selected_index=None)
        return segments

    def quick_append(self, after_time: float, label: str | None = None) -> SegmentDraft:
        """Propose a short segment at after_time, inserting it when label is given.

        Returns:
            The draft (carrying the label when it was inserted)

        Raises:
            ValidationError: after_time outside the data range, or insert rejected
        """
        self._require_idle()
        draft = interval_editor.quick_append(
            after_time, self.coverage, self.config.editing.quick_append_duration
        )
        if label is None:
            return draft
        self.insert_segment(draft.start, draft.end, label)
        return attrs.evolve(draft, label=label.strip())

    def delete_segment(self, index: int | None = None) -> list[LabelSegment]:
        """Delete segment `index` (default: the selected one).

        Raises:
            ValidationError: No index given and nothing selected, or bad index
        """
        self._require_idle()
        if index is None:
            index = self.selected_index
        if index is None:
            raise ValidationError("No segment selected.")
        segments = interval_editor.delete_segment(self.state.segments, index)
        self._commit(segments, selected_index=None)
        return segments

    def select_segment(self, index: int | None) -> LabelSegment | None:
        """Select a segment by index, or clear the selection with None.

        Raises:
            ValidationError: If index is out of range
        """
        if index is None:
            self.selected_index = None
            return None
        if not 0 <= index < len(self.state.segments):
            raise ValidationError(f"Invalid segment index: {index}")
        self.selected_index = index
        return self.state.segments[index]

    def select_segment_at(self, timestamp: float) -> LabelSegment | None:
        """Select the segment under timestamp (or clear the selection)."""
        index = find_segment_at(
            self.state.segments, timestamp, self.config.editing.segment_match_epsilon
        )
        return self.select_segment(index)

    # ---- Boundary drag ----

    def begin_drag(self, index: int, edge: Edge) -> ActiveDrag:
        """Start dragging one boundary of segment `index`.

        Raises:
            ValidationError: Drag already active, bad index or edge
        """
        self._require_idle()
        self.drag = boundary_drag.begin_drag(
            self.state.segments,
            index,
            edge,
            min_separation=self.config.editing.drag_min_separation,
            valid_range=self.coverage,
        )
        return self.drag

    def update_drag(self, proposed_time: float) -> list[LabelSegment]:
        """Move the dragged boundary; returns the live segment list."""
        drag = self._require_drag()
        self.drag = boundary_drag.update_drag(drag, proposed_time)
        return list(self.drag.current)

    def end_drag(self, proposed_time: float | None = None) -> list[LabelSegment]:
        """Commit the drag as one undoable edit."""
        drag = self._require_drag()
        idle, segments = boundary_drag.end_drag(drag, proposed_time)
        self.drag = idle
        if tuple(segments) != self.state.segments:
            self._commit(segments, selected_index=self.selected_index)
        return segments

    def cancel_drag(self) -> list[LabelSegment]:
        """Abandon the drag; the segments are left as they were at begin_drag."""
        drag = self._require_drag()
        self.drag, segments = boundary_drag.cancel_drag(drag)
        return segments

    # ---- Crop ----

    def crop(self, start: float, end: float) -> CropResult:
        """Keep [start, end] of both streams and re-zero the time axis.

        Raises:
            ValidationError: Inverted/empty, out-of-range or sample-free range
        """
        self._require_idle()
        result = crop_recording(
            self.state.samples,
            self.state.segments,
            self.state.signal_metadata,
            self.state.label_metadata,
            start,
            end,
            display_channel=self.config.parsing.display_channel,
            max_window=self.config.display.initial_window_s,
        )
        new_state = attrs.evolve(
            self.state,
            samples=result.samples,
            display_samples=downsample_for_display(
                result.samples, self.config.display.max_display_points
            ),
            segments=result.segments,
            signal_metadata=result.signal_metadata,
            label_metadata=result.label_metadata,
            channel_range=result.channel_range,
            display_window=result.display_window,
        )
        self._push_undo()
        self.state = new_state
        self.selected_index = None
        return result

    # ---- Export ----

    def export_signal(self) -> str:
        """Signal file text for the current (possibly cropped) samples."""
        return format_signal_text(
            self.state.samples,
            self.state.signal_metadata,
            decimals=self.config.export.signal_decimals,
        )

    def export_labels(self) -> str:
        """Label file text synthesized from the current segments."""
        return format_label_text(
            self.state.segments,
            self.state.signal_metadata,
            self.state.label_metadata,
            self.coverage,
        )

    def save_signal(self, output_path: Path | str | None = None) -> Path:
        """Write the signal export (default: the configured exports directory)."""
        return export_signal_file(
            self.state.samples,
            self.state.signal_metadata,
            self._output_target(output_path),
            decimals=self.config.export.signal_decimals,
        )

    def save_labels(self, output_path: Path | str | None = None) -> Path:
        """Write the label export (default: the configured exports directory)."""
        return export_label_file(
            self.state.segments,
            self.state.signal_metadata,
            self.state.label_metadata,
            self.coverage,
            self._output_target(output_path),
        )

    def save_segment_table(self, output_path: Path | str) -> Path:
        """Write the current segments as a CSV table."""
        return export_segments_csv(self.state.segments, output_path)

    # ---- Undo/redo ----

    def undo(self) -> bool:
        """Undo last edit.

        Returns:
            True if undone, False if nothing to undo
        """
        self._require_idle()
        if len(self.undo_stack) == 0:
            logger.info("Nothing to undo")
            return False

        self.redo_stack.append(self._snapshot())
        self._restore(self.undo_stack.pop())
        logger.info("Undid last edit")
        return True

    def redo(self) -> bool:
        """Redo last undone edit.

        Returns:
            True if redone, False if nothing to redo
        """
        self._require_idle()
        if len(self.redo_stack) == 0:
            logger.info("Nothing to redo")
            return False

        self.undo_stack.append(self._snapshot())
        self._restore(self.redo_stack.pop())
        logger.info("Redid edit")
        return True

    # ---- Internals ----

    def _require_idle(self) -> None:
        if isinstance(self.drag, ActiveDrag):
            raise ValidationError("Finish or cancel the current boundary drag first.")

    def _require_drag(self) -> ActiveDrag:
        if not isinstance(self.drag, ActiveDrag):
            raise ValidationError("No boundary drag in progress.")
        return self.drag

    def _snapshot(self) -> _Snapshot:
        return _Snapshot(state=self.state, selected_index=self.selected_index)

    def _restore(self, snapshot: _Snapshot) -> None:
        self.state = snapshot.state
        self.selected_index = snapshot.selected_index

    def _push_undo(self) -> None:
        """Save current state to undo stack and clear redo stack."""
        self.undo_stack.append(self._snapshot())
        self.redo_stack.clear()

    def _commit(self, segments: list[LabelSegment], selected_index: int | None) -> None:
        new_state = attrs.evolve(self.state, segments=segments)
        self._push_undo()
        self.state = new_state
        self.selected_index = selected_index

    def _output_target(self, output_path: Path | str | None) -> Path:
        if output_path is not None:
            return Path(output_path)
        exports_dir = self.config.export.get_exports_path()
        exports_dir.mkdir(parents=True, exist_ok=True)
        return exports_dir
