"""Build labeled segments from a keypress label file.

The label file holds one row per label sample:

    sample_number  timestamp_ms  elapsed_ms  label

Consecutive rows with the same label are collapsed into one segment and
placed on the signal's relative time axis using absolute wall-clock
timestamps, so both streams share the signal's zero origin.
"""
from __future__ import annotations

import numpy as np
import pandas as pd
from attrs import define, field
from loguru import logger

from signal_label_lab.core.data_models import (
    DEFAULT_SAMPLING_RATE,
    HeaderMetadata,
    LabelSegment,
    ParseDiagnostic,
    TimeRange,
)
from signal_label_lab.core.header import parse_header, read_data_rows, split_lines

MIN_LABEL_FIELDS = 4


@define(frozen=True)
class LabelImport:
    """Segments aligned onto the signal timeline plus the label stream's own origin.

    metadata.absolute_start_ms / metadata.sampling_rate are needed again
    when the edited labels are exported.
    """

    segments: list[LabelSegment]
    metadata: HeaderMetadata = field(factory=HeaderMetadata)
    diagnostics: list[ParseDiagnostic] = field(factory=list)


@define(frozen=True)
class _Run:
    label: str
    first_ms: float
    last_ms: float
    line_number: int


def _row_absolute_ms(rows: pd.DataFrame, recording_start_ms: float | None) -> pd.Series:
    """Absolute timestamp per row: timestamp_ms if usable, else start + elapsed_ms."""
    timestamp_ms = pd.to_numeric(rows[1], errors="coerce")
    absolute_ms = timestamp_ms.where(np.isfinite(timestamp_ms))
    if recording_start_ms is not None:
        elapsed_ms = pd.to_numeric(rows[2], errors="coerce")
        fallback = (recording_start_ms + elapsed_ms).where(np.isfinite(elapsed_ms))
        absolute_ms = absolute_ms.fillna(fallback)
    return absolute_ms


def _collect_runs(
    lines: list[str],
    data_start: int,
    recording_start_ms: float | None,
    diagnostics: list[ParseDiagnostic],
) -> list[_Run]:
    """Run-length encode label rows in file order."""
    rows = read_data_rows(lines[data_start:], data_start)
    field_counts = rows.notna().sum(axis=1)
    for line_number, count in field_counts[field_counts < MIN_LABEL_FIELDS].items():
        diagnostics.append(
            ParseDiagnostic(
                int(line_number), "row", f"Expected {MIN_LABEL_FIELDS} fields, got {count}; row skipped"
            )
        )
    rows = rows[field_counts >= MIN_LABEL_FIELDS]
    if rows.empty:
        diagnostics.sort(key=lambda d: d.line_number)
        return []

    absolute_ms = _row_absolute_ms(rows, recording_start_ms)
    for line_number in absolute_ms.index[absolute_ms.isna()]:
        diagnostics.append(
            ParseDiagnostic(int(line_number), "timestamp_ms", "No usable absolute timestamp; row skipped")
        )
    diagnostics.sort(key=lambda d: d.line_number)

    timed = pd.DataFrame(
        {"label": rows[3], "absolute_ms": absolute_ms, "line_number": rows.index}
    ).loc[absolute_ms.notna()]
    run_id = (timed["label"] != timed["label"].shift()).cumsum()
    grouped = timed.groupby(run_id, sort=False).agg(
        label=("label", "first"),
        first_ms=("absolute_ms", "first"),
        last_ms=("absolute_ms", "last"),
        line_number=("line_number", "first"),
    )
    return [
        _Run(
            label=run.label,
            first_ms=float(run.first_ms),
            last_ms=float(run.last_ms),
            line_number=int(run.line_number),
        )
        for run in grouped.itertuples(index=False)
    ]


def _runs_to_intervals(
    runs: list[_Run],
    signal_start_ms: float,
    sample_interval_ms: float,
    diagnostics: list[ParseDiagnostic],
) -> list[tuple[float, float, str]]:
    """Convert runs to relative-second intervals and repair overlaps.

    Each label row lasts one sample interval, so a run ends one interval
    after its last row. Out-of-order source timestamps can make a run reach
    past the start of the next one; the earlier run is trimmed back.
    """
    intervals = []
    for run in runs:
        start = (run.first_ms - signal_start_ms) / 1000.0
        end = (max(run.last_ms, run.first_ms) + sample_interval_ms - signal_start_ms) / 1000.0
        intervals.append((start, end, run.label, run.line_number))

    intervals.sort(key=lambda item: item[0])
    repaired: list[tuple[float, float, str]] = []
    for idx, (start, end, label, line_number) in enumerate(intervals):
        if idx + 1 < len(intervals):
            next_start = intervals[idx + 1][0]
            if end > next_start:
                diagnostics.append(
                    ParseDiagnostic(
                        line_number,
                        "label",
                        f"Run '{label}' overlaps the next run; end trimmed from {end:.6f}s to {next_start:.6f}s",
                    )
                )
                end = next_start
        if end > start:
            repaired.append((start, end, label))
    return repaired


def build_label_segments(
    text: str,
    signal_start_ms: float | None,
    time_range: TimeRange,
    default_sampling_rate: float = DEFAULT_SAMPLING_RATE,
) -> LabelImport:
    """Align a keypress label file onto the signal timeline.

    Args:
        text: Whole label file text
        signal_start_ms: Absolute start of the signal stream (alignment anchor)
        time_range: Signal extent to clip segments to (relative seconds)
        default_sampling_rate: Label rate used when the header carries none

    Returns:
        LabelImport with sorted, non-overlapping segments. Empty text, a
        missing signal start or an empty time_range all produce an empty
        segment list; none of them raise.
    """
    if not text:
        return LabelImport(segments=[])

    lines = split_lines(text)
    header = parse_header(lines, default_sampling_rate)
    diagnostics = list(header.diagnostics)

    if signal_start_ms is None:
        message = "Missing signal start timestamp; cannot align keypress labels"
        logger.warning(message)
        diagnostics.append(ParseDiagnostic(0, "signal start", message))
        return LabelImport(segments=[], metadata=header.metadata, diagnostics=diagnostics)

    runs = _collect_runs(lines, header.data_start, header.absolute_start_ms, diagnostics)
    intervals = _runs_to_intervals(
        runs, signal_start_ms, header.metadata.sample_interval_ms, diagnostics
    )

    if time_range.end <= time_range.start:
        logger.debug("Empty signal time range; no segments to align")
        return LabelImport(segments=[], metadata=header.metadata, diagnostics=diagnostics)

    segments = []
    for start, end, label in intervals:
        clipped_start, clipped_end = time_range.clip(start, end)
        if clipped_end > clipped_start:
            segments.append(LabelSegment(start=clipped_start, end=clipped_end, label=label))

    if len(diagnostics) > len(header.diagnostics):
        logger.warning(
            f"Label parsing skipped or repaired {len(diagnostics) - len(header.diagnostics)} row(s)"
        )
    logger.info(
        f"Built {len(segments)} label segments from {len(runs)} runs "
        f"({len(intervals) - len(segments)} outside the signal range)"
    )
    return LabelImport(segments=segments, metadata=header.metadata, diagnostics=diagnostics)
