"""Export the (possibly edited/cropped) recording back to its text formats.

Two re-importable serializations:
- OpenSignals signal file: JSON header + one row per authoritative sample
- Keypress label file: header + rows synthesized from the current segments
  at the label stream's sampling interval, so edits are reflected in full

Plus a segment table CSV for downstream analysis.
"""
from __future__ import annotations

import json
import math
import re
from datetime import datetime
from pathlib import Path
from typing import Sequence

import pandas as pd
from loguru import logger

from signal_label_lab.core.data_models import (
    NUM_CHANNELS,
    HeaderMetadata,
    LabelSegment,
    SampleStream,
    TimeRange,
    unique_labels,
)
from signal_label_lab.core.errors import AlignmentError, ValidationError
from signal_label_lab.core.header import HEADER_TERMINATOR, format_local_datetime

SIGNAL_FILE_TITLE = "# OpenSignals Text File Format"
CHANNEL_RESOLUTION = [16] * NUM_CHANNELS
COLUMN_DESCRIPTOR = "A1-A6"
UNKNOWN_DEVICE_ID = "DEVICE_UNKNOWN"
SIGNAL_DECIMALS = 6

LABEL_FILE_TITLE = "# Eye Tracking Keypress Labels"
LABEL_COLUMNS = "sample_number, timestamp_ms, elapsed_ms, label"

# Absorbs float noise in duration/interval so an exact multiple is not rounded up
_SAMPLE_COUNT_TOLERANCE = 1e-6

_SEGMENT_COLUMNS = ["start_s", "end_s", "duration_s", "label"]


def _format_rate(rate: float) -> int | float:
    """Sampling rate as int when integral (1000, not 1000.0)."""
    return int(rate) if float(rate).is_integer() else rate


def _file_stamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")


def default_signal_filename(device_id: str | None, now: datetime | None = None) -> str:
    """opensignals_<device>_<timestamp>.txt with filesystem-safe device id."""
    device = re.sub(r"[^\w.-]", "-", device_id or UNKNOWN_DEVICE_ID)
    return f"opensignals_{device}_{_file_stamp(now)}.txt"


def default_label_filename(now: datetime | None = None) -> str:
    return f"keypress_labels_edited_{_file_stamp(now)}.txt"


def format_signal_text(
    samples: SampleStream,
    metadata: HeaderMetadata,
    *,
    decimals: int = SIGNAL_DECIMALS,
    resolution: Sequence[int] = CHANNEL_RESOLUTION,
    column: str = COLUMN_DESCRIPTOR,
) -> str:
    """Serialize samples as an OpenSignals text file.

    Row format: nSeq, four zero placeholder columns, A1..A6 with `decimals`
    decimal places, tab separated.

    Raises:
        ValidationError: No samples
        AlignmentError: Signal start time unknown
    """
    if samples.is_empty:
        raise ValidationError("No signal data to export")
    if not metadata.has_absolute_start:
        raise AlignmentError("Missing timestamp metadata for export")

    date_str, time_str = format_local_datetime(metadata.absolute_start_ms)
    device_id = metadata.device_id or UNKNOWN_DEVICE_ID
    header_obj = {
        device_id: {
            "sampling rate": _format_rate(metadata.sampling_rate),
            "date": date_str,
            "time": time_str,
            "resolution": list(resolution),
            "channels": NUM_CHANNELS,
            "column": column,
        }
    }

    lines = [SIGNAL_FILE_TITLE, f"# {json.dumps(header_obj)}", HEADER_TERMINATOR]
    value_fmt = f"{{:.{decimals}f}}"
    for i, row in enumerate(samples.channels):
        values = "\t".join(value_fmt.format(v) for v in row)
        lines.append(f"{i}\t0\t0\t0\t0\t{values}")

    logger.info(f"Formatted {len(samples)} signal rows for export (device {device_id})")
    return "\n".join(lines) + "\n"


def segments_for_export(segments: Sequence[LabelSegment], coverage: TimeRange) -> list[LabelSegment]:
    """Segments clipped to the sample coverage, empty ones dropped."""
    clipped = (s.clipped(coverage.start, coverage.end) for s in segments)
    return [s for s in clipped if s is not None]


def format_label_text(
    segments: Sequence[LabelSegment],
    signal_metadata: HeaderMetadata,
    label_metadata: HeaderMetadata,
    coverage: TimeRange,
) -> str:
    """Serialize segments as a keypress label file with synthesized per-sample rows.

    Segment boundaries are converted back to absolute milliseconds through
    the signal stream's start (the alignment anchor). Each segment produces
    max(1, ceil(duration_ms / interval_ms)) rows spaced one label sample
    interval apart; elapsed_ms is relative to the label stream's own start.

    Args:
        segments: Current segment list
        signal_metadata: Signal stream origin (alignment anchor)
        label_metadata: Label stream origin and sampling rate
        coverage: Extent of the authoritative samples (relative seconds)

    Raises:
        ValidationError: No samples, no segments, or none inside coverage
        AlignmentError: Either stream's start time unknown
    """
    if coverage.duration <= 0:
        raise ValidationError("No signal data loaded for export")
    if not segments:
        raise ValidationError("No label segments to export")
    if not (signal_metadata.has_absolute_start and label_metadata.has_absolute_start):
        raise AlignmentError("Missing timestamp metadata for export")

    exported = segments_for_export(segments, coverage)
    if not exported:
        raise ValidationError("No label segments within the cropped range to export")

    signal_start_ms = signal_metadata.absolute_start_ms
    label_start_ms = label_metadata.absolute_start_ms
    interval_ms = label_metadata.sample_interval_ms

    date_str, time_str = format_local_datetime(label_start_ms)
    labels = unique_labels(exported)
    lines = [
        LABEL_FILE_TITLE,
        f"# Recording started: {date_str} {time_str}",
        f"# Sampling rate: {_format_rate(label_metadata.sampling_rate)} Hz ({interval_ms:g} ms per sample)",
        f"# Columns: {LABEL_COLUMNS}",
        f"# Labels: {', '.join(labels)}",
        "# Exported with modifications",
        HEADER_TERMINATOR,
    ]

    sample_number = 0
    for segment in exported:
        segment_start_ms = signal_start_ms + segment.start * 1000.0
        duration_ms = segment.duration * 1000.0
        num_samples = max(1, math.ceil(duration_ms / interval_ms - _SAMPLE_COUNT_TOLERANCE))

        for i in range(num_samples):
            timestamp_ms = segment_start_ms + i * interval_ms
            elapsed_ms = timestamp_ms - label_start_ms
            lines.append(f"{sample_number}\t{timestamp_ms:.3f}\t{elapsed_ms:.3f}\t{segment.label}")
            sample_number += 1

    logger.info(f"Formatted {sample_number} label rows from {len(exported)} segments for export")
    return "\n".join(lines) + "\n"


def _resolve_output(output_path: Path | str, default_name: str) -> Path:
    """Use default_name inside output_path when it is a directory."""
    output_path = Path(output_path)
    if output_path.is_dir():
        output_path = output_path / default_name
    return output_path


def export_signal_file(
    samples: SampleStream,
    metadata: HeaderMetadata,
    output_path: Path | str,
    *,
    decimals: int = SIGNAL_DECIMALS,
) -> Path:
    """Write the signal export to output_path (or a timestamped file inside it).

    Returns:
        Path to created file
    """
    text = format_signal_text(samples, metadata, decimals=decimals)
    output_path = _resolve_output(output_path, default_signal_filename(metadata.device_id))
    output_path.write_text(text)
    logger.info(f"Exported signal to {output_path} ({len(samples)} rows)")
    return output_path


def export_label_file(
    segments: Sequence[LabelSegment],
    signal_metadata: HeaderMetadata,
    label_metadata: HeaderMetadata,
    coverage: TimeRange,
    output_path: Path | str,
) -> Path:
    """Write the label export to output_path (or a timestamped file inside it).

    Returns:
        Path to created file
    """
    text = format_label_text(segments, signal_metadata, label_metadata, coverage)
    output_path = _resolve_output(output_path, default_label_filename())
    output_path.write_text(text)
    logger.info(f"Exported labels to {output_path}")
    return output_path


def export_segments_csv(segments: Sequence[LabelSegment], output_path: Path | str) -> Path:
    """Export the segment list as a CSV table.

    CSV columns:
    - start_s: Segment start on the relative time axis
    - end_s: Segment end (exclusive)
    - duration_s: end_s - start_s
    - label: Segment label

    Returns:
        Path to created CSV file
    """
    output_path = Path(output_path)

    if not segments:
        logger.warning("No segments to export")
        pd.DataFrame(columns=_SEGMENT_COLUMNS).to_csv(output_path, index=False)
        return output_path

    df = pd.DataFrame({
        "start_s": [s.start for s in segments],
        "end_s": [s.end for s in segments],
        "duration_s": [s.duration for s in segments],
        "label": [s.label for s in segments],
    })
    df.to_csv(output_path, index=False)

    logger.info(
        f"Exported {len(df)} segments to {output_path} "
        f"({df['label'].nunique()} labels, {df['duration_s'].sum():.2f}s labeled)"
    )
    return output_path
