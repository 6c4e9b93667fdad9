"""Decode OpenSignals data rows into a SampleStream.

Row layout (whitespace separated): nSeq, I1, I2, O1, O2, A1, A2, A3, A4, A5, A6.
Timestamps are synthesized from row position and sampling rate, not read
from the file.
"""
from __future__ import annotations

import math
from typing import Iterable

import attrs
import numpy as np
import pandas as pd
from attrs import define, field
from loguru import logger

from signal_label_lab.core.data_models import (
    CHANNEL_NAMES,
    DEFAULT_SAMPLING_RATE,
    NUM_CHANNELS,
    HeaderMetadata,
    ParseDiagnostic,
    SampleStream,
    channel_index,
)
from signal_label_lab.core.header import parse_header, read_data_rows, split_lines

MIN_SIGNAL_FIELDS = 11
FIRST_CHANNEL_FIELD = 5
DEFAULT_DISPLAY_CHANNEL = "A4"
MAX_DISPLAY_POINTS = 10_000


@define(frozen=True)
class DecodedSignal:
    """Full-resolution samples plus what the decoder learned along the way.

    channel_range is the (min, max) of the display channel, None when no rows
    were accepted.
    """

    samples: SampleStream
    channel_range: tuple[float, float] | None
    diagnostics: list[ParseDiagnostic] = field(factory=list)
    metadata: HeaderMetadata = field(factory=HeaderMetadata)


def _channel_frame(
    rows: pd.DataFrame,
    diagnostics: list[ParseDiagnostic],
) -> pd.DataFrame:
    """Numeric A1..A6 columns; unparseable or non-finite readings become 0.0."""
    raw = rows.iloc[:, FIRST_CHANNEL_FIELD:FIRST_CHANNEL_FIELD + NUM_CHANNELS].set_axis(
        list(CHANNEL_NAMES), axis=1
    )
    values = raw.apply(pd.to_numeric, errors="coerce").astype(np.float64)
    bad = ~np.isfinite(values.to_numpy())
    for r, c in np.argwhere(bad):
        token = raw.iat[r, c]
        diagnostics.append(
            ParseDiagnostic(int(raw.index[r]), CHANNEL_NAMES[c], f"Unparseable value {token!r}; using 0")
        )
    return values.where(~bad, 0.0)


def decode_samples(
    lines: Iterable[str],
    sampling_rate: float,
    *,
    display_channel: str = DEFAULT_DISPLAY_CHANNEL,
    line_offset: int = 0,
) -> DecodedSignal:
    """Decode post-header data lines.

    Rows with fewer than 11 fields are skipped; bad channel values become 0.
    Neither aborts decoding of the remaining rows.

    Args:
        lines: Data lines following the header terminator
        sampling_rate: Sampling rate in Hz used to synthesize timestamps
        display_channel: Channel whose running min/max is tracked
        line_offset: Index of the first line in the original file (for diagnostics)

    Returns:
        DecodedSignal with the authoritative SampleStream
    """
    if sampling_rate <= 0:
        raise ValueError(f"sampling_rate must be positive, got {sampling_rate}")

    tracked = CHANNEL_NAMES[channel_index(display_channel)]
    diagnostics: list[ParseDiagnostic] = []

    rows = read_data_rows(lines, line_offset)
    field_counts = rows.notna().sum(axis=1)
    for line_number, count in field_counts[field_counts < MIN_SIGNAL_FIELDS].items():
        diagnostics.append(
            ParseDiagnostic(
                int(line_number),
                "row",
                f"Expected {MIN_SIGNAL_FIELDS} fields, got {count}; row skipped",
            )
        )
    rows = rows[field_counts >= MIN_SIGNAL_FIELDS]

    if rows.empty:
        channels = np.empty((0, NUM_CHANNELS), dtype=np.float64)
        channel_range = None
    else:
        frame = _channel_frame(rows, diagnostics)
        channels = frame.to_numpy(dtype=np.float64)
        channel_range = (float(frame[tracked].min()), float(frame[tracked].max()))

    diagnostics.sort(key=lambda d: d.line_number)
    if diagnostics:
        logger.warning(f"Signal decoding defaulted or skipped {len(diagnostics)} field(s)/row(s)")

    timestamps = np.arange(len(channels), dtype=np.float64) / sampling_rate
    samples = SampleStream(timestamps=timestamps, channels=channels, sampling_rate=sampling_rate)

    logger.info(f"Decoded {len(samples)} samples at {sampling_rate} Hz")
    return DecodedSignal(
        samples=samples,
        channel_range=channel_range,
        diagnostics=diagnostics,
        metadata=HeaderMetadata(sampling_rate=sampling_rate),
    )


def decode_signal_text(
    text: str,
    *,
    display_channel: str = DEFAULT_DISPLAY_CHANNEL,
    default_sampling_rate: float = DEFAULT_SAMPLING_RATE,
) -> DecodedSignal:
    """Parse an OpenSignals text file (header + data rows)."""
    lines = split_lines(text)
    header = parse_header(lines, default_sampling_rate)
    decoded = decode_samples(
        lines[header.data_start:],
        header.sampling_rate,
        display_channel=display_channel,
        line_offset=header.data_start,
    )
    return attrs.evolve(
        decoded,
        metadata=header.metadata,
        diagnostics=header.diagnostics + decoded.diagnostics,
    )


def downsample_for_display(samples: SampleStream, max_points: int = MAX_DISPLAY_POINTS) -> SampleStream:
    """Every k-th sample with k = ceil(n / max_points), for plotting only.

    The returned stream must never feed export or crop arithmetic.
    """
    if max_points < 1:
        raise ValueError(f"max_points must be >= 1, got {max_points}")
    step = max(1, math.ceil(len(samples) / max_points))
    if step == 1:
        return samples
    logger.debug(f"Display decimation: {len(samples)} samples, step {step}")
    return samples.take_every(step)
