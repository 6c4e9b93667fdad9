"""Comment-header parsing shared by the signal and keypress label files.

Both formats open with '#'-prefixed header lines terminated by
'# EndOfHeader'. Three conventions are recognised:

- OpenSignals JSON line:  # {"<device>": {"sampling rate": 1000,
                                          "date": "2024-05-01", "time": "10:15:30.250", ...}}
- Label file start time:  # Recording started: 2024-05-01 10:15:30.250
- Label file rate:        # Sampling rate: 100 Hz (10.0 ms per sample)

Parsing is tolerant: anything unparseable is logged, recorded as a
ParseDiagnostic and replaced by its default.
"""
from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Iterable

import pandas as pd
from attrs import define, field
from loguru import logger

from signal_label_lab.core.data_models import (
    DEFAULT_SAMPLING_RATE,
    HeaderMetadata,
    ParseDiagnostic,
)

COMMENT_MARKER = "#"
HEADER_TERMINATOR = "# EndOfHeader"
RECORDING_STARTED_PREFIX = "Recording started:"

_SAMPLING_RATE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*Hz", re.IGNORECASE)


@define(frozen=True)
class HeaderInfo:
    """Result of scanning a file header."""

    data_start: int
    metadata: HeaderMetadata
    diagnostics: list[ParseDiagnostic] = field(factory=list)

    @property
    def sampling_rate(self) -> float:
        return self.metadata.sampling_rate

    @property
    def absolute_start_ms(self) -> float | None:
        return self.metadata.absolute_start_ms

    @property
    def device_id(self) -> str | None:
        return self.metadata.device_id


def split_lines(text: str) -> list[str]:
    """Split file text into lines, tolerating CRLF endings."""
    return text.splitlines()


def read_data_rows(lines: Iterable[str], line_offset: int = 0) -> pd.DataFrame:
    """Tokenize whitespace-separated data rows into a frame of strings.

    Blank and comment lines are dropped. The index holds each row's line
    number in the original file and short rows are padded with None, so
    `frame.notna().sum(axis=1)` is the field count of every row.
    """
    stripped = pd.Series(list(lines), dtype=object).str.strip()
    if stripped.empty:
        return pd.DataFrame()
    stripped.index = stripped.index + line_offset
    kept = stripped[(stripped != "") & ~stripped.str.startswith(COMMENT_MARKER).astype(bool)]
    if kept.empty:
        return pd.DataFrame(index=kept.index)
    return kept.str.split(expand=True)


def parse_local_datetime_ms(text: str) -> float | None:
    """Parse 'YYYY-MM-DD HH:MM:SS[.mmm]' (local wall-clock) into epoch milliseconds.

    The first space is treated as the date/time separator. Returns None when
    the string is not a valid ISO date-time.
    """
    value = text.strip()
    if not value:
        return None
    if "T" not in value:
        value = value.replace(" ", "T", 1)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return round(parsed.timestamp() * 1000.0, 3)


def format_local_datetime(absolute_ms: float) -> tuple[str, str]:
    """Split epoch milliseconds into local ('YYYY-MM-DD', 'HH:MM:SS.mmm')."""
    total_ms = int(round(absolute_ms))
    seconds, millis = divmod(total_ms, 1000)
    moment = datetime.fromtimestamp(seconds)
    return moment.strftime("%Y-%m-%d"), f"{moment.strftime('%H:%M:%S')}.{millis:03d}"


def _parse_rate(value, line_number: int, diagnostics: list[ParseDiagnostic]) -> float | None:
    """Validate a sampling rate value; record a diagnostic if unusable."""
    try:
        rate = float(value)
    except (TypeError, ValueError):
        rate = float("nan")
    if not rate > 0 or rate == float("inf"):
        message = f"Invalid sampling rate {value!r}; using default"
        logger.warning(f"Line {line_number}: {message}")
        diagnostics.append(ParseDiagnostic(line_number, "sampling rate", message))
        return None
    return rate


def _parse_json_header(
    body: str,
    line_number: int,
    diagnostics: list[ParseDiagnostic],
) -> tuple[str | None, float | None, float | None]:
    """Extract (device_id, sampling_rate, absolute_start_ms) from an OpenSignals JSON line."""
    try:
        header_data = json.loads(body)
    except json.JSONDecodeError as e:
        message = f"Could not parse header JSON ({e.msg}); using defaults"
        logger.warning(f"Line {line_number}: {message}")
        diagnostics.append(ParseDiagnostic(line_number, "json", message))
        return None, None, None

    if not isinstance(header_data, dict) or not header_data:
        message = "Header JSON is not a device-keyed object"
        logger.warning(f"Line {line_number}: {message}")
        diagnostics.append(ParseDiagnostic(line_number, "json", message))
        return None, None, None

    device_id = str(next(iter(header_data)))
    device_info = header_data[device_id]
    if not isinstance(device_info, dict):
        message = f"Header entry for device {device_id!r} is not an object"
        logger.warning(f"Line {line_number}: {message}")
        diagnostics.append(ParseDiagnostic(line_number, "json", message))
        return device_id, None, None

    rate = None
    if "sampling rate" in device_info:
        rate = _parse_rate(device_info["sampling rate"], line_number, diagnostics)

    start_ms = None
    date_part = device_info.get("date")
    time_part = device_info.get("time")
    if date_part and time_part:
        start_ms = parse_local_datetime_ms(f"{date_part}T{time_part}")
        if start_ms is None:
            message = f"Unparseable date/time {date_part!r} {time_part!r}"
            logger.warning(f"Line {line_number}: {message}")
            diagnostics.append(ParseDiagnostic(line_number, "date", message))

    return device_id, rate, start_ms


def parse_header(
    source: str | Iterable[str],
    default_sampling_rate: float = DEFAULT_SAMPLING_RATE,
) -> HeaderInfo:
    """Scan header lines up to '# EndOfHeader'.

    Args:
        source: Whole file text or an iterable of its lines
        default_sampling_rate: Rate used when the header carries none

    Returns:
        HeaderInfo with the index of the first data line (0 when no
        terminator is present), the parsed HeaderMetadata (defaults:
        default_sampling_rate, unknown start, unknown device) and any
        diagnostics.
    """
    lines = split_lines(source) if isinstance(source, str) else list(source)

    sampling_rate = default_sampling_rate
    absolute_start_ms: float | None = None
    device_id: str | None = None
    diagnostics: list[ParseDiagnostic] = []
    data_start = None

    for i, raw_line in enumerate(lines):
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith(HEADER_TERMINATOR):
            data_start = i + 1
            break

        if not line.startswith(COMMENT_MARKER):
            continue

        body = line.lstrip(COMMENT_MARKER).strip()

        if body.startswith("{"):
            json_device, json_rate, json_start = _parse_json_header(body, i, diagnostics)
            if json_device is not None:
                device_id = json_device
            if json_rate is not None:
                sampling_rate = json_rate
            if json_start is not None:
                absolute_start_ms = json_start

        elif body.startswith(RECORDING_STARTED_PREFIX):
            date_text = body[len(RECORDING_STARTED_PREFIX):]
            parsed = parse_local_datetime_ms(date_text)
            if parsed is None:
                message = f"Unparseable recording start {date_text.strip()!r}"
                logger.warning(f"Line {i}: {message}")
                diagnostics.append(ParseDiagnostic(i, "recording started", message))
            else:
                absolute_start_ms = parsed

        elif body.lower().startswith("sampling rate"):
            match = _SAMPLING_RATE_RE.search(body)
            if match is None:
                message = f"No '<N> Hz' value in {body!r}"
                logger.warning(f"Line {i}: {message}")
                diagnostics.append(ParseDiagnostic(i, "sampling rate", message))
            else:
                rate = _parse_rate(match.group(1), i, diagnostics)
                if rate is not None:
                    sampling_rate = rate

    if data_start is None:
        logger.debug("No header terminator found; treating every line as data")
        data_start = 0

    metadata = HeaderMetadata(
        absolute_start_ms=absolute_start_ms,
        sampling_rate=sampling_rate,
        device_id=device_id,
    )
    logger.debug(
        f"Parsed header: data_start={data_start}, rate={sampling_rate} Hz, "
        f"start_ms={absolute_start_ms}, device={device_id}"
    )
    return HeaderInfo(data_start=data_start, metadata=metadata, diagnostics=diagnostics)
