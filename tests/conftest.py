"""Shared fixtures: builders for OpenSignals and keypress label file text."""
import json

import pytest

from signal_label_lab.core.header import parse_local_datetime_ms

START_DATE = "2024-05-01"
START_TIME = "10:15:30.000"
DEVICE_ID = "00:07:80:0F:30:A1"


def channel_values(i: int) -> list[float]:
    """Deterministic A1..A6 readings for row i."""
    return [i * 0.5, 1.0, -2.25, float(i % 7), 4.0, i / 1000]


@pytest.fixture
def start_ms():
    """Absolute epoch ms of START_DATE START_TIME in local time."""
    return parse_local_datetime_ms(f"{START_DATE} {START_TIME}")


@pytest.fixture
def make_signal_text():
    """Factory for OpenSignals file text with n rows."""

    def _make(
        n: int,
        rate: int = 1000,
        date: str | None = START_DATE,
        time: str | None = START_TIME,
        device: str = DEVICE_ID,
    ) -> str:
        info = {"sampling rate": rate, "resolution": [16] * 6, "channels": 6, "column": "A1-A6"}
        if date is not None:
            info["date"] = date
        if time is not None:
            info["time"] = time
        lines = ["# OpenSignals Text File Format", f"# {json.dumps({device: info})}", "# EndOfHeader"]
        for i in range(n):
            values = "\t".join(f"{v:.6f}" for v in channel_values(i))
            lines.append(f"{i}\t0\t0\t0\t0\t{values}")
        return "\n".join(lines) + "\n"

    return _make


@pytest.fixture
def make_label_text(start_ms):
    """Factory for keypress label file text.

    rows are (offset_ms, label) pairs relative to the recording start.
    """

    def _make(rows, rate: int = 1000, started: str | None = f"{START_DATE} {START_TIME}") -> str:
        lines = ["# Eye Tracking Keypress Labels"]
        if started is not None:
            lines.append(f"# Recording started: {started}")
        lines.append(f"# Sampling rate: {rate} Hz ({1000 / rate:g} ms per sample)")
        lines.append("# EndOfHeader")
        for i, (offset_ms, label) in enumerate(rows):
            lines.append(f"{i}\t{start_ms + offset_ms:.3f}\t{offset_ms:.3f}\t{label}")
        return "\n".join(lines) + "\n"

    return _make


@pytest.fixture
def up_down_texts(make_signal_text, make_label_text):
    """Three signal rows at 1000 Hz and labels up, up, down one ms apart."""
    return make_signal_text(3), make_label_text([(0, "up"), (1, "up"), (2, "down")])
