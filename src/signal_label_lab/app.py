"""SignalLabelLab command-line entry point.

Registered as the console script entry point in pyproject.toml.
Loads a signal file and its keypress label file, applies optional edits
and a crop, then writes both re-importable exports.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from signal_label_lab.config.settings import AppConfig, get_config
from signal_label_lab.core.errors import SessionError
from signal_label_lab.core.session import AlignmentSession

LOG_FILE = "signal_label_lab.log"


def setup_logging(level: str = "INFO", log_file: str | None = LOG_FILE) -> None:
    """Replace loguru's default sink with a stderr sink and a rotating file sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level,
    )
    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            retention="7 days",
            level="DEBUG",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="signal-label-lab",
        description="Align keypress labels with an OpenSignals recording, edit, crop and re-export",
    )
    parser.add_argument("signal", type=Path, help="OpenSignals text file (.txt)")
    parser.add_argument("labels", type=Path, nargs="?", help="Keypress label file")
    parser.add_argument(
        "--insert",
        nargs=3,
        action="append",
        default=[],
        metavar=("START", "END", "LABEL"),
        help="Insert a labeled segment (seconds); may be repeated",
    )
    parser.add_argument(
        "--delete",
        type=int,
        action="append",
        default=[],
        metavar="INDEX",
        help="Delete the segment at INDEX after inserts; may be repeated",
    )
    parser.add_argument(
        "--crop",
        nargs=2,
        type=float,
        metavar=("START", "END"),
        help="Crop both streams to [START, END] seconds",
    )
    parser.add_argument("--out", type=Path, help="Output directory (default: configured exports dir)")
    parser.add_argument("--segments-csv", type=Path, help="Also write the segment table as CSV")
    parser.add_argument("--config", type=Path, help="JSON configuration file")
    parser.add_argument("--no-signal", action="store_true", help="Skip the signal export")
    parser.add_argument("--log-file", default=LOG_FILE, help="Log file path ('' disables file logging)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output on stderr")
    return parser


def run(args: argparse.Namespace, config: AppConfig) -> int:
    """Execute the load/edit/crop/export sequence described by args."""
    session = AlignmentSession(config)
    for diagnostic in session.load_files(args.signal, args.labels):
        logger.debug(f"Line {diagnostic.line_number} [{diagnostic.field_name}]: {diagnostic.message}")

    for start, end, label in args.insert:
        try:
            start_s, end_s = float(start), float(end)
        except ValueError:
            logger.error(f"Invalid --insert times {start!r} {end!r}")
            return 1
        session.insert_segment(start_s, end_s, label)

    # Delete from the highest index down so earlier indices stay valid
    for index in sorted(args.delete, reverse=True):
        session.delete_segment(index)

    if args.crop:
        session.crop(*args.crop)

    out_dir = args.out
    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)

    if not args.no_signal:
        signal_path = session.save_signal(out_dir)
        print(f"Signal: {signal_path}")
    if args.labels:
        label_path = session.save_labels(out_dir)
        print(f"Labels: {label_path}")
    if args.segments_csv:
        csv_path = session.save_segment_table(args.segments_csv)
        print(f"Segments: {csv_path}")

    logger.info(f"Done: {len(session.segments)} segments over {session.time_range.duration:.3f}s")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Launch the SignalLabelLab command-line tool."""
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "INFO", args.log_file or None)

    logger.info("Starting SignalLabelLab")
    try:
        config = AppConfig.load(args.config) if args.config else get_config()
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Invalid configuration {args.config}: {e}")
        return 1

    try:
        return run(args, config)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except SessionError as e:
        logger.error(f"{e.kind} error: {e.message}")
        return 1
