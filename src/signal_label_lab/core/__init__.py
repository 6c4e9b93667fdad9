"""Core data models, parsing, alignment and export for SignalLabelLab.

AlignmentSession is imported from signal_label_lab.core.session directly,
since it builds on the processing package.
"""

from .data_models import (
    CHANNEL_NAMES,
    HeaderMetadata,
    LabelSegment,
    ParseDiagnostic,
    Sample,
    SampleStream,
    SegmentDraft,
    TimeRange,
)
from .decoder import DecodedSignal, decode_samples, decode_signal_text, downsample_for_display
from .errors import AlignmentError, SessionError, ValidationError
from .exporter import (
    export_label_file,
    export_segments_csv,
    export_signal_file,
    format_label_text,
    format_signal_text,
)
from .header import HeaderInfo, parse_header
from .segment_builder import LabelImport, build_label_segments

__all__ = [
    "CHANNEL_NAMES",
    "HeaderMetadata",
    "LabelSegment",
    "ParseDiagnostic",
    "Sample",
    "SampleStream",
    "SegmentDraft",
    "TimeRange",
    "HeaderInfo",
    "parse_header",
    "DecodedSignal",
    "decode_samples",
    "decode_signal_text",
    "downsample_for_display",
    "LabelImport",
    "build_label_segments",
    "format_signal_text",
    "format_label_text",
    "export_signal_file",
    "export_label_file",
    "export_segments_csv",
    "SessionError",
    "ValidationError",
    "AlignmentError",
]
