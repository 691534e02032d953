"""Capture header scanning and record decoding."""

from .decode import DecodeError, Record, decode_line
from .metadata import Header, count_lines, scan_file, scan_header, scan_metadata

__all__ = [
    "decode_line",
    "Record",
    "DecodeError",
    "Header",
    "scan_header",
    "scan_metadata",
    "scan_file",
    "count_lines",
]
