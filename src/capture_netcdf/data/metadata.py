from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, TextIO

from ..errors import MetadataError

logger = logging.getLogger(__name__)

BEGIN_MARKER = "## BEGIN METADATA ##"
END_MARKER = "END METADATA"
METADATA_PATTERN = re.compile(r"\s*([A-Z_]+)\s+(.*)")


@dataclass
class Header:
    metadata: Dict[str, str] = field(default_factory=dict)
    # Last line belonging to the header block; 0 when the file has none.
    end_line: int = 0


def open_capture(path: str | os.PathLike) -> TextIO:
    """Open a capture as text; undecodable bytes read as U+FFFD."""
    return open(Path(path), "r", encoding="utf-8", errors="replace")


def scan_header(stream: Iterable[str]) -> Header:
    """
    Read the ``## BEGIN METADATA ##`` block at the top of a capture.

    Collects the ``#KEY value`` pairs with lower-cased keys and the line on
    which the block closes. A data line seen before any begin marker means the
    file carries no header, which yields an empty `Header`.
    """
    metadata: Dict[str, str] = {}
    in_section = False

    for line_number, raw in enumerate(stream, start=1):
        line = raw.rstrip("\r\n")

        if not in_section and line == BEGIN_MARKER:
            in_section = True
            continue

        if END_MARKER in line:
            if not in_section:
                raise MetadataError(f"Unexpected end of metadata section at line {line_number}")
            return Header(metadata, line_number)

        if not in_section:
            if line.strip() and not line.startswith("#"):
                logger.debug("No metadata header before data at line %d", line_number)
                return Header(metadata, 0)
            continue

        if len(line) <= 1:
            continue
        if not line.startswith("#"):
            logger.debug("Found line missing # in metadata (line %d)", line_number)
            continue

        match = METADATA_PATTERN.fullmatch(line[1:])
        if match is None:
            logger.debug("Skipping unrecognised metadata line %d: %r", line_number, line[:60])
            continue
        key, value = match.group(1).lower(), match.group(2)
        metadata[key] = value

    if in_section:
        raise MetadataError("Reached end of file inside the metadata section")
    raise MetadataError("Reached end of file before metadata or data lines")


def scan_metadata(stream: Iterable[str]) -> Dict[str, str]:
    return scan_header(stream).metadata


def scan_file(path: str | os.PathLike) -> Header:
    with open_capture(path) as f:
        try:
            return scan_header(f)
        except MetadataError as exc:
            raise MetadataError(f"{path}: {exc}") from None


def count_lines(path: str | os.PathLike) -> int:
    """Physical line count, comments and blanks included."""
    lines = 0
    with open_capture(path) as f:
        for _ in f:
            lines += 1
    return lines


__all__ = [
    "Header",
    "scan_header",
    "scan_metadata",
    "scan_file",
    "open_capture",
    "count_lines",
    "BEGIN_MARKER",
    "END_MARKER",
]
