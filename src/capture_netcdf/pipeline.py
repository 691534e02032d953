"""
Capture-to-NetCDF conversion.

`convert` walks the fixed sequence validate -> preprocess -> prepare store ->
stream -> finalize. Anything that goes wrong before the store exists is raised
before a file is created; rejected data lines are only counted.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import ConvertOptions
from .data.decode import DecodeError, decode_line
from .data.metadata import count_lines, open_capture, scan_file
from .errors import InputValidationError, MetadataError, SchemaMismatchError
from .schema import Schema, infer_version, resolve
from .store.writer import WriterHandle, open_store
from .utils.io import default_output_path

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100_000


@dataclass
class InputFile:
    path: Path
    metadata: Dict[str, str]
    detected_version: Optional[int]
    line_count: int
    header_end: int = 0


@dataclass
class ConversionReport:
    output: Path
    schema_version: int
    files: List[Path]
    lines_total: int = 0
    records_written: int = 0
    errors: int = 0
    errors_by_kind: Dict[str, int] = field(default_factory=dict)
    scaffold: bool = False


def validate_inputs(paths: List[Path], extension: str) -> List[Path]:
    resolved = []
    for path in paths:
        path = Path(path)
        if not path.is_file():
            raise InputValidationError(f"Input file not found: {path}")
        if extension and path.suffix.lower() != extension.lower():
            raise InputValidationError(f"Input file {path} does not have the '{extension}' extension")
        resolved.append(path)
    return resolved


def preprocess(paths: List[Path], schema_version: Optional[int] = None) -> Tuple[List[InputFile], int]:
    """
    Scan every header and count lines, settling the schema version.

    Without an explicit version all files must infer the same one as the first.
    """
    files: List[InputFile] = []
    for path in paths:
        header = scan_file(path)
        try:
            detected = infer_version(header.metadata)
        except MetadataError as exc:
            if schema_version is None:
                raise MetadataError(f"{path}: {exc}") from None
            logger.warning("%s: %s; using schema v%d as requested", path, exc, schema_version)
            detected = None
        files.append(InputFile(path, header.metadata, detected, count_lines(path), header.end_line))
        logger.debug("%s: schema v%s, %d lines", path, detected, files[-1].line_count)

    first = files[0]
    if schema_version is None:
        for f in files[1:]:
            if f.detected_version != first.detected_version:
                raise SchemaMismatchError(
                    f"{f.path} looks like schema v{f.detected_version}, "
                    f"but {first.path} is v{first.detected_version}"
                )
        version = first.detected_version
    else:
        version = int(schema_version)
        for f in files:
            if f.detected_version is not None and f.detected_version != version:
                logger.warning(
                    "%s header implies schema v%d; converting as v%d", f.path, f.detected_version, version
                )

    for f in files[1:]:
        if f.metadata != first.metadata:
            logger.debug("%s metadata differs from %s; keeping the first file's", f.path, first.path)

    return files, version


def stream_file(
    handle: WriterHandle,
    source: InputFile,
    report: ConversionReport,
    pending_errors: int,
    kinds: Counter,
) -> int:
    """Decode and write one file; returns errors not yet attached to a record."""
    schema = handle.schema
    logger.info("Converting %s (%d lines)", source.path, source.line_count)
    with open_capture(source.path) as f:
        for line_number, line in enumerate(f, start=1):
            if line_number % PROGRESS_EVERY == 0:
                logger.debug("%s: %d/%d lines", source.path.name, line_number, source.line_count)
            if line_number <= source.header_end or not line.strip() or line.startswith("#"):
                continue

            result = decode_line(line, schema, line_number)
            if isinstance(result, DecodeError):
                report.errors += 1
                pending_errors += 1
                kinds[result.kind] += 1
                logger.debug("%s %s", source.path.name, result.describe())
                continue

            handle.write(result, report.records_written, errors_before=pending_errors)
            report.records_written += 1
            pending_errors = 0
    return pending_errors


def convert(options: ConvertOptions) -> ConversionReport:
    paths = validate_inputs(list(options.inputs), options.expected_extension)
    files, version = preprocess(paths, options.schema_version)
    schema: Schema = resolve(version).with_sample_width(options.sample_width)

    output = Path(options.output) if options.output else default_output_path(paths[0], options.output_suffix)
    report = ConversionReport(
        output=output,
        schema_version=schema.version,
        files=paths,
        lines_total=sum(f.line_count for f in files),
        scaffold=options.scaffold,
    )

    handle = open_store(output, schema, files[0].metadata, compression=options.compression)
    with handle:
        if options.scaffold:
            logger.info("Scaffold mode: writing schema v%d structure only", schema.version)
            return report

        kinds: Counter = Counter()
        pending = 0
        for source in files:
            pending = stream_file(handle, source, report, pending, kinds)
        report.errors_by_kind = dict(kinds)
        handle.finalize(trailing_errors=pending)

    if report.errors:
        logger.warning("%d line(s) could not be parsed and were skipped", report.errors)
    logger.info("Wrote %d records to %s", report.records_written, output)
    return report


__all__ = ["convert", "validate_inputs", "preprocess", "ConversionReport", "InputFile"]
