from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import DEFAULT_CONFIG_PATH, load_options
from .errors import CaptureError
from .pipeline import convert
from .schema import supported_versions
from .utils.io import store_summary

logger = logging.getLogger("capture_netcdf")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="capture-netcdf",
        description="Convert CSV capture logs into a NetCDF time series.",
    )
    ap.add_argument("inputs", nargs="+", help="Capture CSV file(s), converted in the order given.")
    ap.add_argument("-o", "--output", default=None, help="Output NetCDF file (default: first input + '.nc').")
    ap.add_argument(
        "-V",
        "--schema-version",
        type=int,
        default=None,
        help=f"Schema version of the input ({', '.join(map(str, supported_versions()))}); "
        "auto-detected from the first file when omitted.",
    )
    ap.add_argument(
        "-c",
        "--compression",
        type=int,
        choices=range(1, 10),
        metavar="{1..9}",
        default=None,
        help="zlib compression level for every variable (default: none).",
    )
    ap.add_argument("--scaffold", action="store_true", default=None, help="Write the empty structure only.")
    ap.add_argument("--sample-width", type=int, default=None, help="Fixed size of the sample dimension.")
    ap.add_argument(
        "--config",
        default=None,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH} when present)",
    )
    ap.add_argument("--summary", action="store_true", help="Print the output structure after converting.")
    ap.add_argument("-v", "--verbose", action="store_true", help="Print verbose output.")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    try:
        options = load_options(
            args.config,
            inputs=args.inputs,
            output=args.output,
            schema_version=args.schema_version,
            compression=args.compression,
            scaffold=args.scaffold,
            sample_width=args.sample_width,
        )
        report = convert(options)
    except CaptureError as exc:
        logger.error("%s", exc)
        return 1
    except FileNotFoundError as exc:
        logger.error("Config file not found: %s", exc.filename)
        return 1

    if args.summary:
        print(json.dumps(store_summary(report.output), indent=2, default=str))
    if report.scaffold:
        print(f"✓ Scaffold written → {report.output}")
    else:
        print(
            f"✓ Converted {report.records_written} records "
            f"({report.errors} skipped) → {report.output}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
