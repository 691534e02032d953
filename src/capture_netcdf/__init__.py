"""Convert checksum-protected CSV capture logs into NetCDF time series."""

from .config import ConvertOptions, load_options
from .pipeline import ConversionReport, convert
from .schema import SCHEMAS, Schema, resolve

__version__ = "0.3.0"

__all__ = ["convert", "ConversionReport", "ConvertOptions", "load_options", "SCHEMAS", "Schema", "resolve"]
