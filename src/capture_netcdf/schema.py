"""
Versioned capture record layouts.

Each schema lists its columns in CSV token order, which is also the order the
variables are created in the output store. The decoder and the writer both
read this table, so adding a capture format means adding one entry to
`SCHEMAS` (and, when its header carries a new marker, one branch in
`infer_version`).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Tuple

from .errors import MetadataError, SchemaError

VECTOR_COLUMN = "samples"
DEFAULT_SAMPLE_WIDTH = 7200
SAMPLE_FILL = 65535
LOGICAL_TYPES = ("int", "float", "bool", "str", "samples")


@dataclass(frozen=True)
class Column:
    name: str
    logical_type: str
    storage_type: str
    unit: str = ""
    # Booleans packed into one flags token: all consecutive columns with the
    # same `source` share that token, each set when its `flag` char is present.
    source: Optional[str] = None
    flag: Optional[str] = None
    # Reserved to mark unwritten cells; never a legal decoded value.
    fill_value: Optional[int] = None

    def __post_init__(self):
        if self.logical_type not in LOGICAL_TYPES:
            raise SchemaError(f"Column '{self.name}' has unknown type '{self.logical_type}'")
        if self.source is not None and (self.logical_type != "bool" or not self.flag):
            raise SchemaError(f"Flag column '{self.name}' must be bool with a flag character")


@dataclass(frozen=True)
class Schema:
    version: int
    columns: Tuple[Column, ...]
    sample_width: int = DEFAULT_SAMPLE_WIDTH

    def __post_init__(self):
        if not self.columns:
            raise SchemaError(f"Schema v{self.version} has no columns")
        vectors = [i for i, c in enumerate(self.columns) if c.name == VECTOR_COLUMN]
        if len(vectors) > 1:
            raise SchemaError(f"Schema v{self.version} declares '{VECTOR_COLUMN}' more than once")
        if vectors and vectors[0] != len(self.columns) - 1:
            raise SchemaError(f"'{VECTOR_COLUMN}' must be the last column of schema v{self.version}")
        if self.sample_width <= 0:
            raise SchemaError(f"Sample width must be positive, got {self.sample_width}")

    @property
    def vector_column(self) -> Optional[Column]:
        last = self.columns[-1]
        return last if last.name == VECTOR_COLUMN else None

    @property
    def scalar_columns(self) -> Tuple[Column, ...]:
        return tuple(c for c in self.columns if c.name != VECTOR_COLUMN)

    @property
    def has_count_samples(self) -> bool:
        return any(c.name == "count_samples" for c in self.columns)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    def with_sample_width(self, width: int) -> "Schema":
        return replace(self, sample_width=int(width))


def _flags(*pairs: Tuple[str, str]) -> Tuple[Column, ...]:
    return tuple(Column(name, "bool", "i1", source="flags", flag=ch) for name, ch in pairs)


_GPS_BLOCK: Tuple[Column, ...] = (
    Column("gps_time", "int", "i4", "s"),
    *_flags(("has_gps", "G"), ("clipping", "C")),
    Column("sample_rate", "float", "f8", "Hz"),
    Column("latitude", "float", "f8", "degrees"),
    Column("longitude", "float", "f8", "degrees"),
    Column("elevation", "float", "f8", "m"),
    Column("satellite_count", "int", "i4"),
    Column("speed", "float", "f8", "m/s"),
    Column("heading", "float", "f8", "degrees"),
    Column("count_samples", "int", "i4"),
    Column(VECTOR_COLUMN, "samples", "u2", fill_value=SAMPLE_FILL),
)

SCHEMAS: Dict[int, Schema] = {
    1: Schema(
        version=1,
        columns=(
            Column("computer_time", "float", "f8", "s"),
            Column(VECTOR_COLUMN, "samples", "u2", fill_value=SAMPLE_FILL),
        ),
    ),
    2: Schema(version=2, columns=_GPS_BLOCK),
    3: Schema(
        version=3,
        columns=(Column("computer_time", "float", "f8", "s"),) + _GPS_BLOCK,
    ),
}


def supported_versions() -> List[int]:
    return sorted(SCHEMAS)


def resolve(version: int) -> Schema:
    try:
        return SCHEMAS[int(version)]
    except (KeyError, TypeError, ValueError):
        raise SchemaError(
            f"Unsupported schema version: {version!r} (supported: {supported_versions()})"
        ) from None


def infer_version(metadata: Mapping[str, str]) -> int:
    """
    Pick the schema version implied by a file's header.

    No header at all means the oldest layout; a header without an explicit
    ``VERSION`` key was only ever written by v2 firmware.
    """
    if not metadata:
        return 1
    raw = metadata.get("version")
    if raw is None:
        return 2
    try:
        return int(str(raw).strip())
    except ValueError:
        raise MetadataError(f"Metadata VERSION is not an integer: {raw!r}") from None


__all__ = [
    "Column",
    "Schema",
    "SCHEMAS",
    "VECTOR_COLUMN",
    "DEFAULT_SAMPLE_WIDTH",
    "SAMPLE_FILL",
    "resolve",
    "supported_versions",
    "infer_version",
]
