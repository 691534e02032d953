"""
Per-line record decoding.

`decode_line` turns one comma-separated capture line into a `Record`, or a
`DecodeError` describing why the line was rejected. Rejections are ordinary
return values: a bad line costs the caller one skipped row, never the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from ..schema import VECTOR_COLUMN, Column, Schema

EXCERPT_CHARS = 60
INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1

DECODE_ERROR_KINDS = ("underflow", "coercion", "range", "count", "checksum")

Value = Union[int, float, bool, str, Tuple[int, ...]]


@dataclass(frozen=True)
class Record:
    values: Mapping[str, Value]
    line_number: Optional[int] = None

    @property
    def samples(self) -> Tuple[int, ...]:
        return self.values.get(VECTOR_COLUMN, ())

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    def __getitem__(self, name: str) -> Value:
        return self.values[name]


@dataclass(frozen=True)
class DecodeError:
    kind: str
    message: str
    line_number: Optional[int] = None
    excerpt: str = field(default="", repr=False)

    def describe(self) -> str:
        where = f"line {self.line_number}" if self.line_number is not None else "line"
        return f"{where}: {self.message} [{self.excerpt}]"


class _Reject(Exception):
    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


def checksum32(samples) -> int:
    """Sum of the samples wrapped to a signed 32-bit integer."""
    total = sum(int(s) for s in samples) & 0xFFFFFFFF
    return total - 2**32 if total > INT32_MAX else total


def _int_bounds(storage_type: str) -> Optional[Tuple[int, int]]:
    dtype = np.dtype(storage_type)
    if dtype.kind not in "iu":
        return None
    info = np.iinfo(dtype)
    return int(info.min), int(info.max)


def _parse_int(token: str, name: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise _Reject("coercion", f"{name}: expected integer, got {token!r}") from None


def _parse_float(token: str, name: str) -> float:
    try:
        return float(token)
    except ValueError:
        raise _Reject("coercion", f"{name}: expected number, got {token!r}") from None


def _check_range(value: int, column: Column) -> int:
    bounds = _int_bounds(column.storage_type)
    if bounds is not None and not bounds[0] <= value <= bounds[1]:
        raise _Reject(
            "range",
            f"{column.name}: {value} outside {column.storage_type} range {bounds[0]}..{bounds[1]}",
        )
    if column.fill_value is not None and value == column.fill_value:
        raise _Reject("range", f"{column.name}: {value} is the reserved fill value")
    return value


def _coerce(token: str, column: Column) -> Value:
    if column.logical_type == "int":
        return _check_range(_parse_int(token, column.name), column)
    if column.logical_type == "float":
        return _parse_float(token, column.name)
    if column.logical_type == "bool":
        return _parse_int(token, column.name) != 0
    return token


def _decode_scalars(tokens: List[str], schema: Schema) -> Tuple[Dict[str, Value], int]:
    values: Dict[str, Value] = {}
    pos = 0
    shared_source: Optional[str] = None
    shared_token = ""

    for column in schema.scalar_columns:
        if column.source is not None and column.source == shared_source:
            values[column.name] = column.flag in shared_token
            continue
        if pos >= len(tokens):
            raise _Reject("underflow", f"ran out of tokens before '{column.source or column.name}'")
        token = tokens[pos]
        pos += 1
        if column.source is not None:
            shared_source, shared_token = column.source, token
            values[column.name] = column.flag in token
        else:
            shared_source = None
            values[column.name] = _coerce(token, column)
    return values, pos


def _decode_samples(payload: List[str], schema: Schema, values: Mapping[str, Value]) -> Tuple[int, ...]:
    if not payload:
        raise _Reject("underflow", "missing checksum token")
    column = schema.vector_column
    samples = tuple(_parse_int(tok, VECTOR_COLUMN) for tok in payload[:-1])
    checksum = _parse_int(payload[-1], "checksum")

    if column is not None:
        for value in samples:
            _check_range(value, column)
    elif samples:
        raise _Reject("count", f"schema v{schema.version} has no '{VECTOR_COLUMN}' column")
    if not INT32_MIN <= checksum <= INT32_MAX:
        raise _Reject("range", f"checksum {checksum} does not fit in 32 bits")

    if schema.has_count_samples and values.get("count_samples") != len(samples):
        raise _Reject(
            "count",
            f"count_samples={values.get('count_samples')} but {len(samples)} samples present",
        )
    if len(samples) > schema.sample_width:
        raise _Reject("count", f"{len(samples)} samples exceed width {schema.sample_width}")

    total = checksum32(samples)
    if total != checksum:
        raise _Reject("checksum", f"checksum failed: samples sum to {total}, line says {checksum}")
    return samples


def decode_line(line: str, schema: Schema, line_number: Optional[int] = None) -> Union[Record, DecodeError]:
    text = line.rstrip("\r\n")
    tokens = text.split(",")
    try:
        values, consumed = _decode_scalars(tokens, schema)
        samples = _decode_samples(tokens[consumed:], schema, values)
    except _Reject as exc:
        return DecodeError(
            kind=exc.kind,
            message=str(exc),
            line_number=line_number,
            excerpt=text[:EXCERPT_CHARS],
        )
    if schema.vector_column is not None:
        values[VECTOR_COLUMN] = samples
    return Record(values=values, line_number=line_number)


__all__ = [
    "Record",
    "DecodeError",
    "DECODE_ERROR_KINDS",
    "decode_line",
    "checksum32",
]
