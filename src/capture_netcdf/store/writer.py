"""
NetCDF time-series writer.

The store has an unlimited ``time`` axis and a fixed ``sample`` axis. Every
scalar column becomes a ``(time,)`` variable, the sample vector a
``(time, sample)`` variable, and ``parsing_errors`` holds the number of
rejected lines that preceded each written record.

Data goes to ``<output>.part`` and is renamed into place by `finalize`, so an
aborted run never leaves a file at the requested output path.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

import netCDF4
import numpy as np

from ..data.decode import Record
from ..errors import StoreError
from ..schema import VECTOR_COLUMN, Schema

logger = logging.getLogger(__name__)

TIME_DIM = "time"
SAMPLE_DIM = "sample"
ERRORS_VAR = "parsing_errors"
PARTIAL_SUFFIX = ".part"
# Global attributes owned by the writer; header keys with these names are dropped.
RESERVED_ATTRS = frozenset({"original_schema_version", "parsing_errors_total", "trailing_parsing_errors"})


def partial_path(path: Path) -> Path:
    return path.with_name(path.name + PARTIAL_SUFFIX)


@dataclass
class WriterHandle:
    path: Path
    schema: Schema
    dataset: netCDF4.Dataset
    variables: Dict[str, netCDF4.Variable] = field(default_factory=dict)
    records_written: int = 0
    errors_recorded: int = 0
    finalized: bool = False

    @property
    def working_path(self) -> Path:
        return partial_path(self.path)

    def write(self, record: Record, time_index: int, errors_before: int = 0) -> None:
        if self.finalized:
            raise StoreError(f"{self.path}: store already finalized")
        if time_index != self.records_written:
            raise StoreError(
                f"{self.path}: expected time index {self.records_written}, got {time_index}"
            )

        try:
            for column in self.schema.scalar_columns:
                value = record[column.name]
                if column.logical_type == "bool":
                    value = int(value)
                self.variables[column.name][time_index] = value

            if self.schema.vector_column is not None:
                samples = np.asarray(
                    record.samples, dtype=self.schema.vector_column.storage_type
                )
                if samples.size:
                    self.variables[VECTOR_COLUMN][time_index, 0 : samples.size] = samples

            self.variables[ERRORS_VAR][time_index] = errors_before
        except KeyError as exc:
            raise StoreError(f"Record is missing column {exc} for schema v{self.schema.version}") from exc
        except (RuntimeError, OSError, ValueError, IndexError) as exc:
            raise StoreError(f"{self.working_path}: write at time={time_index} failed: {exc}") from exc

        self.records_written += 1
        self.errors_recorded += errors_before

    def finalize(self, trailing_errors: int = 0) -> None:
        if self.finalized:
            logger.debug("Store %s already finalized", self.path)
            return
        try:
            self.dataset.setncattr("parsing_errors_total", np.int32(self.errors_recorded + trailing_errors))
            self.dataset.setncattr("trailing_parsing_errors", np.int32(trailing_errors))
            self.dataset.close()
            os.replace(self.working_path, self.path)
        except (RuntimeError, OSError) as exc:
            raise StoreError(f"Failed to finalize {self.path}: {exc}") from exc
        finally:
            self.finalized = True
        logger.debug("Finalized %s with %d records", self.path, self.records_written)

    def abort(self) -> None:
        if self.finalized:
            return
        self.finalized = True
        try:
            self.dataset.close()
        except RuntimeError as exc:
            logger.debug("Closing %s after failure raised: %s", self.working_path, exc)
        logger.warning("Conversion aborted; partial output left at %s", self.working_path)

    def __enter__(self) -> "WriterHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.finalize()
        else:
            self.abort()


def _compression_kwargs(compression: Optional[int]) -> Dict[str, object]:
    if compression is None:
        return {}
    level = int(compression)
    if not 1 <= level <= 9:
        raise StoreError(f"Compression level must be 1-9, got {compression}")
    return {"compression": "zlib", "complevel": level}


def open_store(
    path: str | os.PathLike,
    schema: Schema,
    metadata: Optional[Mapping[str, str]] = None,
    compression: Optional[int] = None,
) -> WriterHandle:
    """
    Create the output container and define every variable ``schema`` needs.

    Attributes carry the schema version and the session metadata; per-variable
    ``units`` are written only where the schema declares one.
    """
    out_path = Path(path)
    work_path = partial_path(out_path)
    comp = _compression_kwargs(compression)

    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        ds = netCDF4.Dataset(work_path, mode="w", clobber=True, format="NETCDF4")
    except (OSError, RuntimeError) as exc:
        raise StoreError(f"Failed to create {work_path}: {exc}") from exc

    handle = WriterHandle(path=out_path, schema=schema, dataset=ds)
    try:
        for key, value in sorted((metadata or {}).items()):
            key = key.lower()
            if key in RESERVED_ATTRS:
                logger.warning("Ignoring metadata key %r: the name is reserved for the writer", key)
                continue
            ds.setncattr(key, str(value))
        ds.setncattr("original_schema_version", np.int8(schema.version))

        ds.createDimension(TIME_DIM, None)
        ds.createDimension(SAMPLE_DIM, schema.sample_width)

        for column in schema.scalar_columns:
            var = ds.createVariable(column.name, column.storage_type, (TIME_DIM,), **comp)
            if column.unit:
                var.setncattr("units", column.unit)
            handle.variables[column.name] = var
            logger.debug("Created variable: %s (%s)", column.name, column.storage_type)

        vector = schema.vector_column
        if vector is not None:
            var = ds.createVariable(
                VECTOR_COLUMN,
                vector.storage_type,
                (TIME_DIM, SAMPLE_DIM),
                chunksizes=(1, schema.sample_width),
                fill_value=vector.fill_value,
                **comp,
            )
            if vector.unit:
                var.setncattr("units", vector.unit)
            handle.variables[VECTOR_COLUMN] = var
            logger.debug("Created variable: %s (%s x %d)", VECTOR_COLUMN, vector.storage_type, schema.sample_width)

        handle.variables[ERRORS_VAR] = ds.createVariable(ERRORS_VAR, "i4", (TIME_DIM,), **comp)
    except (RuntimeError, OSError, ValueError) as exc:
        handle.abort()
        raise StoreError(f"Failed to define variables in {work_path}: {exc}") from exc

    return handle


__all__ = ["WriterHandle", "open_store", "partial_path", "TIME_DIM", "SAMPLE_DIM", "ERRORS_VAR"]
