from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import netCDF4
import numpy as np
import pandas as pd

from ..schema import VECTOR_COLUMN
from ..store.writer import TIME_DIM


def default_output_path(input_path: str | os.PathLike, suffix: str = ".nc") -> Path:
    src = Path(input_path)
    return src.with_name(src.name + suffix)


def _attr_value(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    return value


def load_capture_frame(path: str | os.PathLike) -> pd.DataFrame:
    """Every ``(time,)`` variable of a converted store as one frame."""
    with netCDF4.Dataset(path, mode="r") as ds:
        columns = {}
        for name, var in ds.variables.items():
            if var.dimensions != (TIME_DIM,):
                continue
            data = var[:]
            if np.ma.is_masked(data):
                data = data.astype("f8").filled(np.nan)
            columns[name] = np.ma.getdata(data)
        n = len(ds.dimensions[TIME_DIM])
    return pd.DataFrame(columns, index=pd.RangeIndex(n, name=TIME_DIM))


def load_samples(path: str | os.PathLike, time_index: int) -> np.ndarray:
    """The written part of one sample row; the fill region is dropped."""
    with netCDF4.Dataset(path, mode="r") as ds:
        row = ds.variables[VECTOR_COLUMN][time_index, :]
    if np.ma.isMaskedArray(row):
        return row.compressed().astype(np.int64)
    return np.asarray(row, dtype=np.int64)


def store_summary(path: str | os.PathLike) -> Dict[str, Any]:
    with netCDF4.Dataset(path, mode="r") as ds:
        dims = {
            name: {"size": len(dim), "unlimited": dim.isunlimited()}
            for name, dim in ds.dimensions.items()
        }
        variables = {
            name: {
                "dtype": str(var.dtype),
                "dimensions": list(var.dimensions),
                "units": getattr(var, "units", ""),
                "filters": {k: v for k, v in (var.filters() or {}).items() if v},
            }
            for name, var in ds.variables.items()
        }
        attrs = {k: _attr_value(ds.getncattr(k)) for k in ds.ncattrs()}
    return {"dimensions": dims, "variables": variables, "attributes": attrs}


__all__ = [
    "default_output_path",
    "load_capture_frame",
    "load_samples",
    "store_summary",
]
