from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import InputValidationError
from .schema import DEFAULT_SAMPLE_WIDTH


DEFAULT_CONFIG_PATH = Path("config.yaml")


class ConvertOptions(BaseModel):
    inputs: List[Path] = Field(..., min_length=1, description="Capture CSV files, in time order")
    output: Optional[Path] = Field(default=None, description="Defaults to the first input plus output_suffix")
    schema_version: Optional[int] = Field(default=None, ge=1)
    compression: Optional[int] = Field(default=None, ge=1, le=9)
    scaffold: bool = False
    sample_width: int = Field(default=DEFAULT_SAMPLE_WIDTH, gt=0)
    expected_extension: str = ".csv"
    output_suffix: str = ".nc"

    @field_validator("expected_extension", "output_suffix")
    @classmethod
    def _dotted(cls, value: str) -> str:
        value = value.strip()
        if value and not value.startswith("."):
            value = "." + value
        return value


def load_config(path: str | os.PathLike | None = None) -> Dict[str, Any]:
    cfg_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if path is None and not cfg_path.exists():
        return {}
    with open(cfg_path, "r") as f:
        return yaml.safe_load(f) or {}


def load_options(config_path: str | os.PathLike | None = None, **overrides: Any) -> ConvertOptions:
    """
    Merge the ``convert`` section of the config file with explicit overrides.

    Overrides set to ``None`` leave the config value in place.
    """
    cfg = load_config(config_path)
    merged: Dict[str, Any] = dict(cfg.get("convert") or {})
    merged.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return ConvertOptions(**merged)
    except ValidationError as exc:
        raise InputValidationError(f"Invalid conversion options:\n{exc}") from exc


__all__ = ["load_config", "load_options", "ConvertOptions", "DEFAULT_CONFIG_PATH"]
