from __future__ import annotations


class CaptureError(Exception):
    """Base class for conditions that abort a conversion run."""


class SchemaError(CaptureError):
    pass


class MetadataError(CaptureError):
    pass


class InputValidationError(CaptureError):
    pass


class SchemaMismatchError(CaptureError):
    pass


class StoreError(CaptureError):
    pass


__all__ = [
    "CaptureError",
    "SchemaError",
    "MetadataError",
    "InputValidationError",
    "SchemaMismatchError",
    "StoreError",
]
