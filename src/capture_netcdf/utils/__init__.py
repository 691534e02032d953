"""Helpers for output paths and reading converted stores back."""

from .io import default_output_path, load_capture_frame, load_samples, store_summary

__all__ = ["default_output_path", "load_capture_frame", "load_samples", "store_summary"]
