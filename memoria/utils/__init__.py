"""Utility helpers for memoria."""

from memoria.utils.helpers import ensure_dir, key_filename, safe_filename

__all__ = ["ensure_dir", "key_filename", "safe_filename"]
