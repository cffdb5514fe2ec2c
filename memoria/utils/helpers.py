"""Filesystem helpers."""

import hashlib
import re
from pathlib import Path

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(name: str) -> str:
    """
    Make a string safe to use as a file name.

    Args:
        name: Arbitrary identifier (session id, etc.).

    Returns:
        Name with path separators and control characters replaced by "_".
    """
    cleaned = _UNSAFE_CHARS.sub("_", name).strip(" .")
    return cleaned or "_"


def key_filename(key: str) -> str:
    """
    File name stem for an identifier, distinct for distinct identifiers.

    Identifiers that are already safe are used as-is. Others get a short
    hash of the raw identifier appended, so "a/b" and "a_b" do not share a
    file.
    """
    cleaned = safe_filename(key)
    if cleaned == key and not key.startswith("~"):
        return cleaned
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
    return f"~{cleaned}-{digest}"
