"""Utility functions for personaforge."""

import os
from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """Get the personaforge data directory.

    Respects PERSONAFORGE_HOME environment variable; falls back to ~/.personaforge.
    """
    home = os.environ.get("PERSONAFORGE_HOME", "").strip()
    if home:
        return ensure_dir(Path(home))
    return ensure_dir(Path.home() / ".personaforge")


def truncate_string(s: str, max_len: int = 100, suffix: str = "...") -> str:
    """Truncate a string to max length, adding suffix if truncated."""
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix
