"""Utility functions for personaforge."""

from personaforge.utils.helpers import ensure_dir, get_data_path

__all__ = ["ensure_dir", "get_data_path"]
