"""
Path utilities for the Land Cover NDVI Training Stack Pipeline.

This module provides consistent directory handling
across all pipeline components.

Author: Diego Bengochea
"""

from pathlib import Path
from typing import Union


def ensure_directory(path: Union[str, Path], parents: bool = True) -> Path:
    """
    Ensure directory exists, creating it if necessary.

    Args:
        path: Directory path to create
        parents: Whether to create parent directories

    Returns:
        Path: Created directory path

    Examples:
        >>> output_dir = ensure_directory("data/processed/training_stacks")
    """
    path = Path(path)
    path.mkdir(parents=parents, exist_ok=True)
    return path
