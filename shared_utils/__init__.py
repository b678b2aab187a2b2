"""
Shared utilities for the Land Cover NDVI Training Stack Pipeline.

This package provides common functionality used across all components:
- Standardized logging configuration
- Configuration file loading utilities
- Path handling utilities

Author: Diego Bengochea
"""

from .logging_utils import setup_logging, get_logger, log_run_start, log_run_end, log_year_header
from .config_utils import load_config, validate_config, get_config_value, save_config
from .path_utils import ensure_directory

__version__ = "1.0.0"

__all__ = [
    "setup_logging",
    "get_logger",
    "log_run_start",
    "log_run_end",
    "log_year_header",
    "load_config",
    "validate_config",
    "get_config_value",
    "save_config",
    "ensure_directory"
]
