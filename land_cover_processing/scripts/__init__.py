"""
Land Cover Processing Executable Scripts

Command-line entry points for the land cover training stack pipeline.

Scripts:
    run_land_cover_pipeline.py: Build training stacks and summary tables for the configured years

Usage Examples:
    python -m land_cover_processing.scripts.run_land_cover_pipeline --years 2001 2020

Author: Diego Bengochea
"""

from .run_land_cover_pipeline import main as run_land_cover_pipeline

__all__ = [
    "run_land_cover_pipeline"
]
