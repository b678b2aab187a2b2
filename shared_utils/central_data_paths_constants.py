"""
Central Data Paths - Constants

Centralized path management for the Land Cover NDVI repository.
All components should import paths from this module instead of defining their own.

Usage:
    from shared_utils.central_data_paths_constants import TRAINING_STACKS_DIR

    stacks = list(TRAINING_STACKS_DIR.glob("training_stack_*.tif"))

Author: Diego Bengochea
"""

from pathlib import Path

# Root directories
DATA_ROOT = Path("data")

RAW_DIR = DATA_ROOT / "raw"
PROCESSED_DIR = DATA_ROOT / "processed"
RESULTS_DIR = DATA_ROOT / "results"

# Land cover (per-year MCD12Q1 GeoTIFFs for the local classification loader)
LAND_COVER_RAW_DIR = RAW_DIR / "land_cover"

# Training stacks (aligned composite + classification per year)
TRAINING_STACKS_DIR = PROCESSED_DIR / "training_stacks"

# Summary tables (class counts, NDVI statistics, pixel samples)
SUMMARY_TABLES_DIR = RESULTS_DIR / "tables"
