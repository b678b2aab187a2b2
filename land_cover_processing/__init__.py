"""
Land Cover Processing Component

Pipeline pairing an annual land classification product (MODIS MCD12Q1, IGBP
classes) with cloud-free Landsat 7/8 surface reflectance composites and NDVI,
aligned on a common grid so land cover and vegetation vigour can be compared
pixel-for-pixel across years.

This component provides:
- QA bitmask cloud masking and valid-range filtering per sensor
- Per-year temporal median compositing across sensors
- Conditional NDVI calculation
- Reprojection of composites onto the classification grid
- Training stack assembly per year
- Zonal class histograms and NDVI statistics with a pixel budget
- Summary tables for land cover change analysis

Author: Diego Bengochea
"""

from .core.pipeline import LandCoverPipeline, YearResult

from .core.exceptions import (
    LandCoverPipelineError,
    DataUnavailable,
    SchemaMismatch,
    ResourceLimitExceeded
)

from .core.extent import GeoExtent, year_interval
from .core.sensors import SensorConfig, LANDSAT_7, LANDSAT_8
from .core.scene_utils import quality_mask, normalize_scenes
from .core.compositing import composite_median, add_normalized_difference, is_empty
from .core.alignment import align_to_reference, assemble_training_stack
from .core.zonal_statistics import zonal_histogram, zonal_stats
from .core.summary import class_count_table, index_statistics_table, sample_pixels

__version__ = "1.0.0"
__component__ = "land_cover_processing"

__all__ = [
    # Main pipeline
    "LandCoverPipeline",
    "YearResult",

    # Errors
    "LandCoverPipelineError",
    "DataUnavailable",
    "SchemaMismatch",
    "ResourceLimitExceeded",

    # Stages
    "GeoExtent",
    "year_interval",
    "SensorConfig",
    "LANDSAT_7",
    "LANDSAT_8",
    "quality_mask",
    "normalize_scenes",
    "composite_median",
    "add_normalized_difference",
    "is_empty",
    "align_to_reference",
    "assemble_training_stack",
    "zonal_histogram",
    "zonal_stats",

    # Summary tables
    "class_count_table",
    "index_statistics_table",
    "sample_pixels",

    # Component metadata
    "__version__",
    "__component__"
]
