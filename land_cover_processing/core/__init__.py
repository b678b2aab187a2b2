"""
Land Cover Processing Core Modules

Core functionality for building per-year land cover training stacks: scene
masking and normalization, temporal compositing, index calculation, grid
alignment, zonal reductions and summary tables.

Modules:
    exceptions: Error taxonomy of the pipeline
    extent: Analysis region and year intervals
    sensors: Per-sensor band tables and QA bit layouts
    scene_utils: QA masking and band normalization
    compositing: Temporal median composites and normalized difference indices
    alignment: Reprojection to the classification grid and stack assembly
    zonal_statistics: Class histograms and band statistics over the region
    loaders: STAC and local loaders for classification rasters and scenes
    compute: Dask scheduler and cluster management
    summary: Class-count, index statistics and pixel sample tables
    pipeline: Main per-year pipeline class

Author: Diego Bengochea
"""

from .exceptions import (
    LandCoverPipelineError,
    DataUnavailable,
    SchemaMismatch,
    ResourceLimitExceeded
)

from .extent import GeoExtent, YearInterval, year_interval

from .sensors import (
    CANONICAL_BANDS,
    SensorConfig,
    LANDSAT_7,
    LANDSAT_8,
    sensor_from_config,
    sensors_from_config,
    validate_band_names
)

from .scene_utils import (
    scene_count,
    create_qa_mask,
    create_valid_range_mask,
    quality_mask,
    normalize_scenes
)

from .compositing import (
    is_empty,
    merge_collections,
    composite_median,
    add_normalized_difference,
    tag_year
)

from .alignment import align_to_reference, assemble_training_stack

from .zonal_statistics import zonal_histogram, zonal_stats, zonal_values

from .loaders import (
    open_catalog,
    StacClassificationLoader,
    LocalClassificationLoader,
    StacSceneSource
)

from .compute import setup_cluster

from .summary import (
    IGBP_CLASSES,
    IGBP_PALETTE,
    class_count_table,
    index_statistics_table,
    index_histogram_table,
    sample_pixels
)

from .pipeline import LandCoverPipeline, YearResult

__all__ = [
    # Errors
    "LandCoverPipelineError",
    "DataUnavailable",
    "SchemaMismatch",
    "ResourceLimitExceeded",

    # Extents
    "GeoExtent",
    "YearInterval",
    "year_interval",

    # Sensors
    "CANONICAL_BANDS",
    "SensorConfig",
    "LANDSAT_7",
    "LANDSAT_8",
    "sensor_from_config",
    "sensors_from_config",
    "validate_band_names",

    # Scene preprocessing
    "scene_count",
    "create_qa_mask",
    "create_valid_range_mask",
    "quality_mask",
    "normalize_scenes",

    # Compositing
    "is_empty",
    "merge_collections",
    "composite_median",
    "add_normalized_difference",
    "tag_year",

    # Alignment
    "align_to_reference",
    "assemble_training_stack",

    # Zonal reductions
    "zonal_histogram",
    "zonal_stats",
    "zonal_values",

    # Loaders
    "open_catalog",
    "StacClassificationLoader",
    "LocalClassificationLoader",
    "StacSceneSource",

    # Cluster management
    "setup_cluster",

    # Summary tables
    "IGBP_CLASSES",
    "IGBP_PALETTE",
    "class_count_table",
    "index_statistics_table",
    "index_histogram_table",
    "sample_pixels",

    # Main pipeline
    "LandCoverPipeline",
    "YearResult"
]
