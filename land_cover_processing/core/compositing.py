"""
Temporal compositing and derived index bands.

Reduces a normalized, masked scene collection to one representative raster
per year (per-pixel temporal median) and conditionally appends a normalized
difference band. An empty collection produces ``None`` instead of a raster;
every function here passes ``None`` through unchanged.

Author: Diego Bengochea
"""

from typing import Iterable, Optional

import numpy as np
import xarray as xr

from shared_utils import get_logger

from .extent import year_interval
from .scene_utils import scene_count, write_nan_nodata


def is_empty(raster: Optional[xr.Dataset]) -> bool:
    """True for the empty-result sentinel: ``None`` or a raster with zero bands."""
    return raster is None or len(raster.data_vars) == 0


def merge_collections(collections: Iterable[xr.Dataset]) -> xr.Dataset:
    """
    Merge per-sensor scene collections into one collection ordered by time.

    All collections must share the same spatial grid, which holds when they
    were loaded with the same extent, CRS and resolution. Empty collections
    are skipped; merging nothing yields an empty Dataset.
    """
    non_empty = [collection for collection in collections if scene_count(collection) > 0]
    if not non_empty:
        return xr.Dataset()

    non_empty = [c if 'time' in c.dims else c.expand_dims('time') for c in non_empty]
    merged = non_empty[0] if len(non_empty) == 1 else xr.concat(non_empty, dim='time')
    return merged.sortby('time')


def composite_median(collection: xr.Dataset) -> Optional[xr.Dataset]:
    """
    Per-pixel, per-band temporal median over all valid observations.

    Pixels masked in every scene remain NaN. The reduction is order
    independent, so repeated calls on the same scenes give identical output.

    Args:
        collection: Normalized and masked scene collection

    Returns:
        Median composite, or None when the collection holds no scenes

    Examples:
        >>> composite = composite_median(merge_collections([ls7, ls8]))
    """
    logger = get_logger('land_cover_processing')

    n_scenes = scene_count(collection)
    if n_scenes == 0:
        logger.info("No scenes available, composite is empty")
        return None

    if 'time' not in collection.dims:
        return collection.copy()

    if any(band.chunks is not None for band in collection.data_vars.values()):
        collection = collection.chunk({'time': -1})

    logger.info(f"Computing median composite over {n_scenes} scenes")
    composite = collection.median(dim='time', skipna=True, keep_attrs=True)
    return composite.drop_vars('time', errors='ignore')


def add_normalized_difference(
    raster: Optional[xr.Dataset],
    band_a: str = 'nir',
    band_b: str = 'red',
    name: str = 'NDVI'
) -> Optional[xr.Dataset]:
    """
    Append ``(band_a - band_b) / (band_a + band_b)`` when both bands exist.

    The index is clipped to [-1, 1]; pixels where both bands are zero become
    NaN. A raster lacking either band is returned unchanged.

    Args:
        raster: Composite raster or None
        band_a: First band (NIR for NDVI)
        band_b: Second band (red for NDVI)
        name: Output band name

    Returns:
        Raster with the index band appended, the input raster, or None
    """
    if is_empty(raster):
        return raster
    if band_a not in raster.data_vars or band_b not in raster.data_vars:
        return raster

    a = raster[band_a]
    b = raster[band_b]
    denominator = a + b
    index = ((a - b) / denominator.where(denominator != 0)).clip(-1, 1)
    return write_nan_nodata(raster.assign({name: index.astype(np.float32)}))


def tag_year(raster: Optional[xr.Dataset], year: int) -> Optional[xr.Dataset]:
    """Attach the year tag and the start timestamp of the year's interval."""
    if raster is None:
        return None
    interval = year_interval(year)
    return raster.assign_attrs(year=interval.year, time_start=interval.time_start)
