"""
Zonal reductions over the analysis extent.

Two modes are provided for a single band of a raster:
- Frequency histogram of discrete class values (pixel count per class)
- Named scalar statistics of a continuous band (mean, min, max, ...)

Both clip the band to the extent, bring it to the requested scale and refuse
to run when the number of pixels to visit exceeds the configured budget.
Masked pixels (NaN or the band's nodata value) never contribute.

Author: Diego Bengochea
"""

import math
from typing import Dict, Optional, Sequence

import numpy as np
import rioxarray  # noqa: F401 - registers the rio accessor
import xarray as xr
from rasterio.enums import Resampling
from rioxarray.exceptions import NoDataInBounds

from shared_utils import get_logger

from .alignment import is_categorical
from .compositing import is_empty
from .exceptions import ResourceLimitExceeded, SchemaMismatch
from .extent import GeoExtent

DEFAULT_MAX_PIXELS = 1e9
DEFAULT_REDUCERS = ('mean', 'min', 'max')

REDUCERS = {
    'mean': np.mean,
    'min': np.min,
    'max': np.max,
    'median': np.median,
    'std': np.std,
}


def zonal_histogram(
    raster: xr.Dataset,
    band: str,
    extent: GeoExtent,
    scale: Optional[float] = None,
    max_pixels: float = DEFAULT_MAX_PIXELS
) -> Dict[int, int]:
    """
    Count unmasked pixels per discrete value of ``band`` inside ``extent``.

    Classes with no observed pixels are absent from the result; callers
    filling a fixed class range must substitute zero themselves.

    Args:
        raster: Raster holding the band
        band: Discrete-valued band name
        extent: Region to reduce over
        scale: Pixel size in raster CRS units (native resolution if None)
        max_pixels: Maximum number of pixels the reduction may visit

    Returns:
        dict: class value -> pixel count

    Raises:
        SchemaMismatch: If the band is absent
        ResourceLimitExceeded: If the region holds more than max_pixels pixels
        ValueError: If the band holds non-integral values

    Examples:
        >>> zonal_histogram(land_cover, 'land_class', extent, scale=500)
        {12: 40, 13: 10}
    """
    region = _prepare_region(_select_band(raster, band), extent, scale, max_pixels, Resampling.nearest)
    values = _valid_values(region)

    if values.size and not np.all(np.mod(values, 1) == 0):
        raise ValueError(f"Band '{band}' holds non-integral values and cannot be histogrammed")

    classes, counts = np.unique(values, return_counts=True)
    histogram = {int(value): int(count) for value, count in zip(classes, counts)}

    get_logger('land_cover_processing').debug(
        f"Histogram of {band}: {len(histogram)} classes over {int(counts.sum())} pixels"
    )
    return histogram


def zonal_stats(
    raster: xr.Dataset,
    band: str,
    extent: GeoExtent,
    scale: Optional[float] = None,
    reducers: Sequence[str] = DEFAULT_REDUCERS,
    max_pixels: float = DEFAULT_MAX_PIXELS
) -> Dict[str, Optional[float]]:
    """
    Compute named statistics of ``band`` over ``extent`` in one pass.

    Supported reducers are mean, min, max, median, std and count. A reducer
    over zero valid pixels is reported as None (count reports 0).

    Args:
        raster: Raster holding the band
        band: Continuous-valued band name
        extent: Region to reduce over
        scale: Pixel size in raster CRS units (native resolution if None)
        reducers: Names of the statistics to compute
        max_pixels: Maximum number of pixels the reduction may visit

    Returns:
        dict: reducer name -> value or None

    Raises:
        ValueError: If an unknown reducer is requested
        SchemaMismatch: If the band is absent
        ResourceLimitExceeded: If the region holds more than max_pixels pixels
    """
    unknown = [name for name in reducers if name not in REDUCERS and name != 'count']
    if unknown:
        raise ValueError(f"Unknown reducers {unknown}. Supported: {sorted(list(REDUCERS) + ['count'])}")

    values = zonal_values(raster, band, extent, scale, max_pixels)

    stats = {}
    for name in reducers:
        if name == 'count':
            stats[name] = int(values.size)
        elif values.size == 0:
            stats[name] = None
        else:
            stats[name] = float(REDUCERS[name](values))
    return stats


def zonal_values(
    raster: xr.Dataset,
    band: str,
    extent: GeoExtent,
    scale: Optional[float] = None,
    max_pixels: float = DEFAULT_MAX_PIXELS
) -> np.ndarray:
    """Flat float64 array of the unmasked values of a continuous band inside ``extent``."""
    region = _prepare_region(_select_band(raster, band), extent, scale, max_pixels, Resampling.average)
    return _valid_values(region).astype('float64')


def _select_band(raster: Optional[xr.Dataset], band: str) -> xr.DataArray:
    if is_empty(raster) or band not in raster.data_vars:
        available = [] if raster is None else list(raster.data_vars)
        raise SchemaMismatch(f"Band '{band}' not found. Available bands: {available}")
    return raster[band]


def _pixels_at_scale(band: xr.DataArray, scale: Optional[float]) -> int:
    if scale is None:
        return int(band.rio.width * band.rio.height)
    x_res, y_res = (abs(r) for r in band.rio.resolution())
    width = math.ceil(band.rio.width * x_res / scale)
    height = math.ceil(band.rio.height * y_res / scale)
    return int(width * height)


def _prepare_region(
    band: xr.DataArray,
    extent: GeoExtent,
    scale: Optional[float],
    max_pixels: float,
    resampling: Resampling
) -> Optional[xr.DataArray]:
    if band.rio.width > 1 and band.rio.height > 1:
        # Single row or column clips need a cached transform for their resolution
        band = band.rio.write_transform(band.rio.transform(recalc=True))

    try:
        clipped = band.rio.clip_box(*extent.bounds, crs=extent.crs, allow_one_dimensional_raster=True)
    except NoDataInBounds:
        get_logger('land_cover_processing').debug(f"Extent {extent.bounds} does not overlap band {band.name}")
        return None

    n_pixels = _pixels_at_scale(clipped, scale)
    if n_pixels > max_pixels:
        raise ResourceLimitExceeded(n_pixels, max_pixels)

    if scale is None:
        return clipped

    x_res, y_res = (abs(r) for r in clipped.rio.resolution())
    if math.isclose(x_res, scale) and math.isclose(y_res, scale):
        return clipped

    if is_categorical(clipped):
        resampling = Resampling.nearest
    else:
        nodata = clipped.rio.nodata
        if nodata is not None and not np.isnan(nodata):
            clipped = clipped.where(clipped != nodata)
        clipped = clipped.rio.write_nodata(np.nan, encoded=False)

    return clipped.rio.reproject(clipped.rio.crs, resolution=scale, resampling=resampling)


def _valid_values(band: Optional[xr.DataArray]) -> np.ndarray:
    if band is None:
        return np.array([], dtype='float64')

    values = np.asarray(band.values).ravel()
    valid = np.ones(values.shape, dtype=bool)

    if np.issubdtype(values.dtype, np.floating):
        valid &= ~np.isnan(values)

    nodata = band.rio.nodata
    if nodata is not None and not np.isnan(nodata):
        valid &= values != nodata

    return values[valid]
