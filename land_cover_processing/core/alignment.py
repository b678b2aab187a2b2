"""
Multi-resolution alignment and training stack assembly.

Reprojects fine-resolution composites onto the coarse classification grid and
stacks them with the classification band. The resampling kernel is chosen per
band: continuous reflectance/index bands are aggregated with a spatial mean,
categorical bands (integer dtypes or explicitly declared names) use nearest
neighbour so class codes are preserved exactly.

Author: Diego Bengochea
"""

from typing import Iterable, Optional

import numpy as np
import rioxarray  # noqa: F401 - registers the rio accessor
import xarray as xr
from rasterio.enums import Resampling

from shared_utils import get_logger

from .compositing import is_empty
from .exceptions import SchemaMismatch


def is_categorical(band: xr.DataArray, categorical_bands: Iterable[str] = ()) -> bool:
    """True for bands holding discrete codes rather than continuous values."""
    if band.name in set(categorical_bands):
        return True
    return np.issubdtype(band.dtype, np.integer) or np.issubdtype(band.dtype, np.bool_)


def resampling_for(band: xr.DataArray, categorical_bands: Iterable[str] = ()) -> Resampling:
    """
    Select the resampling kernel for a band.

    Returns:
        Resampling.nearest for categorical bands, Resampling.average otherwise
    """
    if is_categorical(band, categorical_bands):
        return Resampling.nearest
    return Resampling.average


def align_to_reference(
    raster: Optional[xr.Dataset],
    reference: xr.Dataset,
    categorical_bands: Iterable[str] = ()
) -> Optional[xr.Dataset]:
    """
    Reproject every band of ``raster`` onto the grid of ``reference``.

    The output shares the reference CRS, transform and shape, so it can be
    compared pixel-for-pixel with the reference. Empty rasters are returned
    unchanged without attempting a reprojection.

    Args:
        raster: Source raster (composite or classification) or None
        reference: Raster supplying the target grid
        categorical_bands: Band names to treat as categorical regardless of dtype

    Returns:
        Aligned raster with the source attributes, or the empty input

    Examples:
        >>> aligned = align_to_reference(composite, land_cover)
    """
    if is_empty(raster):
        return raster

    logger = get_logger('land_cover_processing')
    categorical_bands = list(categorical_bands)
    target_crs = reference.rio.crs

    aligned = {}
    for name, band in raster.data_vars.items():
        resampling = resampling_for(band, categorical_bands)
        if resampling is Resampling.average:
            band = band.rio.write_nodata(np.nan, encoded=False)
        logger.debug(f"Reprojecting band {name} to {target_crs} with {resampling.name} resampling")
        aligned[name] = band.rio.reproject_match(reference, resampling=resampling)

    return xr.Dataset(aligned, attrs=dict(raster.attrs))


def assemble_training_stack(
    composite: Optional[xr.Dataset],
    class_raster: Optional[xr.Dataset],
    class_band: str = 'land_class'
) -> Optional[xr.Dataset]:
    """
    Combine an aligned composite with its year's classification band.

    Args:
        composite: Year-tagged composite already aligned to the classification grid
        class_raster: Classification raster for the same year
        class_band: Name of the classification band

    Returns:
        Composite bands followed by the classification band, or None when
        either input is empty

    Raises:
        SchemaMismatch: If the classification band is missing, collides with a
            composite band, or the two grids differ in shape
    """
    if is_empty(composite) or is_empty(class_raster):
        return None

    if class_band not in class_raster.data_vars:
        raise SchemaMismatch(
            f"Classification raster has no band '{class_band}'. "
            f"Available bands: {list(class_raster.data_vars)}"
        )
    if class_band in composite.data_vars:
        raise SchemaMismatch(f"Classification band '{class_band}' collides with a composite band")

    classes = class_raster[class_band]
    if (classes.sizes['y'], classes.sizes['x']) != (composite.sizes['y'], composite.sizes['x']):
        raise SchemaMismatch(
            f"Composite grid {dict(composite.sizes)} is not aligned with "
            f"classification grid {dict(classes.sizes)}"
        )

    classes = classes.reset_coords(drop=True).assign_coords(x=composite.x, y=composite.y)
    return composite.assign({class_band: classes})
