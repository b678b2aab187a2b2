"""
Scene-level utilities: QA bitmask masking and band normalization.

This module provides the per-scene preprocessing applied before temporal
compositing:
- Quality mask derivation from the QA_PIXEL bitmask and a physical
  valid-range check across the reflectance bands
- Selection and renaming of sensor-specific bands to the canonical band set
- Linear rescale of the raw integer encoding to unit reflectance

All functions are pure: they accept a scene (an ``xarray.Dataset`` with
``y``/``x`` dimensions) or a scene collection (the same with a leading
``time`` dimension) and return new objects.

Author: Diego Bengochea
"""

from typing import Iterable, Optional, Sequence

import numpy as np
import rioxarray  # noqa: F401 - registers the rio accessor
import xarray as xr

from .exceptions import SchemaMismatch
from .sensors import SensorConfig


def scene_count(collection: xr.Dataset) -> int:
    """
    Number of scenes in a collection.

    A Dataset without bands is an empty collection; a Dataset with bands but
    no ``time`` dimension is a single scene.
    """
    if collection is None or len(collection.data_vars) == 0:
        return 0
    return int(collection.sizes.get('time', 1))


def qa_bit_set(qa: xr.DataArray, bit: int) -> xr.DataArray:
    """Boolean array, True where ``bit`` is set in the QA bitmask."""
    return (qa & (1 << bit)) != 0


def create_qa_mask(qa: xr.DataArray, sensor: SensorConfig) -> xr.DataArray:
    """
    Create a keep-mask from the QA bitmask alone.

    ``cloud`` is any of the sensor's cloud bits; ``clear`` requires every
    exclusion bit (fill, dilated cloud, the sensor's cirrus bit if it has one,
    and bit 6) to be unset. Pixels without a QA reading are dropped.

    Args:
        qa: QA band (integer bitmask; float with NaN for missing readings)
        sensor: Sensor record describing the bit layout

    Returns:
        Boolean DataArray, True = keep
    """
    has_reading = qa.notnull()
    qa = qa.fillna(0).astype('uint32')

    cloud = xr.zeros_like(has_reading, dtype=bool)
    for bit in sensor.cloud_bits:
        cloud = cloud | qa_bit_set(qa, bit)

    clear = has_reading
    for bit in sensor.exclusion_bits:
        clear = clear & ~qa_bit_set(qa, bit)

    return clear & ~cloud


def create_valid_range_mask(scenes: xr.Dataset, sensor: SensorConfig) -> xr.DataArray:
    """
    Keep pixels whose reflectance readings are all physically plausible.

    Requires the minimum across the sensor's source bands to be > 0 and the
    maximum to be below the saturation constant. Missing readings fail both
    comparisons, so they are excluded.
    """
    reflectance = scenes[list(sensor.source_bands)].to_array(dim='band')
    band_min = reflectance.min(dim='band', skipna=False)
    band_max = reflectance.max(dim='band', skipna=False)
    return (band_min > 0) & (band_max < sensor.saturation)


def quality_mask(scenes: xr.Dataset, sensor: SensorConfig) -> xr.DataArray:
    """
    Per-pixel validity mask for raw scenes of one sensor.

    Args:
        scenes: Raw scene or scene collection containing the sensor's source
            bands and QA band
        sensor: Sensor record

    Returns:
        Boolean DataArray named 'valid', True = keep

    Raises:
        SchemaMismatch: If the QA band or a source band is missing

    Examples:
        >>> mask = quality_mask(scenes, LANDSAT_8)
        >>> clear_fraction = float(mask.mean())
    """
    _check_bands_present(scenes, sensor.load_bands, sensor.name)
    mask = create_qa_mask(scenes[sensor.qa_band], sensor) & create_valid_range_mask(scenes, sensor)
    return mask.rename('valid')


def normalize_scenes(
    scenes: xr.Dataset,
    sensor: SensorConfig,
    canonical_bands: Sequence[str]
) -> xr.Dataset:
    """
    Mask, select, rename and rescale raw scenes to the canonical band set.

    Source and canonical bands are paired by position. The quality mask is
    applied before the rescale so masked pixels stay masked (NaN). Output
    values are ``raw / sensor.scale + sensor.offset`` as float32.

    Args:
        scenes: Raw scene collection for one sensor
        sensor: Sensor record
        canonical_bands: Output band names, same length as sensor.source_bands

    Returns:
        xarray.Dataset restricted to the canonical bands; an empty collection
        is returned unchanged

    Raises:
        SchemaMismatch: If the band tables disagree with each other or with
            the bands present in the scenes
    """
    if scene_count(scenes) == 0:
        return scenes

    canonical_bands = list(canonical_bands)
    source_bands = list(sensor.source_bands)

    if len(source_bands) != len(canonical_bands):
        raise SchemaMismatch(
            f"Sensor {sensor.name} declares {len(source_bands)} source bands "
            f"but {len(canonical_bands)} canonical bands were requested"
        )
    if len(set(canonical_bands)) != len(canonical_bands):
        raise SchemaMismatch(f"Canonical band names contain duplicates: {canonical_bands}")

    mask = quality_mask(scenes, sensor)

    normalized = scenes[source_bands].where(mask) / sensor.scale + sensor.offset
    normalized = normalized.astype('float32').rename(dict(zip(source_bands, canonical_bands)))
    return write_nan_nodata(normalized)


def write_nan_nodata(raster: xr.Dataset, bands: Optional[Iterable[str]] = None) -> xr.Dataset:
    """
    Declare NaN as the nodata value of the floating point bands of ``raster``.

    Masked pixels of float bands are NaN. Any nodata inherited from the
    loader (odc-stac publishes 0 for Landsat SR) is replaced.
    """
    names = list(raster.data_vars) if bands is None else list(bands)
    updated = {}
    for name in names:
        band = raster[name]
        if np.issubdtype(band.dtype, np.floating):
            updated[name] = band.rio.write_nodata(np.nan, encoded=False)
    return raster.assign(updated) if updated else raster


def _check_bands_present(scenes: xr.Dataset, bands: Sequence[str], sensor_name: str) -> None:
    missing = [band for band in bands if band not in scenes.data_vars]
    if missing:
        raise SchemaMismatch(
            f"Scenes for sensor {sensor_name} are missing bands {missing}. "
            f"Available bands: {list(scenes.data_vars)}"
        )
