"""
Summary tables derived from the per-year pipeline outputs.

Produces the data behind the comparison charts and result tables of a
land cover change study:
- Pixel counts per IGBP class for each year (classes 1..17, zero filled)
- Index statistics (mean, min, max) per year
- Index value histograms with a fixed bucket width
- Random pixel samples pairing index values with land classes

Rendering these tables is left to the consumer.

Author: Diego Bengochea
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
import xarray as xr

from shared_utils import get_logger

from .compositing import is_empty
from .exceptions import ResourceLimitExceeded, SchemaMismatch
from .extent import GeoExtent
from .zonal_statistics import DEFAULT_MAX_PIXELS, zonal_histogram, zonal_stats, zonal_values

IGBP_CLASSES = {
    1: 'Evergreen Needleleaf Forest',
    2: 'Evergreen Broadleaf Forest',
    3: 'Deciduous Needleleaf Forest',
    4: 'Deciduous Broadleaf Forest',
    5: 'Mixed Forest',
    6: 'Closed Shrubland',
    7: 'Open Shrubland',
    8: 'Woody Savanna',
    9: 'Savanna',
    10: 'Grassland',
    11: 'Permanent Wetlands',
    12: 'Cropland',
    13: 'Urban and Built-up',
    14: 'Cropland/Natural Vegetation Mosaic',
    15: 'Permanent Snow and Ice',
    16: 'Barren',
    17: 'Water Bodies',
}

IGBP_PALETTE = {
    1: '#05450a', 2: '#086a10', 3: '#54a708', 4: '#78d203', 5: '#009900',
    6: '#c6b044', 7: '#dcd159', 8: '#dade48', 9: '#fbff13', 10: '#b6ff05',
    11: '#27ff87', 12: '#c24f44', 13: '#a5a5a5', 14: '#ff6d4c', 15: '#69fff8',
    16: '#f9ffa4', 17: '#1c0dff',
}

STATISTICS = ('mean', 'min', 'max')


def class_count_table(histograms_by_year: Mapping[int, Optional[Mapping[int, int]]]) -> pd.DataFrame:
    """
    Pixel counts per IGBP class, one ``count_<year>`` column per year.

    Classes absent from a year's histogram are reported as 0.

    Args:
        histograms_by_year: year -> class histogram (class value -> pixel count)

    Returns:
        pandas.DataFrame with columns class, class_name, count_<year>...

    Examples:
        >>> class_count_table({2001: {12: 40}, 2020: {12: 30, 13: 10}})
    """
    classes = list(IGBP_CLASSES)
    table = pd.DataFrame({
        'class': classes,
        'class_name': [IGBP_CLASSES[value] for value in classes],
    })

    for year in sorted(histograms_by_year):
        histogram = histograms_by_year[year] or {}
        table[f'count_{year}'] = [int(histogram.get(value, 0)) for value in classes]

    return table


def index_statistics_table(
    stats_by_year: Mapping[int, Optional[Mapping[str, Optional[float]]]],
    index_name: str = 'NDVI'
) -> pd.DataFrame:
    """
    Index mean, min and max per year; missing statistics stay NaN.

    Args:
        stats_by_year: year -> zonal statistics (None for an empty composite)
        index_name: Index band name used in the column names

    Returns:
        pandas.DataFrame with columns year, mean_<index>, min_<index>, max_<index>
    """
    columns = ['year'] + [f'{name}_{index_name}' for name in STATISTICS]
    rows = []
    for year in sorted(stats_by_year):
        stats = stats_by_year[year] or {}
        row = {'year': year}
        for name in STATISTICS:
            value = stats.get(name)
            row[f'{name}_{index_name}'] = np.nan if value is None else float(value)
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)


def index_histogram_table(
    raster: Optional[xr.Dataset],
    index_name: str,
    extent: GeoExtent,
    scale: Optional[float] = None,
    bucket_width: float = 0.02,
    max_pixels: float = DEFAULT_MAX_PIXELS
) -> pd.DataFrame:
    """
    Histogram of an index band with fixed-width buckets aligned on multiples of ``bucket_width``.

    Returns:
        pandas.DataFrame with columns bin_start, bin_end, count; empty for an
        empty raster or a fully masked band
    """
    columns = ['bin_start', 'bin_end', 'count']
    if is_empty(raster):
        return pd.DataFrame(columns=columns)

    values = zonal_values(raster, index_name, extent, scale, max_pixels)
    if values.size == 0:
        return pd.DataFrame(columns=columns)

    # Integer bucket indices assign every value to exactly one bucket
    indices = np.floor(values / bucket_width).astype(np.int64)
    first = int(indices.min())
    counts = np.bincount(indices - first)
    bins = np.arange(first, first + counts.size)

    return pd.DataFrame({
        'bin_start': bins * bucket_width,
        'bin_end': (bins + 1) * bucket_width,
        'count': counts.astype(int),
    })


def sample_pixels(
    stack: Optional[xr.Dataset],
    bands: Sequence[str],
    n: int = 1000,
    seed: int = 42,
    class_band: str = 'land_class'
) -> pd.DataFrame:
    """
    Random sample of pixels where every requested band and the class band are valid.

    Pixels with a null value in any sampled band are dropped, as are pixels
    whose class is 0 or the class band's nodata value. The same seed always
    selects the same pixels.

    Args:
        stack: Training stack (composite bands + classification band)
        bands: Bands to sample in addition to the class band
        n: Maximum number of pixels to return
        seed: Random seed
        class_band: Classification band name

    Returns:
        pandas.DataFrame with columns y, x, the requested bands and the class band

    Raises:
        SchemaMismatch: If a requested band is missing from the stack
    """
    columns = list(dict.fromkeys(list(bands) + [class_band]))
    if is_empty(stack):
        return pd.DataFrame(columns=['y', 'x'] + columns)

    missing = [band for band in columns if band not in stack.data_vars]
    if missing:
        raise SchemaMismatch(f"Bands {missing} not found. Available bands: {list(stack.data_vars)}")

    table = stack[columns].reset_coords(drop=True).to_dataframe().reset_index()
    table = table[['y', 'x'] + columns].dropna(subset=columns)

    valid = table[class_band] != 0
    nodata = stack[class_band].rio.nodata
    if nodata is not None and not np.isnan(nodata):
        valid &= table[class_band] != nodata
    table = table[valid]

    if len(table) > n:
        table = table.sample(n=n, random_state=seed).sort_index()

    return table.reset_index(drop=True)


def build_summary_tables(
    results: Mapping[int, Any],
    extent: GeoExtent,
    index_name: str = 'NDVI',
    class_band: str = 'land_class',
    zonal_config: Optional[Dict[str, Any]] = None
) -> Dict[str, pd.DataFrame]:
    """
    Build every summary table from a per-year result map.

    Failed years are skipped. A zonal reduction exceeding the pixel budget is
    logged and leaves that year out of the affected table.

    Args:
        results: year -> YearResult (needs success, classification, composite, stack)
        extent: Region the reductions run over
        index_name: Index band name
        class_band: Classification band name
        zonal_config: The ``zonal`` configuration section

    Returns:
        dict: table name -> DataFrame (class_counts, index_statistics,
        index_histogram, pixel_samples)
    """
    logger = get_logger('land_cover_processing')
    zonal_config = zonal_config or {}
    max_pixels = float(zonal_config.get('max_pixels', DEFAULT_MAX_PIXELS))
    class_scale = zonal_config.get('class_scale')
    index_scale = zonal_config.get('index_scale')

    histograms = {}
    stats = {}
    index_histograms = []
    samples = []

    for year in sorted(results):
        result = results[year]
        if not result.success:
            continue

        try:
            if not is_empty(result.classification):
                histograms[year] = zonal_histogram(
                    result.classification, class_band, extent, class_scale, max_pixels
                )

            if is_empty(result.composite):
                stats[year] = None
            else:
                stats[year] = zonal_stats(
                    result.composite, index_name, extent, index_scale, STATISTICS, max_pixels
                )
                index_histograms.append(_with_year(
                    index_histogram_table(
                        result.composite, index_name, extent, index_scale,
                        zonal_config.get('histogram_bucket_width', 0.02), max_pixels
                    ),
                    year
                ))
        except ResourceLimitExceeded as e:
            logger.error(f"Summary reductions for {year} skipped: {str(e)}")
            continue

        samples.append(_with_year(
            sample_pixels(
                result.stack, [index_name],
                n=zonal_config.get('sample_size', 1000),
                seed=zonal_config.get('sample_seed', 42),
                class_band=class_band
            ),
            year
        ))

    return {
        'class_counts': class_count_table(histograms),
        'index_statistics': index_statistics_table(stats, index_name),
        'index_histogram': _concat(index_histograms),
        'pixel_samples': _concat(samples),
    }


def _with_year(table: pd.DataFrame, year: int) -> pd.DataFrame:
    table = table.copy()
    table.insert(0, 'year', year)
    return table


def _concat(tables: Iterable[pd.DataFrame]) -> pd.DataFrame:
    tables = [table for table in tables if not table.empty]
    if not tables:
        return pd.DataFrame()
    return pd.concat(tables, ignore_index=True)
