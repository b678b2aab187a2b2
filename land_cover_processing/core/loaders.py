"""
Data loaders for the classification product and the reflectance archives.

This module provides the two collaborators the per-year pipeline consumes:
- Classification loaders returning one single-band land cover raster per year
  (STAC-backed MODIS MCD12Q1, or a local directory of per-year GeoTIFFs)
- A STAC-backed scene source returning the raw scenes of one sensor for a
  date interval, loaded onto a common output grid with odc-stac

Loaders raise DataUnavailable when a year has no classification asset; an
empty scene search is valid and yields an empty collection.

Author: Diego Bengochea
"""

from pathlib import Path
from typing import Optional, Union

import numpy as np
import planetary_computer
import rioxarray
import xarray as xr
from odc.stac import load
from pystac_client import Client
from rioxarray.exceptions import NoDataInBounds

from shared_utils import get_logger

from .compositing import tag_year
from .exceptions import DataUnavailable, SchemaMismatch
from .extent import GeoExtent, YearInterval, year_interval
from .sensors import SensorConfig

MODIS_LAND_COVER_NODATA = 255


def open_catalog(stac_url: str, sign_assets: bool = False) -> Client:
    """
    Open a STAC API client.

    Args:
        stac_url: STAC API root URL
        sign_assets: Sign asset HREFs with Planetary Computer SAS tokens

    Returns:
        pystac_client.Client: Catalog client

    Examples:
        >>> catalog = open_catalog("https://planetarycomputer.microsoft.com/api/stac/v1", sign_assets=True)
    """
    logger = get_logger('land_cover_processing.loaders')
    modifier = planetary_computer.sign_inplace if sign_assets else None
    catalog = Client.open(stac_url, modifier=modifier)
    logger.info(f"Connected to STAC catalog: {stac_url}")
    return catalog


def finalize_class_raster(
    classes: xr.DataArray,
    year: int,
    band_name: str = 'land_class',
    nodata: Optional[int] = MODIS_LAND_COVER_NODATA
) -> xr.Dataset:
    """
    Turn a loaded land cover array into a year-tagged ClassRaster.

    Args:
        classes: Single-band land cover array with y/x dimensions
        year: Year the product is valid for
        band_name: Canonical classification band name
        nodata: Fill value of the product

    Returns:
        xarray.Dataset with one band named ``band_name``
    """
    classes = classes.rename(band_name)
    if nodata is not None and classes.rio.nodata is None:
        classes = classes.rio.write_nodata(nodata)
    return tag_year(classes.to_dataset(), year)


class StacClassificationLoader:
    """
    Loads the annual land cover product from a STAC collection.

    One asset (e.g. ``LC_Type1``) is loaded for all items valid in the year
    and mosaicked onto the requested grid with nearest-neighbour resampling,
    so class codes are never interpolated.
    """

    def __init__(
        self,
        catalog: Client,
        collection: str = 'modis-12Q1-061',
        asset: str = 'LC_Type1',
        band_name: str = 'land_class',
        crs: Optional[str] = None,
        resolution: Optional[float] = None,
        nodata: Optional[int] = MODIS_LAND_COVER_NODATA
    ):
        self.catalog = catalog
        self.collection = collection
        self.asset = asset
        self.band_name = band_name
        self.crs = crs
        self.resolution = resolution
        self.nodata = nodata
        self.logger = get_logger('land_cover_processing.loaders')

    def load_classification(self, year: int, extent: GeoExtent) -> xr.Dataset:
        """
        Load the classification raster valid for ``year`` clipped to ``extent``.

        Raises:
            DataUnavailable: If the collection has no item for the year
            SchemaMismatch: If the items do not publish the configured asset
        """
        interval = year_interval(year)
        items = self.catalog.search(
            collections=[self.collection],
            bbox=extent.lonlat_bounds(),
            datetime=interval.to_stac_range()
        ).item_collection()

        if len(items) == 0:
            raise DataUnavailable(f"No {self.collection} asset available for year {year}")
        if self.asset not in items[0].assets:
            raise SchemaMismatch(
                f"Items of {self.collection} have no asset '{self.asset}'. "
                f"Available assets: {list(items[0].assets)}"
            )

        self.logger.info(f"Loading {self.collection}/{self.asset} for {year} from {len(items)} items")
        dataset = load(
            items,
            bands=[self.asset],
            geopolygon=extent.to_geometry(),
            crs=self.crs,
            resolution=self.resolution,
            groupby='solar_day',
            resampling='nearest'
        )

        dataset = dataset.sortby('time')
        if dataset.sizes['time'] > 1:
            self.logger.warning(
                f"{dataset.sizes['time']} acquisitions found for {year}, using the first one"
            )
        classes = dataset[self.asset].isel(time=0, drop=True)
        return finalize_class_raster(classes, year, self.band_name, self.nodata)


class LocalClassificationLoader:
    """
    Loads per-year land cover GeoTIFFs from a local directory.

    File names are built from ``pattern`` with the year substituted, e.g.
    ``MCD12Q1_{year}.tif``.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        pattern: str = 'MCD12Q1_{year}.tif',
        band_name: str = 'land_class',
        nodata: Optional[int] = MODIS_LAND_COVER_NODATA
    ):
        self.directory = Path(directory)
        self.pattern = pattern
        self.band_name = band_name
        self.nodata = nodata
        self.logger = get_logger('land_cover_processing.loaders')

    def load_classification(self, year: int, extent: GeoExtent) -> xr.Dataset:
        """
        Load the classification GeoTIFF for ``year`` clipped to ``extent``.

        Raises:
            DataUnavailable: If no file exists for the year or it does not
                overlap the extent
            SchemaMismatch: If the file holds more than one band
        """
        path = self.directory / self.pattern.format(year=year)
        if not path.exists():
            raise DataUnavailable(f"No land cover file for year {year}: {path}")

        self.logger.info(f"Loading land cover for {year} from {path}")
        classes = rioxarray.open_rasterio(path)
        if classes.sizes.get('band', 1) != 1:
            raise SchemaMismatch(f"Land cover file {path} has {classes.sizes['band']} bands, expected 1")

        classes = classes.squeeze('band', drop=True)
        try:
            classes = classes.rio.clip_box(*extent.bounds, crs=extent.crs, allow_one_dimensional_raster=True)
        except NoDataInBounds:
            raise DataUnavailable(f"Land cover file {path} does not overlap extent {extent.bounds}")
        return finalize_class_raster(classes, year, self.band_name, self.nodata)


class StacSceneSource:
    """
    Loads raw reflectance scenes of one sensor family from a STAC collection.

    Scenes of every sensor are loaded onto the same grid (CRS, resolution,
    extent) so the normalized collections can be merged along time. Assets
    are renamed to the sensor's source band identifiers.
    """

    def __init__(
        self,
        catalog: Client,
        collection: str = 'landsat-c2-l2',
        crs: Optional[str] = None,
        resolution: Optional[float] = None,
        chunk_size: Optional[int] = 2048,
        max_cloud_cover: Optional[float] = None
    ):
        self.catalog = catalog
        self.collection = collection
        self.crs = crs
        self.resolution = resolution
        self.chunk_size = chunk_size
        self.max_cloud_cover = max_cloud_cover
        self.logger = get_logger('land_cover_processing.loaders')

    def search_items(self, sensor: SensorConfig, interval: YearInterval, extent: GeoExtent):
        """Search the collection for the sensor's items intersecting extent and interval."""
        query = {'platform': {'eq': sensor.platform}}
        if self.max_cloud_cover is not None:
            query['eo:cloud_cover'] = {'lt': self.max_cloud_cover}

        return self.catalog.search(
            collections=[self.collection],
            bbox=extent.lonlat_bounds(),
            datetime=interval.to_stac_range(),
            query=query
        ).item_collection()

    def load_scenes(self, sensor: SensorConfig, interval: YearInterval, extent: GeoExtent) -> xr.Dataset:
        """
        Load the raw scene collection of ``sensor`` for ``interval`` and ``extent``.

        Returns:
            xarray.Dataset with a time dimension sorted ascending, holding the
            sensor's source bands and QA band; an empty Dataset when no scene
            intersects the request

        Raises:
            SchemaMismatch: If the items do not publish a declared band
        """
        items = self.search_items(sensor, interval, extent)
        if len(items) == 0:
            self.logger.info(f"No {sensor.name} scenes found for {interval.to_stac_range()}")
            return xr.Dataset()

        asset_keys = {band: sensor.asset_key(band) for band in sensor.load_bands}
        missing = [asset for asset in asset_keys.values() if asset not in items[0].assets]
        if missing:
            raise SchemaMismatch(
                f"{sensor.name} items have no assets {missing}. Available assets: {list(items[0].assets)}"
            )

        self.logger.info(f"Loading {len(items)} {sensor.name} items for {interval.to_stac_range()}")
        chunks = {'x': self.chunk_size, 'y': self.chunk_size} if self.chunk_size else None
        dataset = load(
            items,
            bands=list(asset_keys.values()),
            geopolygon=extent.to_geometry(),
            crs=self.crs,
            resolution=self.resolution,
            chunks=chunks,
            groupby='solar_day',
            resampling='nearest'
        )

        dataset = dataset.rename({asset: band for band, asset in asset_keys.items() if asset != band})
        in_interval = [interval.contains(timestamp) for timestamp in dataset.time.values]
        dataset = dataset.isel(time=np.flatnonzero(in_interval))

        if dataset.sizes['time'] == 0:
            return xr.Dataset()
        return dataset.sortby('time')
