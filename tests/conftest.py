"""Shared fixtures: synthetic georeferenced rasters and fake data sources."""

import numpy as np
import pandas as pd
import pytest
import rioxarray  # noqa: F401
import xarray as xr

from land_cover_processing.core.exceptions import DataUnavailable
from land_cover_processing.core.extent import GeoExtent

CRS = 'EPSG:32644'
X0 = 500000.0
Y0 = 3000000.0


def build_raster(bands, res=250.0, times=None, crs=CRS, nodata=None, x0=X0, y0=Y0):
    """
    Build a georeferenced Dataset from a mapping of band name -> array.

    Arrays are (y, x), or (time, y, x) when ``times`` is given. Pixel centres
    start half a pixel inside (x0, y0), the upper-left corner.
    """
    first = np.asarray(next(iter(bands.values())))
    height, width = first.shape[-2:]
    coords = {
        'y': y0 - res * (np.arange(height) + 0.5),
        'x': x0 + res * (np.arange(width) + 0.5),
    }
    dims = ('y', 'x')
    if times is not None:
        coords['time'] = pd.to_datetime(times)
        dims = ('time', 'y', 'x')

    dataset = xr.Dataset(
        {name: (dims, np.asarray(values)) for name, values in bands.items()},
        coords=coords
    )
    dataset = dataset.rio.write_crs(crs)
    if nodata is not None:
        for name in dataset.data_vars:
            dataset[name] = dataset[name].rio.write_nodata(nodata)
    return dataset


def build_landsat_scenes(sensor, times, shape=(8, 8), reflectance=2000, nir=None, qa=0, res=250.0,
                         sr_nodata=None):
    """
    Raw scene collection for ``sensor`` with uniform reflectance and QA values.

    ``sr_nodata`` declares a nodata value on the reflectance bands, as odc-stac
    does for Landsat SR assets.
    """
    n = len(times)
    bands = {}
    for i, band in enumerate(sensor.source_bands):
        value = nir if (nir is not None and i == 3) else reflectance
        bands[band] = np.full((n,) + shape, value, dtype='uint16')
    bands[sensor.qa_band] = np.broadcast_to(np.asarray(qa, dtype='uint16'), (n,) + shape).copy()
    scenes = build_raster(bands, res=res, times=times)
    if sr_nodata is not None:
        for band in sensor.source_bands:
            scenes[band] = scenes[band].rio.write_nodata(sr_nodata)
    return scenes


@pytest.fixture
def make_raster():
    return build_raster


@pytest.fixture
def make_scenes():
    return build_landsat_scenes


@pytest.fixture
def extent():
    """Extent in the rasters' CRS, slightly larger than a 2 km x 2 km grid."""
    return GeoExtent(X0 - 10, Y0 - 2010, X0 + 2010, Y0 + 10, crs=CRS)


@pytest.fixture
def class_raster(make_raster):
    """4x4 land cover raster at 500 m: croplands with an urban column."""
    classes = np.full((4, 4), 12, dtype='uint8')
    classes[:, 0] = 13
    raster = make_raster({'land_class': classes}, res=500.0, nodata=255)
    return raster.assign_attrs(year=2020)


class FakeClassificationLoader:
    """Returns preset classification rasters; years without one are unavailable."""

    def __init__(self, rasters):
        self.rasters = rasters
        self.calls = []

    def load_classification(self, year, extent):
        self.calls.append(year)
        if year not in self.rasters:
            raise DataUnavailable(f"No land cover for {year}")
        return self.rasters[year].assign_attrs(year=year)


class FakeSceneSource:
    """Returns preset scene collections keyed by (sensor name, year)."""

    def __init__(self, scenes):
        self.scenes = scenes
        self.calls = []

    def load_scenes(self, sensor, interval, extent):
        self.calls.append((sensor.name, interval.year))
        return self.scenes.get((sensor.name, interval.year), xr.Dataset())


@pytest.fixture
def fake_classification_loader():
    return FakeClassificationLoader


@pytest.fixture
def fake_scene_source():
    return FakeSceneSource
