"""Tests for the classification loaders and the STAC scene source (no network)."""

import numpy as np
import pytest
import xarray as xr

from land_cover_processing.core import loaders
from land_cover_processing.core.exceptions import DataUnavailable, SchemaMismatch
from land_cover_processing.core.extent import GeoExtent, year_interval
from land_cover_processing.core.loaders import (
    LocalClassificationLoader, StacClassificationLoader, StacSceneSource
)
from land_cover_processing.core.sensors import LANDSAT_8


class FakeItem:
    def __init__(self, assets):
        self.assets = {asset: object() for asset in assets}


class FakeSearch:
    def __init__(self, items):
        self.items = items

    def item_collection(self):
        return self.items


class FakeCatalog:
    """Records search parameters and returns preset items."""

    def __init__(self, items):
        self.items = items
        self.searches = []

    def search(self, **kwargs):
        self.searches.append(kwargs)
        return FakeSearch(self.items)


class TestLocalClassificationLoader:

    def test_loads_year_file(self, tmp_path, class_raster, extent):
        class_raster['land_class'].rio.to_raster(tmp_path / 'MCD12Q1_2020.tif')
        loader = LocalClassificationLoader(tmp_path)

        raster = loader.load_classification(2020, extent)

        assert list(raster.data_vars) == ['land_class']
        assert raster.attrs['year'] == 2020
        assert raster.attrs['time_start'] == '2020-01-01T00:00:00'
        assert raster['land_class'].rio.nodata == 255
        np.testing.assert_array_equal(raster['land_class'].values, class_raster['land_class'].values)

    def test_missing_year(self, tmp_path, extent):
        loader = LocalClassificationLoader(tmp_path)
        with pytest.raises(DataUnavailable):
            loader.load_classification(2001, extent)

    def test_disjoint_extent_is_data_unavailable(self, tmp_path, class_raster):
        class_raster['land_class'].rio.to_raster(tmp_path / 'MCD12Q1_2020.tif')
        far_away = GeoExtent(600000, 2900000, 602000, 2902000, crs='EPSG:32644')

        with pytest.raises(DataUnavailable, match='does not overlap'):
            LocalClassificationLoader(tmp_path).load_classification(2020, far_away)

    def test_custom_pattern_and_band_name(self, tmp_path, class_raster, extent):
        class_raster['land_class'].rio.to_raster(tmp_path / 'lc_2001.tif')
        loader = LocalClassificationLoader(tmp_path, pattern='lc_{year}.tif', band_name='igbp')

        raster = loader.load_classification(2001, extent)

        assert list(raster.data_vars) == ['igbp']


class TestStacClassificationLoader:

    def test_no_items_is_data_unavailable(self, extent):
        loader = StacClassificationLoader(FakeCatalog([]))
        with pytest.raises(DataUnavailable):
            loader.load_classification(2001, extent)

    def test_missing_asset_is_schema_mismatch(self, extent):
        loader = StacClassificationLoader(FakeCatalog([FakeItem(['LC_Type2'])]))
        with pytest.raises(SchemaMismatch):
            loader.load_classification(2001, extent)

    def test_loads_first_acquisition(self, monkeypatch, make_raster, extent):
        first = np.full((2, 4, 4), 12, dtype='uint8')
        first[1] = 13
        loaded = make_raster({'LC_Type1': first}, res=500.0, times=['2001-01-01', '2001-06-01'])
        monkeypatch.setattr(loaders, 'load', lambda items, **kwargs: loaded)
        catalog = FakeCatalog([FakeItem(['LC_Type1'])])

        raster = StacClassificationLoader(catalog).load_classification(2001, extent)

        assert list(raster.data_vars) == ['land_class']
        assert 'time' not in raster.dims
        assert np.all(raster['land_class'].values == 12)
        assert raster['land_class'].rio.nodata == 255
        assert raster.attrs['year'] == 2001
        assert catalog.searches[0]['collections'] == ['modis-12Q1-061']
        assert catalog.searches[0]['datetime'] == '2001-01-01/2001-12-31'


class TestStacSceneSource:

    def test_empty_search_returns_empty_collection(self, extent):
        source = StacSceneSource(FakeCatalog([]))

        scenes = source.load_scenes(LANDSAT_8, year_interval(2020), extent)

        assert isinstance(scenes, xr.Dataset)
        assert len(scenes.data_vars) == 0

    def test_search_filters_platform_and_cloud_cover(self, extent):
        catalog = FakeCatalog([])
        StacSceneSource(catalog, max_cloud_cover=20).load_scenes(LANDSAT_8, year_interval(2020), extent)

        search = catalog.searches[0]
        assert search['query']['platform'] == {'eq': 'landsat-8'}
        assert search['query']['eo:cloud_cover'] == {'lt': 20}
        assert search['datetime'] == '2020-01-01/2020-12-31'

    def test_missing_asset_is_schema_mismatch(self, extent):
        source = StacSceneSource(FakeCatalog([FakeItem(['red', 'green'])]))
        with pytest.raises(SchemaMismatch):
            source.load_scenes(LANDSAT_8, year_interval(2020), extent)

    def test_renames_assets_and_drops_out_of_interval_scenes(self, monkeypatch, make_raster, extent):
        assets = [LANDSAT_8.asset_key(band) for band in LANDSAT_8.load_bands]
        times = ['2020-09-01', '2020-03-01', '2021-01-01']
        loaded = make_raster(
            {asset: np.full((3, 4, 4), 2000, dtype='uint16') for asset in assets},
            times=times
        )
        captured = {}

        def fake_load(items, **kwargs):
            captured.update(kwargs)
            return loaded

        monkeypatch.setattr(loaders, 'load', fake_load)
        source = StacSceneSource(FakeCatalog([FakeItem(assets)]), chunk_size=256)

        scenes = source.load_scenes(LANDSAT_8, year_interval(2020), extent)

        assert list(scenes.data_vars) == LANDSAT_8.load_bands
        assert scenes.sizes['time'] == 2
        assert list(scenes.time.values) == sorted(scenes.time.values)
        assert captured['bands'] == assets
        assert captured['chunks'] == {'x': 256, 'y': 256}
        assert captured['groupby'] == 'solar_day'
