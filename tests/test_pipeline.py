"""End-to-end tests of the per-year pipeline with in-memory data sources."""

import numpy as np
import pytest
import rioxarray

from land_cover_processing.core.exceptions import DataUnavailable, SchemaMismatch
from land_cover_processing.core.pipeline import LandCoverPipeline, YearResult
from land_cover_processing.core.sensors import LANDSAT_7, LANDSAT_8

EXPECTED_BANDS = ['blue', 'green', 'red', 'nir', 'swir2', 'NDVI', 'land_class']


@pytest.fixture
def config():
    return {
        'region': {
            'min_lon': 499990, 'min_lat': 2997990,
            'max_lon': 502010, 'max_lat': 3000010,
            'crs': 'EPSG:32644',
        },
        'years': [2001, 2020],
        'classification': {'band_name': 'land_class'},
        'scenes': {'sensors': ['landsat-7', 'landsat-8']},
        'index': {'name': 'NDVI', 'band_a': 'nir', 'band_b': 'red'},
        'zonal': {'class_scale': 500, 'index_scale': 250, 'sample_size': 5, 'sample_seed': 42},
        'compute': {'scheduler': 'synchronous'},
        'logging': {'level': 'WARNING'},
    }


@pytest.fixture
def scenes(make_scenes):
    return {
        ('landsat-7', 2001): make_scenes(LANDSAT_7, ['2001-02-01', '2001-08-01'], reflectance=2000, nir=4000),
        ('landsat-7', 2020): make_scenes(LANDSAT_7, ['2020-02-01'], reflectance=2000, nir=4000),
        ('landsat-8', 2020): make_scenes(
            LANDSAT_8, ['2020-03-01', '2020-05-01'], reflectance=2000, nir=4000, qa=[[[0]], [[1 << 3]]]
        ),
    }


@pytest.fixture
def pipeline(config, class_raster, scenes, fake_classification_loader, fake_scene_source):
    loader = fake_classification_loader({2001: class_raster, 2020: class_raster})
    return LandCoverPipeline(config, classification_loader=loader, scene_source=fake_scene_source(scenes))


class TestRunYear:

    def test_training_stack(self, pipeline, class_raster):
        stack = pipeline.run_year(2020)

        assert list(stack.data_vars) == EXPECTED_BANDS
        assert stack['land_class'].shape == class_raster['land_class'].shape
        assert stack.attrs['year'] == 2020
        assert stack.attrs['time_start'] == '2020-01-01T00:00:00'
        np.testing.assert_allclose(stack['red'].values, 0.2, rtol=1e-5)
        np.testing.assert_allclose(stack['nir'].values, 0.4, rtol=1e-5)
        np.testing.assert_allclose(stack['NDVI'].values, 1 / 3, rtol=1e-5)
        np.testing.assert_array_equal(stack['land_class'].values, class_raster['land_class'].values)

    def test_composite_merges_both_sensors(self, pipeline):
        composite = pipeline.build_composite(2020)

        assert composite.attrs['year'] == 2020
        assert 'time' not in composite.dims
        assert ('landsat-7', 2020) in pipeline.scene_source.calls
        assert ('landsat-8', 2020) in pipeline.scene_source.calls

    def test_no_scenes_gives_empty_stack(self, pipeline):
        assert pipeline.build_composite(2010) is None
        pipeline.classification_loader.rasters[2010] = pipeline.classification_loader.rasters[2020]
        assert pipeline.run_year(2010) is None

    def test_errors_propagate(self, pipeline):
        with pytest.raises(DataUnavailable):
            pipeline.run_year(1999)

    def test_schema_mismatch_propagates(self, pipeline, scenes):
        scenes[('landsat-8', 2020)] = scenes[('landsat-8', 2020)].drop_vars('SR_B5')
        with pytest.raises(SchemaMismatch):
            pipeline.run_year(2020)


class TestRunYears:

    def test_all_years_succeed(self, pipeline):
        results = pipeline.run_years()

        assert sorted(results) == [2001, 2020]
        assert all(isinstance(result, YearResult) for result in results.values())
        assert all(result.success for result in results.values())
        assert sorted(pipeline.training_collection(results)) == [2001, 2020]

    def test_failing_year_is_isolated(self, config, class_raster, scenes,
                                      fake_classification_loader, fake_scene_source):
        loader = fake_classification_loader({2020: class_raster})
        pipeline = LandCoverPipeline(config, classification_loader=loader, scene_source=fake_scene_source(scenes))

        results = pipeline.run_years([2001, 2020])

        assert not results[2001].success
        assert 'DataUnavailable' in results[2001].error
        assert results[2001].stack is None
        assert results[2020].success
        assert list(pipeline.training_collection(results)) == [2020]

        summary = pipeline.get_processing_summary()
        assert summary['error_count'] == 1
        assert summary['processed_count'] == 1

    def test_empty_year_succeeds_but_is_excluded(self, pipeline):
        pipeline.classification_loader.rasters[2010] = pipeline.classification_loader.rasters[2020]

        results = pipeline.run_years([2010, 2020])

        assert results[2010].success
        assert results[2010].is_empty
        assert results[2010].error is None
        assert list(pipeline.training_collection(results)) == [2020]
        assert pipeline.get_processing_summary()['empty_count'] == 1

    def test_threaded_scheduler(self, config, class_raster, scenes,
                                fake_classification_loader, fake_scene_source):
        config['compute']['scheduler'] = 'threads'
        loader = fake_classification_loader({2001: class_raster, 2020: class_raster})
        pipeline = LandCoverPipeline(config, classification_loader=loader, scene_source=fake_scene_source(scenes))

        results = pipeline.run_years()

        assert all(result.success for result in results.values())


class TestConfiguration:

    def test_colliding_band_names_rejected(self, config, fake_classification_loader, fake_scene_source):
        config['index']['name'] = 'red'
        with pytest.raises(SchemaMismatch):
            LandCoverPipeline(config, fake_classification_loader({}), fake_scene_source({}))

    def test_missing_section_rejected(self, config, fake_classification_loader, fake_scene_source):
        del config['scenes']
        with pytest.raises(ValueError):
            LandCoverPipeline(config, fake_classification_loader({}), fake_scene_source({}))

    def test_invalid_region_rejected(self, config, fake_classification_loader, fake_scene_source):
        config['region']['max_lon'] = config['region']['min_lon']
        with pytest.raises(ValueError):
            LandCoverPipeline(config, fake_classification_loader({}), fake_scene_source({}))


class TestOutputs:

    def test_summary_tables(self, pipeline):
        tables = pipeline.summarize(pipeline.run_years())

        counts = tables['class_counts'].set_index('class')
        assert counts.loc[12, 'count_2020'] == 12
        assert counts.loc[13, 'count_2001'] == 4
        assert counts.loc[1, 'count_2020'] == 0

        stats = tables['index_statistics'].set_index('year')
        assert stats.loc[2020, 'mean_NDVI'] == pytest.approx(1 / 3, rel=1e-5)

        samples = tables['pixel_samples']
        assert set(samples['year']) == {2001, 2020}
        assert (samples.groupby('year').size() == 5).all()
        assert set(samples['land_class']) <= {12, 13}

    def test_save_outputs(self, pipeline, tmp_path):
        results = pipeline.run_years()

        written = pipeline.save_outputs(results, tmp_path / 'stacks', tmp_path / 'tables')

        stack_path = tmp_path / 'stacks' / 'training_stack_2020.tif'
        assert written['training_stack_2020'] == stack_path
        assert (tmp_path / 'tables' / 'class_counts.csv').exists()
        assert (tmp_path / 'tables' / 'index_statistics.csv').exists()

        saved = rioxarray.open_rasterio(stack_path)
        assert saved.sizes['band'] == len(EXPECTED_BANDS)
        assert saved.dtype == np.float32
