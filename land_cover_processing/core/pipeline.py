"""
Land Cover / NDVI Training Stack Pipeline

Class-based pipeline turning an annual land classification product and a
multi-sensor reflectance archive into per-year, co-registered training stacks
over one analysis region.

For every requested year the pipeline:
- Loads the year's classification raster
- Loads, masks and normalizes the scenes of each sensor
- Merges the sensors by time and reduces them to a median composite
- Appends the vegetation index and tags the composite with its year
- Aligns the composite to the classification grid and stacks both

Years are independent: they are evaluated as separate dask tasks and a
failure in one year is recorded in the result map without affecting others.

Author: Diego Bengochea
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import dask
import numpy as np
import xarray as xr

from shared_utils import (
    ensure_directory, get_config_value, load_config, log_run_end, log_run_start,
    log_year_header, setup_logging, validate_config
)
from shared_utils.central_data_paths_constants import LAND_COVER_RAW_DIR

from .alignment import align_to_reference, assemble_training_stack
from .compositing import (
    add_normalized_difference, composite_median, is_empty, merge_collections, tag_year
)
from .compute import compute_context, log_memory_usage, year_scheduler
from .extent import GeoExtent, year_interval
from .loaders import (
    LocalClassificationLoader, StacClassificationLoader, StacSceneSource, open_catalog
)
from .scene_utils import normalize_scenes, scene_count
from .sensors import CANONICAL_BANDS, sensors_from_config, validate_band_names
from .summary import build_summary_tables

REQUIRED_SECTIONS = ['region', 'years', 'classification', 'scenes']


@dataclass
class YearResult:
    """Outcome of one year's pipeline run."""

    year: int
    success: bool
    stack: Optional[xr.Dataset] = None
    composite: Optional[xr.Dataset] = None
    classification: Optional[xr.Dataset] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def is_empty(self) -> bool:
        return is_empty(self.stack)


class LandCoverPipeline:
    """
    Per-year training stack pipeline for one analysis region.

    The classification loader and scene source are injectable collaborators;
    by default they are built from the ``data``, ``classification`` and
    ``scenes`` configuration sections and read from a STAC API.
    """

    def __init__(
        self,
        config: Optional[Union[str, Dict[str, Any]]] = None,
        classification_loader=None,
        scene_source=None
    ):
        """
        Initialize the pipeline.

        Args:
            config: Configuration dictionary or path to a YAML file; the
                packaged default configuration is used if None
            classification_loader: Object with ``load_classification(year, extent)``
            scene_source: Object with ``load_scenes(sensor, interval, extent)``

        Raises:
            ValueError: If required configuration sections are missing or the
                region is invalid
            SchemaMismatch: If output band names collide
        """
        if isinstance(config, dict):
            self.config = config
        else:
            self.config = load_config(config, component_name='land_cover_processing')
        validate_config(self.config, REQUIRED_SECTIONS)

        self.logger = setup_logging(
            level=get_config_value(self.config, 'logging.level', 'INFO'),
            component_name='land_cover_processing',
            log_file=get_config_value(self.config, 'logging.log_file')
        )

        self.extent = GeoExtent.from_config(self.config['region'])
        self.years = [int(year) for year in self.config['years']]

        scenes_config = self.config['scenes']
        self.canonical_bands = list(scenes_config.get('canonical_bands', CANONICAL_BANDS))
        self.sensors = sensors_from_config(scenes_config)

        self.index_name = get_config_value(self.config, 'index.name', 'NDVI')
        self.index_bands = (
            get_config_value(self.config, 'index.band_a', 'nir'),
            get_config_value(self.config, 'index.band_b', 'red'),
        )
        self.class_band = self.config['classification'].get('band_name', 'land_class')
        validate_band_names(self.canonical_bands, self.index_name, self.class_band)

        self.catalog = None
        self.classification_loader = classification_loader or self._create_classification_loader()
        self.scene_source = scene_source or self._create_scene_source()

        # Pipeline state
        self.start_time = None
        self.processed_count = 0
        self.empty_count = 0
        self.error_count = 0

    def initialize_catalog(self):
        """Open the STAC catalog declared in the ``data`` section."""
        if self.catalog is None:
            self.catalog = open_catalog(
                get_config_value(self.config, 'data.stac_url'),
                sign_assets=get_config_value(self.config, 'data.sign_assets', False)
            )
        return self.catalog

    def _create_classification_loader(self):
        classification = self.config['classification']
        if classification.get('source', 'stac') == 'local':
            return LocalClassificationLoader(
                directory=classification.get('directory', LAND_COVER_RAW_DIR),
                pattern=classification.get('pattern', 'MCD12Q1_{year}.tif'),
                band_name=self.class_band,
                nodata=classification.get('nodata', 255)
            )

        return StacClassificationLoader(
            catalog=self.initialize_catalog(),
            collection=classification.get('collection', 'modis-12Q1-061'),
            asset=classification.get('asset', 'LC_Type1'),
            band_name=self.class_band,
            crs=classification.get('crs'),
            resolution=classification.get('resolution'),
            nodata=classification.get('nodata', 255)
        )

    def _create_scene_source(self):
        scenes = self.config['scenes']
        return StacSceneSource(
            catalog=self.initialize_catalog(),
            collection=scenes.get('collection', 'landsat-c2-l2'),
            crs=scenes.get('crs'),
            resolution=scenes.get('resolution'),
            chunk_size=scenes.get('chunk_size', 2048),
            max_cloud_cover=scenes.get('max_cloud_cover')
        )

    def build_composite(self, year: int) -> Optional[xr.Dataset]:
        """
        Build the year-tagged median composite with the index band.

        Args:
            year: Analysis year

        Returns:
            Composite raster, or None when no sensor has scenes for the year
        """
        interval = year_interval(year)

        collections = []
        for sensor in self.sensors:
            scenes = self.scene_source.load_scenes(sensor, interval, self.extent)
            self.logger.info(f"{sensor.name}: {scene_count(scenes)} scenes for {year}")
            collections.append(normalize_scenes(scenes, sensor, self.canonical_bands))

        composite = composite_median(merge_collections(collections))
        composite = add_normalized_difference(composite, *self.index_bands, name=self.index_name)
        if composite is not None:
            composite = composite.compute()
        return tag_year(composite, year)

    def process_year(self, year: int) -> Tuple[Optional[xr.Dataset], Optional[xr.Dataset], xr.Dataset]:
        """
        Run every stage for one year.

        Returns:
            tuple: (training stack, composite, classification raster)
        """
        log_year_header(self.logger, year)
        classification = self.classification_loader.load_classification(year, self.extent)
        composite = self.build_composite(year)

        aligned = align_to_reference(composite, classification, categorical_bands=[self.class_band])
        stack = tag_year(assemble_training_stack(aligned, classification, self.class_band), year)
        return stack, composite, classification

    def run_year(self, year: int) -> Optional[xr.Dataset]:
        """
        Produce the training stack for one year.

        Returns:
            Training stack, or None when the year has no usable scenes

        Raises:
            DataUnavailable: If the classification product has no asset for the year
            SchemaMismatch: If a sensor's declared bands are not present
        """
        stack, _, _ = self.process_year(year)
        return stack

    def _run_year_safely(self, year: int) -> YearResult:
        start = time.time()
        try:
            stack, composite, classification = self.process_year(year)
        except Exception as e:
            self.logger.error(f"Year {year} failed: {type(e).__name__}: {str(e)}")
            return YearResult(year=year, success=False, error=f"{type(e).__name__}: {str(e)}",
                              duration_seconds=time.time() - start)

        if is_empty(stack):
            self.logger.info(f"Year {year} produced no training stack (no usable scenes)")
        else:
            self.logger.info(f"Year {year} completed: bands {list(stack.data_vars)}")

        return YearResult(
            year=year,
            success=True,
            stack=stack,
            composite=composite,
            classification=classification,
            duration_seconds=time.time() - start
        )

    def run_years(self, years: Optional[Iterable[int]] = None) -> Dict[int, YearResult]:
        """
        Run every year independently and collect their outcomes.

        Args:
            years: Years to process, the configured years if None

        Returns:
            dict: year -> YearResult

        Examples:
            >>> pipeline = LandCoverPipeline()
            >>> results = pipeline.run_years([2001, 2020])
            >>> stacks = pipeline.training_collection(results)
        """
        years = [int(year) for year in (years if years is not None else self.years)]
        self.start_time = time.time()
        log_run_start(self.logger, years, [sensor.name for sensor in self.sensors], self.extent.bounds)

        compute_config = self.config.get('compute', {})
        tasks = [dask.delayed(self._run_year_safely, pure=False)(year) for year in years]
        with compute_context(compute_config):
            outcomes = dask.compute(*tasks, scheduler=year_scheduler(compute_config))

        results = {result.year: result for result in outcomes}
        self.processed_count = sum(1 for r in outcomes if r.success and not r.is_empty)
        self.empty_count = sum(1 for r in outcomes if r.success and r.is_empty)
        self.error_count = sum(1 for r in outcomes if not r.success)

        log_memory_usage(self.logger)
        log_run_end(
            self.logger, self.processed_count, self.empty_count, self.error_count,
            elapsed_time=time.time() - self.start_time
        )
        return results

    @staticmethod
    def training_collection(results: Dict[int, YearResult]) -> Dict[int, xr.Dataset]:
        """Non-empty training stacks of the successful years, ordered by year."""
        return {
            year: result.stack
            for year, result in sorted(results.items())
            if result.success and not is_empty(result.stack)
        }

    def summarize(self, results: Dict[int, YearResult]):
        """Class counts, index statistics, index histograms and pixel samples for the results."""
        return build_summary_tables(
            results,
            self.extent,
            index_name=self.index_name,
            class_band=self.class_band,
            zonal_config=self.config.get('zonal', {})
        )

    def save_training_stack(self, stack: xr.Dataset, path: Union[str, Path]) -> Path:
        """
        Save a training stack as a float32 GeoTIFF with compression and year tags.

        The classification band is written alongside the composite bands, with
        its nodata value mapped to NaN.

        Examples:
            >>> pipeline.save_training_stack(stack, "training_stack_2020.tif")
        """
        bands = {}
        for name, band in stack.data_vars.items():
            nodata = band.rio.nodata
            if nodata is not None and not np.isnan(nodata):
                band = band.where(band != nodata)
            bands[name] = band.astype('float32').rio.write_nodata(np.nan, encoded=False)

        output = xr.Dataset(bands, attrs=dict(stack.attrs)).rio.write_crs(stack.rio.crs)
        output.rio.to_raster(path, tags=output.attrs, compress='lzw', tiled=True)
        self.logger.info(f"Saved training stack: {path}")
        return Path(path)

    def save_outputs(
        self,
        results: Dict[int, YearResult],
        output_dir: Union[str, Path],
        tables_dir: Optional[Union[str, Path]] = None
    ) -> Dict[str, Path]:
        """
        Write every non-empty training stack and the summary tables.

        Args:
            results: Result map from run_years
            output_dir: Directory receiving ``training_stack_<year>.tif``
            tables_dir: Directory receiving the summary CSVs (output_dir if None)

        Returns:
            dict: output name -> written path
        """
        output_dir = ensure_directory(output_dir)
        tables_dir = ensure_directory(tables_dir or output_dir)

        written = {}
        for year, stack in self.training_collection(results).items():
            written[f'training_stack_{year}'] = self.save_training_stack(
                stack, output_dir / f'training_stack_{year}.tif'
            )

        for name, table in self.summarize(results).items():
            path = tables_dir / f'{name}.csv'
            table.to_csv(path, index=False)
            written[name] = path
            self.logger.info(f"Saved {name} table ({len(table)} rows): {path}")

        return written

    def get_processing_summary(self) -> Dict[str, Any]:
        """
        Get processing summary and statistics.

        Returns:
            dict: Processing summary with timing and statistics

        Examples:
            >>> summary = pipeline.get_processing_summary()
            >>> print(f"Duration: {summary['duration_minutes']:.1f} minutes")
        """
        end_time = time.time()
        duration = end_time - (self.start_time or end_time)

        return {
            'processed_count': self.processed_count,
            'empty_count': self.empty_count,
            'error_count': self.error_count,
            'duration_seconds': duration,
            'duration_minutes': duration / 60,
            'success_rate': (self.processed_count + self.empty_count)
                            / max(1, self.processed_count + self.empty_count + self.error_count) * 100,
            'config_summary': {
                'years': self.years,
                'extent': self.extent.bounds,
                'sensors': [sensor.name for sensor in self.sensors],
                'scheduler': get_config_value(self.config, 'compute.scheduler', 'threads'),
            }
        }
