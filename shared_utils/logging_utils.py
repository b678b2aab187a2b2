"""
Logging utilities for the Land Cover NDVI Training Stack Pipeline.

All component loggers live under the ``land_cover_ndvi`` namespace, so one
root configuration covers the loaders, the compositing stages and the
command-line script. The run banners report what a multi-year run is about
to do (years, sensors, region) and how each year ended (stack written, no
usable scenes, failed).

Author: Diego Bengochea
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

LOGGER_NAMESPACE = 'land_cover_ndvi'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that flood INFO/DEBUG output during raster I/O and dask runs
NOISY_LOGGERS = {
    'rasterio': logging.WARNING,
    'rasterio._env': logging.WARNING,
    'urllib3': logging.WARNING,
    'distributed': logging.ERROR,
    'distributed.scheduler': logging.ERROR,
    'distributed.nanny': logging.ERROR,
}


def setup_logging(
    level: Union[str, int] = 'INFO',
    component_name: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """
    Configure the root logger for a pipeline run.

    Replaces any existing root handlers with a stdout handler and, when
    ``log_file`` is given, a file handler. Raster I/O and dask distributed
    loggers are capped so per-year progress stays readable.

    Args:
        level: Logging level name or constant
        component_name: Component whose logger is returned
        log_file: Optional path of a log file (parent directories are created)

    Returns:
        logging.Logger: The ``land_cover_ndvi.<component_name>`` logger

    Examples:
        >>> logger = setup_logging('INFO', 'land_cover_processing')
        >>> logger = setup_logging('DEBUG', 'land_cover_processing', 'logs/run_2020.log')
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, noisy_level))

    return get_logger(component_name) if component_name else logging.getLogger(LOGGER_NAMESPACE)


def get_logger(component_name: str) -> logging.Logger:
    """Logger of a component, e.g. ``get_logger('land_cover_processing.loaders')``."""
    return logging.getLogger(f'{LOGGER_NAMESPACE}.{component_name}')


def log_run_start(
    logger: logging.Logger,
    years: Sequence[int],
    sensors: Iterable[str],
    bounds: Optional[Sequence[float]] = None
) -> None:
    """
    Log the banner opening a multi-year run.

    Args:
        logger: Logger instance
        years: Years about to be processed
        sensors: Names of the reflectance sensors merged into each composite
        bounds: Optional (min_x, min_y, max_x, max_y) of the analysis region
    """
    logger.info("=" * 80)
    logger.info(f"LAND COVER TRAINING STACKS: {len(years)} year(s) {list(years)}")
    logger.info(f"  sensors: {', '.join(sensors)}")
    if bounds is not None:
        logger.info(f"  region: {tuple(round(float(b), 6) for b in bounds)}")
    logger.info("=" * 80)


def log_run_end(
    logger: logging.Logger,
    processed: int,
    empty: int,
    failed: int,
    elapsed_time: Optional[float] = None
) -> None:
    """
    Log the banner closing a multi-year run with the per-year outcome counts.

    A run is reported as failed when any year failed; years without usable
    scenes are reported separately and do not count as failures.
    """
    logger.info("=" * 80)
    status = "FAILED" if failed else "COMPLETED"
    logger.info(f"RUN {status}: {processed} stack(s), {empty} year(s) without scenes, {failed} failed year(s)")

    if elapsed_time is not None:
        hours, remainder = divmod(int(elapsed_time), 3600)
        minutes, seconds = divmod(remainder, 60)
        logger.info(f"Total execution time: {hours:02d}:{minutes:02d}:{seconds:02d}")

    logger.info("=" * 80)


def log_year_header(logger: logging.Logger, year: int) -> None:
    logger.info(f"{'=' * 20} YEAR {year} {'=' * 20}")
