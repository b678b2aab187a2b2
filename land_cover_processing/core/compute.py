"""
Dask compute helpers for the land cover pipeline.

Years are evaluated as independent ``dask.delayed`` tasks. Pixel-level work
inside each year (scene loads, median, reprojection) runs on dask arrays and
uses whichever scheduler is active: the local threaded scheduler by default,
or a managed LocalCluster when ``compute.scheduler`` is ``distributed``.

Author: Diego Bengochea
"""

import contextlib
import gc
from typing import Any, Dict, Iterator, Optional

import dask.distributed
import psutil

from shared_utils import get_logger

SUPPORTED_SCHEDULERS = ('threads', 'synchronous', 'distributed')


@contextlib.contextmanager
def setup_cluster(
    n_workers: int = 4,
    threads_per_worker: int = 2,
    memory_per_worker: str = '4GB'
) -> Iterator[dask.distributed.Client]:
    """
    Run a block inside a managed Dask LocalCluster.

    The client becomes the default scheduler for dask computations inside the
    block. Client and cluster are always closed on exit, followed by a
    garbage collection pass and a memory usage report.

    Args:
        n_workers: Number of workers
        threads_per_worker: Threads per worker
        memory_per_worker: Memory limit per worker (e.g. "4GB")

    Yields:
        dask.distributed.Client: Client connected to the cluster

    Examples:
        >>> with setup_cluster(4, 2, "8GB") as client:
        ...     composite = composite.compute()
    """
    logger = get_logger('land_cover_processing')
    cluster = None
    client = None

    try:
        cluster = dask.distributed.LocalCluster(
            n_workers=n_workers,
            threads_per_worker=threads_per_worker,
            memory_limit=memory_per_worker
        )
        client = dask.distributed.Client(cluster)
        logger.info(f"Dask cluster ready: {n_workers} workers x {threads_per_worker} threads")
        yield client

    except Exception as e:
        logger.error(f"Error in cluster operations: {str(e)}")
        raise
    finally:
        if client is not None:
            logger.info("Closing client...")
            client.close()

        if cluster is not None:
            logger.info("Closing cluster...")
            cluster.close()

        gc.collect()
        memory_info = psutil.Process().memory_info()
        logger.info(f"Memory usage after cleanup: {memory_info.rss / 1024 / 1024:.2f} MB")


def compute_context(compute_config: Optional[Dict[str, Any]] = None):
    """
    Context manager matching the configured scheduler.

    Returns a managed cluster for ``distributed`` and a no-op context for the
    local schedulers.

    Raises:
        ValueError: If the scheduler name is not supported
    """
    compute_config = compute_config or {}
    scheduler = compute_config.get('scheduler', 'threads')
    if scheduler not in SUPPORTED_SCHEDULERS:
        raise ValueError(f"Unsupported scheduler '{scheduler}'. Supported: {list(SUPPORTED_SCHEDULERS)}")

    if scheduler == 'distributed':
        return setup_cluster(
            n_workers=compute_config.get('n_workers', 4),
            threads_per_worker=compute_config.get('threads_per_worker', 2),
            memory_per_worker=compute_config.get('memory_per_worker', '4GB')
        )
    return contextlib.nullcontext()


def year_scheduler(compute_config: Optional[Dict[str, Any]] = None) -> str:
    """Local scheduler used to fan out the per-year tasks."""
    scheduler = (compute_config or {}).get('scheduler', 'threads')
    return 'synchronous' if scheduler == 'synchronous' else 'threads'


def log_memory_usage(logger) -> None:
    """Log system memory usage, as done between processing units."""
    memory_usage = psutil.virtual_memory()
    logger.info(f"System memory usage: {memory_usage.percent}%")
