"""
Spatial and temporal extents for the land cover processing pipeline.

Defines the immutable analysis region (GeoExtent) and the mapping from an
analysis year to its half-open calendar interval. Both are passed explicitly
to every loader and reduction so that pipelines for different regions and
years can run side by side without sharing state.

Author: Diego Bengochea
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Tuple, Union

import numpy as np
import pandas as pd
from odc.geo.geom import Geometry, box


@dataclass(frozen=True)
class GeoExtent:
    """
    Axis-aligned bounding rectangle constraining every load and statistic.

    Coordinates are expressed in ``crs`` (longitude/latitude by default).
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float
    crs: str = 'EPSG:4326'

    def __post_init__(self):
        if not (self.min_x < self.max_x and self.min_y < self.max_y):
            raise ValueError(
                f"Invalid extent: min must be smaller than max on both axes, "
                f"got x=({self.min_x}, {self.max_x}) y=({self.min_y}, {self.max_y})"
            )

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(left, bottom, right, top) in the extent CRS."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def to_geometry(self) -> Geometry:
        """Return the extent as an odc-geo polygon carrying its CRS."""
        return box(self.min_x, self.min_y, self.max_x, self.max_y, crs=self.crs)

    def lonlat_bounds(self) -> Tuple[float, float, float, float]:
        """(left, bottom, right, top) in EPSG:4326, as expected by STAC searches."""
        if self.crs == 'EPSG:4326':
            return self.bounds
        bbox = self.to_geometry().to_crs('EPSG:4326').boundingbox
        return (bbox.left, bbox.bottom, bbox.right, bbox.top)

    @classmethod
    def from_config(cls, region_config: Dict[str, Any]) -> 'GeoExtent':
        """
        Build an extent from the ``region`` configuration section.

        Examples:
            >>> GeoExtent.from_config({'min_lon': 80.8, 'min_lat': 26.72,
            ...                        'max_lon': 81.1, 'max_lat': 26.96})
        """
        return cls(
            min_x=float(region_config['min_lon']),
            min_y=float(region_config['min_lat']),
            max_x=float(region_config['max_lon']),
            max_y=float(region_config['max_lat']),
            crs=region_config.get('crs', 'EPSG:4326'),
        )


@dataclass(frozen=True)
class YearInterval:
    """Half-open calendar interval [start, end) attached to an analysis year."""

    year: int
    start: datetime
    end: datetime

    def contains(self, timestamp: Union[datetime, np.datetime64, pd.Timestamp]) -> bool:
        ts = pd.Timestamp(timestamp)
        if ts.tzinfo is not None:
            ts = ts.tz_convert(None)
        return pd.Timestamp(self.start) <= ts < pd.Timestamp(self.end)

    def to_stac_range(self) -> str:
        """
        STAC datetime range covering the interval.

        STAC ranges are closed, so the last included day is ``end - 1 day``.

        Examples:
            >>> year_interval(2020).to_stac_range()
            '2020-01-01/2020-12-31'
        """
        last_day = self.end - timedelta(days=1)
        return f"{self.start:%Y-%m-%d}/{last_day:%Y-%m-%d}"

    @property
    def time_start(self) -> str:
        """ISO timestamp of the interval start, used as the year tag timestamp."""
        return self.start.isoformat()


def year_interval(year: int) -> YearInterval:
    """
    Map an analysis year to [Jan 1 of year, Jan 1 of year + 1).

    Args:
        year: Calendar year

    Returns:
        YearInterval: Half-open interval for the year
    """
    year = int(year)
    return YearInterval(year=year, start=datetime(year, 1, 1), end=datetime(year + 1, 1, 1))
