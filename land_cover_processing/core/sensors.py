"""
Per-sensor configuration records for the reflectance archives.

Each record carries everything the masking and normalization stages need to
know about one sensor family: the source band identifiers, the QA band and
its bit layout, the saturation constant used by the valid-range check, the
linear rescale applied to the raw integer encoding, and the STAC asset keys
the source bands are published under. Landsat 7 and Landsat 8 are kept as
independent records so either can be overridden from the YAML configuration
without touching the other.

Author: Diego Bengochea
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .exceptions import SchemaMismatch

CANONICAL_BANDS = ('blue', 'green', 'red', 'nir', 'swir2')


@dataclass(frozen=True)
class SensorConfig:
    """Data-driven description of one reflectance sensor."""

    name: str
    platform: str
    source_bands: Tuple[str, ...]
    qa_band: str = 'QA_PIXEL'
    cloud_bits: Tuple[int, ...] = (3, 5)
    clear_bits: Tuple[int, ...] = (0, 1, 6)
    cirrus_bit: Optional[int] = None
    saturation: float = 10000
    scale: float = 10000
    offset: float = 0.0
    asset_aliases: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    @property
    def exclusion_bits(self) -> Tuple[int, ...]:
        """QA bits that must be unset for a pixel to count as clear."""
        if self.cirrus_bit is None:
            return tuple(self.clear_bits)
        return tuple(self.clear_bits) + (self.cirrus_bit,)

    @property
    def load_bands(self) -> List[str]:
        """Source bands plus QA band, in load order."""
        return list(self.source_bands) + [self.qa_band]

    def asset_key(self, band: str) -> str:
        """STAC asset key publishing ``band`` (identity when no alias is declared)."""
        return self.asset_aliases.get(band, band)


LANDSAT_7 = SensorConfig(
    name='landsat-7',
    platform='landsat-7',
    source_bands=('SR_B1', 'SR_B2', 'SR_B3', 'SR_B4', 'SR_B7'),
    asset_aliases={
        'SR_B1': 'blue', 'SR_B2': 'green', 'SR_B3': 'red',
        'SR_B4': 'nir08', 'SR_B7': 'swir22', 'QA_PIXEL': 'qa_pixel',
    },
)

LANDSAT_8 = SensorConfig(
    name='landsat-8',
    platform='landsat-8',
    source_bands=('SR_B2', 'SR_B3', 'SR_B4', 'SR_B5', 'SR_B7'),
    cirrus_bit=2,
    asset_aliases={
        'SR_B2': 'blue', 'SR_B3': 'green', 'SR_B4': 'red',
        'SR_B5': 'nir08', 'SR_B7': 'swir22', 'QA_PIXEL': 'qa_pixel',
    },
)

DEFAULT_SENSORS = {sensor.name: sensor for sensor in (LANDSAT_7, LANDSAT_8)}


def sensor_from_config(name: str, overrides: Optional[Dict[str, Any]] = None) -> SensorConfig:
    """
    Build a sensor record from its defaults and a configuration override block.

    Unknown sensor names must supply at least ``source_bands`` and ``platform``.

    Args:
        name: Sensor name (e.g. 'landsat-8')
        overrides: Mapping of SensorConfig field names to values

    Returns:
        SensorConfig: Sensor record

    Examples:
        >>> sensor_from_config('landsat-7', {'source_bands': ['SR_B2', 'SR_B3', 'SR_B4', 'SR_B5', 'SR_B7']})
    """
    overrides = dict(overrides or {})
    for key in ('source_bands', 'cloud_bits', 'clear_bits'):
        if key in overrides:
            overrides[key] = tuple(overrides[key])
    if 'asset_aliases' in overrides:
        overrides['asset_aliases'] = dict(overrides['asset_aliases'])

    base = DEFAULT_SENSORS.get(name)
    if base is None:
        missing = [key for key in ('source_bands', 'platform') if key not in overrides]
        if missing:
            raise ValueError(f"Sensor '{name}' has no defaults and is missing: {missing}")
        return SensorConfig(name=name, **overrides)

    return replace(base, **overrides)


def sensors_from_config(scenes_config: Dict[str, Any]) -> List[SensorConfig]:
    """
    Build all sensor records declared in the ``scenes.sensors`` section.

    The section may be a list of sensor names or a mapping of name to
    override block.
    """
    declared = scenes_config.get('sensors', list(DEFAULT_SENSORS))
    if isinstance(declared, dict):
        return [sensor_from_config(name, overrides) for name, overrides in declared.items()]
    return [sensor_from_config(name) for name in declared]


def validate_band_names(canonical_bands: Sequence[str], index_name: str, class_band: str) -> None:
    """
    Reject band tables whose output names would collide.

    Raises:
        SchemaMismatch: If canonical bands contain duplicates, or the index or
            classification band names collide with another output band
    """
    canonical_bands = list(canonical_bands)
    if len(set(canonical_bands)) != len(canonical_bands):
        raise SchemaMismatch(f"Canonical band names contain duplicates: {canonical_bands}")
    if index_name in canonical_bands:
        raise SchemaMismatch(f"Index band '{index_name}' collides with canonical bands {canonical_bands}")
    if class_band in canonical_bands or class_band == index_name:
        raise SchemaMismatch(
            f"Classification band '{class_band}' collides with composite bands "
            f"{canonical_bands + [index_name]}"
        )
