"""
Error taxonomy for the land cover processing component.

DataUnavailable and SchemaMismatch abort a single year's pipeline and are
recorded in the per-year result map; ResourceLimitExceeded is reported to the
caller of a zonal reduction, who may retry at a coarser scale. An empty
composite is not an error and is represented by ``None``.

Author: Diego Bengochea
"""


class LandCoverPipelineError(Exception):
    """Base class for all land cover pipeline errors."""


class DataUnavailable(LandCoverPipelineError):
    """A requested year or asset does not exist in the source archive."""


class SchemaMismatch(LandCoverPipelineError):
    """Declared band tables do not match the bands actually present."""


class ResourceLimitExceeded(LandCoverPipelineError):
    """A reduction would visit more pixels than permitted."""

    def __init__(self, n_pixels: int, max_pixels: int):
        self.n_pixels = n_pixels
        self.max_pixels = max_pixels
        super().__init__(
            f"Reduction would visit {n_pixels} pixels, exceeding the limit of {int(max_pixels)}. "
            f"Retry at a coarser scale or raise max_pixels."
        )
