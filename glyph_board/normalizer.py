"""
Glyph normalizer: turn one glyph region into the classifier's fixed input.
"""

import cv2
import numpy as np

from . import imaging
from .config import PIPELINE_CONFIG
from .errors import GlyphNormalizationWarning
from .types import GlyphRegion, NormalizedSample


class GlyphNormalizer:
    """
    Crop -> area-averaging resize -> channel replication -> scale to [0, 1].

    A glyph that cannot be brought to exactly ``(height, width)`` raises
    GlyphNormalizationWarning; the caller skips it and keeps going.
    """

    def __init__(self,
                 width: int = PIPELINE_CONFIG["sample_width"],
                 height: int = PIPELINE_CONFIG["sample_height"],
                 channels: int = PIPELINE_CONFIG["sample_channels"],
                 intensity_range: float = PIPELINE_CONFIG["intensity_range"]):
        self.width = width
        self.height = height
        self.channels = channels
        self.intensity_range = intensity_range

    @property
    def sample_shape(self):
        if self.channels == 1:
            return (self.height, self.width)
        return (self.height, self.width, self.channels)

    def normalize(self, region: GlyphRegion) -> NormalizedSample:
        try:
            resized = imaging.resize(region.plane, region.box, self.width, self.height,
                                     method=cv2.INTER_AREA)
        except (cv2.error, ValueError) as e:
            raise GlyphNormalizationWarning(
                f"glyph {region.index} at {region.box.as_tuple()} could not be resized: {e}",
                region=region,
            ) from e

        if resized.shape[:2] != (self.height, self.width):
            raise GlyphNormalizationWarning(
                f"glyph {region.index} resized to {resized.shape[:2]}, "
                f"expected {(self.height, self.width)}",
                region=region,
            )

        data = resized.astype(np.float32) / self.intensity_range
        np.clip(data, 0.0, 1.0, out=data)
        if self.channels > 1:
            data = np.repeat(data[:, :, np.newaxis], self.channels, axis=2)
        data.setflags(write=False)
        return NormalizedSample(region=region, data=data)
