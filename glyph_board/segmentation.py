"""
Segmentation engine: carve a raster frame into ordered glyph regions.
"""

import logging
from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from . import imaging
from .config import PIPELINE_CONFIG
from .errors import SegmentationError
from .types import GlyphRegion, RasterFrame

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Segmentation:
    plane: np.ndarray               # binarized frame, ink = 255
    regions: List[GlyphRegion]      # left-to-right


class SegmentationEngine:
    """
    Binarize -> outer components -> size filter -> sort by left edge.

    Either the whole frame is segmented or SegmentationError is raised;
    there is no partial output.
    """

    def __init__(self, min_extent: int = PIPELINE_CONFIG["min_extent"]):
        self.min_extent = min_extent

    def segment(self, frame: RasterFrame) -> Segmentation:
        if not isinstance(frame, RasterFrame):
            raise SegmentationError(f"expected a RasterFrame, got {type(frame).__name__}")
        try:
            plane = imaging.binarize(frame)
            boxes = imaging.find_outer_components(plane)
        except (cv2.error, ValueError, TypeError) as e:
            raise SegmentationError(f"could not segment frame: {e}") from e

        plane.setflags(write=False)
        regions = [
            GlyphRegion(box=box, plane=plane, index=i)
            for i, box in enumerate(boxes)
            if box.width >= self.min_extent and box.height >= self.min_extent
        ]
        # sorted() is stable, so equal left edges keep discovery order
        regions = sorted(regions, key=lambda r: r.box.x)

        logger.debug(f"Segmented {len(boxes)} component(s), kept {len(regions)}")
        return Segmentation(plane=plane, regions=regions)
