"""
Result renderer: replace each classified glyph's ink with its label.
"""

import logging
from typing import Sequence

from .types import Prediction

logger = logging.getLogger(__name__)


class ResultRenderer:
    """
    Clears each prediction's box and draws the label centered in it.

    Every label tile is built before any box is cleared, so a font or text
    failure leaves the surface exactly as it was. Only bounding-box
    coordinates are used, so the frame a run was segmented from can be
    discarded before rendering. Glyphs without a prediction keep their ink.
    """

    def __init__(self, surface):
        self.surface = surface

    def render(self, predictions: Sequence[Prediction]) -> int:
        tiles = [self.surface.label_tile(p.box, p.label) for p in predictions]
        for prediction, tile in zip(predictions, tiles):
            self.surface.clear_region(prediction.box)
            self.surface.paste_tile(prediction.box, tile)
        if predictions:
            logger.debug(f"Rendered {len(predictions)} label(s)")
        return len(predictions)
