"""
Raster drawing surface backed by a Pillow image.

Pointer input is fed through begin_stroke / extend_stroke / end_stroke; the
surface paints round-capped ink and emits stroke lifecycle events to its
subscribers (the debounce scheduler, in the running application).
"""

import io
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .config import SURFACE_CONFIG
from .types import BoundingBox, RasterFrame


class StrokeEvent(str, Enum):
    START = "start"
    SAMPLE = "sample"
    END = "end"


StrokeListener = Callable[[StrokeEvent], None]


class DrawingSurface:
    def __init__(self,
                 width: int = SURFACE_CONFIG["width"],
                 height: int = SURFACE_CONFIG["height"],
                 background=SURFACE_CONFIG["background"],
                 ink=SURFACE_CONFIG["ink"],
                 label_color=SURFACE_CONFIG["label_color"],
                 stroke_width: int = SURFACE_CONFIG["stroke_width"],
                 font_path: Optional[str] = SURFACE_CONFIG["font_path"]):
        self.background = background
        self.ink = ink
        self.label_color = label_color
        self.stroke_width = stroke_width
        self.font_path = font_path
        self.image = Image.new("RGB", (width, height), background)
        self._draw = ImageDraw.Draw(self.image)
        self._listeners: List[StrokeListener] = []
        self._last_point: Optional[Tuple[float, float]] = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def drawing(self) -> bool:
        return self._last_point is not None

    # ── Stroke events ──────────────────────────────────────────────────

    def subscribe(self, listener: StrokeListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StrokeListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return

    def _emit(self, event: StrokeEvent) -> None:
        for listener in tuple(self._listeners):
            listener(event)

    def begin_stroke(self, x: float, y: float) -> None:
        self._last_point = (x, y)
        self._emit(StrokeEvent.START)

    def extend_stroke(self, x: float, y: float) -> None:
        """Paint from the previous pointer position to (x, y)."""
        if self._last_point is None:
            return
        self.paint_line(self._last_point, (x, y))
        self._last_point = (x, y)
        self._emit(StrokeEvent.SAMPLE)

    def end_stroke(self) -> None:
        # pointer-up and pointer-leave both end a stroke; only the first counts
        if self._last_point is None:
            return
        self._last_point = None
        self._emit(StrokeEvent.END)

    # ── Painting ───────────────────────────────────────────────────────

    def paint_line(self, start: Tuple[float, float], end: Tuple[float, float]) -> None:
        """Round-capped, round-joined segment in the ink colour."""
        radius = self.stroke_width / 2
        self._draw.line([start, end], fill=self.ink, width=self.stroke_width, joint="curve")
        for cx, cy in (start, end):
            self._draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], fill=self.ink)

    def paint_rect(self, box: BoundingBox, fill=None) -> None:
        """Solid ink block, mostly useful for scripted input."""
        self._draw.rectangle([box.x, box.y, box.right - 1, box.bottom - 1], fill=fill or self.ink)

    def load_image(self, image: Image.Image) -> None:
        """Replace the surface contents, compositing any transparency onto the background."""
        if image.mode in ("RGBA", "LA", "PA"):
            base = Image.new("RGBA", image.size, self.background)
            base.alpha_composite(image.convert("RGBA"))
            image = base
        self.image = image.convert("RGB")
        self._draw = ImageDraw.Draw(self.image)
        self._last_point = None

    # ── Interface used by the pipeline ─────────────────────────────────

    def current_frame(self) -> RasterFrame:
        return RasterFrame.capture(np.asarray(self.image))

    def clear_region(self, box: BoundingBox) -> None:
        self._draw.rectangle([box.x, box.y, box.right - 1, box.bottom - 1], fill=self.background)

    def clear_all(self) -> None:
        self._draw.rectangle([0, 0, self.width - 1, self.height - 1], fill=self.background)

    def font(self, size: int) -> ImageFont.ImageFont:
        size = max(1, int(size))
        if self.font_path:
            return ImageFont.truetype(self.font_path, size)
        try:
            return ImageFont.truetype("DejaVuSans.ttf", size)
        except OSError:
            return ImageFont.load_default(size=size)

    def label_tile(self, box: BoundingBox, text: str) -> Optional[Image.Image]:
        """
        Render ``text`` centered on a background tile the size of ``box``,
        with the font sized to the box's smaller side.

        The surface itself is not touched. Returns None for an empty box.
        """
        if box.width <= 0 or box.height <= 0:
            return None
        font = self.font(min(box.width, box.height))
        tile = Image.new("RGB", (box.width, box.height), self.background)
        draw = ImageDraw.Draw(tile)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        origin = ((box.width - (left + right)) / 2, (box.height - (top + bottom)) / 2)
        draw.text(origin, text, fill=self.label_color, font=font)
        return tile

    def paste_tile(self, box: BoundingBox, tile: Optional[Image.Image]) -> None:
        if tile is not None:
            self.image.paste(tile, (box.x, box.y))

    def draw_label(self, box: BoundingBox, text: str) -> None:
        """Draw ``text`` centered in ``box``; nothing outside the box is touched."""
        self.paste_tile(box, self.label_tile(box, text))

    def to_png(self) -> bytes:
        buffer = io.BytesIO()
        self.image.save(buffer, format="PNG")
        return buffer.getvalue()
