"""
Value types passed between pipeline stages.
"""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from .errors import GlyphBoardError, GlyphError


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in surface pixels; (x, y) is the top-left corner."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> int:
        return self.width * self.height

    def slices(self) -> Tuple[slice, slice]:
        """Row/column slices for indexing a (H, W, ...) array."""
        return (slice(self.y, self.bottom), slice(self.x, self.right))

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True, eq=False)
class RasterFrame:
    """
    Read-only snapshot of the drawing surface.

    ``pixels`` is (H, W) grayscale or (H, W, C) with C in {3, 4}, uint8.
    """

    pixels: np.ndarray

    @classmethod
    def capture(cls, pixels) -> "RasterFrame":
        snapshot = np.array(pixels, copy=True)
        snapshot.setflags(write=False)
        return cls(snapshot)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])


@dataclass(frozen=True, eq=False)
class GlyphRegion:
    """
    One connected ink component.

    ``plane`` is the binarized frame the component was found in; ``index`` is
    the order in which the component was discovered.
    """

    box: BoundingBox
    plane: np.ndarray
    index: int

    @property
    def pixels(self) -> np.ndarray:
        return self.plane[self.box.slices()]


@dataclass(frozen=True, eq=False)
class NormalizedSample:
    region: GlyphRegion
    data: np.ndarray    # (H, W) or (H, W, C), float32 in [0, 1]

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.data.shape)


@dataclass(frozen=True)
class Prediction:
    region: GlyphRegion
    label: str
    confidence: float
    index: int = -1     # raw classifier output index

    @property
    def box(self) -> BoundingBox:
        return self.region.box


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


_run_ids = itertools.count(1)


@dataclass
class PipelineRun:
    """One debounce-triggered pass of segment -> normalize -> classify -> render."""

    run_id: int = field(default_factory=lambda: next(_run_ids))
    frame: Optional[RasterFrame] = None
    regions: List[GlyphRegion] = field(default_factory=list)
    predictions: List[Prediction] = field(default_factory=list)
    warnings: List[GlyphError] = field(default_factory=list)
    status: RunStatus = RunStatus.PENDING
    error: Optional[GlyphBoardError] = None

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def skipped(self) -> List[GlyphRegion]:
        return [w.region for w in self.warnings if w.region is not None]

    def warn(self, warning: GlyphError) -> None:
        self.warnings.append(warning)

    def fail(self, error: GlyphBoardError) -> None:
        self.status = RunStatus.FAILED
        self.error = error
        self.predictions = []

    def summary(self) -> str:
        if self.status is RunStatus.FAILED:
            return f"error: {self.error}"
        text = f"recognized {len(self.predictions)} of {len(self.regions)} glyph(s)"
        if self.warnings:
            text += f", skipped {len(self.warnings)}"
        return text
