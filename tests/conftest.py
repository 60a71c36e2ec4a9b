"""Shared pytest fixtures for the glyph board test suite.

Fixtures:
    blank_frame_pixels: 200x400 white grayscale canvas as a numpy array
    surface: 400x200 DrawingSurface with the default 15px stroke
    stub_classifier: loaded StubClassifier ("0" for hollow glyphs, "1" otherwise)
    settings: Settings with a short idle delay for scheduler tests
"""

import threading

import numpy as np
import pytest
from PIL import ImageDraw

from glyph_board.config import LABEL_TO_IDX, LABELS, NUM_CLASSES, Settings
from glyph_board.surface import DrawingSurface
from glyph_board.types import BoundingBox


def one_hot(index: int, size: int = NUM_CLASSES) -> np.ndarray:
    probs = np.full(size, 0.1 / (size - 1), dtype=np.float32)
    probs[index] = 0.9
    return probs


def hollow_or_solid(data: np.ndarray) -> str:
    """'0' when the middle of the glyph is empty, '1' when it is inked."""
    h, w = data.shape[:2]
    return "0" if data[h // 2, w // 2].mean() < 0.5 else "1"


class StubClassifier:
    """
    Stand-in for CharacterClassifier.

    ``label_for`` picks the label from the sample data; ``fail_when`` makes
    predict() raise for matching samples.
    """

    def __init__(self, label_for=hollow_or_solid, fail_when=None, loaded=True, labels=None):
        self.labels = list(labels or LABELS)
        self.label_for = label_for
        self.fail_when = fail_when
        self.loaded = loaded
        self.load_error = None if loaded else "Model not found: /nowhere/glyph_cnn.pt"
        self.calls = 0
        self._lock = threading.Lock()

    def load(self) -> bool:
        return self.loaded

    def predict(self, sample: np.ndarray) -> np.ndarray:
        with self._lock:
            self.calls += 1
        assert sample.shape == (28, 28)
        if self.fail_when is not None and self.fail_when(sample):
            raise RuntimeError("inference backend exploded")
        return one_hot(LABEL_TO_IDX[self.label_for(sample)])


def draw_ring(surface: DrawingSurface, box: BoundingBox, width: int = 6) -> None:
    draw = ImageDraw.Draw(surface.image)
    draw.ellipse([box.x, box.y, box.right - 1, box.bottom - 1], outline=surface.ink, width=width)


def draw_bar(surface: DrawingSurface, box: BoundingBox) -> None:
    surface.paint_rect(box)


def ink_pixels(surface: DrawingSurface, box: BoundingBox) -> int:
    """Count of pure-ink (black) pixels inside ``box``."""
    region = np.asarray(surface.image)[box.slices()]
    return int(np.all(region == 0, axis=-1).sum())


def label_pixels(surface: DrawingSurface, box: BoundingBox) -> np.ndarray:
    """Boolean mask of label-coloured (blue dominant) pixels inside ``box``."""
    region = np.asarray(surface.image)[box.slices()].astype(int)
    return (region[:, :, 2] > 200) & (region[:, :, 0] < 128)


@pytest.fixture
def blank_frame_pixels():
    return np.full((200, 400), 255, dtype=np.uint8)


@pytest.fixture
def surface():
    return DrawingSurface(width=400, height=200)


@pytest.fixture
def stub_classifier():
    return StubClassifier()


@pytest.fixture
def settings():
    return Settings(idle_delay_ms=60)
