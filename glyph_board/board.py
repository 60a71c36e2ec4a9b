"""
GlyphBoard: a drawing session wiring surface, scheduler and pipeline together.

Usage (inside a running event loop):
    board = GlyphBoard.create()
    board.load_model()
    board.surface.begin_stroke(10, 10)
    board.surface.extend_stroke(10, 60)
    board.surface.end_stroke()
    # ... idle_delay later the pipeline runs and labels replace the ink
"""

import logging
from typing import Optional

from .classifier import CharacterClassifier
from .config import Settings, load_settings
from .pipeline import RecognitionPipeline
from .scheduler import DebounceScheduler
from .surface import DrawingSurface

logger = logging.getLogger(__name__)


class GlyphBoard:
    def __init__(self, surface: DrawingSurface, classifier, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.surface = surface
        self.classifier = classifier
        self.status = "ready" if classifier.loaded else "loading"
        self.pipeline = RecognitionPipeline(surface, classifier, settings=self.settings,
                                            on_status=self._set_status)
        self.scheduler = DebounceScheduler(self.pipeline.run, delay_ms=self.settings.idle_delay_ms)
        surface.subscribe(self.scheduler.handle)

    @classmethod
    def create(cls, settings: Optional[Settings] = None) -> "GlyphBoard":
        settings = settings or load_settings()
        surface = DrawingSurface(
            width=settings.canvas_width,
            height=settings.canvas_height,
            stroke_width=settings.stroke_width,
            font_path=settings.font_path,
        )
        classifier = CharacterClassifier(model_dir=settings.model_dir, device=settings.device)
        return cls(surface, classifier, settings=settings)

    def _set_status(self, message: str) -> None:
        self.status = message
        logger.info(f"Status: {message}")

    @property
    def ready(self) -> bool:
        return self.classifier.loaded

    def load_model(self) -> bool:
        """Load (or retry loading) the classifier; the pipeline refuses runs until this succeeds."""
        self._set_status("loading")
        if self.classifier.load():
            self._set_status("ready")
            return True
        self._set_status(f"error: {self.classifier.load_error}")
        return False

    def clear(self) -> None:
        """Wipe the surface and drop any armed trigger."""
        self.scheduler.cancel()
        self.surface.clear_all()

    def close(self) -> None:
        self.scheduler.cancel()
        self.surface.unsubscribe(self.scheduler.handle)
