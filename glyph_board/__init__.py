"""
Glyph Board

Freehand multi-character drawing, segmented after an idle pause, classified
per glyph with a small CNN and annotated in place.
"""

from .config import LABELS, NUM_CLASSES, UNKNOWN_LABEL, PIPELINE_CONFIG, Settings, load_settings
from .errors import (
    GlyphBoardError,
    SegmentationError,
    GlyphNormalizationWarning,
    ClassifierError,
    ModelUnavailable,
    PipelineError,
)
from .types import BoundingBox, RasterFrame, GlyphRegion, NormalizedSample, Prediction, PipelineRun
from .segmentation import SegmentationEngine
from .normalizer import GlyphNormalizer
from .dispatcher import ClassificationDispatcher
from .renderer import ResultRenderer
from .scheduler import DebounceScheduler, SchedulerState
from .surface import DrawingSurface, StrokeEvent
from .pipeline import RecognitionPipeline
from .board import GlyphBoard

__all__ = [
    'LABELS',
    'NUM_CLASSES',
    'UNKNOWN_LABEL',
    'PIPELINE_CONFIG',
    'Settings',
    'load_settings',
    'GlyphBoardError',
    'SegmentationError',
    'GlyphNormalizationWarning',
    'ClassifierError',
    'ModelUnavailable',
    'PipelineError',
    'BoundingBox',
    'RasterFrame',
    'GlyphRegion',
    'NormalizedSample',
    'Prediction',
    'PipelineRun',
    'SegmentationEngine',
    'GlyphNormalizer',
    'ClassificationDispatcher',
    'ResultRenderer',
    'DebounceScheduler',
    'SchedulerState',
    'DrawingSurface',
    'StrokeEvent',
    'RecognitionPipeline',
    'GlyphBoard',
]
