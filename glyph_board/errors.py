"""
Error taxonomy for the glyph board pipeline.

Run-level errors (SegmentationError, ModelUnavailable) abort a run before
anything is rendered. Glyph-level errors (GlyphNormalizationWarning,
ClassifierError) skip one glyph and are recorded against the run.
"""


class GlyphBoardError(Exception):
    """Base class for every pipeline error."""


class SegmentationError(GlyphBoardError):
    """Binarization or component extraction could not run on the frame."""


class ModelUnavailable(GlyphBoardError):
    """The classifier is not loaded; runs are refused until it is."""


class GlyphError(GlyphBoardError):
    """A failure scoped to a single glyph."""

    def __init__(self, message: str, region=None):
        super().__init__(message)
        self.region = region

    @property
    def box(self):
        return self.region.box if self.region is not None else None


class GlyphNormalizationWarning(GlyphError):
    """The glyph could not be resized to the classifier's input shape."""


class ClassifierError(GlyphError):
    """The inference call for one glyph failed."""


class PipelineError(GlyphBoardError):
    """An unexpected failure inside a run; the run is failed and nothing is rendered."""
