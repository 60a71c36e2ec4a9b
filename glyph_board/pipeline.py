"""
Recognition pipeline: one debounce-triggered pass of
snapshot -> segment -> normalize -> classify -> render.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from .config import Settings
from .dispatcher import ClassificationDispatcher
from .errors import GlyphBoardError, GlyphNormalizationWarning, ModelUnavailable, PipelineError
from .normalizer import GlyphNormalizer
from .renderer import ResultRenderer
from .segmentation import SegmentationEngine
from .types import NormalizedSample, PipelineRun, RunStatus

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]


class RecognitionPipeline:
    """
    Runs are all-or-nothing: a run-level failure (model unavailable,
    segmentation error, or any unexpected exception, reported as
    PipelineError) renders nothing and leaves the surface as it was.
    Glyph-level failures skip only that glyph. At most one run executes at a time; a run that starts while
    another is in flight waits for it.
    """

    def __init__(self, surface, classifier,
                 segmenter: Optional[SegmentationEngine] = None,
                 normalizer: Optional[GlyphNormalizer] = None,
                 dispatcher: Optional[ClassificationDispatcher] = None,
                 renderer: Optional[ResultRenderer] = None,
                 settings: Optional[Settings] = None,
                 on_status: Optional[StatusCallback] = None):
        settings = settings or Settings()
        self.surface = surface
        self.classifier = classifier
        self.segmenter = segmenter or SegmentationEngine(min_extent=settings.min_extent)
        self.normalizer = normalizer or GlyphNormalizer(
            width=settings.sample_width,
            height=settings.sample_height,
            channels=settings.sample_channels,
            intensity_range=settings.intensity_range,
        )
        self.dispatcher = dispatcher or ClassificationDispatcher(classifier)
        self.renderer = renderer or ResultRenderer(surface)
        self.on_status = on_status
        self.last_run: Optional[PipelineRun] = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def _report(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)

    async def run(self) -> PipelineRun:
        async with self._lock:
            run = PipelineRun(status=RunStatus.RUNNING)
            self.last_run = run
            self._report("running")
            try:
                await self._execute(run)
            except GlyphBoardError as e:
                run.fail(e)
                logger.error(f"Run {run.run_id} failed: {e}")
            except Exception as e:
                logger.exception(f"Run {run.run_id} failed unexpectedly")
                error = PipelineError(f"{type(e).__name__}: {e}")
                error.__cause__ = e
                run.fail(error)
            finally:
                run.frame = None
            self._report(run.summary())
            return run

    async def _execute(self, run: PipelineRun) -> None:
        if not self.classifier.loaded:
            reason = getattr(self.classifier, "load_error", None) or "classifier is not loaded"
            raise ModelUnavailable(reason)

        run.frame = self.surface.current_frame()
        segmentation = self.segmenter.segment(run.frame)
        run.regions = list(segmentation.regions)
        logger.info(f"Run {run.run_id}: {len(run.regions)} glyph(s) segmented")

        samples = self._normalize_all(run)
        result = await self.dispatcher.dispatch(samples)
        for failure in result.failures:
            run.warn(failure)

        # rendering only needs box coordinates
        run.frame = None
        self.renderer.render(result.predictions)
        run.predictions = result.predictions
        run.status = RunStatus.COMPLETED

    def _normalize_all(self, run: PipelineRun) -> List[NormalizedSample]:
        samples = []
        for region in run.regions:
            try:
                samples.append(self.normalizer.normalize(region))
            except GlyphNormalizationWarning as warning:
                logger.warning(str(warning))
                run.warn(warning)
        return samples
