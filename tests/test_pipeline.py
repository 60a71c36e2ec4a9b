import asyncio
import threading

import numpy as np
import pytest

from conftest import StubClassifier, draw_bar, draw_ring, ink_pixels, label_pixels
from glyph_board.config import Settings
from glyph_board.errors import (
    ClassifierError,
    GlyphNormalizationWarning,
    ModelUnavailable,
    PipelineError,
    SegmentationError,
)
from glyph_board.pipeline import RecognitionPipeline
from glyph_board.surface import DrawingSurface
from glyph_board.types import BoundingBox, RunStatus


def run_pipeline(pipeline):
    return asyncio.run(pipeline.run())


def test_scenario_single_glyph(surface, stub_classifier):
    box = BoundingBox(10, 10, 40, 60)
    draw_bar(surface, box)

    run = run_pipeline(RecognitionPipeline(surface, stub_classifier))

    assert run.status is RunStatus.COMPLETED
    assert [(p.label, p.box) for p in run.predictions] == [("1", box)]
    assert ink_pixels(surface, box) == 0
    ys, xs = np.nonzero(label_pixels(surface, box))
    assert abs(xs.mean() - box.width / 2) < 8
    assert abs(ys.mean() - box.height / 2) < 10


def test_scenario_two_glyphs_in_reading_order(surface, stub_classifier):
    right = BoundingBox(100, 30, 40, 40)
    left = BoundingBox(10, 20, 30, 60)
    draw_ring(surface, right)     # drawn first
    draw_bar(surface, left)

    run = run_pipeline(RecognitionPipeline(surface, stub_classifier))

    assert [p.label for p in run.predictions] == ["1", "0"]
    assert run.predictions[0].box == left
    assert abs(run.predictions[1].box.x - 100) <= 1
    assert [r.box.x for r in run.regions] == sorted(r.box.x for r in run.regions)


def test_scenario_sub_threshold_blob_is_left_alone(surface, stub_classifier):
    draw_bar(surface, BoundingBox(10, 10, 5, 60))
    before = np.asarray(surface.image).copy()

    run = run_pipeline(RecognitionPipeline(surface, stub_classifier))

    assert run.succeeded
    assert run.predictions == []
    assert np.array_equal(np.asarray(surface.image), before)
    assert stub_classifier.calls == 0


def test_scenario_one_classifier_failure(surface):
    boxes = [BoundingBox(10, 20, 30, 60), BoundingBox(100, 20, 40, 40), BoundingBox(200, 20, 30, 60)]
    draw_bar(surface, boxes[0])
    draw_ring(surface, boxes[1])
    draw_bar(surface, boxes[2])
    # the ring is the only glyph with a hollow middle
    classifier = StubClassifier(fail_when=lambda data: data[14, 14] < 0.5)

    run = run_pipeline(RecognitionPipeline(surface, classifier))

    assert run.succeeded
    assert [p.box for p in run.predictions] == [boxes[0], boxes[2]]
    assert len(run.warnings) == 1
    assert isinstance(run.warnings[0], ClassifierError)
    assert ink_pixels(surface, boxes[1]) > 0
    assert ink_pixels(surface, boxes[0]) == ink_pixels(surface, boxes[2]) == 0
    assert "skipped 1" in run.summary()


def test_normalization_failure_skips_only_that_glyph(surface, stub_classifier):
    boxes = [BoundingBox(10, 20, 30, 60), BoundingBox(100, 20, 30, 60)]
    for box in boxes:
        draw_bar(surface, box)
    pipeline = RecognitionPipeline(surface, stub_classifier)
    normalize = pipeline.normalizer.normalize

    def flaky(region):
        if region.box.x == 100:
            raise GlyphNormalizationWarning("cannot resize", region=region)
        return normalize(region)

    pipeline.normalizer.normalize = flaky
    run = run_pipeline(pipeline)

    assert [p.box for p in run.predictions] == [boxes[0]]
    assert isinstance(run.warnings[0], GlyphNormalizationWarning)
    assert run.skipped[0].box == boxes[1]
    assert ink_pixels(surface, boxes[1]) > 0


def test_unloaded_model_refuses_the_run(surface):
    draw_bar(surface, BoundingBox(10, 10, 40, 60))
    before = np.asarray(surface.image).copy()
    statuses = []
    classifier = StubClassifier(loaded=False)

    run = run_pipeline(RecognitionPipeline(surface, classifier, on_status=statuses.append))

    assert run.status is RunStatus.FAILED
    assert isinstance(run.error, ModelUnavailable)
    assert np.array_equal(np.asarray(surface.image), before)
    assert statuses[0] == "running"
    assert statuses[-1].startswith("error: Model not found")


def test_segmentation_failure_renders_nothing(surface, stub_classifier):
    draw_bar(surface, BoundingBox(10, 10, 40, 60))
    before = np.asarray(surface.image).copy()
    pipeline = RecognitionPipeline(surface, stub_classifier)

    def broken(frame):
        raise SegmentationError("component extraction failed")

    pipeline.segmenter.segment = broken
    run = run_pipeline(pipeline)

    assert isinstance(run.error, SegmentationError)
    assert run.predictions == []
    assert np.array_equal(np.asarray(surface.image), before)
    assert stub_classifier.calls == 0


def test_settings_flow_into_stages(surface, stub_classifier):
    draw_bar(surface, BoundingBox(10, 10, 12, 40))
    pipeline = RecognitionPipeline(surface, stub_classifier, settings=Settings(min_extent=10))

    run = run_pipeline(pipeline)

    assert pipeline.segmenter.min_extent == 10
    assert len(run.predictions) == 1


def test_frame_is_released_after_the_run(surface, stub_classifier):
    draw_bar(surface, BoundingBox(10, 10, 40, 60))
    run = run_pipeline(RecognitionPipeline(surface, stub_classifier))
    assert run.frame is None
    assert run.succeeded


def test_runs_never_overlap(surface):
    active = []
    overlaps = []

    class Watching(StubClassifier):
        def predict(self, sample):
            active.append(1)
            if len(active) > 1:
                overlaps.append(len(active))
            try:
                return super().predict(sample)
            finally:
                active.pop()

    draw_bar(surface, BoundingBox(10, 10, 40, 60))
    pipeline = RecognitionPipeline(surface, Watching())

    async def scenario():
        return await asyncio.gather(pipeline.run(), pipeline.run())

    first, second = asyncio.run(scenario())

    assert overlaps == []
    assert first.succeeded and second.succeeded
    assert first.run_id < second.run_id
    assert pipeline.last_run is second


def test_strokes_during_a_run_survive(surface):
    gate = {}

    class Slow(StubClassifier):
        def predict(self, sample):
            gate["event"].wait(2)
            return super().predict(sample)

    draw_bar(surface, BoundingBox(10, 10, 40, 60))
    pipeline = RecognitionPipeline(surface, Slow())

    async def scenario():
        gate["event"] = threading.Event()
        task = asyncio.ensure_future(pipeline.run())
        await asyncio.sleep(0.05)
        assert pipeline.running
        # fresh ink while classification is suspended
        surface.begin_stroke(300, 50)
        surface.extend_stroke(300, 150)
        surface.end_stroke()
        gate["event"].set()
        return await task

    run = asyncio.run(scenario())

    assert run.succeeded
    assert ink_pixels(surface, BoundingBox(290, 40, 20, 120)) > 0


@pytest.mark.parametrize("loaded", [True, False])
def test_status_messages(surface, loaded):
    statuses = []
    pipeline = RecognitionPipeline(surface, StubClassifier(loaded=loaded), on_status=statuses.append)
    run_pipeline(pipeline)
    assert statuses[0] == "running"
    if loaded:
        assert statuses[-1] == "recognized 0 of 0 glyph(s)"
    else:
        assert statuses[-1].startswith("error:")


def test_unloadable_font_fails_the_run_and_keeps_the_ink(stub_classifier):
    surface = DrawingSurface(width=400, height=200, font_path="/nonexistent/font.ttf")
    boxes = [BoundingBox(10, 10, 40, 60), BoundingBox(100, 10, 40, 60)]
    for box in boxes:
        draw_bar(surface, box)
    before = np.asarray(surface.image).copy()
    statuses = []
    pipeline = RecognitionPipeline(surface, stub_classifier, on_status=statuses.append)

    run = run_pipeline(pipeline)

    assert run.status is RunStatus.FAILED
    assert isinstance(run.error, PipelineError)
    assert isinstance(run.error.__cause__, OSError)
    assert run.predictions == []
    assert np.array_equal(np.asarray(surface.image), before)
    assert statuses[-1].startswith("error: OSError")
    assert not pipeline.running


def test_unexpected_stage_failure_is_reported(surface, stub_classifier):
    draw_bar(surface, BoundingBox(10, 10, 40, 60))
    before = np.asarray(surface.image).copy()
    statuses = []
    pipeline = RecognitionPipeline(surface, stub_classifier, on_status=statuses.append)

    def broken(predictions):
        raise KeyError("label table")

    pipeline.renderer.render = broken
    run = run_pipeline(pipeline)

    assert run.status is RunStatus.FAILED
    assert isinstance(run.error, PipelineError)
    assert np.array_equal(np.asarray(surface.image), before)
    assert statuses == ["running", run.summary()]

    # the lock was released, so the next run goes through
    del pipeline.renderer.render
    assert run_pipeline(pipeline).succeeded
