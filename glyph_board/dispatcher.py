"""
Classification dispatcher: send normalized samples to the classifier and
collect predictions in segmentation order.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

import numpy as np

from .config import UNKNOWN_LABEL, get_label_from_index
from .errors import ClassifierError, ModelUnavailable
from .types import NormalizedSample, Prediction

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    labels: List[str]

    @property
    def loaded(self) -> bool: ...

    def predict(self, sample: np.ndarray) -> Sequence[float]: ...


@dataclass
class DispatchResult:
    predictions: List[Prediction] = field(default_factory=list)
    failures: List[ClassifierError] = field(default_factory=list)


class ClassificationDispatcher:
    """
    Classifies each sample off the event loop and reassembles the results in
    input order, whatever order the calls finish in. A failed call skips only
    its own glyph.
    """

    def __init__(self, classifier: Classifier, labels: Optional[Sequence[str]] = None,
                 unknown_label: str = UNKNOWN_LABEL):
        self.classifier = classifier
        self._labels = list(labels) if labels is not None else None
        self.unknown_label = unknown_label

    @property
    def labels(self) -> List[str]:
        if self._labels is not None:
            return self._labels
        return list(getattr(self.classifier, "labels", None) or [])

    def to_prediction(self, sample: NormalizedSample, probs) -> Prediction:
        probs = np.asarray(probs, dtype=np.float64).ravel()
        if probs.size == 0 or not np.all(np.isfinite(probs)):
            raise ClassifierError(
                f"classifier returned an unusable distribution for glyph {sample.region.index}",
                region=sample.region,
            )
        idx = int(np.argmax(probs))
        label = get_label_from_index(idx, self.labels)
        if label == UNKNOWN_LABEL:
            label = self.unknown_label
        return Prediction(region=sample.region, label=label, confidence=float(probs[idx]), index=idx)

    def classify(self, sample: NormalizedSample) -> Prediction:
        try:
            probs = self.classifier.predict(sample.data)
            return self.to_prediction(sample, probs)
        except (ModelUnavailable, ClassifierError):
            raise
        except Exception as e:
            raise ClassifierError(
                f"inference failed for glyph {sample.region.index}: {e}",
                region=sample.region,
            ) from e

    async def dispatch(self, samples: Sequence[NormalizedSample]) -> DispatchResult:
        if not self.classifier.loaded:
            raise ModelUnavailable("classifier is not loaded")

        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self.classify, sample) for sample in samples),
            return_exceptions=True,
        )

        result = DispatchResult()
        for sample, outcome in zip(samples, outcomes):
            if isinstance(outcome, Prediction):
                result.predictions.append(outcome)
            elif isinstance(outcome, ClassifierError):
                logger.warning(str(outcome))
                result.failures.append(outcome)
            else:
                raise outcome
        return result
