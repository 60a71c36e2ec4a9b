"""
Inference wrapper for the trained character classifier.

The model artifact is a pair of files in one directory:
  - ``glyph_cnn.pt``      torch checkpoint with ``model_state_dict``
  - ``model_meta.json``   labels, num_classes and input shape
"""

import json
import logging
import os
import pickle
from typing import List, Optional, Sequence

import numpy as np
import torch

from .config import LABELS, MODEL_CONFIG, PIPELINE_CONFIG
from .errors import ModelUnavailable
from .model import GlyphCNN

logger = logging.getLogger(__name__)


class CharacterClassifier:
    """
    Loads the checkpoint once and classifies one normalized sample at a time.

    Usage:
        classifier = CharacterClassifier()
        if classifier.load():
            probs = classifier.predict(sample.data)
    """

    def __init__(self, model_dir: Optional[str] = None, device: Optional[str] = None):
        self.model_dir = model_dir or MODEL_CONFIG["model_dir"]
        self.ckpt_path = os.path.join(self.model_dir, MODEL_CONFIG["checkpoint_name"])
        self.meta_path = os.path.join(self.model_dir, MODEL_CONFIG["meta_name"])
        self.device = torch.device(device or ("cuda" if torch.cuda.is_available() else "cpu"))
        self.model: Optional[GlyphCNN] = None
        self.labels: List[str] = list(LABELS)
        self.input_shape = (
            PIPELINE_CONFIG["sample_channels"],
            PIPELINE_CONFIG["sample_height"],
            PIPELINE_CONFIG["sample_width"],
        )
        self.load_error: Optional[str] = None

    @property
    def loaded(self) -> bool:
        return self.model is not None

    def load(self) -> bool:
        """
        Load the model and metadata from disk.

        Returns True if successful. On failure ``load_error`` holds the reason
        and the classifier stays unloaded; calling load() again retries.
        """
        self.model = None
        if not os.path.isfile(self.ckpt_path):
            return self._load_failed(f"Model not found: {self.ckpt_path}")
        if not os.path.isfile(self.meta_path):
            return self._load_failed(f"Meta not found: {self.meta_path}")

        try:
            with open(self.meta_path, "r", encoding="utf-8") as f:
                meta = json.load(f)
            labels = meta.get("labels") or list(LABELS)
            num_classes = int(meta.get("num_classes", len(labels)))
            input_shape = tuple(int(v) for v in meta.get("input_shape", self.input_shape))

            ckpt = torch.load(self.ckpt_path, map_location=self.device)
            model = GlyphCNN(num_classes=num_classes, in_channels=input_shape[0],
                             dropout=MODEL_CONFIG["dropout"])
            model.load_state_dict(ckpt["model_state_dict"])
            model.to(self.device)
            model.eval()
        except (OSError, ValueError, KeyError, RuntimeError, EOFError, pickle.UnpicklingError) as e:
            return self._load_failed(f"Load error: {e}")

        self.model = model
        self.labels = list(labels)
        self.input_shape = input_shape
        self.load_error = None
        logger.info(f"Loaded classifier with {num_classes} classes from {self.model_dir}")
        return True

    def _load_failed(self, reason: str) -> bool:
        self.load_error = reason
        logger.error(f"[CharacterClassifier] {reason}")
        return False

    def to_tensor(self, sample: np.ndarray) -> torch.Tensor:
        """(H, W) or (H, W, C) array -> (1, C, H, W) float tensor on the model device."""
        arr = np.asarray(sample, dtype=np.float32)
        if arr.ndim == 2:
            arr = arr[np.newaxis, :, :]
        elif arr.ndim == 3:
            arr = np.transpose(arr, (2, 0, 1))
        else:
            raise ValueError(f"unsupported sample shape {arr.shape}")
        if arr.shape != self.input_shape:
            raise ValueError(f"sample shape {arr.shape} does not match model input {self.input_shape}")
        return torch.from_numpy(np.ascontiguousarray(arr)).unsqueeze(0).to(self.device)

    def predict(self, sample: np.ndarray) -> np.ndarray:
        """Probability distribution over ``labels`` for one sample."""
        if self.model is None:
            raise ModelUnavailable(self.load_error or "classifier is not loaded")

        tensor = self.to_tensor(sample)
        probs = None
        try:
            with torch.no_grad():
                probs = self.model.predict_proba(tensor)
                return probs[0].cpu().numpy()
        finally:
            del tensor, probs


def save_checkpoint(model: GlyphCNN, model_dir: str, labels: Sequence[str] = LABELS,
                    val_acc: Optional[float] = None) -> str:
    """Write the checkpoint/metadata pair that CharacterClassifier.load() reads."""
    os.makedirs(model_dir, exist_ok=True)
    ckpt_path = os.path.join(model_dir, MODEL_CONFIG["checkpoint_name"])
    meta_path = os.path.join(model_dir, MODEL_CONFIG["meta_name"])

    torch.save({"model_state_dict": model.state_dict(), "val_acc": val_acc}, ckpt_path)
    meta = {
        "labels": list(labels),
        "num_classes": model.num_classes,
        "input_shape": [model.in_channels, PIPELINE_CONFIG["sample_height"], PIPELINE_CONFIG["sample_width"]],
    }
    with open(meta_path, "w", encoding="utf-8") as f:
        json.dump(meta, f, ensure_ascii=False, indent=2)
    return ckpt_path
