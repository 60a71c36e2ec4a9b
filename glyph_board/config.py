"""
Configuration for the glyph board pipeline.

Defaults live in the module-level dictionaries below; ``load_settings`` layers
environment overrides (optionally read from a ``.env`` file) on top of them.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

# Label alphabet (EMNIST "byclass" ordering)
DIGITS = list("0123456789")
UPPERCASE = list("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
LOWERCASE = list("abcdefghijklmnopqrstuvwxyz")

LABELS = DIGITS + UPPERCASE + LOWERCASE
NUM_CLASSES = len(LABELS)
UNKNOWN_LABEL = "?"

IDX_TO_LABEL = {idx: label for idx, label in enumerate(LABELS)}
LABEL_TO_IDX = {label: idx for idx, label in enumerate(LABELS)}

_THIS_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(_THIS_DIR)

# Segmentation / normalization / debounce knobs
PIPELINE_CONFIG = {
    "idle_delay_ms": 3000,      # Idle window after the last stroke before a run fires
    "min_extent": 20,           # Components narrower or shorter than this are noise
    "sample_width": 28,         # Classifier input resolution
    "sample_height": 28,
    "sample_channels": 1,
    "intensity_range": 255.0,   # Divisor that maps uint8 pixels onto [0, 1]
}

# Drawing surface defaults
SURFACE_CONFIG = {
    "width": 800,
    "height": 400,
    "background": "white",
    "ink": "black",
    "label_color": "blue",
    "stroke_width": 15,
    "font_path": None,          # Any TrueType font; falls back to Pillow's default
}

# Classifier artifact
MODEL_CONFIG = {
    "model_dir": os.path.join(PROJECT_ROOT, "static", "glyph_model"),
    "checkpoint_name": "glyph_cnn.pt",
    "meta_name": "model_meta.json",
    "dropout": 0.3,
    "device": None,             # None = cuda when available, else cpu
}

# Environment variable -> Settings field
_ENV_OVERRIDES = {
    "GLYPH_IDLE_DELAY_MS": "idle_delay_ms",
    "GLYPH_MIN_EXTENT": "min_extent",
    "GLYPH_SAMPLE_WIDTH": "sample_width",
    "GLYPH_SAMPLE_HEIGHT": "sample_height",
    "GLYPH_SAMPLE_CHANNELS": "sample_channels",
    "GLYPH_CANVAS_WIDTH": "canvas_width",
    "GLYPH_CANVAS_HEIGHT": "canvas_height",
    "GLYPH_STROKE_WIDTH": "stroke_width",
    "GLYPH_FONT_PATH": "font_path",
    "GLYPH_MODEL_DIR": "model_dir",
    "GLYPH_DEVICE": "device",
}


@dataclass(frozen=True)
class Settings:
    idle_delay_ms: int = PIPELINE_CONFIG["idle_delay_ms"]
    min_extent: int = PIPELINE_CONFIG["min_extent"]
    sample_width: int = PIPELINE_CONFIG["sample_width"]
    sample_height: int = PIPELINE_CONFIG["sample_height"]
    sample_channels: int = PIPELINE_CONFIG["sample_channels"]
    intensity_range: float = PIPELINE_CONFIG["intensity_range"]
    canvas_width: int = SURFACE_CONFIG["width"]
    canvas_height: int = SURFACE_CONFIG["height"]
    stroke_width: int = SURFACE_CONFIG["stroke_width"]
    font_path: Optional[str] = SURFACE_CONFIG["font_path"]
    model_dir: str = MODEL_CONFIG["model_dir"]
    device: Optional[str] = MODEL_CONFIG["device"]

    def __post_init__(self):
        for name in ("idle_delay_ms", "min_extent"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        for name in ("sample_width", "sample_height", "sample_channels",
                     "canvas_width", "canvas_height", "stroke_width"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.intensity_range <= 0:
            raise ValueError("intensity_range must be > 0")

    @property
    def idle_delay(self) -> float:
        """Idle window in seconds."""
        return self.idle_delay_ms / 1000.0


def load_settings(env_file: Optional[str] = None, **overrides) -> Settings:
    """
    Build Settings from defaults, environment variables and explicit overrides.

    Explicit keyword overrides win over the environment. Raises ValueError for
    values that do not parse or violate a bound.
    """
    if env_file:
        load_dotenv(dotenv_path=env_file)
    else:
        load_dotenv()

    types = {f.name: f.type for f in fields(Settings)}
    values = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw.strip() == "":
            continue
        values[field_name] = _coerce(field_name, raw.strip(), types[field_name])
    values.update(overrides)
    return Settings(**values)


def _coerce(name: str, raw: str, annotation):
    if annotation in (int, "int"):
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{name} expects an integer, got {raw!r}") from None
    if annotation in (float, "float"):
        try:
            return float(raw)
        except ValueError:
            raise ValueError(f"{name} expects a number, got {raw!r}") from None
    return raw


def get_label_from_index(idx: int, labels=None) -> str:
    """Map a classifier output index to its label, or the unknown sentinel."""
    labels = LABELS if labels is None else labels
    if 0 <= idx < len(labels):
        return labels[idx]
    return UNKNOWN_LABEL


if __name__ == "__main__":
    print(f"Label count: {NUM_CLASSES}")
    print(f"Labels: {''.join(LABELS)}")
    print(f"Pipeline config: {PIPELINE_CONFIG}")
