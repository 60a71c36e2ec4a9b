"""
Quick setup script to generate an untrained model artifact for development.
This lets the drawing → segment → classify → annotate loop run end to end
before a trained checkpoint is available (labels will be arbitrary).

Usage:
    python -m glyph_board.quick_setup [model_dir]
"""

import sys

import torch

from .classifier import CharacterClassifier, save_checkpoint
from .config import LABELS, MODEL_CONFIG, NUM_CLASSES
from .model import GlyphCNN, count_parameters


def create_dev_model(model_dir: str, seed: int = 0) -> str:
    """Write a randomly initialised GlyphCNN checkpoint to ``model_dir``."""
    torch.manual_seed(seed)
    model = GlyphCNN(num_classes=NUM_CLASSES, dropout=MODEL_CONFIG["dropout"])
    model.eval()
    return save_checkpoint(model, model_dir, labels=LABELS)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    model_dir = argv[0] if argv else MODEL_CONFIG["model_dir"]

    print("=" * 60)
    print("Glyph Board - Quick Setup")
    print("=" * 60)

    print("\n[1/2] Creating test model...")
    ckpt_path = create_dev_model(model_dir)
    print(f"  Parameters: {count_parameters(GlyphCNN()):,}")
    print(f"  Saved: {ckpt_path}")

    print("\n[2/2] Verifying artifact loads...")
    classifier = CharacterClassifier(model_dir=model_dir, device="cpu")
    if not classifier.load():
        print(f"  ERROR: {classifier.load_error}")
        return 1
    print(f"  Loaded {len(classifier.labels)} labels, input shape {classifier.input_shape}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
