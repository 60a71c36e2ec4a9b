"""
Small convolutional network that scores one normalized glyph against the
label alphabet.

Samples arrive as C×28×28 floats with ink at 1.0 and paper at 0.0. Two
downsampling stages take the grid to 7×7; a third convolution widens to 128
feature maps, which are averaged to a single vector before the dense head.
"""

import torch
import torch.nn as nn
import torch.nn.functional as F

from .config import NUM_CLASSES

# (out_channels, downsample) per convolution stage
GLYPH_STAGES = ((32, True), (64, True), (128, False))


def conv_stage(in_channels: int, out_channels: int, downsample: bool) -> nn.Sequential:
    layers = [
        nn.Conv2d(in_channels, out_channels, kernel_size=3, padding=1),
        nn.BatchNorm2d(out_channels),
        nn.ReLU(inplace=True),
    ]
    if downsample:
        layers.append(nn.MaxPool2d(2))
    return nn.Sequential(*layers)


class GlyphCNN(nn.Module):
    """
    Character classifier for 28×28 glyph samples.

    The checkpoint format stores ``model_state_dict`` only; ``num_classes``
    and ``in_channels`` come from the artifact's metadata, so they must match
    whatever the weights were trained with.
    """

    def __init__(self, num_classes: int = NUM_CLASSES, in_channels: int = 1, dropout: float = 0.3):
        super().__init__()
        self.num_classes = num_classes
        self.in_channels = in_channels

        stages = []
        width = in_channels
        for out_channels, downsample in GLYPH_STAGES:
            stages.append(conv_stage(width, out_channels, downsample))
            width = out_channels
        self.features = nn.Sequential(*stages)
        self.pool = nn.AdaptiveAvgPool2d(1)
        self.head = nn.Sequential(
            nn.Linear(width, 128),
            nn.ReLU(inplace=True),
            nn.Dropout(dropout),
            nn.Linear(128, num_classes),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """(N, C, 28, 28) batch in [0, 1] -> (N, num_classes) logits."""
        pooled = self.pool(self.features(x))
        return self.head(torch.flatten(pooled, 1))

    def predict_proba(self, x: torch.Tensor) -> torch.Tensor:
        return F.softmax(self.forward(x), dim=-1)


def count_parameters(model: nn.Module) -> int:
    return sum(p.numel() for p in model.parameters() if p.requires_grad)
