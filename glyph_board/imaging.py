"""
Image primitives used by segmentation and normalization (OpenCV backed).
"""

from typing import List

import cv2
import numpy as np

from .types import BoundingBox, RasterFrame


def to_grayscale(pixels: np.ndarray) -> np.ndarray:
    """
    Convert a frame plane to single-channel uint8.

    RGBA input is composited onto white first, so transparent pixels count as
    background.
    """
    if pixels.dtype != np.uint8:
        raise ValueError(f"expected uint8 pixels, got {pixels.dtype}")
    if pixels.ndim == 2:
        return pixels
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(f"unsupported frame shape {pixels.shape}")

    rgb = np.ascontiguousarray(pixels[:, :, :3])
    gray = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)
    if pixels.shape[2] == 4:
        alpha = pixels[:, :, 3].astype(np.float32) / 255.0
        composited = gray.astype(np.float32) * alpha + 255.0 * (1.0 - alpha)
        gray = np.clip(np.rint(composited), 0, 255).astype(np.uint8)
    return gray


def binarize(frame: RasterFrame) -> np.ndarray:
    """
    Otsu threshold with ink as foreground (255) and paper as background (0).

    A plane with no contrast has no ink.
    """
    gray = to_grayscale(frame.pixels)
    if gray.size == 0:
        raise ValueError("frame has no pixels")
    if int(gray.min()) == int(gray.max()):
        return np.zeros(gray.shape, dtype=np.uint8)
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    return binary


def find_outer_components(plane: np.ndarray) -> List[BoundingBox]:
    """Bounding boxes of outer contours only, in discovery order."""
    contours, _ = cv2.findContours(plane.copy(), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    return [BoundingBox(*(int(v) for v in cv2.boundingRect(c))) for c in contours]


def resize(plane: np.ndarray, box: BoundingBox, target_width: int, target_height: int,
           method: int = cv2.INTER_AREA) -> np.ndarray:
    """Crop ``plane`` to ``box`` and resample to the target size."""
    crop = plane[box.slices()]
    if crop.size == 0 or min(crop.shape[:2]) == 0:
        raise ValueError(f"empty crop for box {box.as_tuple()}")
    return cv2.resize(crop, (target_width, target_height), interpolation=method)
