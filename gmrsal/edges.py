"""Greyscale conversion and Canny edge detection for frame removal."""

from __future__ import annotations

import math

import numpy as np
from scipy import ndimage

_TAN_22_5 = 0.4142135623730950488
_EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)


def bgr_to_gray(image) -> np.ndarray:
    """Convert an 8-bit BGR image of shape (h, w, 3) to 8-bit luma (ITU-R BT.601)."""
    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[-1] != 3:
        raise ValueError(f"expected an image of shape (height, width, 3), got {arr.shape}")
    channels = arr.astype(np.float64)
    luma = 0.114 * channels[..., 0] + 0.587 * channels[..., 1] + 0.299 * channels[..., 2]
    return np.clip(np.floor(luma + 0.5), 0, 255).astype(np.uint8)


def canny(gray, low: float, high: float) -> np.ndarray:
    """Return a Canny edge map (0 or 255) of a greyscale image.

    Uses 3x3 Sobel derivatives with replicated borders, the L1 gradient norm,
    non-maximum suppression and 8-connected hysteresis between ``low`` and ``high``.
    """
    src = np.asarray(gray)
    if src.ndim != 2:
        raise ValueError(f"expected a 2-D greyscale image, got shape {src.shape}")
    if low > high:
        low, high = high, low
    low_i, high_i = math.floor(low), math.floor(high)

    values = src.astype(np.int64)
    dx = ndimage.sobel(values, axis=1, mode="nearest")
    dy = ndimage.sobel(values, axis=0, mode="nearest")
    mag = np.abs(dx) + np.abs(dy)

    padded = np.pad(mag, 1)
    left, right = padded[1:-1, :-2], padded[1:-1, 2:]
    up, down = padded[:-2, 1:-1], padded[2:, 1:-1]
    up_left, up_right = padded[:-2, :-2], padded[:-2, 2:]
    down_left, down_right = padded[2:, :-2], padded[2:, 2:]

    ax, ay = np.abs(dx), np.abs(dy)
    tg22 = ax * _TAN_22_5
    horizontal = ay < tg22
    vertical = ay > tg22 + 2 * ax

    keep_h = (mag > left) & (mag >= right)
    keep_v = (mag > up) & (mag >= down)
    opposite = (dx ^ dy) < 0
    keep_d = np.where(
        opposite,
        (mag > up_right) & (mag > down_left),
        (mag > up_left) & (mag > down_right),
    )
    local_max = np.where(horizontal, keep_h, np.where(vertical, keep_v, keep_d))

    candidate = local_max & (mag > low_i)
    strong = candidate & (mag > high_i)
    components, _ = ndimage.label(candidate, structure=_EIGHT_CONNECTED)
    kept = np.unique(components[strong])
    edges = np.isin(components, kept[kept > 0])
    return edges.astype(np.uint8) * 255