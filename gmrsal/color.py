"""sRGB to CIE XYZ and CIELAB conversions (D65 reference white)."""

from __future__ import annotations

import numpy as np

_RGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ]
)
_REFERENCE_WHITE = np.array([0.950456, 1.0, 1.088754])
_EPSILON = 0.008856
_KAPPA = 903.3


def _linearize(values: np.ndarray) -> np.ndarray:
    with np.errstate(invalid="ignore"):
        curved = ((values + 0.055) / 1.055) ** 2.4
    return np.where(values <= 0.04045, values / 12.92, curved)


def _xyz_from_unit_rgb(rgb: np.ndarray) -> np.ndarray:
    return _linearize(rgb) @ _RGB_TO_XYZ.T


def _lab_from_xyz(xyz: np.ndarray) -> np.ndarray:
    ratios = xyz / _REFERENCE_WHITE
    f = np.where(ratios > _EPSILON, np.cbrt(ratios), (_KAPPA * ratios + 16.0) / 116.0)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]
    return np.stack(
        [116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz)], axis=-1
    )


def _unwrap(value: np.ndarray):
    return float(value) if value.ndim == 0 else value


def _stack_channels(r, g, b) -> np.ndarray:
    channels = np.broadcast_arrays(
        *(np.asarray(c, dtype=np.float64) for c in (r, g, b))
    )
    return np.stack(channels, axis=-1) / 255.0


def _check_image(rgb) -> np.ndarray:
    arr = np.asarray(rgb)
    if arr.ndim != 3 or arr.shape[-1] != 3:
        raise ValueError(f"expected an image of shape (height, width, 3), got {arr.shape}")
    return arr


def rgb_to_xyz(r, g, b):
    """Convert 8-bit sRGB values (scalars or arrays) to a tuple (X, Y, Z)."""
    xyz = _xyz_from_unit_rgb(_stack_channels(r, g, b))
    return tuple(_unwrap(xyz[..., i]) for i in range(3))


def rgb_to_lab(r, g, b):
    """Convert 8-bit sRGB values (scalars or arrays) to a tuple (L, a, b)."""
    lab = _lab_from_xyz(_xyz_from_unit_rgb(_stack_channels(r, g, b)))
    return tuple(_unwrap(lab[..., i]) for i in range(3))


def image_rgb_to_lab(rgb) -> np.ndarray:
    """Convert an 8-bit RGB image of shape (h, w, 3) to float64 CIELAB."""
    arr = _check_image(rgb).astype(np.float64) / 255.0
    return _lab_from_xyz(_xyz_from_unit_rgb(arr))


def float_rgb_to_lab(rgb) -> np.ndarray:
    """Convert a float RGB image with values in [0, 1] to float32 CIELAB."""
    arr = _check_image(rgb).astype(np.float64)
    return _lab_from_xyz(_xyz_from_unit_rgb(arr)).astype(np.float32)