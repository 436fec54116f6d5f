"""Saving label maps to raw files and drawing segment contours."""

from __future__ import annotations

import numpy as np

_NEIGHBOURS_8 = ((0, -1), (-1, -1), (-1, 0), (-1, 1), (0, 1), (1, 1), (1, 0), (1, -1))


def label_file_path(filename: str, path: str) -> str:
    """Return ``path`` joined with the base name of ``filename`` given a ``dat`` extension.

    The three characters after the last dot of the base name are replaced.
    """
    name = str(filename).rsplit("/", 1)[-1]
    start = name.rfind(".") + 1
    return str(path) + name[:start] + "dat" + name[start + 3:]


def _write_labels(labels: np.ndarray, filename: str, path: str) -> str:
    target = label_file_path(filename, path)
    with open(target, "wb") as out:
        out.write(np.ascontiguousarray(labels, dtype="<i4").tobytes())
    return target


def save_superpixel_labels(labels, filename: str, path: str) -> str:
    """Write a (height, width) label map as 32-bit ints in raster order; return the file path."""
    arr = np.asarray(labels)
    if arr.ndim != 2:
        raise ValueError(f"expected a 2-D label map, got shape {arr.shape}")
    return _write_labels(arr, filename, path)


def save_supervoxel_labels(labels, filename: str, path: str) -> str:
    """Write a (depth, height, width) label volume as 32-bit ints; return the file path."""
    arr = np.asarray(labels)
    if arr.ndim != 3:
        raise ValueError(f"expected a 3-D label volume, got shape {arr.shape}")
    return _write_labels(arr, filename, path)


def _offset_slices(size: int, delta: int) -> tuple[slice, slice]:
    """Slices selecting positions p and their neighbours p + delta, both in range."""
    lo, hi = max(0, -delta), min(size, size - delta)
    return slice(lo, hi), slice(lo + delta, hi + delta)


def draw_contours(image, labels, color: int = 0xFFFFFF) -> np.ndarray:
    """Return a copy of a packed-pixel image with segment boundaries drawn.

    A pixel is a boundary pixel when more than one of its 8 neighbours carries
    a different label; it is painted ``color`` and its non-boundary neighbours
    are cleared to 0.
    """
    img = np.array(image, copy=True)
    lab = np.asarray(labels)
    if lab.ndim != 2 or img.shape[:2] != lab.shape:
        raise ValueError("image and labels must share the same (height, width)")
    height, width = lab.shape

    pairs = [
        (_offset_slices(height, dy), _offset_slices(width, dx)) for dx, dy in _NEIGHBOURS_8
    ]

    differing = np.zeros(lab.shape, dtype=np.int32)
    for (rows, nrows), (cols, ncols) in pairs:
        differing[rows, cols] += lab[rows, cols] != lab[nrows, ncols]
    contour = differing > 1

    near = np.zeros(lab.shape, dtype=bool)
    for (rows, nrows), (cols, ncols) in pairs:
        near[rows, cols] |= contour[nrows, ncols]

    img[near & ~contour] = 0
    img[contour] = color
    return img