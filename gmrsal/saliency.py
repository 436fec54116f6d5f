"""Graph-based manifold ranking saliency with boundary priors."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from .color import float_rgb_to_lab
from .edges import bgr_to_gray, canny
from .slic import Segmentation, segment_by_count

_FRAME_SCAN = 30
_FRAME_THRESHOLD = 0.6
_CANNY_HIGH = 150.0
_CANNY_LOW = _CANNY_HIGH * 0.4


class Side(IntEnum):
    """Image side used as a background query."""

    TOP = 1
    BOTTOM = 2
    LEFT = 3
    RIGHT = 4


@dataclass(frozen=True)
class FrameCut:
    """Original image size and the row/column range kept after frame removal."""

    height: int
    width: int
    top: int
    bottom: int
    left: int
    right: int


def remove_frame(image):
    """Strip an obvious frame from a BGR image; return (cropped image, FrameCut).

    Each of the first 30 rows and columns from every side is a frame line when
    more than 60% of it is Canny edge. The frame is removed only when at least
    two sides have one; a side without one takes the widest side's width.
    """
    arr = np.asarray(image)
    gray = bgr_to_gray(arr)
    height, width = gray.shape
    if height < _FRAME_SCAN or width < _FRAME_SCAN:
        raise ValueError(
            f"image must be at least {_FRAME_SCAN}x{_FRAME_SCAN} pixels, got {height}x{width}"
        )
    edge = canny(gray, _CANNY_LOW, _CANNY_HIGH).astype(np.float64) / 255.0

    widths = {side: 0 for side in Side}
    flagged: set[Side] = set()
    for i in range(_FRAME_SCAN):
        lines = {
            Side.TOP: edge[i],
            Side.BOTTOM: edge[height - i - 1],
            Side.LEFT: edge[:, i],
            Side.RIGHT: edge[:, width - i - 1],
        }
        for side, line in lines.items():
            if line.mean() > _FRAME_THRESHOLD:
                widths[side] = i
                flagged.add(side)

    if len(flagged) > 1:
        widest = max(widths.values())
        top, bottom, left, right = (
            widths[side] or widest for side in (Side.TOP, Side.BOTTOM, Side.LEFT, Side.RIGHT)
        )
        cut = FrameCut(height, width, top, height - bottom, left, width - right)
        return arr[cut.top:cut.bottom, cut.left:cut.right], cut
    return arr, FrameCut(height, width, 0, height, 0, width)


def _minmax(values: np.ndarray) -> np.ndarray:
    """Scale values linearly onto [0, 1]; a constant input maps to zeros."""
    lo, hi = float(np.min(values)), float(np.max(values))
    span = hi - lo
    if span > np.finfo(np.float64).eps:
        return (values - lo) / span
    return np.zeros_like(values, dtype=np.float64)


def _check_labels(labels, count: int) -> np.ndarray:
    lab = np.asarray(labels)
    if lab.ndim != 2:
        raise ValueError(f"expected a 2-D label map, got shape {lab.shape}")
    if lab.size and (lab.min() < 0 or lab.max() >= count):
        raise ValueError(f"labels must lie in [0, {count})")
    return lab.astype(np.int64)


class GMRSaliency:
    """Saliency detection by manifold ranking over a superpixel graph."""

    def __init__(
        self,
        superpixels: int = 200,
        compactness: float = 20.0,
        alpha: float = 0.99,
        delta: float = 0.1,
    ):
        self.superpixel_count = superpixels
        self.compactness = compactness
        self.alpha = alpha
        self.delta = delta

    def superpixels(self, image) -> Segmentation:
        """Segment a BGR image into superpixels; labels have the image's (height, width)."""
        arr = np.asarray(image)
        if arr.ndim != 3 or arr.shape[-1] != 3:
            raise ValueError(f"expected an image of shape (height, width, 3), got {arr.shape}")
        # The segmentation runs over the column-major pixel order.
        rgb = np.ascontiguousarray(arr[..., ::-1].transpose(1, 0, 2))
        seg = segment_by_count(rgb, self.superpixel_count, self.compactness)
        return Segmentation(labels=np.ascontiguousarray(seg.labels.T), count=seg.count)

    def adjacency(self, labels, count: int) -> np.ndarray:
        """Return the (count, count) 0/1 adjacency matrix of the superpixel graph.

        Superpixels touching in a 2x2 pixel window are adjacent, and all
        superpixels on the image border are adjacent to one another.
        """
        lab = _check_labels(labels, count)
        adj = np.zeros((count, count), dtype=np.uint8)
        corner = lab[:-1, :-1]
        pairs = (
            (corner, lab[1:, :-1]),
            (corner, lab[:-1, 1:]),
            (corner, lab[1:, 1:]),
            (lab[1:, :-1], lab[:-1, 1:]),
        )
        for first, second in pairs:
            differ = first != second
            a, b = first[differ], second[differ]
            adj[a, b] = 1
            adj[b, a] = 1

        border = np.unique(np.concatenate([lab[0], lab[-1], lab[:, 0], lab[:, -1]]))
        diagonal = adj.diagonal().copy()
        adj[np.ix_(border, border)] = 1
        adj[border, border] = diagonal[border]
        return adj

    def weights(self, lab, labels, adjacency) -> np.ndarray:
        """Return edge weights from mean Lab colour distances.

        Every superpixel links to its neighbours and their neighbours; distances
        are mapped through exp(-(d - min) / ((max - min) * delta)), and unlinked
        pairs weigh 0.
        """
        adj = np.asarray(adjacency) == 1
        count = adj.shape[0]
        idx = _check_labels(labels, count).ravel()
        colours = np.asarray(lab, dtype=np.float64)
        if colours.shape[:2] != np.shape(labels) or colours.shape[-1] != 3:
            raise ValueError("lab must have shape (height, width, 3) matching labels")

        pcount = np.bincount(idx, minlength=count).astype(np.float64)
        sums = np.stack(
            [np.bincount(idx, weights=colours[..., c].ravel(), minlength=count) for c in range(3)],
            axis=1,
        )
        with np.errstate(divide="ignore", invalid="ignore"):
            means = sums / pcount[:, None]

        hops = adj.astype(np.int64)
        two_hop = (hops @ hops) > 0
        np.fill_diagonal(two_hop, False)
        reach = adj | two_hop

        dist = np.sqrt(((means[:, None, :] - means[None, :, :]) ** 2).sum(axis=-1))
        if not reach.any():
            return np.zeros((count, count))
        minw = float(dist[reach].min())
        maxw = max(float(dist[reach].max()), float(np.finfo(np.float32).tiny))
        with np.errstate(divide="ignore", invalid="ignore"):
            scaled = np.exp(-(dist - minw) / ((maxw - minw) * self.delta))
        return np.where(reach, scaled, 0.0)

    def optimal_affinity(self, weights) -> np.ndarray:
        """Return (D - alpha W)^-1 with its diagonal set to zero.

        A singular system gives a zero matrix.
        """
        w = np.asarray(weights, dtype=np.float64)
        if w.ndim != 2 or w.shape[0] != w.shape[1]:
            raise ValueError(f"expected a square weight matrix, got shape {w.shape}")
        degree = np.diag(w.sum(axis=1))
        try:
            affinity = np.linalg.inv(degree - self.alpha * w)
        except np.linalg.LinAlgError:
            return np.zeros_like(w)
        np.fill_diagonal(affinity, 0.0)
        return affinity

    def boundary_query(self, labels, count: int, side) -> np.ndarray:
        """Return the indicator vector of superpixels lying on the given side."""
        side = Side(side)
        lab = _check_labels(labels, count)
        line = {
            Side.TOP: lab[0],
            Side.BOTTOM: lab[-1],
            Side.LEFT: lab[:, 0],
            Side.RIGHT: lab[:, -1],
        }[side]
        query = np.zeros(count)
        query[np.unique(line)] = 1.0
        return query

    def saliency(self, image) -> np.ndarray:
        """Return a float32 saliency map in [0, 1] with the BGR image's height and width."""
        cropped, cut = remove_frame(image)
        seg = self.superpixels(cropped)
        labels, count = seg.labels, seg.count
        adj = self.adjacency(labels, count)
        lab = float_rgb_to_lab(np.asarray(cropped, dtype=np.float64)[..., ::-1] / 255.0)
        affinity = self.optimal_affinity(self.weights(lab, labels, adj))

        background = np.ones(count)
        for side in Side:
            ranked = affinity @ self.boundary_query(labels, count, side)
            background *= 1.0 - _minmax(ranked)

        foreground = (background > background.mean()).astype(np.float64)
        salient = _minmax((affinity @ foreground)[labels])

        out = np.zeros((cut.height, cut.width), dtype=np.float32)
        out[cut.top:cut.bottom, cut.left:cut.right] = salient
        return out