"""SLIC superpixel segmentation of RGB images in CIELAB space."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy import ndimage

from .color import image_rgb_to_lab

_ITERATIONS = 10
_NEIGHBOURS_8 = ((-1, 0), (-1, -1), (0, -1), (1, -1), (1, 0), (1, 1), (0, 1), (-1, 1))
_NEIGHBOURS_4 = ((-1, 0), (0, -1), (1, 0), (0, 1))
_FOUR_CONNECTED = np.array([[0, 1, 0], [1, 1, 1], [0, 1, 0]])


@dataclass
class Seeds:
    """Cluster centres: colour (l, a, b) and position (x = column, y = row)."""

    l: np.ndarray
    a: np.ndarray
    b: np.ndarray
    x: np.ndarray
    y: np.ndarray

    def __len__(self) -> int:
        return len(self.l)


@dataclass(frozen=True)
class Segmentation:
    """A label map of shape (height, width) and the number of labels in it."""

    labels: np.ndarray
    count: int


def _check_lab(lab) -> np.ndarray:
    arr = np.asarray(lab, dtype=np.float64)
    if arr.ndim != 3 or arr.shape[-1] != 3:
        raise ValueError(f"expected a Lab image of shape (height, width, 3), got {arr.shape}")
    return arr


def detect_lab_edges(lab) -> np.ndarray:
    """Return the squared colour-gradient magnitude; border pixels are 0."""
    arr = _check_lab(lab)
    height, width = arr.shape[:2]
    edges = np.zeros((height, width))
    if height < 3 or width < 3:
        return edges
    horiz = arr[1:-1, :-2] - arr[1:-1, 2:]
    vert = arr[:-2, 1:-1] - arr[2:, 1:-1]
    dx = horiz[..., 0] ** 2 + horiz[..., 1] ** 2 + horiz[..., 2] ** 2
    dy = vert[..., 0] ** 2 + vert[..., 1] ** 2 + vert[..., 2] ** 2
    edges[1:-1, 1:-1] = dx * dx + dy * dy
    return edges


def _strips(size: int, step: int) -> tuple[int, float]:
    strips = int(0.5 + size / step)
    err = size - step * strips
    if err < 0:
        strips -= 1
        err = size - step * strips
    if strips < 1:
        raise ValueError(f"step {step} is too large for an image side of {size}")
    return strips, err / strips


def grid_seeds(lab, step: int, edges=None) -> Seeds:
    """Place seeds on a regular grid of spacing ``step``.

    When ``edges`` is given, seeds are moved to the lowest-gradient neighbour.
    """
    arr = _check_lab(lab)
    step = int(step)
    if step < 1:
        raise ValueError("step must be at least 1")
    height, width = arr.shape[:2]
    xstrips, xerr = _strips(width, step)
    ystrips, yerr = _strips(height, step)
    offset = step // 2

    xs = np.arange(xstrips)
    ys = np.arange(ystrips)
    seed_x = xs * step + offset + (xs * xerr).astype(int)
    seed_y = ys * step + offset + (ys * yerr).astype(int)
    grid_y, grid_x = np.meshgrid(seed_y, seed_x, indexing="ij")
    grid_y, grid_x = grid_y.ravel(), grid_x.ravel()

    picked = arr[grid_y, grid_x]
    seeds = Seeds(
        l=picked[:, 0].copy(),
        a=picked[:, 1].copy(),
        b=picked[:, 2].copy(),
        x=grid_x.astype(np.float64),
        y=grid_y.astype(np.float64),
    )
    if edges is not None:
        seeds = perturb_seeds(seeds, arr, edges)
    return seeds


def perturb_seeds(seeds: Seeds, lab, edges) -> Seeds:
    """Move each seed to the 8-neighbour with the lowest edge value, if lower than its own."""
    arr = _check_lab(lab)
    grad = np.asarray(edges, dtype=np.float64)
    height, width = arr.shape[:2]
    if grad.shape != (height, width):
        raise ValueError("edges must have the same (height, width) as the image")

    ox = seeds.x.astype(int)
    oy = seeds.y.astype(int)
    offsets = ((0, 0),) + _NEIGHBOURS_8
    candidates = np.empty((len(seeds), len(offsets)))
    for column, (dx, dy) in enumerate(offsets):
        nx, ny = ox + dx, oy + dy
        inside = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
        values = grad[np.clip(ny, 0, height - 1), np.clip(nx, 0, width - 1)]
        candidates[:, column] = np.where(inside, values, np.inf)
    choice = np.argmin(candidates, axis=1)

    moved = choice != 0
    shift = np.array(offsets)
    new_x = ox + shift[choice, 0]
    new_y = oy + shift[choice, 1]

    result = Seeds(
        l=seeds.l.copy(), a=seeds.a.copy(), b=seeds.b.copy(),
        x=seeds.x.astype(np.float64).copy(), y=seeds.y.astype(np.float64).copy(),
    )
    result.x[moved] = new_x[moved]
    result.y[moved] = new_y[moved]
    values = arr[new_y[moved], new_x[moved]]
    result.l[moved] = values[:, 0]
    result.a[moved] = values[:, 1]
    result.b[moved] = values[:, 2]
    return result


def perform_superpixel_slic(lab, seeds: Seeds, step: int, compactness: float = 10.0):
    """Run the local k-means iterations; return (labels, refined seeds)."""
    arr = _check_lab(lab)
    if len(seeds) == 0:
        raise ValueError("at least one seed is required")
    height, width = arr.shape[:2]
    numk = len(seeds)
    sl, sa, sb = seeds.l.astype(np.float64), seeds.a.astype(np.float64), seeds.b.astype(np.float64)
    sx, sy = seeds.x.astype(np.float64), seeds.y.astype(np.float64)
    invwt = 1.0 / ((step / compactness) * (step / compactness))
    rows = np.arange(height, dtype=np.float64)
    cols = np.arange(width, dtype=np.float64)
    col_grid = np.broadcast_to(cols, (height, width))
    row_grid = np.broadcast_to(rows[:, None], (height, width))
    labels = np.full((height, width), -1, dtype=np.int64)

    for _ in range(_ITERATIONS):
        best = np.full((height, width), np.inf)
        for n in range(numk):
            y1 = int(max(0.0, sy[n] - step))
            y2 = int(min(float(height), sy[n] + step))
            x1 = int(max(0.0, sx[n] - step))
            x2 = int(min(float(width), sx[n] + step))
            if y1 >= y2 or x1 >= x2:
                continue
            window = arr[y1:y2, x1:x2]
            dist = (
                (window[..., 0] - sl[n]) ** 2
                + (window[..., 1] - sa[n]) ** 2
                + (window[..., 2] - sb[n]) ** 2
            )
            spatial = (cols[x1:x2] - sx[n])[None, :] ** 2 + (rows[y1:y2] - sy[n])[:, None] ** 2
            dist = dist + spatial * invwt
            best_view = best[y1:y2, x1:x2]
            label_view = labels[y1:y2, x1:x2]
            closer = dist < best_view
            best_view[closer] = dist[closer]
            label_view[closer] = n

        assigned = labels >= 0
        idx = labels[assigned]
        size = np.bincount(idx, minlength=numk).astype(np.float64)
        size[size <= 0] = 1.0
        inv = 1.0 / size

        def _mean(values: np.ndarray) -> np.ndarray:
            return np.bincount(idx, weights=values[assigned], minlength=numk) * inv

        sl, sa, sb = _mean(arr[..., 0]), _mean(arr[..., 1]), _mean(arr[..., 2])
        sx, sy = _mean(col_grid), _mean(row_grid)

    return labels, Seeds(l=sl, a=sa, b=sb, x=sx, y=sy)


def enforce_label_connectivity(labels, k: int) -> Segmentation:
    """Relabel 4-connected segments in raster order, merging small ones into a neighbour.

    A segment of at most ``(height * width // k) >> 2`` pixels takes the label of
    an adjacent, already relabelled segment.
    """
    lab = np.asarray(labels)
    if lab.ndim != 2:
        raise ValueError(f"expected a 2-D label map, got shape {lab.shape}")
    k = int(k)
    if k < 1:
        raise ValueError("k must be at least 1")
    height, width = lab.shape
    limit = (height * width // k) >> 2

    components = np.zeros(lab.shape, dtype=np.int64)
    total = 0
    for value in np.unique(lab):
        found, amount = ndimage.label(lab == value, structure=_FOUR_CONNECTED)
        mask = found > 0
        components[mask] = found[mask] + total - 1
        total += amount

    flat = components.ravel()
    _, first_index = np.unique(flat, return_index=True)
    sizes = np.bincount(flat, minlength=total)
    order = np.argsort(first_index, kind="stable")
    rank = np.empty(total, dtype=np.int64)
    rank[order] = np.arange(total)

    new_label = np.empty(total, dtype=np.int64)
    label = 0
    adjacent = 0
    for comp in order:
        y, x = divmod(int(first_index[comp]), width)
        for dx, dy in _NEIGHBOURS_4:
            nx, ny = x + dx, y + dy
            if 0 <= nx < width and 0 <= ny < height:
                other = components[ny, nx]
                if rank[other] < rank[comp]:
                    adjacent = int(new_label[other])
        if sizes[comp] <= limit:
            new_label[comp] = adjacent
        else:
            new_label[comp] = label
            label += 1

    return Segmentation(labels=new_label[components], count=label)


def segment_by_size(rgb, superpixel_size: int, compactness: float = 20.0) -> Segmentation:
    """Segment an 8-bit RGB image into superpixels of about ``superpixel_size`` pixels."""
    step = int(math.sqrt(float(superpixel_size)) + 0.5)
    if step < 1:
        raise ValueError("superpixel size must be positive")
    lab = image_rgb_to_lab(rgb)
    height, width = lab.shape[:2]
    k = int((height * width) / (step * step))
    if k < 1:
        raise ValueError("the image is smaller than one superpixel")
    edges = detect_lab_edges(lab)
    seeds = grid_seeds(lab, step, edges)
    labels, _ = perform_superpixel_slic(lab, seeds, step, compactness)
    return enforce_label_connectivity(labels, k)


def segment_by_count(rgb, count: int, compactness: float = 20.0) -> Segmentation:
    """Segment an 8-bit RGB image into about ``count`` superpixels."""
    if count < 1:
        raise ValueError("count must be at least 1")
    shape = np.shape(rgb)
    if len(shape) != 3 or shape[-1] != 3:
        raise ValueError(f"expected an image of shape (height, width, 3), got {shape}")
    size = int(0.5 + (shape[0] * shape[1]) / count)
    return segment_by_size(rgb, size, compactness)