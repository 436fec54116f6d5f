"""SLIC supervoxel segmentation of packed-RGB volumes (stacks of frames)."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import ndimage

from .color import rgb_to_lab
from .slic import Segmentation

_ITERATIONS = 5
# In-plane 4-neighbours, in-plane diagonals, then the frames before and after.
_NEIGHBOURS_10 = (
    (-1, 0, 0), (0, -1, 0), (1, 0, 0), (0, 1, 0),
    (-1, -1, 0), (1, -1, 0), (1, 1, 0), (-1, 1, 0),
    (0, 0, -1), (0, 0, 1),
)


def _connectivity_structure() -> np.ndarray:
    structure = np.zeros((3, 3, 3), dtype=bool)
    structure[1] = True
    structure[0, 1, 1] = True
    structure[2, 1, 1] = True
    return structure


_STRUCTURE_10 = _connectivity_structure()


@dataclass
class VoxelSeeds:
    """Cluster centres: colour (l, a, b) and position (x = column, y = row, z = frame)."""

    l: np.ndarray
    a: np.ndarray
    b: np.ndarray
    x: np.ndarray
    y: np.ndarray
    z: np.ndarray

    def __len__(self) -> int:
        return len(self.l)


def _check_volume_lab(lab) -> np.ndarray:
    arr = np.asarray(lab, dtype=np.float64)
    if arr.ndim != 4 or arr.shape[-1] != 3:
        raise ValueError(
            f"expected a Lab volume of shape (depth, height, width, 3), got {arr.shape}"
        )
    return arr


def _strips(size: int, step: int) -> tuple[int, float]:
    strips = int(0.5 + size / step)
    err = size - step * strips
    if err < 0:
        strips -= 1
        err = size - step * strips
    if strips < 1:
        raise ValueError(f"step {step} is too large for a volume side of {size}")
    return strips, err / strips


def unpack_rgb(packed) -> np.ndarray:
    """Split 32-bit ``0x00RRGGBB`` pixels into a trailing (R, G, B) uint8 axis."""
    arr = np.asarray(packed).astype(np.uint32)
    return np.stack(
        [(arr >> 16) & 0xFF, (arr >> 8) & 0xFF, arr & 0xFF], axis=-1
    ).astype(np.uint8)


def volume_to_lab(packed) -> np.ndarray:
    """Convert a packed-RGB volume (depth, height, width) to CIELAB (depth, height, width, 3)."""
    arr = np.asarray(packed)
    if arr.ndim != 3:
        raise ValueError(f"expected a volume of shape (depth, height, width), got {arr.shape}")
    rgb = unpack_rgb(arr)
    l, a, b = rgb_to_lab(rgb[..., 0], rgb[..., 1], rgb[..., 2])
    return np.stack([l, a, b], axis=-1)


def grid_seeds_3d(lab, step: int) -> VoxelSeeds:
    """Place seeds on a regular 3-D grid of spacing ``step``, frame by frame, row by row."""
    arr = _check_volume_lab(lab)
    step = int(step)
    if step < 1:
        raise ValueError("step must be at least 1")
    depth, height, width = arr.shape[:3]
    xstrips, xerr = _strips(width, step)
    ystrips, yerr = _strips(height, step)
    zstrips, zerr = _strips(depth, step)
    offset = step // 2

    def positions(strips: int, err: float) -> np.ndarray:
        idx = np.arange(strips)
        return idx * step + offset + (idx * err).astype(int)

    grid_z, grid_y, grid_x = np.meshgrid(
        positions(zstrips, zerr), positions(ystrips, yerr), positions(xstrips, xerr),
        indexing="ij",
    )
    grid_z, grid_y, grid_x = grid_z.ravel(), grid_y.ravel(), grid_x.ravel()
    picked = arr[grid_z, grid_y, grid_x]
    return VoxelSeeds(
        l=picked[:, 0].copy(),
        a=picked[:, 1].copy(),
        b=picked[:, 2].copy(),
        x=grid_x.astype(np.float64),
        y=grid_y.astype(np.float64),
        z=grid_z.astype(np.float64),
    )


def perform_supervoxel_slic(lab, seeds: VoxelSeeds, step: int, compactness: float = 20.0):
    """Run the local 3-D k-means iterations; return (labels, refined seeds)."""
    arr = _check_volume_lab(lab)
    if len(seeds) == 0:
        raise ValueError("at least one seed is required")
    depth, height, width = arr.shape[:3]
    numk = len(seeds)
    sl, sa, sb = (np.asarray(v, dtype=np.float64) for v in (seeds.l, seeds.a, seeds.b))
    sx, sy, sz = (np.asarray(v, dtype=np.float64) for v in (seeds.x, seeds.y, seeds.z))
    invwt = 1.0 / ((step / compactness) * (step / compactness))
    zs = np.arange(depth, dtype=np.float64)
    ys = np.arange(height, dtype=np.float64)
    xs = np.arange(width, dtype=np.float64)
    z_grid, y_grid, x_grid = np.indices((depth, height, width), dtype=np.float64)
    labels = np.full((depth, height, width), -1, dtype=np.int64)

    for _ in range(_ITERATIONS):
        best = np.full((depth, height, width), np.inf)
        for n in range(numk):
            z1 = int(max(0.0, sz[n] - step))
            z2 = int(min(float(depth), sz[n] + step))
            y1 = int(max(0.0, sy[n] - step))
            y2 = int(min(float(height), sy[n] + step))
            x1 = int(max(0.0, sx[n] - step))
            x2 = int(min(float(width), sx[n] + step))
            if z1 >= z2 or y1 >= y2 or x1 >= x2:
                continue
            window = arr[z1:z2, y1:y2, x1:x2]
            dist = (
                (window[..., 0] - sl[n]) ** 2
                + (window[..., 1] - sa[n]) ** 2
                + (window[..., 2] - sb[n]) ** 2
            )
            spatial = (
                ((xs[x1:x2] - sx[n]) ** 2)[None, None, :]
                + ((ys[y1:y2] - sy[n]) ** 2)[None, :, None]
                + ((zs[z1:z2] - sz[n]) ** 2)[:, None, None]
            )
            dist = dist + spatial * invwt
            best_view = best[z1:z2, y1:y2, x1:x2]
            label_view = labels[z1:z2, y1:y2, x1:x2]
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
        sx, sy, sz = _mean(x_grid), _mean(y_grid), _mean(z_grid)

    return labels, VoxelSeeds(l=sl, a=sa, b=sb, x=sx, y=sy, z=sz)


def enforce_supervoxel_connectivity(labels, step: int) -> Segmentation:
    """Relabel connected segments in raster order, merging small ones into a neighbour.

    Voxels connect through their in-plane 8-neighbours and the voxels directly
    before and after them. A segment of at most ``step**3 >> 2`` voxels takes the
    label of an adjacent, already relabelled segment.
    """
    lab = np.asarray(labels)
    if lab.ndim != 3:
        raise ValueError(f"expected a 3-D label volume, got shape {lab.shape}")
    step = int(step)
    if step < 1:
        raise ValueError("step must be at least 1")
    depth, height, width = lab.shape
    limit = (step * step * step) >> 2

    components = np.zeros(lab.shape, dtype=np.int64)
    total = 0
    for value in np.unique(lab):
        found, amount = ndimage.label(lab == value, structure=_STRUCTURE_10)
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
        z, rest = divmod(int(first_index[comp]), height * width)
        y, x = divmod(rest, width)
        for dx, dy, dz in _NEIGHBOURS_10:
            nx, ny, nz = x + dx, y + dy, z + dz
            if 0 <= nx < width and 0 <= ny < height and 0 <= nz < depth:
                other = components[nz, ny, nx]
                if rank[other] < rank[comp]:
                    adjacent = int(new_label[other])
        if sizes[comp] <= limit:
            new_label[comp] = adjacent
        else:
            new_label[comp] = label
            label += 1

    return Segmentation(labels=new_label[components], count=label)


def segment_volume(packed, supervoxel_size: int, compactness: float = 20.0) -> Segmentation:
    """Segment a packed-RGB volume into supervoxels of about ``supervoxel_size`` voxels."""
    step = int(0.5 + float(supervoxel_size) ** (1.0 / 3.0)) if supervoxel_size > 0 else 0
    if step < 1:
        raise ValueError("supervoxel size must be positive")
    lab = volume_to_lab(packed)
    seeds = grid_seeds_3d(lab, step)
    labels, _ = perform_supervoxel_slic(lab, seeds, step, compactness)
    return enforce_supervoxel_connectivity(labels, step)