import numpy as np
import pytest

from gmrsal.color import rgb_to_lab
from gmrsal.supervoxel import (
    VoxelSeeds,
    enforce_supervoxel_connectivity,
    grid_seeds_3d,
    perform_supervoxel_slic,
    segment_volume,
    unpack_rgb,
    volume_to_lab,
)


def test_unpack_rgb_splits_channels_and_ignores_top_byte():
    result = unpack_rgb(np.array([0x112233, 0xFF00FF00], dtype=np.uint32))
    assert result.tolist() == [[0x11, 0x22, 0x33], [0x00, 0xFF, 0x00]]


def test_volume_to_lab_matches_pointwise_conversion():
    volume = np.full((2, 3, 4), 0x336699, dtype=np.uint32)
    lab = volume_to_lab(volume)
    expected = rgb_to_lab(0x33, 0x66, 0x99)
    assert lab.shape == (2, 3, 4, 3)
    assert np.allclose(lab[1, 2, 3], expected)
    assert np.allclose(lab, lab[0, 0, 0])


def test_volume_to_lab_rejects_wrong_shape():
    with pytest.raises(ValueError):
        volume_to_lab(np.zeros((4, 4), dtype=np.uint32))


def test_grid_seeds_3d_layout():
    lab = np.zeros((8, 8, 8, 3))
    seeds = grid_seeds_3d(lab, 4)
    assert len(seeds) == 8
    assert sorted(set(seeds.x.tolist())) == [2.0, 6.0]
    assert set(seeds.x.tolist()) == set(seeds.y.tolist()) == set(seeds.z.tolist())
    assert list(seeds.z) == sorted(seeds.z)


def test_grid_seeds_3d_picks_colour_at_seed():
    lab = np.random.default_rng(0).random((8, 8, 8, 3))
    seeds = grid_seeds_3d(lab, 4)
    z, y, x = int(seeds.z[3]), int(seeds.y[3]), int(seeds.x[3])
    assert seeds.l[3] == lab[z, y, x, 0]
    assert seeds.b[3] == lab[z, y, x, 2]


def test_grid_seeds_3d_step_too_large():
    with pytest.raises(ValueError):
        grid_seeds_3d(np.zeros((2, 8, 8, 3)), 8)


def test_perform_supervoxel_slic_assigns_every_voxel():
    volume = np.full((4, 8, 8), 0x808080, dtype=np.uint32)
    lab = volume_to_lab(volume)
    seeds = grid_seeds_3d(lab, 2)
    labels, refined = perform_supervoxel_slic(lab, seeds, 2, 20.0)
    assert labels.shape == (4, 8, 8)
    assert labels.min() >= 0
    assert labels.max() < len(seeds)
    assert len(refined) == len(seeds)


def test_perform_supervoxel_slic_requires_seeds():
    empty = VoxelSeeds(*(np.zeros(0) for _ in range(6)))
    with pytest.raises(ValueError):
        perform_supervoxel_slic(np.zeros((2, 2, 2, 3)), empty, 2)


def test_connectivity_uniform_volume_is_one_segment():
    result = enforce_supervoxel_connectivity(np.zeros((2, 4, 4), dtype=int), 2)
    assert result.count == 1
    assert (result.labels == 0).all()


def test_connectivity_relabels_in_raster_order():
    labels = np.zeros((2, 4, 4), dtype=int)
    labels[0] = 3
    labels[1] = 7
    result = enforce_supervoxel_connectivity(labels, 2)
    assert result.count == 2
    assert (result.labels[0] == 0).all()
    assert (result.labels[1] == 1).all()


def test_connectivity_merges_stray_voxel():
    labels = np.zeros((2, 4, 4), dtype=int)
    labels[1, 2, 2] = 9
    result = enforce_supervoxel_connectivity(labels, 2)
    assert result.count == 1
    assert (result.labels == 0).all()


def test_connectivity_rejects_bad_input():
    with pytest.raises(ValueError):
        enforce_supervoxel_connectivity(np.zeros((4, 4), dtype=int), 2)
    with pytest.raises(ValueError):
        enforce_supervoxel_connectivity(np.zeros((2, 4, 4), dtype=int), 0)


def test_segment_volume_labels_are_dense():
    volume = np.full((4, 8, 8), 0xFF0000, dtype=np.uint32)
    volume[:, :, 4:] = 0x0000FF
    result = segment_volume(volume, 8)
    assert result.labels.shape == (4, 8, 8)
    assert result.count >= 2
    assert set(np.unique(result.labels).tolist()) == set(range(result.count))


def test_segment_volume_rejects_nonpositive_size():
    with pytest.raises(ValueError):
        segment_volume(np.zeros((4, 4, 4), dtype=np.uint32), 0)