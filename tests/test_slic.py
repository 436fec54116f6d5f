import numpy as np
import pytest

from gmrsal.color import image_rgb_to_lab
from gmrsal.slic import (
    Seeds,
    Segmentation,
    detect_lab_edges,
    enforce_label_connectivity,
    grid_seeds,
    perform_superpixel_slic,
    perturb_seeds,
    segment_by_count,
    segment_by_size,
)


def _gradient_image(height, width):
    rows = np.linspace(0, 255, height)[:, None]
    cols = np.linspace(0, 255, width)[None, :]
    img = np.empty((height, width, 3), dtype=np.uint8)
    img[..., 0] = (rows + 0 * cols).astype(np.uint8)
    img[..., 1] = (cols + 0 * rows).astype(np.uint8)
    img[..., 2] = ((rows + cols) / 2).astype(np.uint8)
    return img


def _two_halves(height, width):
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, width // 2:] = 255
    return img


def test_edges_of_uniform_image_are_zero():
    lab = image_rgb_to_lab(np.full((8, 9, 3), 120, dtype=np.uint8))
    edges = detect_lab_edges(lab)
    assert edges.shape == (8, 9)
    assert np.all(edges == 0)


def test_edges_border_is_zero_and_step_detected():
    lab = image_rgb_to_lab(_two_halves(10, 10))
    edges = detect_lab_edges(lab)
    assert edges.shape == (10, 10)
    zeros = np.zeros(10)
    np.testing.assert_array_equal(edges[0], zeros)
    np.testing.assert_array_equal(edges[-1], zeros)
    np.testing.assert_array_equal(edges[:, 0], zeros)
    np.testing.assert_array_equal(edges[:, -1], zeros)
    assert edges[1:-1, 4].min() > 0
    assert edges[1:-1, 5].min() > 0
    np.testing.assert_allclose(edges[1:-1, 4], edges[1:-1, 5])
    np.testing.assert_array_equal(edges[1:-1, 1:4], np.zeros((8, 3)))
    np.testing.assert_array_equal(edges[1:-1, 7:9], np.zeros((8, 2)))


def test_grid_seeds_match_lab_values_and_lie_inside():
    lab = image_rgb_to_lab(_gradient_image(50, 60))
    seeds = grid_seeds(lab, 10)
    xs = seeds.x.astype(int)
    ys = seeds.y.astype(int)
    assert np.all((xs >= 0) & (xs < 60) & (ys >= 0) & (ys < 50))
    np.testing.assert_allclose(seeds.l, lab[ys, xs, 0])
    np.testing.assert_allclose(seeds.a, lab[ys, xs, 1])
    np.testing.assert_allclose(seeds.b, lab[ys, xs, 2])
    assert np.all(np.diff(seeds.y) >= 0)
    assert seeds.x[0] == 10 // 2


def test_grid_seeds_count_is_strip_product():
    lab = image_rgb_to_lab(_gradient_image(40, 40))
    seeds = grid_seeds(lab, 10)
    assert len(seeds) == 16
    assert len(np.unique(seeds.x)) * len(np.unique(seeds.y)) == len(seeds)


def test_grid_seeds_rejects_bad_steps():
    lab = image_rgb_to_lab(_gradient_image(10, 10))
    with pytest.raises(ValueError):
        grid_seeds(lab, 0)
    with pytest.raises(ValueError):
        grid_seeds(lab, 50)


def test_perturb_moves_seed_to_lowest_neighbour():
    lab = image_rgb_to_lab(_gradient_image(10, 10))
    edges = np.ones((10, 10))
    edges[6, 5] = 0.0
    seeds = Seeds(
        l=np.array([lab[5, 4, 0]]), a=np.array([lab[5, 4, 1]]), b=np.array([lab[5, 4, 2]]),
        x=np.array([4.0]), y=np.array([5.0]),
    )
    moved = perturb_seeds(seeds, lab, edges)
    assert moved.x[0] == 5 and moved.y[0] == 6
    np.testing.assert_allclose([moved.l[0], moved.a[0], moved.b[0]], lab[6, 5])
    assert seeds.x[0] == 4.0


def test_perturb_keeps_seed_on_flat_edges():
    lab = image_rgb_to_lab(_gradient_image(10, 10))
    seeds = grid_seeds(lab, 5)
    same = perturb_seeds(seeds, lab, np.zeros((10, 10)))
    np.testing.assert_array_equal(same.x, seeds.x)
    np.testing.assert_array_equal(same.y, seeds.y)
    np.testing.assert_array_equal(same.l, seeds.l)


def test_slic_labels_cover_image_and_seeds_stay_inside():
    lab = image_rgb_to_lab(_gradient_image(30, 30))
    seeds = grid_seeds(lab, 10, detect_lab_edges(lab))
    labels, refined = perform_superpixel_slic(lab, seeds, 10, 20.0)
    assert labels.shape == (30, 30)
    assert labels.min() >= 0 and labels.max() < len(seeds)
    assert len(refined) == len(seeds)
    assert np.all((refined.x >= 0) & (refined.x < 30))
    assert np.all((refined.y >= 0) & (refined.y < 30))


def test_slic_requires_seeds():
    lab = image_rgb_to_lab(_gradient_image(5, 5))
    empty = Seeds(*(np.array([]) for _ in range(5)))
    with pytest.raises(ValueError):
        perform_superpixel_slic(lab, empty, 2, 10.0)


def test_connectivity_merges_stray_pixel():
    labels = np.zeros((10, 10), dtype=int)
    labels[5, 5] = 1
    result = enforce_label_connectivity(labels, 1)
    assert isinstance(result, Segmentation)
    assert result.count == 1
    assert np.all(result.labels == 0)


def test_connectivity_relabels_in_raster_order():
    labels = np.full((10, 10), 7)
    labels[:, 5:] = 3
    result = enforce_label_connectivity(labels, 2)
    assert result.count == 2
    expected = np.where(labels == 7, 0, 1)
    np.testing.assert_array_equal(result.labels, expected)


def test_connectivity_splits_disconnected_label():
    labels = np.full((12, 12), 5)
    labels[:, 4:8] = 2
    result = enforce_label_connectivity(labels, 1)
    assert result.count == 3
    np.testing.assert_array_equal(result.labels[:, 0:4], 0)
    np.testing.assert_array_equal(result.labels[:, 4:8], 1)
    np.testing.assert_array_equal(result.labels[:, 8:12], 2)


def test_connectivity_rejects_bad_input():
    with pytest.raises(ValueError):
        enforce_label_connectivity(np.zeros((4, 4), dtype=int), 0)
    with pytest.raises(ValueError):
        enforce_label_connectivity(np.zeros(4, dtype=int), 1)


def test_segment_two_halves():
    result = segment_by_count(_two_halves(20, 40), 2)
    assert result.count == 2
    left, right = result.labels[:, :20], result.labels[:, 20:]
    assert len(np.unique(left)) == 1 and len(np.unique(right)) == 1
    assert left[0, 0] != right[0, 0]


def test_segment_labels_are_contiguous_and_deterministic():
    img = _gradient_image(40, 40)
    first = segment_by_count(img, 16)
    second = segment_by_count(img, 16)
    np.testing.assert_array_equal(first.labels, second.labels)
    assert first.labels.shape == (40, 40)
    np.testing.assert_array_equal(np.unique(first.labels), np.arange(first.count))


def test_segment_by_count_agrees_with_size():
    img = _gradient_image(40, 40)
    by_count = segment_by_count(img, 4)
    by_size = segment_by_size(img, 400)
    np.testing.assert_array_equal(by_count.labels, by_size.labels)
    assert by_count.count == by_size.count


def test_segment_rejects_bad_arguments():
    with pytest.raises(ValueError):
        segment_by_count(_gradient_image(10, 10), 0)
    with pytest.raises(ValueError):
        segment_by_count(np.zeros((10, 10)), 4)
    with pytest.raises(ValueError):
        segment_by_size(_gradient_image(4, 4), 10000)