"""Manifold-ranking saliency detection on SLIC superpixels, with supervoxel segmentation."""

__version__ = "0.1.0"
__all__ = ["cli", "color", "edges", "labels_io", "saliency", "slic", "supervoxel"]