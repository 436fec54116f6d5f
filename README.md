# gmrsal

Saliency detection by graph-based manifold ranking. The image is split into
SLIC superpixels, which become the nodes of a graph. Each superpixel is ranked
against queries taken from the four image borders, and the result is ranked
again against the most likely foreground. The output is a saliency map with
values in `[0, 1]` and the same height and width as the input image.

## Installation

```
pip install .
```

To install the test requirements as well:

```
pip install ".[test]"
```

## Command line

```
gmrsal picture.jpg
gmrsal picture.jpg -o map.png
```

The command reads the image, works out its saliency map and saves the map as
an 8-bit greyscale image. Without `-o/--output` the map is written next to the
input as `<name>_saliency.png`. The path of the written file is printed. If
the image cannot be read, or is too small (see below), the command prints a
message to standard error and exits with status 1.

The command saves the map to a file and nothing more. It opens no window and
does not display the image or the map.

## Library use

```python
import numpy as np
from PIL import Image

from gmrsal.saliency import GMRSaliency

rgb = np.asarray(Image.open("picture.jpg").convert("RGB"))
bgr = rgb[..., ::-1]

detector = GMRSaliency()
saliency_map = detector.saliency(bgr)   # float32 array, shape (height, width)
```

`GMRSaliency(superpixels=200, compactness=20.0, alpha=0.99, delta=0.1)`:

- `superpixels`: the number of superpixels to ask for.
- `compactness`: the SLIC compactness.
- `alpha`: balances fitting the queries against smoothness over the graph.
- `delta`: controls how fast edge weights fall off with colour distance.

The single steps are also available as methods: `superpixels`, `adjacency`,
`weights`, `optimal_affinity`, `boundary_query` (with a `Side` of `TOP`,
`BOTTOM`, `LEFT` or `RIGHT`) and `saliency`.

Before ranking, `gmrsal.saliency.remove_frame(image)` looks for a plain border
frame, using Canny edges in the outer 30 rows and columns on each side. It
returns the cropped image and a `FrameCut`. The map for the cropped region is
put back into a full-size output, and the frame area is set to zero. Images
smaller than 30×30 pixels raise `ValueError`.

### Superpixels

```python
from gmrsal.slic import segment_by_count, segment_by_size

segmentation = segment_by_count(rgb, 200, 20.0)
segmentation.labels      # int array, shape (height, width)
segmentation.count       # number of superpixels actually produced
```

The lower-level steps are public as well: `detect_lab_edges`, `grid_seeds`,
`perturb_seeds`, `perform_superpixel_slic` and `enforce_label_connectivity`.

### Other modules

- `gmrsal.supervoxel`: segments a stack of frames of shape
  `(depth, height, width)`, where each pixel is packed as `0x00RRGGBB`
  (`segment_volume`, `unpack_rgb`, `volume_to_lab`, and the individual steps).
- `gmrsal.labels_io`: `save_superpixel_labels` and `save_supervoxel_labels`
  write labels as raw little-endian 32-bit integers. The file name comes from
  `label_file_path`, which gives the name a `dat` extension. `draw_contours`
  marks segment boundaries in a packed-pixel image.
- `gmrsal.color`: converts sRGB to CIE XYZ and CIELAB (D65 reference white).
- `gmrsal.edges`: converts BGR to greyscale with `bgr_to_gray` and finds edges
  with `canny`.