"""Command line entry point: compute the saliency map of an image file."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
from PIL import Image

from .saliency import GMRSaliency


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gmrsal", description="Compute a graph-based manifold ranking saliency map."
    )
    parser.add_argument("image", help="input image file")
    parser.add_argument(
        "-o", "--output", help="output image file (default: <image>_saliency.png)"
    )
    return parser


def main(argv=None) -> int:
    """Read an image, compute its saliency map and save it as an 8-bit greyscale image."""
    args = _parser().parse_args(argv)
    source = Path(args.image)
    try:
        with Image.open(source) as picture:
            rgb = np.asarray(picture.convert("RGB"))
    except OSError as exc:
        print(f"gmrsal: cannot read {source}: {exc}", file=sys.stderr)
        return 1

    try:
        saliency = GMRSaliency().saliency(rgb[..., ::-1])
    except ValueError as exc:
        print(f"gmrsal: {exc}", file=sys.stderr)
        return 1

    output = Path(args.output) if args.output else source.with_name(f"{source.stem}_saliency.png")
    pixels = np.clip(np.round(saliency * 255.0), 0, 255).astype(np.uint8)
    Image.fromarray(pixels).save(output)
    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())