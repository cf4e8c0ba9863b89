import argparse
import logging
import sys
from pathlib import Path

from .dispatch import decode_file
from .image_io import save_image
from .logging_config import configure_logging


def main(argv=None):
    ap = argparse.ArgumentParser(description="Decode a .grle or .gdm density map to an image")
    ap.add_argument("--input", required=True, help="path to .grle / .gdm")
    ap.add_argument("--output", help="path to output .png or .npy (default: <input stem>.png)")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    output = args.output or str(Path(args.input).with_suffix(".png"))
    try:
        layer = decode_file(args.input)
        img = layer.to_image()
        save_image(output, img)
    # DensityMapError is a ValueError; Pillow raises ValueError for unknown extensions
    except (ValueError, OSError) as e:
        print(f"[decode] error: {e}", file=sys.stderr)
        return 1

    print(f"[decode] {layer.fmt} {layer.grid.width}x{layer.grid.height} "
          f"channels={layer.channel_count}")
    print(f"[decode] wrote {output} shape={img.shape} dtype={img.dtype}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
