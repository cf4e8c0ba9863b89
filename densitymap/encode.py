import argparse
import logging
import os
import sys
from pathlib import Path

from .dispatch import GRLE, LayerParams, choose_output_format, encode_image, read_template
from .errors import MissingEncodeParameters
from .i3d import discover_params
from .image_io import load_image
from .logging_config import configure_logging

PARAM_HINT = "pass --i3d, --channels/--compress-at or --template"


def resolve_params(args):
    """.i3d discovery first, then --channels / --compress-at."""
    params = None
    if not args.no_i3d:
        params = discover_params(args.input, args.i3d)
    if params is None and args.channels is not None:
        name = Path(args.input).name
        explicit_grle = bool(args.output) and Path(args.output).suffix.lower() == ".grle"
        layer_type = "info" if ("infoLayer" in name or explicit_grle) else "gdm"
        params = LayerParams(layer_type=layer_type, channel_count=args.channels,
                             compression_split=args.compress_at)
    return params


def main(argv=None):
    ap = argparse.ArgumentParser(description="Encode an image as .grle or .gdm")
    ap.add_argument("--input", required=True, help="path to .png / .npy")
    ap.add_argument("--output", help="path to .grle / .gdm (default from layer type)")
    ap.add_argument("--i3d", help="map .i3d to read layer parameters from")
    ap.add_argument("--no-i3d", action="store_true", help="do not search for an .i3d file")
    ap.add_argument("--channels", type=int, help="channel count when no .i3d is available")
    ap.add_argument("--compress-at", type=int, help="GDM compression split channel")
    ap.add_argument("--template", help="existing .gdm whose header layout is mirrored")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        params = resolve_params(args)
        template = read_template(args.template) if args.template else None
        fmt = choose_output_format(args.output, params)
        if args.output is None and params is None and template is None:
            print("[encode] error: could not determine encoding parameters; "
                  f"{PARAM_HINT}, or give an output path ending in .grle",
                  file=sys.stderr)
            return 1
        output = args.output or str(Path(args.input).with_suffix("." + fmt))

        img = load_image(args.input)
        data = encode_image(img, fmt, params=params, template=template)
    except MissingEncodeParameters as e:
        print(f"[encode] error: {e} ({PARAM_HINT})", file=sys.stderr)
        return 1
    # DensityMapError is a ValueError; PIL raises OSError for unreadable images
    except (ValueError, OSError) as e:
        print(f"[encode] error: {e}", file=sys.stderr)
        return 1

    os.makedirs(os.path.dirname(output) or ".", exist_ok=True)
    with open(output, "wb") as f:
        f.write(data)
    print(f"[encode] input shape={img.shape} format={fmt}")
    if fmt != GRLE:
        src = "template" if template is not None else "params"
        print(f"[encode] layout from {src}")
    print(f"[encode] wrote {output} ({len(data)} bytes)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
