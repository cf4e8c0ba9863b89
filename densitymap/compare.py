import argparse
import sys

from .image_io import load_image
from .metrics import compare_grids, psnr, rmse


def main(argv=None):
    ap = argparse.ArgumentParser(description="Pixel-level diff of two decoded images")
    ap.add_argument("--a", required=True, help="first image (.png / .npy)")
    ap.add_argument("--b", required=True, help="second image (.png / .npy)")
    ap.add_argument("--limit", type=int, default=20, help="differences to list")
    args = ap.parse_args(argv)

    try:
        a = load_image(args.a)
        b = load_image(args.b)
    except (ValueError, OSError) as e:
        print(f"[compare] error: {e}", file=sys.stderr)
        return 2
    print(f"[compare] a: shape={a.shape}")
    print(f"[compare] b: shape={b.shape}")
    if a.shape != b.shape:
        print("[compare] shapes differ", file=sys.stderr)
        return 2

    d = compare_grids(a, b, limit=args.limit)
    print(f"[compare] different pixels: {d.total}")
    for x, y, va, vb in d.first:
        print(f"  ({x}, {y}): {va} vs {vb}")
    print(f"[compare] non-zero pixels: a={d.nonzero_a} b={d.nonzero_b}")
    if not d.identical:
        print(f"[compare] rmse={rmse(a, b):.4f} psnr={psnr(a, b, 8):.2f} dB")
    return 0 if d.identical else 1


if __name__ == "__main__":
    sys.exit(main())
