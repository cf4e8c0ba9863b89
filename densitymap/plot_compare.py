import argparse

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from .image_io import load_image  # noqa: E402


def diff_mask(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    ne = a != b
    return ne.any(axis=2) if ne.ndim == 3 else ne


def plot_compare(a: np.ndarray, b: np.ndarray, output, titles=("A", "B", "Differences")):
    imgs = [a, b, diff_mask(a, b).astype(np.uint8) * 255]

    plt.figure(figsize=(8, 3))
    for i in range(3):
        plt.subplot(1, 3, i + 1)
        if imgs[i].ndim == 2:
            plt.imshow(imgs[i], cmap="gray", vmin=0, vmax=255)
        else:
            plt.imshow(imgs[i])
        plt.title(titles[i], fontsize=9)
        plt.axis("off")

    plt.tight_layout()
    plt.savefig(output, dpi=150)
    plt.close()


def main(argv=None):
    ap = argparse.ArgumentParser(description="Side-by-side figure of two images and their diff")
    ap.add_argument("--a", required=True)
    ap.add_argument("--b", required=True)
    ap.add_argument("--output", required=True, help="figure path (.png)")
    args = ap.parse_args(argv)

    a = load_image(args.a)
    b = load_image(args.b)
    if a.shape != b.shape:
        raise ValueError(f"shape mismatch: {a.shape} vs {b.shape}")
    plot_compare(a, b, args.output, titles=(args.a, args.b, "Differences"))
    print(f"[plot_compare] wrote {args.output}")


if __name__ == "__main__":
    main()
