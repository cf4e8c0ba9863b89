from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np


def rmse(x: np.ndarray, y: np.ndarray) -> float:
    x = x.astype(np.float32)
    y = y.astype(np.float32)
    return float(np.sqrt(np.mean((x - y) ** 2)))


def psnr(x: np.ndarray, y: np.ndarray, bit_depth: int = 8) -> float:
    x = x.astype(np.float32)
    y = y.astype(np.float32)
    mse = float(np.mean((x - y) ** 2))
    if mse == 0.0:
        return float("inf")
    maxv = (2 ** bit_depth) - 1
    return float(20.0 * np.log10(maxv) - 10.0 * np.log10(mse))


@dataclass
class GridDiff:
    total: int
    # (x, y, a, b) for the first differing samples, raster order
    first: List[Tuple[int, int, object, object]] = field(default_factory=list)
    nonzero_a: int = 0
    nonzero_b: int = 0

    @property
    def identical(self) -> bool:
        return self.total == 0


def compare_grids(a: np.ndarray, b: np.ndarray, limit: int = 20) -> GridDiff:
    """
    Sample-wise diff of two images of the same shape.
    RGB images compare whole pixels; a pixel differs if any channel does.
    """
    if a.shape != b.shape:
        raise ValueError(f"shape mismatch: {a.shape} vs {b.shape}")
    ne = a != b
    if ne.ndim == 3:
        ne = ne.any(axis=2)
    ys, xs = np.nonzero(ne)
    first = []
    for y, x in zip(ys[:limit].tolist(), xs[:limit].tolist()):
        first.append((x, y, a[y, x].tolist(), b[y, x].tolist()))
    return GridDiff(total=int(ne.sum()), first=first,
                    nonzero_a=_count_nonzero(a), nonzero_b=_count_nonzero(b))


def _count_nonzero(m: np.ndarray) -> int:
    return int(np.count_nonzero(m.any(axis=2) if m.ndim == 3 else m))
