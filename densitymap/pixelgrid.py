from dataclasses import dataclass

import numpy as np


@dataclass
class PixelGrid:
    """Row-major sample grid; each sample holds up to 24 bits of channel data."""
    width: int
    height: int
    samples: np.ndarray  # uint32, shape (height, width)

    def __post_init__(self):
        self.samples = np.asarray(self.samples, dtype=np.uint32)
        if self.samples.shape != (self.height, self.width):
            raise ValueError(
                f"samples shape {self.samples.shape} does not match {self.height}x{self.width}"
            )

    @classmethod
    def from_array(cls, arr) -> "PixelGrid":
        a = np.asarray(arr)
        if a.ndim != 2:
            raise ValueError(f"expected a 2D array, got shape {a.shape}")
        return cls(width=a.shape[1], height=a.shape[0], samples=a.astype(np.uint32))

    def __eq__(self, other):
        if not isinstance(other, PixelGrid):
            return NotImplemented
        return (self.width, self.height) == (other.width, other.height) and \
            np.array_equal(self.samples, other.samples)
