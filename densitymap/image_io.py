import os
from pathlib import Path

import numpy as np
from PIL import Image

from .errors import InvalidImage


def load_image(path) -> np.ndarray:
    """
    Returns uint8 (H, W) for grayscale or (H, W, 3) for colour images.
    Alpha is dropped; palette and other modes are converted to RGB.
    """
    path = Path(path)
    if path.suffix.lower() == ".npy":
        x = np.load(path)
        if x.dtype != np.uint8 or x.ndim not in (2, 3):
            raise InvalidImage("Input .npy must be a uint8 array of shape (H, W) or (H, W, 3)")
        return x[..., :3] if x.ndim == 3 else x
    with Image.open(path) as im:
        if im.mode == "L":
            return np.array(im, dtype=np.uint8)
        if im.mode in ("I;16", "I", "F"):
            raise InvalidImage(f"Unsupported image mode {im.mode} (need 8-bit grayscale or RGB)")
        return np.array(im.convert("RGB"), dtype=np.uint8)


def save_image(path, img: np.ndarray):
    path = Path(path)
    os.makedirs(os.path.dirname(str(path)) or ".", exist_ok=True)
    if path.suffix.lower() == ".npy":
        np.save(path, img)
        return
    Image.fromarray(np.ascontiguousarray(img, dtype=np.uint8)).save(path)
