"""
Format dispatch between GRLE, GDM and plain image arrays.

The format set is closed: GRLE (one magic) and GDM (two magics). Decoding
routes on the magic bytes; encoding routes on the requested format name.
Images are uint8 arrays, (H, W) grayscale or (H, W, 3) RGB.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np

from . import bitstream_gdm, bitstream_grle
from .bitstream_gdm import GdmHeader
from .bitstream_grle import GrleHeader
from .codec_gdm import build_header, decode_gdm, encode_gdm
from .codec_grle import decode_grle, encode_grle
from .errors import InvalidImage, MissingEncodeParameters, UnrecognizedMagic
from .pixelgrid import PixelGrid

logger = logging.getLogger(__name__)

GRLE = "grle"
GDM = "gdm"
RGB_CHANNEL_THRESHOLD = 8   # more channels than this -> RGB image


@dataclass
class LayerParams:
    layer_type: str                          # "info" (GRLE) or "gdm"
    channel_count: int
    compression_split: Optional[int] = None


@dataclass
class DecodedLayer:
    fmt: str
    header: Union[GrleHeader, GdmHeader]
    grid: PixelGrid

    @property
    def channel_count(self) -> int:
        if self.fmt == GDM:
            return self.header.channel_count
        return 1

    def to_image(self) -> np.ndarray:
        return grid_to_image(self.grid, self.channel_count)


def detect_format(data) -> str:
    magic = bytes(data[:4])
    if magic == bitstream_grle.MAGIC:
        return GRLE
    if magic in (bitstream_gdm.MAGIC_SIMPLE, bitstream_gdm.MAGIC_EXTENDED):
        return GDM
    raise UnrecognizedMagic(f"Unrecognized magic at offset 0: {magic!r} (expected GRLE, !MDF or \"MDF)")


def decode_bytes(data) -> DecodedLayer:
    fmt = detect_format(data)
    if fmt == GRLE:
        header, grid = decode_grle(data)
    else:
        header, grid = decode_gdm(data)
    return DecodedLayer(fmt=fmt, header=header, grid=grid)


def decode_file(path) -> DecodedLayer:
    return decode_bytes(Path(path).read_bytes())


def grid_to_image(grid: PixelGrid, channel_count: int) -> np.ndarray:
    s = grid.samples
    if channel_count <= RGB_CHANNEL_THRESHOLD:
        return (s & 0xFF).astype(np.uint8)
    rgb = np.empty((grid.height, grid.width, 3), dtype=np.uint8)
    rgb[..., 0] = s & 0xFF
    rgb[..., 1] = (s >> 8) & 0xFF
    rgb[..., 2] = (s >> 16) & 0xFF
    return rgb


def image_to_grid(image: np.ndarray, fmt: str) -> PixelGrid:
    """
    GRLE: grayscale as is, R channel of RGB/RGBA.
    GDM:  grayscale as is, R | G << 8 | B << 16 for RGB/RGBA.
    """
    a = np.asarray(image)
    if a.dtype != np.uint8:
        raise InvalidImage(f"Input image must be uint8, got {a.dtype}")
    if a.ndim == 2:
        return PixelGrid.from_array(a)
    if a.ndim != 3 or a.shape[2] not in (3, 4):
        raise InvalidImage(f"Unsupported image shape {a.shape}")
    if fmt == GRLE:
        return PixelGrid.from_array(a[..., 0])
    c = a[..., :3].astype(np.uint32)
    return PixelGrid.from_array(c[..., 0] | (c[..., 1] << 8) | (c[..., 2] << 16))


def encode_image(image: np.ndarray, fmt: str, params: Optional[LayerParams] = None,
                 template: Optional[GdmHeader] = None) -> bytes:
    grid = image_to_grid(image, fmt)
    if fmt == GRLE:
        return encode_grle(grid)
    if fmt != GDM:
        raise ValueError(f"Unknown output format: {fmt}")
    if template is None and (params is None or params.channel_count is None):
        raise MissingEncodeParameters(["channel_count", "compression_split (optional)"])
    if template is not None:
        header = build_header(grid.width, template=template)
    else:
        header = build_header(grid.width, params.channel_count, params.compression_split)
    logger.debug("GDM encode with %d channels, ranges %s", header.channel_count, header.range_bits)
    return encode_gdm(grid, header)


def read_template(path) -> GdmHeader:
    """Header of an existing GDM file, to mirror when re-encoding."""
    data = Path(path).read_bytes()
    if detect_format(data) != GDM:
        raise UnrecognizedMagic(f"{path} is not a GDM file; only GDM headers can be mirrored")
    return bitstream_gdm.unpack_header(data)


def choose_output_format(output_path=None, params: Optional[LayerParams] = None) -> str:
    if output_path is not None:
        ext = Path(output_path).suffix.lower()
        if ext == ".grle":
            return GRLE
        if ext == ".gdm":
            return GDM
    if params is not None and params.layer_type == "info":
        return GRLE
    return GDM
