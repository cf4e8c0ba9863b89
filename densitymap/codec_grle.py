import logging

import numpy as np

from .bitstream_grle import HDR_SIZE, pack_header, unpack_header
from .errors import InvalidImage
from .pixelgrid import PixelGrid
from .rle import rle_decode, rle_encode

logger = logging.getLogger(__name__)


def decode_grle(data):
    """
    Returns:
      header: GrleHeader
      grid: PixelGrid with 8-bit samples
    A payload that ends early is zero-padded (logged as a warning).
    """
    h = unpack_header(data)
    logger.debug("GRLE v%d %dx%d channels=%d", h.version, h.width, h.height, h.channels)
    if h.channels != 1:
        logger.warning("GRLE channels byte is %d (expected 1), decoding as one channel", h.channels)

    payload = data[HDR_SIZE:]
    if h.payload_len != len(payload):
        logger.warning("GRLE stored size says %d payload bytes, file has %d",
                       h.payload_len, len(payload))

    expected = h.width * h.height
    pixels, produced = rle_decode(payload, expected)
    if produced < expected:
        logger.warning("GRLE payload short: decoded %d of %d pixels, rest zero-filled",
                       produced, expected)
    grid = PixelGrid(width=h.width, height=h.height,
                     samples=pixels.reshape(h.height, h.width))
    return h, grid


def encode_grle(grid: PixelGrid) -> bytes:
    s = grid.samples
    if s.size and int(s.max()) > 0xFF:
        raise InvalidImage("GRLE samples must fit in 8 bits")
    payload = rle_encode(s.astype(np.uint8).ravel())
    header = pack_header(width=grid.width, height=grid.height, payload_len=len(payload))
    logger.debug("GRLE encode %dx%d -> %d payload bytes", grid.width, grid.height, len(payload))
    return header + payload
