import logging
from typing import List, Optional

import numpy as np

from .bitpack import pack_bits, unpack_bits
from .bitstream_gdm import (
    CHUNK_LOG2,
    DIM_LOG2_BIAS,
    MAX_RANGE_BITS,
    Block,
    GdmHeader,
    pack_header,
    read_block,
    unpack_header,
    validate_boundaries,
    write_block,
)
from .errors import InvalidImage, UnsupportedFeature
from .pixelgrid import PixelGrid

logger = logging.getLogger(__name__)

PALETTE_MAX = 4          # more distinct values than this -> raw bitmap
PALETTE_DEPTH_MAX = 2    # palette lookup only applies to depths 1 and 2
DEFAULT_MAX_BIT_DEPTH = 2


# ---------------------------------------------------------------------------
# chunk <-> image layout
# ---------------------------------------------------------------------------

def split_chunks(img: np.ndarray, chunk_size: int) -> np.ndarray:
    """(D, D) -> (n_chunks, chunk_size*chunk_size), chunks row-major, pixels row-major."""
    D = img.shape[0]
    n = D // chunk_size
    return (img.reshape(n, chunk_size, n, chunk_size)
               .transpose(0, 2, 1, 3)
               .reshape(n * n, chunk_size * chunk_size))


def merge_chunks(chunks: np.ndarray, chunk_size: int, n: int) -> np.ndarray:
    return (chunks.reshape(n, n, chunk_size, chunk_size)
                  .transpose(0, 2, 1, 3)
                  .reshape(n * chunk_size, n * chunk_size))


# ---------------------------------------------------------------------------
# decode
# ---------------------------------------------------------------------------

def scan_blocks(data, h: GdmHeader) -> List[Block]:
    """
    Sequential cursor pass over the block stream.
    Block sizes depend on their own bit_depth/palette_count, so there is no stride.
    """
    pos = h.data_start
    unit = h.bitmap_unit
    total = h.chunks_per_side ** 2 * h.range_count
    blocks = []
    for _ in range(total):
        blk = read_block(data, pos, unit)
        blocks.append(blk)
        pos += blk.byte_size
    logger.debug("GDM data consumed: %d / %d bytes", pos, len(data))
    if pos != len(data):
        logger.warning("GDM has %d trailing bytes after the last block", len(data) - pos)
    return blocks


def block_values(blk: Block, count: int) -> np.ndarray:
    """Per-slot value of one block (uint32, length 'count')."""
    if blk.bit_depth == 0:
        v = blk.palette[0] if blk.palette else 0
        return np.full(count, v, dtype=np.uint32)
    raw = unpack_bits(blk.bitmap, count, blk.bit_depth)
    if blk.bit_depth <= PALETTE_DEPTH_MAX and blk.palette:
        # indices past the palette read as 0
        lut = np.zeros(max(len(blk.palette), 1 << blk.bit_depth), dtype=np.uint32)
        lut[:len(blk.palette)] = blk.palette
        return lut[raw]
    return raw


def decode_gdm(data):
    """
    Returns:
      header: GdmHeader
      grid: PixelGrid of combined channel values (dimension x dimension)
    """
    h = unpack_header(data)
    logger.debug("GDM %s: %dx%d, %d channels, %d ranges %s",
                 h.variant, h.dimension, h.dimension, h.channel_count, h.range_count,
                 list(h.range_bits))
    blocks = scan_blocks(data, h)

    cs = h.chunk_size
    n = h.chunks_per_side
    slots = cs * cs
    shifts = h.range_shifts
    combined = np.zeros((n * n, slots), dtype=np.uint32)
    for ci in range(n * n):
        acc = combined[ci]
        for ri in range(h.range_count):
            vals = block_values(blocks[ci * h.range_count + ri], slots)
            acc |= vals << np.uint32(shifts[ri])

    D = h.dimension
    img = merge_chunks(combined, cs, n) if n else np.zeros((D, D), dtype=np.uint32)
    return h, PixelGrid(width=D, height=D, samples=img)


# ---------------------------------------------------------------------------
# encode
# ---------------------------------------------------------------------------

def first_occurrence(values: np.ndarray) -> np.ndarray:
    """Distinct values ordered by where they first appear (not sorted)."""
    uniq, first = np.unique(values, return_index=True)
    return uniq[np.argsort(first, kind="stable")]


def encode_block(values: np.ndarray, range_bits: int, bitmap_unit: int) -> Block:
    """
    Block selection:
      1 distinct      -> bit_depth 0, palette [v], no bitmap
      2 distinct      -> bit_depth 1, first-occurrence palette
      3..4 distinct   -> bit_depth 2, first-occurrence palette
      more            -> bit_depth = range_bits, no palette, raw values
    """
    values = np.asarray(values, dtype=np.uint32)
    distinct = first_occurrence(values)
    k = distinct.size
    if k == 1:
        return Block(bit_depth=0, palette=(int(distinct[0]),))
    if k <= PALETTE_MAX:
        bd = 1 if k <= 2 else 2
        # map each value to its palette slot
        order = np.argsort(distinct)
        idx = order[np.searchsorted(distinct[order], values)].astype(np.uint32)
        return Block(bit_depth=bd, palette=tuple(int(v) for v in distinct),
                     bitmap=pack_bits(idx, bd, bd * bitmap_unit))
    bd = range_bits
    return Block(bit_depth=bd, palette=(),
                 bitmap=pack_bits(values, bd, bd * bitmap_unit))


def build_header(dimension: int, channel_count: Optional[int] = None,
                 compression_split: Optional[int] = None,
                 template: Optional[GdmHeader] = None) -> GdmHeader:
    """
    Header to encode with. A template (header of an existing file) is mirrored;
    otherwise the extended variant with the default layout is used.
    """
    dim_log2 = dimension.bit_length() - 1 - DIM_LOG2_BIAS
    if dimension <= 0 or dimension & (dimension - 1) or dim_log2 < 0:
        raise InvalidImage(f"GDM dimension must be a power of 2 >= 32, got {dimension}")
    if template is not None:
        if template.dimension != dimension:
            raise InvalidImage(
                f"image is {dimension}x{dimension} but template describes "
                f"{template.dimension}x{template.dimension}")
        return GdmHeader(variant=template.variant, dim_log2=template.dim_log2,
                         chunk_log2=template.chunk_log2,
                         max_bit_depth=template.max_bit_depth,
                         channel_count=template.channel_count,
                         range_count=template.range_count,
                         boundaries=tuple(template.boundaries),
                         version=template.version,
                         type_index_channel_count=template.type_index_channel_count)
    if channel_count is None:
        raise ValueError("channel_count is required without a template")
    boundaries = () if compression_split is None else (int(compression_split),)
    validate_boundaries(boundaries, channel_count)
    return GdmHeader(variant="extended", dim_log2=dim_log2, chunk_log2=CHUNK_LOG2,
                     max_bit_depth=DEFAULT_MAX_BIT_DEPTH, channel_count=channel_count,
                     range_count=len(boundaries) + 1, boundaries=boundaries)


def encode_gdm(grid: PixelGrid, h: GdmHeader) -> bytes:
    if grid.width != grid.height:
        raise InvalidImage(f"GDM requires square dimensions, got {grid.width}x{grid.height}")
    if grid.width != h.dimension:
        raise InvalidImage(f"grid is {grid.width}x{grid.height}, header says {h.dimension}")
    for ri, bits in enumerate(h.range_bits):
        if bits > MAX_RANGE_BITS:
            raise UnsupportedFeature(f"range {ri} is {bits} bits wide; at most {MAX_RANGE_BITS} supported")

    cs = h.chunk_size
    unit = h.bitmap_unit
    chunks = split_chunks(grid.samples, cs)
    masks = [np.uint32((1 << b) - 1) for b in h.range_bits]
    shifts = [np.uint32(s) for s in h.range_shifts]

    out = bytearray(pack_header(h))
    depth_hist = {}
    for ci in range(chunks.shape[0]):
        px = chunks[ci]
        for ri in range(h.range_count):
            sub = (px >> shifts[ri]) & masks[ri]
            blk = encode_block(sub, h.range_bits[ri], unit)
            depth_hist[blk.bit_depth] = depth_hist.get(blk.bit_depth, 0) + 1
            out += write_block(blk)
    logger.debug("GDM encode %dx%d: %d bytes, blocks by bit_depth %s",
                 h.dimension, h.dimension, len(out), dict(sorted(depth_hist.items())))
    return bytes(out)
