import struct
from dataclasses import dataclass
from typing import List, Tuple

from .errors import (
    InvalidRangeBoundaries,
    TruncatedInput,
    UnrecognizedMagic,
    UnsupportedFeature,
    UnsupportedVersion,
)

MAGIC_SIMPLE = b"!MDF"
MAGIC_EXTENDED = b'"MDF'
VERSION = 0
CHUNK_LOG2 = 5          # 32x32 chunks in every file seen so far
DIM_LOG2_BIAS = 5       # dimension = 2 ** (dim_log2 + 5)
MAX_CHANNELS = 24
MAX_RANGES = 6
MAX_RANGE_BITS = 16     # palette entries and raw values are u16

# Simple header: magic(4) dim_log2 chunk_log2 max_bit_depth channels ranges
SIMPLE_FMT = "<4sBBBBB"
SIMPLE_SIZE = struct.calcsize(SIMPLE_FMT)

# Extended header: magic(4) version(u32) dim_log2 chunk_log2 max_bit_depth
# channels ranges type_index_channels reserved(2)
EXTENDED_FMT = "<4sIBBBBBB2s"
EXTENDED_SIZE = struct.calcsize(EXTENDED_FMT)

# Block prefix: bit_depth(u8) palette_count(u8), then palette u16 LE * count
BLOCK_FMT = "<BB"
BLOCK_SIZE = struct.calcsize(BLOCK_FMT)


@dataclass
class GdmHeader:
    variant: str                 # "simple" | "extended"
    dim_log2: int
    chunk_log2: int
    max_bit_depth: int
    channel_count: int
    range_count: int
    boundaries: Tuple[int, ...] = ()
    version: int = VERSION
    type_index_channel_count: int = 0

    @property
    def dimension(self) -> int:
        return 1 << (self.dim_log2 + DIM_LOG2_BIAS)

    @property
    def chunk_size(self) -> int:
        return 1 << self.chunk_log2

    @property
    def chunks_per_side(self) -> int:
        return self.dimension // self.chunk_size

    @property
    def header_size(self) -> int:
        return EXTENDED_SIZE if self.variant == "extended" else SIMPLE_SIZE

    @property
    def data_start(self) -> int:
        return self.header_size + len(self.boundaries)

    @property
    def range_edges(self) -> List[int]:
        return [0, *self.boundaries, self.channel_count]

    @property
    def range_bits(self) -> List[int]:
        e = self.range_edges
        return [e[i + 1] - e[i] for i in range(self.range_count)]

    @property
    def range_shifts(self) -> List[int]:
        return self.range_edges[:-1]

    @property
    def bitmap_unit(self) -> int:
        """Bitmap bytes per bit of depth (128 for 32x32 chunks)."""
        return (self.chunk_size * self.chunk_size) // 8


@dataclass
class Block:
    bit_depth: int
    palette: Tuple[int, ...] = ()
    bitmap: bytes = b""
    offset: int = -1

    @property
    def byte_size(self) -> int:
        return BLOCK_SIZE + 2 * len(self.palette) + len(self.bitmap)


def validate_boundaries(boundaries, channel_count: int, offset: int = 0):
    prev = 0
    for k, b in enumerate(boundaries):
        if not (prev < b < channel_count):
            raise InvalidRangeBoundaries(
                f"Range boundary {k} at offset {offset + k} is {b}; "
                f"must be in ({prev}, {channel_count})"
            )
        prev = b


def _check_counts(channel_count, range_count, at_channels, at_ranges):
    if not (1 <= channel_count <= MAX_CHANNELS):
        raise InvalidRangeBoundaries(
            f"channel_count at offset {at_channels} is {channel_count}; must be 1..{MAX_CHANNELS}")
    if not (1 <= range_count <= MAX_RANGES):
        raise InvalidRangeBoundaries(
            f"range_count at offset {at_ranges} is {range_count}; "
            f"must be 1..{MAX_RANGES}")


def unpack_header(data) -> GdmHeader:
    magic = bytes(data[0:4])
    if magic == MAGIC_EXTENDED:
        if len(data) < EXTENDED_SIZE:
            raise TruncatedInput(f"GDM header needs {EXTENDED_SIZE} bytes, got {len(data)}")
        (_, ver, dim_log2, chunk_log2, max_bd,
         channels, ranges, type_idx, _) = struct.unpack_from(EXTENDED_FMT, data, 0)
        if ver != VERSION:
            raise UnsupportedVersion(f"Unsupported GDM version at offset 4: {ver}")
        _check_counts(channels, ranges, 11, 12)
        h = GdmHeader(variant="extended", dim_log2=dim_log2, chunk_log2=chunk_log2,
                      max_bit_depth=max_bd, channel_count=channels, range_count=ranges,
                      version=ver, type_index_channel_count=type_idx)
    elif magic == MAGIC_SIMPLE:
        if len(data) < SIMPLE_SIZE:
            raise TruncatedInput(f"GDM header needs {SIMPLE_SIZE} bytes, got {len(data)}")
        _, dim_log2, chunk_log2, max_bd, channels, ranges = struct.unpack_from(SIMPLE_FMT, data, 0)
        _check_counts(channels, ranges, 7, 8)
        h = GdmHeader(variant="simple", dim_log2=dim_log2, chunk_log2=chunk_log2,
                      max_bit_depth=max_bd, channel_count=channels, range_count=ranges)
    else:
        raise UnrecognizedMagic(f"Bad magic at offset 0: {magic!r} (not GDM)")

    start = h.header_size
    nb = h.range_count - 1
    if len(data) < start + nb:
        raise TruncatedInput(
            f"GDM range boundaries need {nb} bytes at offset {start}, got {len(data) - start}")
    h.boundaries = tuple(bytes(data[start:start + nb]))
    validate_boundaries(h.boundaries, h.channel_count, start)

    if h.type_index_channel_count:
        raise UnsupportedFeature(
            f"type_index_channel_count at offset 13 is {h.type_index_channel_count}; "
            "type-index channels are not supported")
    return h


def pack_header(h: GdmHeader) -> bytes:
    if h.variant == "extended":
        head = struct.pack(EXTENDED_FMT, MAGIC_EXTENDED, h.version, h.dim_log2, h.chunk_log2,
                           h.max_bit_depth, h.channel_count, h.range_count,
                           h.type_index_channel_count, b"\x00\x00")
    else:
        head = struct.pack(SIMPLE_FMT, MAGIC_SIMPLE, h.dim_log2, h.chunk_log2,
                           h.max_bit_depth, h.channel_count, h.range_count)
    return head + bytes(h.boundaries)


def read_block(data, pos: int, bitmap_unit: int) -> Block:
    if pos + BLOCK_SIZE > len(data):
        raise TruncatedInput(f"Block header at offset {pos} runs past end of data ({len(data)})")
    bit_depth, count = struct.unpack_from(BLOCK_FMT, data, pos)
    p = pos + BLOCK_SIZE
    bitmap_len = bit_depth * bitmap_unit
    end = p + 2 * count + bitmap_len
    if end > len(data):
        raise TruncatedInput(
            f"Block at offset {pos} (bit_depth={bit_depth}, palette_count={count}) "
            f"needs {end - pos} bytes, only {len(data) - pos} left")
    palette = struct.unpack_from(f"<{count}H", data, p)
    p += 2 * count
    return Block(bit_depth=bit_depth, palette=tuple(palette),
                 bitmap=bytes(data[p:end]), offset=pos)


def write_block(blk: Block) -> bytes:
    if len(blk.palette) > 255:
        raise ValueError("palette_count out of range (0..255)")
    return (struct.pack(BLOCK_FMT, blk.bit_depth, len(blk.palette))
            + struct.pack(f"<{len(blk.palette)}H", *blk.palette)
            + blk.bitmap)
