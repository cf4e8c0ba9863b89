import struct

import numpy as np
import pytest

from densitymap.bitstream_gdm import Block, GdmHeader, pack_header, read_block, unpack_header, write_block
from densitymap.codec_gdm import (
    block_values,
    build_header,
    decode_gdm,
    encode_block,
    encode_gdm,
    first_occurrence,
)
from densitymap.dispatch import LayerParams, decode_bytes, encode_image
from densitymap.errors import (
    InvalidRangeBoundaries,
    TruncatedInput,
    UnsupportedFeature,
    UnsupportedVersion,
)
from densitymap.pixelgrid import PixelGrid


def _uniform(v):
    return bytes([0, 1]) + struct.pack("<H", v)


def _sample_file():
    """
    64x64, 6 channels split at 2 (ranges of 2 and 4 bits), 4 chunks.
    Every block uses the smallest encoding for its values.
    """
    head = b'"MDF' + struct.pack("<I", 0) + bytes([1, 5, 2, 6, 2, 0, 0, 0]) + bytes([2])
    blocks = [
        # chunk 0
        _uniform(3),
        bytes([1, 2]) + struct.pack("<2H", 5, 2) + b"\xaa" * 128,
        # chunk 1
        bytes([2, 3]) + struct.pack("<3H", 1, 0, 2) + b"\x24" * 256,
        bytes([4, 0]) + b"\x10\x32\x54\x76" * 128,
        # chunk 2
        _uniform(0),
        _uniform(15),
        # chunk 3
        bytes([1, 2]) + struct.pack("<2H", 0, 3) + b"\x00" * 127 + b"\x80",
        bytes([2, 4]) + struct.pack("<4H", 9, 4, 1, 0) + b"\xe4" * 256,
    ]
    return head + b"".join(blocks)


def _block_input(first):
    vals = np.zeros(1024, dtype=np.uint32)
    vals[:len(first)] = first
    return vals


def test_palette_keeps_first_occurrence_order():
    blk = encode_block(_block_input([3, 3, 1, 1, 0, 0]), 8, 128)
    assert blk.bit_depth == 2
    assert blk.palette == (3, 1, 0)
    assert len(blk.bitmap) == 256


def test_palette_indices_follow_palette_order():
    vals = _block_input([1, 2, 0, 2])
    blk = encode_block(vals, 8, 128)
    assert blk.palette == (1, 2, 0)
    assert blk.bitmap[0] == 0b01100100
    assert np.array_equal(block_values(blk, 1024), vals)


def test_first_occurrence_is_not_sorted():
    assert first_occurrence(np.array([0, 1, 9, 4, 1, 0])).tolist() == [0, 1, 9, 4]


def test_one_distinct_value_is_uniform_block():
    blk = encode_block(np.full(1024, 42, dtype=np.uint32), 8, 128)
    assert (blk.bit_depth, blk.palette, blk.bitmap) == (0, (42,), b"")
    assert write_block(blk) == bytes([0, 1, 42, 0])


def test_two_distinct_values_use_one_bit():
    blk = encode_block(_block_input([7, 0, 7]), 8, 128)
    assert blk.bit_depth == 1
    assert blk.palette == (7, 0)
    assert blk.byte_size == 2 + 4 + 128


@pytest.mark.parametrize("cycle", [[5, 1, 2], [5, 1, 2, 3]])
def test_three_or_four_distinct_values_use_two_bits(cycle):
    vals = np.resize(np.array(cycle, dtype=np.uint32), 1024)
    blk = encode_block(vals, 8, 128)
    assert blk.bit_depth == 2
    assert blk.palette == tuple(cycle)
    assert len(blk.bitmap) == 256
    assert np.array_equal(block_values(blk, 1024), vals)


def test_five_distinct_values_switch_to_raw_range_width():
    vals = _block_input([1, 2, 3, 4, 5])
    blk = encode_block(vals, 6, 128)
    assert blk.bit_depth == 6
    assert blk.palette == ()
    assert len(blk.bitmap) == 6 * 128
    assert np.array_equal(block_values(blk, 1024), vals)


def test_block_values_lookup_threshold():
    bitmap = b"\x03" * 384  # first 3-bit field = 3
    raw = Block(bit_depth=3, palette=(10, 11, 12, 13), bitmap=bitmap)
    assert block_values(raw, 1024)[0] == 3          # depth > 2: never a palette lookup

    pal = Block(bit_depth=2, palette=(10, 11, 12, 13), bitmap=b"\x03" * 256)
    assert block_values(pal, 1024)[0] == 13

    short = Block(bit_depth=2, palette=(7,), bitmap=b"\x01" * 256)
    assert block_values(short, 1024)[:4].tolist() == [0, 7, 7, 7]

    empty = Block(bit_depth=1, palette=(), bitmap=b"\x01" + bytes(127))
    assert block_values(empty, 1024)[:2].tolist() == [1, 0]

    assert block_values(Block(bit_depth=0), 1024).sum() == 0


def test_single_chunk_scenario():
    vals = (np.arange(1024) % 8).astype(np.uint32)
    blk = encode_block(vals, 3, 128)
    data = b"!MDF" + bytes([0, 5, 3, 3, 1]) + write_block(blk)

    layer = decode_bytes(data)
    assert layer.header.dimension == 32
    assert layer.header.chunks_per_side == 1
    img = layer.to_image()
    assert img.shape == (32, 32)
    assert img.min() == 0 and img.max() == 7
    assert np.array_equal(img.ravel(), vals)


def test_sample_file_decodes_expected_pixels():
    data = _sample_file()
    h, grid = decode_gdm(data)
    assert (h.variant, h.dimension, h.range_bits, h.range_shifts) == ("extended", 64, [2, 4], [0, 2])
    s = grid.samples
    assert s[0, 0] == 3 | (5 << 2)
    assert s[0, 1] == 3 | (2 << 2)
    assert s[0, 32] == 1 | (0 << 2)
    assert s[0, 33] == 0 | (1 << 2)
    assert s[32, 0] == 0 | (15 << 2)
    assert s[63, 63] == 3 | (0 << 2)


def test_sample_file_reencodes_byte_for_byte():
    data = _sample_file()
    h, grid = decode_gdm(data)
    assert encode_gdm(grid, build_header(grid.width, template=h)) == data

    layer = decode_bytes(data)
    assert encode_image(layer.to_image(), "gdm", template=layer.header) == data


def test_simple_variant_reencodes_byte_for_byte():
    ext = _sample_file()
    data = b"!MDF" + bytes([1, 5, 2, 6, 2]) + ext[16:]
    h, grid = decode_gdm(data)
    assert h.variant == "simple"
    assert encode_gdm(grid, build_header(64, template=h)) == data


def test_default_header_is_extended_variant():
    h = build_header(128, channel_count=10, compression_split=4)
    raw = pack_header(h)
    assert raw == b'"MDF' + bytes([0, 0, 0, 0, 2, 5, 2, 10, 2, 0, 0, 0, 4])
    assert unpack_header(raw + bytes(2)) == h


def test_roundtrip_rgb_two_ranges():
    rng = np.random.default_rng(3)
    r = rng.integers(0, 256, size=(128, 128))
    g = rng.integers(0, 256, size=(128, 128))
    b = rng.integers(0, 4, size=(128, 128))
    img = np.stack([r, g, b], axis=2).astype(np.uint8)
    img[:32, :32] = (1, 2, 0)     # uniform chunk
    img[32:64, :32, 0] = 5        # one range paletted, the other raw

    data = encode_image(img, "gdm", params=_params(18, 8))
    layer = decode_bytes(data)
    assert layer.header.range_bits == [8, 10]
    assert np.array_equal(layer.to_image(), img)
    assert encode_image(layer.to_image(), "gdm", template=layer.header) == data


def test_roundtrip_grayscale_single_range():
    rng = np.random.default_rng(4)
    img = rng.integers(0, 4, size=(64, 64)).astype(np.uint8)
    img[32:, 32:] = rng.integers(0, 32, size=(32, 32))
    grid = PixelGrid.from_array(img)
    h = build_header(64, channel_count=5)
    _, out = decode_gdm(encode_gdm(grid, h))
    assert out == grid


def _params(channels, split=None):
    return LayerParams(layer_type="gdm", channel_count=channels, compression_split=split)


def test_bad_version():
    data = bytearray(_sample_file())
    data[4] = 1
    with pytest.raises(UnsupportedVersion, match="offset 4"):
        unpack_header(bytes(data))


def test_type_index_channels_unsupported():
    data = bytearray(_sample_file())
    data[13] = 1
    with pytest.raises(UnsupportedFeature):
        unpack_header(bytes(data))


@pytest.mark.parametrize("ranges, bounds", [(3, [3, 2]), (2, [6]), (2, [0]), (3, [2, 2])])
def test_invalid_boundaries(ranges, bounds):
    data = b"!MDF" + bytes([1, 5, 2, 6, ranges]) + bytes(bounds)
    with pytest.raises(InvalidRangeBoundaries):
        unpack_header(data)


def test_invalid_counts():
    with pytest.raises(InvalidRangeBoundaries):
        unpack_header(b"!MDF" + bytes([1, 5, 2, 0, 1]))
    with pytest.raises(InvalidRangeBoundaries):
        unpack_header(b"!MDF" + bytes([1, 5, 2, 24, 7]) + bytes([1, 2, 3, 4, 5, 6]))


def test_truncated_block_stream():
    data = _sample_file()
    with pytest.raises(TruncatedInput):
        decode_gdm(data[:-1])
    with pytest.raises(TruncatedInput):
        read_block(b"\x01", 0, 128)


def test_truncated_header():
    with pytest.raises(TruncatedInput):
        unpack_header(b'"MDF\x00\x00')
    with pytest.raises(TruncatedInput):
        unpack_header(b"!MDF" + bytes([1, 5, 2, 6, 3, 2]))


def test_build_header_rejects_non_power_of_two():
    with pytest.raises(ValueError):
        build_header(96, channel_count=8)
    with pytest.raises(ValueError):
        build_header(16, channel_count=8)


def test_encode_rejects_wide_range():
    grid = PixelGrid.from_array(np.zeros((32, 32), dtype=np.uint32))
    h = GdmHeader(variant="simple", dim_log2=0, chunk_log2=5, max_bit_depth=2,
                  channel_count=20, range_count=1)
    with pytest.raises(ValueError):
        encode_gdm(grid, h)
