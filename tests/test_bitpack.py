import numpy as np
import pytest

from densitymap.bitpack import pack_bits, read_bits, unpack_bits, write_bits


def test_read_bits_lsb_first_two_bit_fields():
    buf = bytes([0b10110100])
    assert [read_bits(buf, i, 2) for i in range(4)] == [0, 1, 3, 2]


def test_read_bits_crosses_byte_boundary():
    buf = bytearray(2)
    write_bits(buf, 2, 3, 0b101)   # bits 6..8
    assert buf == bytearray([0x40, 0x01])
    assert read_bits(buf, 2, 3) == 5


def test_read_bits_missing_trailing_byte_reads_zero():
    # field spans bits 6..8; byte 1 does not exist
    assert read_bits(b"\xff", 2, 3) == 3
    assert read_bits(b"", 0, 4) == 0


def test_write_bits_keeps_neighbouring_fields():
    buf = bytearray(1)
    write_bits(buf, 0, 3, 7)
    write_bits(buf, 1, 3, 0)
    write_bits(buf, 1, 3, 2)
    assert buf[0] == 0b00010111
    assert read_bits(buf, 0, 3) == 7
    assert read_bits(buf, 1, 3) == 2


def test_write_bits_drops_bits_past_end():
    buf = bytearray(1)
    write_bits(buf, 2, 3, 0b111)
    assert buf == bytearray([0xC0])


@pytest.mark.parametrize("bit_depth", [1, 2, 3, 4, 5, 7, 8, 10, 12, 16])
def test_vectorised_pack_matches_scalar(bit_depth):
    rng = np.random.default_rng(bit_depth)
    values = rng.integers(0, 1 << bit_depth, size=1024, dtype=np.uint32)
    nbytes = bit_depth * 128

    packed = pack_bits(values, bit_depth, nbytes)
    assert len(packed) == nbytes

    scalar = bytearray(nbytes)
    for i, v in enumerate(values.tolist()):
        write_bits(scalar, i, bit_depth, v)
    assert packed == bytes(scalar)

    assert np.array_equal(unpack_bits(packed, 1024, bit_depth), values)
    assert [read_bits(packed, i, bit_depth) for i in range(0, 1024, 97)] == values[::97].tolist()


def test_unpack_bits_zero_pads_short_buffer():
    out = unpack_bits(b"\xff", 4, 4)
    assert out.tolist() == [15, 15, 0, 0]


def test_zero_depth_is_empty():
    assert pack_bits(np.zeros(1024), 0, 0) == b""
    assert unpack_bits(b"", 8, 0).tolist() == [0] * 8
