"""
Bit fields of GDM block bitmaps: field i of width bd starts at bit i * bd,
least significant bit first.

read_bits / write_bits define that layout one field at a time. The block
codecs use unpack_bits / pack_bits, which do the same over a whole bitmap
and must agree with the scalar pair field for field.
"""
import numpy as np


def read_bits(buf, pixel_index: int, bit_depth: int) -> int:
    """Read one 'bit_depth'-wide field (LSB-first). Bytes past the end read as 0."""
    bit_pos = pixel_index * bit_depth
    i = bit_pos // 8
    shift = bit_pos % 8
    nbytes = (shift + bit_depth + 7) // 8
    word = 0
    for k in range(max(2, nbytes)):
        if i + k < len(buf):
            word |= buf[i + k] << (8 * k)
    return (word >> shift) & ((1 << bit_depth) - 1)


def write_bits(buf: bytearray, pixel_index: int, bit_depth: int, value: int):
    """OR 'value' into buf at the field for pixel_index; neighbouring bits are kept."""
    bit_pos = pixel_index * bit_depth
    i = bit_pos // 8
    shift = bit_pos % 8
    word = (int(value) & ((1 << bit_depth) - 1)) << shift
    k = 0
    while word:
        if i + k >= len(buf):
            break  # tail of the bitmap
        buf[i + k] |= word & 0xFF
        word >>= 8
        k += 1


def unpack_bits(buf, count: int, bit_depth: int) -> np.ndarray:
    """
    Vectorised read_bits over a whole bitmap.
    Returns uint32 array of 'count' fields; missing trailing bytes read as 0.
    """
    if bit_depth == 0:
        return np.zeros(count, dtype=np.uint32)
    need = (count * bit_depth + 7) // 8
    raw = np.frombuffer(bytes(buf[:need]), dtype=np.uint8)
    if raw.size < need:
        raw = np.concatenate([raw, np.zeros(need - raw.size, dtype=np.uint8)])
    bits = np.unpackbits(raw, bitorder="little")[: count * bit_depth]
    bits = bits.reshape(count, bit_depth).astype(np.uint32)
    weights = (np.uint32(1) << np.arange(bit_depth, dtype=np.uint32))
    return bits @ weights


def pack_bits(values: np.ndarray, bit_depth: int, nbytes: int) -> bytes:
    """Inverse of unpack_bits: LSB-first fields, zero-filled to 'nbytes'."""
    if bit_depth == 0 or nbytes == 0:
        return b""
    v = np.asarray(values, dtype=np.uint32).ravel()
    shifts = np.arange(bit_depth, dtype=np.uint32)
    bits = ((v[:, None] >> shifts) & 1).astype(np.uint8).ravel()
    packed = np.packbits(bits, bitorder="little")
    out = bytearray(nbytes)
    n = min(nbytes, packed.size)
    out[:n] = packed[:n].tobytes()
    return bytes(out)
