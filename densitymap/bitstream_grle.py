import struct
from dataclasses import dataclass

from .errors import InvalidImage, TruncatedInput, UnrecognizedMagic, UnsupportedVersion

MAGIC = b"GRLE"   # 4 bytes
VERSION = 1
DIM_UNIT = 256    # width/height are stored in units of 256 pixels

# Header (little-endian):
# magic(4) version(u16) width/256(u16) reserved(u16) height/256(u16)
# reserved(u8) channels(u8) reserved(u16) stored_size(u32)
HDR_FMT = "<4sHHHHBBHI"
HDR_SIZE = struct.calcsize(HDR_FMT)


@dataclass
class GrleHeader:
    version: int
    width: int
    height: int
    channels: int = 1
    stored_size: int = 0

    @property
    def payload_len(self) -> int:
        # byte 16 is always zero; bytes 17..19 hold len(token stream) - 1
        return (self.stored_size >> 8) + 1


def stored_size_for(payload_len: int) -> int:
    return ((payload_len - 1) & 0xFFFFFF) << 8


def pack_header(*, width: int, height: int, payload_len: int, channels: int = 1) -> bytes:
    if width % DIM_UNIT or height % DIM_UNIT:
        raise InvalidImage(f"GRLE dimensions must be multiples of {DIM_UNIT}, got {width}x{height}")
    return struct.pack(
        HDR_FMT, MAGIC, VERSION,
        width // DIM_UNIT, 0, height // DIM_UNIT,
        0, channels, 0, stored_size_for(payload_len)
    )


def unpack_header(data) -> GrleHeader:
    if len(data) < 4 or bytes(data[0:4]) != MAGIC:
        raise UnrecognizedMagic(f"Bad magic at offset 0: {bytes(data[0:4])!r} (not GRLE)")
    if len(data) < HDR_SIZE:
        raise TruncatedInput(f"GRLE header needs {HDR_SIZE} bytes, got {len(data)}")
    magic, ver, w, _, h, _, channels, _, stored = struct.unpack_from(HDR_FMT, data, 0)
    if ver != VERSION:
        raise UnsupportedVersion(f"Unsupported GRLE version at offset 4: {ver}")
    return GrleHeader(version=ver, width=w * DIM_UNIT, height=h * DIM_UNIT,
                      channels=channels, stored_size=stored)
