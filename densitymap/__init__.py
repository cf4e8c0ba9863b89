from .codec_gdm import decode_gdm, encode_gdm
from .codec_grle import decode_grle, encode_grle
from .dispatch import decode_bytes, decode_file, detect_format, encode_image
from .pixelgrid import PixelGrid

__version__ = "0.1.0"
