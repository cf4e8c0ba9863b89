"""
Encoding parameter discovery from .i3d map files.

A map references each density image through a <File fileId filename/> entry;
the layer that uses that fileId carries the channel layout:

  <InfoLayer fileId numChannels>                                   -> GRLE
  <DetailLayer densityMapId numDensityMapChannels compressionChannels> -> GDM
  <FoliageMultiLayer densityMapId numChannels compressionChannels>    -> GDM
"""
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Optional

from .dispatch import LayerParams

logger = logging.getLogger(__name__)


def find_i3d_file(start) -> Optional[Path]:
    """First *.i3d in start's directory or any parent."""
    cur = Path(start).resolve()
    if cur.is_file():
        cur = cur.parent
    for d in (cur, *cur.parents):
        try:
            hits = sorted(d.glob("*.i3d"))
        except OSError:
            continue
        if hits:
            return hits[0]
    return None


def int_attr(el, name, default=None) -> Optional[int]:
    v = el.get(name)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def basename(filename) -> str:
    """Last path component of an i3d filename attribute (either slash)."""
    return filename.replace("\\", "/").split("/")[-1]


def load_i3d(i3d_path):
    return ET.parse(i3d_path).getroot()


def file_table(root) -> Dict[str, str]:
    """fileId -> filename attribute of every <File> entry."""
    return {el.get("fileId"): el.get("filename", "") for el in root.iter("File")
            if el.get("fileId") is not None}


def _target_png(filename) -> str:
    # i3d files reference the PNG source, whatever the input extension
    return Path(filename).stem + ".png"


def parse_i3d_for_file(i3d_path, filename) -> Optional[LayerParams]:
    root = load_i3d(i3d_path)
    target = _target_png(Path(filename).name)
    logger.debug("Looking for %s in %s", target, i3d_path)

    file_id = None
    for fid, fn in file_table(root).items():
        if basename(fn) == target:
            file_id = fid
            break
    if file_id is None:
        return None
    logger.debug("Found fileId %s", file_id)

    for el in root.iter("InfoLayer"):
        if el.get("fileId") == file_id:
            n = int_attr(el, "numChannels")
            if n is not None:
                logger.info("InfoLayer with %d channels -> GRLE", n)
                return LayerParams(layer_type="info", channel_count=n)

    for tag, channels_attr in (("DetailLayer", "numDensityMapChannels"),
                               ("FoliageMultiLayer", "numChannels")):
        for el in root.iter(tag):
            if el.get("densityMapId") != file_id:
                continue
            n = int_attr(el, channels_attr)
            if n is None:
                return None
            split = int_attr(el, "compressionChannels")
            logger.info("%s with %d channels, compression split %s -> GDM", tag, n, split)
            return LayerParams(layer_type="gdm", channel_count=n, compression_split=split)
    return None


def discover_params(input_path, i3d_path=None) -> Optional[LayerParams]:
    """Parameters for input_path from an explicit or auto-discovered .i3d, or None."""
    path = Path(i3d_path) if i3d_path else find_i3d_file(input_path)
    if path is None:
        logger.info("No .i3d file found above %s", input_path)
        return None
    logger.info("Using i3d: %s", path)
    try:
        return parse_i3d_for_file(path, Path(input_path).name)
    except (ET.ParseError, OSError) as e:
        logger.warning("Could not read %s (%s); falling back to manual parameters", path, e)
        return None
