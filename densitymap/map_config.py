"""
Value names from a map's XML configuration.

The map XML (found through modDesc.xml / dlcDesc.xml, or mapXX.xml beside the
.i3d) points at per-map config files. Each lookup tries the map's own file
first, then the base game file under --data-dir. Paths starting with $data/
are relative to the data directory; other paths are relative to the mod root.
Missing or unreadable files leave the corresponding list empty.
"""
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Options = List[Tuple[int, str]]

DATA_PREFIX = "$data/"
BASE_FILL_TYPES = "maps/maps_densityMapHeightTypes.xml"
BASE_FIELD_GROUND = "maps/maps_fieldGround.xml"


@dataclass
class MapConfig:
    fill_types: Options = field(default_factory=list)     # densityMap_height, index -> name
    ground_types: Options = field(default_factory=list)   # densityMap_ground, value -> name
    spray_types: Options = field(default_factory=list)
    farmlands: Options = field(default_factory=list)      # infoLayer_farmlands, id -> label


def read_xml(path) -> Optional[ET.Element]:
    try:
        return ET.parse(path).getroot()
    except FileNotFoundError:
        return None
    except (ET.ParseError, OSError) as e:
        logger.warning("Skipping %s: %s", path, e)
        return None


def readable_name(name: str) -> str:
    """UPPER_SNAKE or camelCase -> 'Title Case Words'."""
    if "_" in name or name.isupper():
        return " ".join(w[:1].upper() + w[1:].lower() for w in name.split("_"))
    out = []
    for i, c in enumerate(name):
        if i and c.isupper():
            out.append(" ")
        out.append(c.upper() if i == 0 else c)
    return "".join(out)


def find_mod_root(start: Path) -> Optional[Tuple[Path, Path]]:
    """(directory, descriptor) of the nearest modDesc.xml / dlcDesc.xml."""
    for d in (start, *start.parents):
        for desc in ("modDesc.xml", "dlcDesc.xml"):
            if (d / desc).is_file():
                return d, d / desc
    return None


def find_maps_xml(i3d_dir: Path) -> Optional[Path]:
    found = find_mod_root(i3d_dir)
    if found is not None:
        mod_root, desc = found
        root = read_xml(desc)
        if root is not None:
            for el in root.iter("map"):
                cfg = el.get("configFilename")
                if cfg and (mod_root / cfg).is_file():
                    return mod_root / cfg

    # base game layout: mapUS.xml next to mapUS.i3d, but not mapUS_foo.xml
    for p in sorted(i3d_dir.glob("map*.xml")):
        if "_" not in p.name and ".i3d" not in p.name:
            return p
    return None


def resolve_path(filename: str, mod_root: Optional[Path], data_dir) -> Optional[Path]:
    if filename.startswith(DATA_PREFIX):
        if data_dir is None:
            return None
        return Path(data_dir) / filename[len(DATA_PREFIX):]
    if mod_root is None:
        return None
    return mod_root / filename


def config_filename(maps_root, element_name: str) -> Optional[str]:
    if maps_root is None:
        return None
    for el in maps_root.iter(element_name):
        if el.get("filename"):
            return el.get("filename")
    return None


def load_config(maps_root, mod_root, data_dir, element_name: str, base_path: str,
                parser: Callable[[ET.Element], object], loaded=bool):
    """
    Parse the map's own <element_name filename=...> file, falling back to
    data_dir/base_path. 'loaded' decides whether a parse result counts.
    """
    candidates = []
    filename = config_filename(maps_root, element_name)
    if filename:
        candidates.append(resolve_path(filename, mod_root, data_dir))
    if base_path and data_dir is not None:
        candidates.append(Path(data_dir) / base_path)

    for path in candidates:
        if path is None:
            continue
        root = read_xml(path)
        if root is None:
            continue
        result = parser(root)
        if loaded(result):
            logger.info("Loaded %s from %s", element_name, path)
            return result
    return None


def parse_fill_types(root) -> Options:
    names = [el.get("fillTypeName") for el in root.iter("densityMapHeightType")]
    names = [n for n in names if n]
    if not names:
        return []
    return [(0, "Empty")] + [(i, readable_name(n)) for i, n in enumerate(names, start=1)]


def _valued_children(root, section: str, zero_name: str) -> Options:
    out = [(0, zero_name)]
    for sec in root.iter(section):
        for el in sec:
            try:
                out.append((int(el.get("value")), readable_name(el.tag)))
            except (TypeError, ValueError):
                continue
    return out if len(out) > 1 else []


def parse_ground_types(root) -> Options:
    return _valued_children(root, "groundTypes", "Natural")


def parse_spray_types(root) -> Options:
    return _valued_children(root, "sprayTypes", "None")


def parse_field_ground(root) -> Tuple[Options, Options]:
    return parse_ground_types(root), parse_spray_types(root)


def parse_farmlands(root) -> Options:
    out = []
    for el in root.iter("farmland"):
        try:
            fid = int(el.get("id"))
        except (TypeError, ValueError):
            continue
        starting = el.get("defaultFarmProperty") == "true"
        out.append((fid, f"Farmland {fid} (starting)" if starting else f"Farmland {fid}"))
    if not out:
        return []
    return [(0, "Not owned")] + sorted(out)


def load_map_config(i3d_path, data_dir=None) -> MapConfig:
    config = MapConfig()
    i3d_dir = Path(i3d_path).resolve().parent
    maps_xml = find_maps_xml(i3d_dir)
    maps_root = read_xml(maps_xml) if maps_xml is not None else None
    # maps.xml lives in <mod>/maps/
    mod_root = maps_xml.parent.parent if maps_xml is not None else None
    if maps_xml is not None:
        logger.info("Map config: %s", maps_xml)

    config.fill_types = load_config(maps_root, mod_root, data_dir, "densityMapHeightTypes",
                                    BASE_FILL_TYPES, parse_fill_types) or []
    ground = load_config(maps_root, mod_root, data_dir, "fieldGround", BASE_FIELD_GROUND,
                         parse_field_ground, loaded=lambda r: bool(r[0]))
    if ground is not None:
        config.ground_types, config.spray_types = ground
    # farmlands have no base game fallback
    config.farmlands = load_config(maps_root, mod_root, data_dir, "farmlands", "",
                                   parse_farmlands) or []
    return config
