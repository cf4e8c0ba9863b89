"""
Markdown guide to the pixel values of a map's info and density layers.

For every InfoLayer (GRLE), DetailLayer and FoliageMultiLayer (GDM) in the
.i3d, the guide lists the channel groups and the gray / RGB colour to paint
for each value. Value names come from the .i3d Groups/Options, from the
map's XML config (see map_config) and, for foliage, from the foliage XML
files; otherwise built-in defaults are used.

  python -m densitymap.pixel_guide --i3d mapUS.i3d --output guide.md --data-dir /game/data
"""
import argparse
import logging
import os
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .dispatch import RGB_CHANNEL_THRESHOLD
from .i3d import basename, file_table, int_attr, load_i3d
from .logging_config import configure_logging
from .map_config import MapConfig, Options, load_map_config, read_xml, readable_name, resolve_path

logger = logging.getLogger(__name__)

GROUND_LAYER = "terrainDetail"
HEIGHT_LAYER = "terrainDetailHeight"

HEIGHT_SAMPLES = (0, 1, 10, 25, 50, 63, 100, 127, 200, 255)

# (combined value, description) rows of the ground layer's example table
GROUND_EXAMPLES = (
    (0, "Empty/Natural ground"),
    (7, "Sown field"),
    (7 + 128, "Sown + Fertilized"),
    (7 + 256, "Sown + Manure"),
    (7 + 384, "Sown + Slurry"),
    (7 + 512, "Sown + Lime"),
    (4, "Plowed"),
    (4 + 128, "Plowed + Fertilized"),
    (2, "Cultivated"),
    (3, "Seedbed"),
    (14, "Grass"),
    (15, "Grass (cut)"),
    (12, "Harvest-ready"),
)

# (R fill type, G height, description)
HEIGHT_EXAMPLES = (
    (0, 0, "Empty"),
    (1, 32, "Wheat pile ~2m"),
    (20, 63, "Straw pile ~4m"),
    (29, 16, "Stone pile ~1m"),
    (18, 48, "Grass pile ~3m"),
)

COMMON_CROPS = ((6, "Wheat"), (7, "Canola"), (8, "Barley"), (9, "Maize"), (5, "Grass"))
COMMON_STATES = ((4, "harvest-ready"), (2, "small"))

DEFAULT_GROWTH_STATES = (
    (0, "None/Empty"),
    (1, "Invisible (just planted)"),
    (2, "Small growth stage 1"),
    (3, "Small growth stage 2"),
    (4, "Medium growth stage 1"),
    (5, "Medium growth stage 2"),
    (6, "Large growth stage 1"),
    (7, "Large growth stage 2"),
    (8, "Harvest ready"),
    (9, "Withered/Dead"),
    (10, "Cut/Harvested"),
)

_WEED_STATES = (
    (0, "None"),
    (1, "Sparse (invisible)"),
    (2, "Dense start (invisible)"),
    (3, "Small weed (visible)"),
    (4, "Medium weed"),
    (5, "Large weed"),
    (6, "Very large weed"),
    (7, "Herbicided (from small)"),
    (8, "Herbicided (from medium)"),
    (9, "Herbicided (from large)"),
)
_STONE_STATES = (
    (0, "None"),
    (1, "Mask (picked area marker)"),
    (2, "Small stones (pickable)"),
    (3, "Medium stones (pickable)"),
    (4, "Large stones (pickable)"),
    (5, "Picked (transitioning)"),
    (6, "Recently cleared (regenerating)"),
    (7, "Reserved"),
)
_BUSH_STATES = ((0, "None"), (1, "Small bush"), (2, "Medium bush"), (3, "Large bush"))

SINGLE_LAYER_STATES = {
    "weed": _WEED_STATES,
    "stones": _STONE_STATES,
    "stone": _STONE_STATES,
    "deco bush": _BUSH_STATES,
    "decobush": _BUSH_STATES,
}

# foliage that never carries crop growth states
NON_CROP_FOLIAGE = ("forestPlants", "waterPlants", "meadow")

# substring of the lower-cased InfoLayer name -> value names
INFO_LAYER_FLAGS = (
    ("indoor", ((0, "Outdoor"), (1, "Indoor"))),
    ("spraylevel", ((0, "Not sprayed"), (1, "Sprayed once"), (2, "Sprayed twice"),
                    (3, "Fully fertilized"))),
    ("plowlevel", ((0, "Not plowed"), (1, "Plowed"))),
    ("rollerlevel", ((0, "Not rolled"), (1, "Rolled"))),
    ("limelevel", ((0, "Needs lime"), (1, "Limed"))),
    ("stubbleshred", ((0, "Not shredded"), (1, "Shredded"))),
)


@dataclass
class ChannelGroup:
    name: str
    first_channel: int = 0
    num_channels: int = 1
    options: Options = field(default_factory=list)


@dataclass
class LayerSection:
    name: str
    filename: str
    file_type: str              # "GRLE" | "GDM"
    num_channels: int
    description: str = ""
    groups: List[ChannelGroup] = field(default_factory=list)

    @property
    def is_rgb(self) -> bool:
        return self.num_channels > RGB_CHANNEL_THRESHOLD

    @property
    def anchor(self) -> str:
        return self.name.lower().replace(" ", "-").replace("(", "").replace(")", "")


def titlecase(s: str) -> str:
    """'tipCollision' -> 'Tip Collision'; runs of capitals stay together."""
    out = []
    prev_upper = False
    for i, c in enumerate(s):
        if i == 0:
            out.append(c.upper())
        elif c.isupper() and not prev_upper:
            out.append(" " + c)
        else:
            out.append(c)
        prev_upper = c.isupper()
    return "".join(out)


def value_to_rgb(value: int, num_channels: int):
    if num_channels <= RGB_CHANNEL_THRESHOLD:
        v = value & 0xFF
        return v, v, v
    return value & 0xFF, (value >> 8) & 0xFF, (value >> 16) & 0xFF


# ---------------------------------------------------------------------------
# i3d layers -> sections
# ---------------------------------------------------------------------------

def layer_filename(files, file_id, fallback: str) -> str:
    """Density file name for a layer; PNG sources map to their .grle / .gdm."""
    fn = files.get(file_id)
    if not fn:
        return fallback
    name = basename(fn)
    if name.endswith(".png"):
        stem = name[:-4]
        if "infoLayer" in stem:
            return stem + ".grle"
        if "densityMap" in stem:
            return stem + ".gdm"
    return name


def read_groups(layer) -> List[ChannelGroup]:
    groups = []
    for g in layer.iter("Group"):
        options = [(int_attr(o, "value", 0), o.get("name", "")) for o in g.iter("Option")]
        groups.append(ChannelGroup(name=g.get("name", ""),
                                   first_channel=int_attr(g, "firstChannel", 0),
                                   num_channels=int_attr(g, "numChannels", 1),
                                   options=options))
    return groups


def info_layer_options(name: str, num_channels: int, config: MapConfig) -> Options:
    n = name.lower()
    if "farmland" in n:
        return list(config.farmlands) or [(0, "Not owned"), (255, "Special area")]
    if "navigationcollision" in n:
        return [(0, "Navigable"), (1, "Blocked")]
    if "collision" in n:
        opts = [(0, "Default (passable)"), (1, "Blocked")]
        if "tipcollisiongenerated" in n and num_channels >= 2:
            opts.append((2, "Blocked Wall"))
        return opts
    for key, opts in INFO_LAYER_FLAGS:
        if key in n:
            return list(opts)
    if "weed" in n and "density" not in n:
        return [(0, "No weeds"), (1, "Has weeds")]
    if num_channels <= 1:
        return [(0, "Off"), (1, "On")]
    return []


def info_sections(root, files, config: MapConfig) -> List[LayerSection]:
    sections = []
    for el in root.iter("InfoLayer"):
        name = el.get("name", "")
        n = int_attr(el, "numChannels", 1)
        section = LayerSection(name=f"{titlecase(name)} (InfoLayer)",
                               filename=layer_filename(files, el.get("fileId"),
                                                       f"infoLayer_{name}.grle"),
                               file_type="GRLE", num_channels=n, groups=read_groups(el))
        if not section.groups:
            opts = info_layer_options(name, n, config)
            if opts:
                section.groups.append(ChannelGroup("Values", 0, n, opts))
        sections.append(section)
    return sections


def _is_base_type(g: ChannelGroup) -> bool:
    return "GroundType" in g.name or ("Type" in g.name and g.first_channel == 0)


def _add_height_groups(section: LayerSection, el, config: MapConfig):
    height_first = int_attr(el, "heightFirstChannel", 8)
    height_num = int_attr(el, "heightNumChannels", 8)
    combined = [int(x) for x in el.get("combinedValuesChannels", "").split() if x.isdigit()]
    type_channels = combined[1] if len(combined) >= 2 else height_first
    try:
        max_height = float(el.get("maxHeight", "4"))
    except ValueError:
        max_height = 4.0
    max_val = (1 << height_num) - 1
    per_unit = max_height / max_val

    section.description = (
        "Height data for terrain fill (piles).\n\n"
        f"- **Fill Type**: Bits 0-{type_channels - 1} "
        f"(R channel, values 0-{(1 << type_channels) - 1})\n"
        f"- **Height**: Bits {height_first}-{height_first + height_num - 1} "
        f"(G channel, values 0-{max_val}, representing 0-{max_height:.1f}m)\n\n"
        f"Paint R with fill type index, G with height value (each unit = {per_unit:.3f}m)."
    )
    if config.fill_types:
        section.groups.append(ChannelGroup("Fill Type (R channel)", 0, type_channels,
                                           list(config.fill_types)))
    else:
        section.description += (
            "\n\n**Note:** Fill type definitions not found. Use `--data-dir` to point "
            "at the base game data folder for fill type names.")

    samples = []
    for h in HEIGHT_SAMPLES:
        if h > max_val:
            continue
        if h == 0:
            desc = "Empty"
        elif h == max_val:
            desc = f"{max_height:.1f}m (max)"
        else:
            desc = f"{h * per_unit:.2f}m"
        samples.append((h, desc))
    # raw G value, not shifted into place
    section.groups.append(ChannelGroup("Height (G channel value)", 0, height_num, samples))


def detail_sections(root, files, config: MapConfig) -> List[LayerSection]:
    display = {GROUND_LAYER: "Ground (terrainDetail)",
               HEIGHT_LAYER: "Height (terrainDetailHeight)"}
    sections = []
    for el in root.iter("DetailLayer"):
        name = el.get("name", "")
        section = LayerSection(name=display.get(name, f"{titlecase(name)} (DetailLayer)"),
                               filename=layer_filename(files, el.get("densityMapId"),
                                                       f"densityMap_{name}.gdm"),
                               file_type="GDM",
                               num_channels=int_attr(el, "numDensityMapChannels", 1),
                               groups=read_groups(el))
        if name == GROUND_LAYER:
            # Groups declared without Options take their names from fieldGround
            for g in section.groups:
                if g.options:
                    continue
                if _is_base_type(g):
                    g.options = list(config.ground_types)
                elif "Spray" in g.name:
                    g.options = list(config.spray_types)
        if name == HEIGHT_LAYER and not section.groups:
            _add_height_groups(section, el, config)
        sections.append(section)
    return sections


def parse_foliage_states(root) -> Options:
    states = [(0, "None/Empty")]
    for el in root.iter("foliageState"):
        name = el.get("name")
        if not name:
            continue
        desc = readable_name(name)
        if el.get("isHarvestReady") == "true":
            desc += " (harvest ready)"
        elif el.get("isWithered") == "true":
            desc += " (withered)"
        elif el.get("isCut") == "true":
            desc += " (cut)"
        elif el.get("isGrowing") == "true" and "invisible" not in desc.lower():
            desc += " (growing)"
        states.append((len(states), desc))
    return states


def foliage_xml_states(xml_id, files, i3d_dir: Path, data_dir) -> Optional[Options]:
    fn = files.get(xml_id)
    if not fn:
        return None
    path = resolve_path(fn, i3d_dir, data_dir)
    if path is None:
        return None
    root = read_xml(path)
    if root is None:
        return None
    states = parse_foliage_states(root)
    return states if len(states) > 1 else None


def crop_states(types, files, i3d_dir, data_dir) -> Options:
    for name, xml_id in types:
        if name.startswith("deco") or name in NON_CROP_FOLIAGE:
            continue
        states = foliage_xml_states(xml_id, files, i3d_dir, data_dir)
        if states:
            return states
    return list(DEFAULT_GROWTH_STATES)


def single_foliage_states(types, files, i3d_dir, data_dir, layer_name: str) -> Options:
    if types:
        states = foliage_xml_states(types[0][1], files, i3d_dir, data_dir)
        if states:
            return states
    known = SINGLE_LAYER_STATES.get(layer_name.lower())
    if known is not None:
        return list(known)
    return [(0, "None")] + [(i, f"State {i}") for i in range(1, 16)]


def foliage_layer_name(names: List[str]) -> str:
    if len(names) == 1:
        return titlecase(names[0])
    if "weed" in names:
        return "Weed"
    if "stone" in names:
        return "Stones"
    if "wheat" in names or "grass" in names:
        return "Fruits/Foliage"
    return f"Foliage ({', '.join(names)})"


def foliage_sections(root, files, i3d_dir: Path, data_dir=None) -> List[LayerSection]:
    sections = []
    for el in root.iter("FoliageMultiLayer"):
        dm_id = el.get("densityMapId", "")
        n = int_attr(el, "numChannels", 0)
        type_bits = int_attr(el, "numTypeIndexChannels", 0)
        types = [(ft.get("name", ""), ft.get("foliageXmlId", "")) for ft in el.iter("FoliageType")]
        layer_name = foliage_layer_name([t[0] for t in types])

        groups = []
        description = ""
        if type_bits > 0:
            groups.append(ChannelGroup("Foliage Type Index", 0, type_bits,
                                       [(i, titlecase(t[0])) for i, t in enumerate(types)]))
            if n > type_bits:
                groups.append(ChannelGroup("Growth State", type_bits, n - type_bits,
                                           crop_states(types, files, i3d_dir, data_dir)))
            description = (f"Contains {len(types)} foliage types. Lower {type_bits} bits = "
                           f"type index, upper {n - type_bits} bits = growth state.")
        else:
            states = single_foliage_states(types, files, i3d_dir, data_dir, layer_name)
            groups.append(ChannelGroup("State", 0, n, states))

        sections.append(LayerSection(name=f"{layer_name} (FoliageLayer)",
                                     filename=layer_filename(files, dm_id,
                                                             f"densityMap_{dm_id}.gdm"),
                                     file_type="GDM", num_channels=n,
                                     description=description, groups=groups))
    return sections


def collect_sections(i3d_path, data_dir=None, config: Optional[MapConfig] = None):
    root = load_i3d(i3d_path)
    files = file_table(root)
    if config is None:
        config = load_map_config(i3d_path, data_dir)
    i3d_dir = Path(i3d_path).resolve().parent
    return (info_sections(root, files, config)
            + detail_sections(root, files, config)
            + foliage_sections(root, files, i3d_dir, data_dir))


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------

def _row(value: int, meaning: str, num_channels: int) -> str:
    if num_channels > RGB_CHANNEL_THRESHOLD:
        r, g, b = value_to_rgb(value, num_channels)
        return f"| `{r}, {g}, {b}` | `#{r:02X}{g:02X}{b:02X}` | {meaning} |"
    return f"| `{value}` | `#{value:02X}` | {meaning} |"


def _head(num_channels: int, label: str) -> List[str]:
    first = "RGB" if num_channels > RGB_CHANNEL_THRESHOLD else "Gray"
    return [f"| {first} | Hex | {label} |", "|------|-----|------|"]


def _value_table(lines, group: ChannelGroup, num_channels: int, label="Meaning", shift=True):
    lines += _head(num_channels, label)
    for value, name in group.options:
        v = value << group.first_channel if shift else value
        lines.append(_row(v, name, num_channels))
    lines.append("")


def _addend_table(lines, group: ChannelGroup, num_channels: int, label: str):
    """Values to add to a base colour, one row per option."""
    if num_channels > RGB_CHANNEL_THRESHOLD:
        lines += [f"| R | G | B | {label} |", "|---|---|---|------|"]
        for value, name in group.options:
            r, g, b = value_to_rgb(value << group.first_channel, num_channels)
            lines.append(f"| `+{r}` | `+{g}` | `+{b}` | {name} |")
    else:
        lines += [f"| Add to Gray | {label} |", "|-------------|------|"]
        for value, name in group.options:
            lines.append(f"| `+{value << group.first_channel}` | {name} |")
    lines.append("")


def _find(groups, *keys) -> Optional[ChannelGroup]:
    for g in groups:
        if any(k in g.name for k in keys):
            return g
    return None


def _height_tables(lines, s: LayerSection):
    fill = _find(s.groups, "Fill Type")
    height = _find(s.groups, "Height")
    if fill is not None:
        lines += ["### Fill Types (R channel)", "", "Paint the R (red) channel with these values:", "",
                  "| R | Hex | Fill Type |", "|---|-----|-----------|"]
        lines += [f"| `{v}` | `#{v:02X}` | {name} |" for v, name in fill.options]
        lines.append("")
    if height is not None:
        lines += ["### Height Values (G channel)", "", "Paint the G (green) channel with these values:", "",
                  "| G | Hex | Height |", "|---|-----|--------|"]
        lines += [f"| `{v}` | `#{v:02X}` | {name} |" for v, name in height.options]
        lines.append("")
    lines += ["### Example Complete Colors", "",
              "| R | G | B | Hex | Description |", "|---|---|---|-----|-------------|"]
    lines += [f"| `{r}` | `{g}` | `0` | `#{r:02X}{g:02X}00` | {desc} |" for r, g, desc in HEIGHT_EXAMPLES]
    lines.append("")


def _ground_tables(lines, s: LayerSection):
    ground = next((g for g in s.groups if _is_base_type(g)), None)
    spray = _find(s.groups, "Spray")
    water = _find(s.groups, "Water")
    ch = s.num_channels

    lines += ["### Ground Types (base colors)", "",
              "These are the base colors for each ground type. Add spray/water values to these.", ""]
    if ground is not None:
        _value_table(lines, ground, ch, "Ground Type", shift=False)
    if spray is not None:
        lines += ["### Spray Types (add to ground type)", "",
                  "Add these values to the ground type color.", ""]
        _addend_table(lines, spray, ch, "Spray Type")
    if water is not None:
        lines += ["### Watered Flag (add to ground type)", ""]
        for value, name in water.options:
            if value <= 0:
                continue
            shifted = value << water.first_channel
            if s.is_rgb:
                r, g, b = value_to_rgb(shifted, ch)
                lines += [f"Add R=`+{r}`, G=`+{g}`, B=`+{b}` for: {name}", ""]
            else:
                lines += [f"Add `+{shifted}` for: {name}", ""]

    lines += ["### Common Complete Colors", ""] + _head(ch, "Description")
    lines += [_row(v, desc, ch) for v, desc in GROUND_EXAMPLES]
    lines.append("")


def _fruit_tables(lines, s: LayerSection) -> bool:
    types = _find(s.groups, "Type")
    states = _find(s.groups, "State", "Growth")
    if types is None or states is None:
        return False
    ch = s.num_channels

    lines += ["### Crop/Foliage Types (base colors)", ""]
    _value_table(lines, types, ch, "Type", shift=False)
    lines += ["### Growth States (add to type)", "", "Add these values to the crop type color.", ""]
    _addend_table(lines, states, ch, "Growth State")

    lines += ["### Common Complete Colors", ""] + _head(ch, "Description")
    for crop_value, crop in COMMON_CROPS:
        for state_value, state in COMMON_STATES:
            lines.append(_row(crop_value + (state_value << states.first_channel),
                              f"{crop} ({state})", ch))
    lines.append("")
    return True


def _environment_tables(lines, s: LayerSection):
    area = next((g for g in s.groups if "Area" in g.name or _is_base_type(g)), None)
    water = _find(s.groups, "Water")
    wet = next(((v, n) for v, n in water.options if v > 0), None) if water is not None else None

    if area is not None:
        lines += ["### Area Types", "", "| Gray | Hex | Area Type |", "|------|-----|------|"]
        lines += [_row(v, name, 1) for v, name in area.options]
        lines.append("")
    if wet is not None:
        lines += ["### Water Proximity", "",
                  f"Add `+{1 << water.first_channel}` to any area type for: {wet[1]}", ""]

    lines += ["### Complete Values", "", "| Gray | Hex | Description |", "|------|-----|------|"]
    if area is not None:
        for value, name in area.options:
            lines.append(_row(value, name, 1))
            if wet is not None:
                lines.append(_row(value + (wet[0] << water.first_channel), f"{name} + {wet[1]}", 1))
    lines.append("")


def _section_tables(lines, s: LayerSection):
    if "Height" in s.name and HEIGHT_LAYER in s.name:
        _height_tables(lines, s)
    elif len(s.groups) == 1:
        g = s.groups[0]
        lines += [f"### {g.name or 'Values'}", ""]
        _value_table(lines, g, s.num_channels, shift=False)
    elif not s.groups:
        return
    elif "Ground" in s.name and "Foliage" not in s.name:
        _ground_tables(lines, s)
    elif "Environment" in s.name:
        _environment_tables(lines, s)
    elif (("Fruits" in s.name or ("Foliage" in s.name and len(s.groups) == 2))
          and _fruit_tables(lines, s)):
        pass
    else:
        for g in s.groups:
            lines += [f"### {g.name}", ""]
            _value_table(lines, g, s.num_channels)


def render_guide(map_name: str, sections: List[LayerSection]) -> str:
    lines = [f"# Pixel Color Guide for {map_name}", "",
             "This document shows what RGB/Gray color to paint for each value in the "
             "density map and info layer PNG files.", "",
             "## Table of Contents", ""]
    lines += [f"- [{s.name}](#{s.anchor})" for s in sections]
    lines += ["", "---", ""]

    for s in sections:
        mode = "RGB" if s.is_rgb else "Grayscale"
        lines += [f"## {s.name}", "", f"**File:** `{s.filename}`", "",
                  f"**Color Mode:** {mode} ({s.num_channels} channels)", ""]
        if s.description:
            lines += [s.description, ""]
        _section_tables(lines, s)
        lines += ["---", ""]

    lines += ["## Color Format Notes", "",
              "- **Grayscale files**: Paint with the gray value shown (R=G=B=value)",
              "- **RGB files**: Paint with the exact RGB values shown",
              "- For layers with multiple attributes, find your combination in the table above",
              ""]
    return "\n".join(lines)


def generate_guide(i3d_path, data_dir=None) -> str:
    sections = collect_sections(i3d_path, data_dir)
    logger.info("%d layers in %s", len(sections), i3d_path)
    return render_guide(Path(i3d_path).stem, sections)


def main(argv=None):
    ap = argparse.ArgumentParser(description="Pixel value guide for a map's GRLE / GDM layers")
    ap.add_argument("--i3d", required=True, help="map .i3d file")
    ap.add_argument("--output", help="Markdown file to write (default: stdout)")
    ap.add_argument("--data-dir", help="base game data folder, for $data/ paths and fallbacks")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)
    # the guide itself may go to stdout
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, stream=sys.stderr)

    try:
        text = generate_guide(args.i3d, args.data_dir)
    except (ET.ParseError, OSError) as e:
        print(f"[guide] error: {e}", file=sys.stderr)
        return 1

    if args.output is None:
        sys.stdout.write(text)
        return 0
    os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as f:
        f.write(text)
    print(f"[guide] wrote {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
