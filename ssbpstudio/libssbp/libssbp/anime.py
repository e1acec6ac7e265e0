"""libssbp.anime

Animation packs: the rig (parts), the clips, and the keyframe streams.

Two sources of keyframes:

- the clip named "Setup" is rebuilt from each part's AnimInitial record
  (default pose); only values that differ from their neutral default are
  emitted, the same way the tool only stores explicitly set attributes.
- every other clip is decoded from its frame streams.

Frame stream layout (one stream per frame, one record per part in rig order):

    int16   part index (informational, decoding is positional)
    uint32  low flags
    ...     one field per set low flag bit, ascending bit order
    ...     one field per set high flag bit (high flags come from AnimInitial)

Nothing in the stream stores a length. The bit -> field table below is the
only thing keeping the cursor in sync; a wrong width for one bit corrupts
every field after it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Callable, Dict, List, Optional, Tuple

from lxml import etree

from . import xmlout as x
from .binary import ByteView, Cursor
from .cell import CellResolver
from .errors import MalformedReferenceError, UnknownDiscriminantError
from .model import AnimEntry, AnimePack, AnimInitial, Keyframe, PartEntry, PartTrack, PartType

log = logging.getLogger(__name__)


class LowFlag(IntFlag):
    INVISIBLE = 1 << 0
    FLIP_H = 1 << 1
    FLIP_V = 1 << 2
    CELL_INDEX = 1 << 3
    POSITION_X = 1 << 4
    POSITION_Y = 1 << 5
    POSITION_Z = 1 << 6
    PIVOT_X = 1 << 7
    PIVOT_Y = 1 << 8
    ROTATION_X = 1 << 9
    ROTATION_Y = 1 << 10
    ROTATION_Z = 1 << 11
    SCALE_X = 1 << 12
    SCALE_Y = 1 << 13
    LOCALSCALE_X = 1 << 14
    LOCALSCALE_Y = 1 << 15
    OPACITY = 1 << 16
    LOCALOPACITY = 1 << 17
    PARTS_COLOR = 1 << 18
    VERTEX_TRANSFORM = 1 << 19
    SIZE_X = 1 << 20
    SIZE_Y = 1 << 21
    U_MOVE = 1 << 22
    V_MOVE = 1 << 23
    UV_ROTATION = 1 << 24
    U_SCALE = 1 << 25
    V_SCALE = 1 << 26
    BOUNDINGRADIUS = 1 << 27
    MASK = 1 << 28
    PRIORITY = 1 << 29
    INSTANCE_KEYFRAME = 1 << 30
    EFFECT_KEYFRAME = 1 << 31


class HighFlag(IntFlag):
    MESHDATA = 1 << 0


FRAME_START_SIZE = 6
INSTANCE_BLOCK_SIZE = 24
EFFECT_BLOCK_SIZE = 16

# Vertex corners, in bit order of the color / vertex masks.
CORNERS = ("LT", "RT", "LB", "RB")
VERTEX_FLAG_ALL = 0x10

OPACITY_TAGS = frozenset(("ALPH", "LALP"))

# Tags whose keys carry an interpolation type.
_STEPPED_TAGS = frozenset(("CELL", "HIDE", "FLPH", "FLPV", "IFLH", "IFLV"))


# -----------------------------
# Keyframe values that are more than one number
# -----------------------------

@dataclass(frozen=True)
class CellRef:
    map_id: int
    name: str


@dataclass
class PartsColor:
    target: str  # "whole" or "vertex"
    colors: Dict[str, Tuple[int, float]] = field(default_factory=dict)


@dataclass
class VertexOffsets:
    corners: Dict[str, Tuple[int, int]] = field(default_factory=dict)


def normalize_opacity(raw: int) -> float:
    return raw / 255


def split_reference(ref_name: str) -> Optional[Tuple[str, str]]:
    """"pack/anim" -> ("pack", "anim"); "" -> None."""
    if not ref_name:
        return None
    if "/" not in ref_name:
        raise MalformedReferenceError(f"Part reference {ref_name!r} has no '/' separator")
    pack, anim = ref_name.split("/", 1)
    return pack, anim


# -----------------------------
# Flag bit -> field table
# -----------------------------

# Field kinds. Each maps to exactly one reader below.
_FLAG = "flag"          # no payload, presence means 1
_CELL = "cell"          # int16 flat cell index
_F32 = "f32"
_U16 = "u16"
_OPACITY = "opacity"    # uint16, 0..255
_COLOR = "color"        # vertex color block
_VERTEX = "vertex"      # vertex offset block
_INSTANCE = "instance"  # fixed block, cursor advance only
_EFFECT = "effect"      # fixed block, cursor advance only

LOW_FIELDS: Tuple[Tuple[LowFlag, str, Optional[str]], ...] = (
    (LowFlag.INVISIBLE, _FLAG, "HIDE"),
    (LowFlag.FLIP_H, _FLAG, "FLPH"),
    (LowFlag.FLIP_V, _FLAG, "FLPV"),
    (LowFlag.CELL_INDEX, _CELL, "CELL"),
    (LowFlag.POSITION_X, _F32, "POSX"),
    (LowFlag.POSITION_Y, _F32, "POSY"),
    (LowFlag.POSITION_Z, _F32, "POSZ"),
    (LowFlag.PIVOT_X, _F32, "PVTX"),
    (LowFlag.PIVOT_Y, _F32, "PVTY"),
    (LowFlag.ROTATION_X, _F32, "ROTX"),
    (LowFlag.ROTATION_Y, _F32, "ROTY"),
    (LowFlag.ROTATION_Z, _F32, "ROTZ"),
    (LowFlag.SCALE_X, _F32, "SCLX"),
    (LowFlag.SCALE_Y, _F32, "SCLY"),
    (LowFlag.LOCALSCALE_X, _F32, "LSCX"),
    (LowFlag.LOCALSCALE_Y, _F32, "LSCY"),
    (LowFlag.OPACITY, _OPACITY, "ALPH"),
    (LowFlag.LOCALOPACITY, _OPACITY, "LALP"),
    (LowFlag.PARTS_COLOR, _COLOR, "PCOL"),
    (LowFlag.VERTEX_TRANSFORM, _VERTEX, "VERT"),
    (LowFlag.SIZE_X, _F32, "SIZX"),
    (LowFlag.SIZE_Y, _F32, "SIZY"),
    (LowFlag.U_MOVE, _F32, "UVTX"),
    (LowFlag.V_MOVE, _F32, "UVTY"),
    (LowFlag.UV_ROTATION, _F32, "UVRZ"),
    (LowFlag.U_SCALE, _F32, "UVSX"),
    (LowFlag.V_SCALE, _F32, "UVSY"),
    (LowFlag.BOUNDINGRADIUS, _F32, "BNDR"),
    (LowFlag.MASK, _U16, "MASK"),
    (LowFlag.PRIORITY, _U16, "PRIO"),
    (LowFlag.INSTANCE_KEYFRAME, _INSTANCE, None),
    (LowFlag.EFFECT_KEYFRAME, _EFFECT, None),
)

assert [int(f) for f, _, _ in LOW_FIELDS] == [1 << i for i in range(32)]

# (AnimInitial attribute, neutral value, tag) for the Setup clip.
SETUP_DEFAULTS: Tuple[Tuple[str, object, str], ...] = (
    ("position_x", 0.0, "POSX"),
    ("position_y", 0.0, "POSY"),
    ("position_z", 0.0, "POSZ"),
    ("pivot_x", 0.0, "PVTX"),
    ("pivot_y", 0.0, "PVTY"),
    ("rotation_x", 0.0, "ROTX"),
    ("rotation_y", 0.0, "ROTY"),
    ("rotation_z", 0.0, "ROTZ"),
    ("scale_x", 1.0, "SCLX"),
    ("scale_y", 1.0, "SCLY"),
    ("local_scale_x", 1.0, "LSCX"),
    ("local_scale_y", 1.0, "LSCY"),
    ("opacity", 255, "ALPH"),
    ("local_opacity", 255, "LALP"),
    ("uv_move_x", 0.0, "UVTX"),
    ("uv_move_y", 0.0, "UVTY"),
    ("uv_rotation", 0.0, "UVRZ"),
    ("uv_scale_x", 1.0, "UVSX"),
    ("uv_scale_y", 1.0, "UVSY"),
    ("bounding_radius", 0.0, "BNDR"),
    ("masklimen", 0, "MASK"),
    ("priority", 0, "PRIO"),
)


class TrackDecoder:
    """Turns one anime pack's clips into per-part keyframe tracks."""

    def __init__(self, view: ByteView, parts: List[PartEntry], cells: CellResolver):
        self.view = view
        self.parts = parts
        self.cells = cells
        self._readers: Dict[str, Callable[[Cursor], object]] = {
            _FLAG: lambda cur: 1,
            _CELL: lambda cur: self.cell_ref(cur.s16()),
            _F32: lambda cur: cur.f32(),
            _U16: lambda cur: cur.u16(),
            _OPACITY: lambda cur: normalize_opacity(cur.u16()),
            _COLOR: read_parts_color,
            _VERTEX: read_vertex_offsets,
            _INSTANCE: lambda cur: cur.skip(INSTANCE_BLOCK_SIZE),
            _EFFECT: lambda cur: cur.skip(EFFECT_BLOCK_SIZE),
        }

    def cell_ref(self, flat_index: int) -> Optional[CellRef]:
        hit = self.cells.lookup(flat_index)
        if hit is None:
            return None
        map_index, name = hit
        return CellRef(self.cells.map_id(map_index), name)

    def decode(self, anim: AnimEntry) -> List[PartTrack]:
        initials = anim.get_default_data(self.view, len(self.parts))
        if anim.is_setup:
            return self.decode_setup(initials)
        return self.decode_frames(anim, initials)

    def decode_setup(self, initials: List[AnimInitial]) -> List[PartTrack]:
        tracks = []
        for part, init in zip(self.parts, initials):
            track = PartTrack(part.name)
            if part.type is PartType.NORMAL:
                track.add(Keyframe(0, "CELL", self.cell_ref(init.cell_index)))
                track.add(Keyframe(0, "HIDE", 0))
            for attr, neutral, tag in SETUP_DEFAULTS:
                value = getattr(init, attr)
                if value == neutral:
                    continue
                if tag in OPACITY_TAGS:
                    value = normalize_opacity(value)
                track.add(Keyframe(0, tag, value))
            if len(track):
                tracks.append(track)
        return tracks

    def decode_frames(self, anim: AnimEntry, initials: List[AnimInitial]) -> List[PartTrack]:
        tracks = [PartTrack(p.name) for p in self.parts]
        for frame, ofs in enumerate(anim.get_frame_offsets(self.view)):
            cur = Cursor(self.view, ofs)
            for track, init in zip(tracks, initials):
                for key in self.read_part(cur, frame, init.highflag):
                    track.add(key)
        return [t for t in tracks if len(t)]

    def read_part(self, cur: Cursor, frame: int, highflag: int = 0) -> List[Keyframe]:
        """Read one part record (frame-start + fields) at the cursor."""
        _index = cur.s16()
        lowflag = cur.u32()
        keys = []
        for flag, kind, tag in LOW_FIELDS:
            if not lowflag & flag:
                continue
            value = self._readers[kind](cur)
            if tag is None:
                log.debug("frame %d: skipped %s block", frame, flag.name)
                continue
            keys.append(Keyframe(frame, tag, value))
        read_high_fields(cur, highflag)
        return keys


def read_parts_color(cur: Cursor) -> PartsColor:
    selector = cur.u16()
    mask = (selector >> 8) & 0xFF
    if mask & VERTEX_FLAG_ALL:
        color = cur.u32()
        rate = cur.f32()
        return PartsColor("whole", {"color": (color, rate)})
    value = PartsColor("vertex")
    for bit, corner in enumerate(CORNERS):
        if mask & (1 << bit):
            color = cur.u32()
            rate = cur.f32()
            value.colors[corner] = (color, rate)
    return value


def read_vertex_offsets(cur: Cursor) -> VertexOffsets:
    mask = cur.u16()
    value = VertexOffsets()
    for bit, corner in enumerate(CORNERS):
        if mask & (1 << bit):
            value.corners[corner] = (cur.s16(), cur.s16())
    return value


def read_high_fields(cur: Cursor, highflag: int) -> None:
    unknown = highflag & ~int(HighFlag.MESHDATA)
    if unknown:
        raise UnknownDiscriminantError("HighFlag", unknown, cur.tell())
    if highflag & HighFlag.MESHDATA:
        count = cur.s32()
        cur.skip(max(count, 0) * 12)
        log.debug("skipped mesh data for %d vertices", count)


# -----------------------------
# .ssae rendering
# -----------------------------

def anime_settings_to_xml(
    parent: etree._Element,
    fps: int = 30,
    frame_count: int = 11,
    canvas: Tuple[int, int] = (320, 320),
    pivot: Tuple[float, float] = (0.0, 0.0),
    start_frame: int = 0,
    end_frame: int = 10,
) -> None:
    x.text(parent, "fps", fps)
    x.text(parent, "frameCount", frame_count)
    x.text(parent, "sortMode", "prio")
    x.text(parent, "canvasSize", f"{canvas[0]} {canvas[1]}")
    x.text(parent, "pivot", x.pair(*pivot))
    x.text(parent, "bgColor", "FF323232")
    x.text(parent, "gridSize", 32)
    x.text(parent, "gridColor", "FF808080")
    x.text(parent, "ik_depth", 3)
    x.text(parent, "startFrame", start_frame)
    x.text(parent, "endFrame", end_frame)
    x.text(parent, "outStartNum", 0)


def _clip_settings(parent: etree._Element, anim: AnimEntry) -> None:
    settings = etree.SubElement(parent, "settings")
    anime_settings_to_xml(
        settings,
        fps=anim.fps,
        frame_count=anim.total_frames,
        canvas=(anim.canvas_w, anim.canvas_h),
        pivot=(anim.canvas_pivot_x, anim.canvas_pivot_y),
        start_frame=anim.start_frames,
        end_frame=anim.end_frames,
    )


def part_to_xml(parent: etree._Element, part: PartEntry) -> None:
    el = etree.SubElement(parent, "value")
    x.text(el, "name", part.name)
    x.text(el, "arrayIndex", part.index)
    x.text(el, "parentIndex", part.parent_index)
    x.text(el, "type", part.type.label)
    x.text(el, "boundsType", part.bounds_type.label)
    x.text(el, "inheritType", "parent")
    rates = etree.SubElement(el, "ineheritRates")
    for tag in ("ALPH", "FLPH", "FLPV", "HIDE", "IFLH", "IFLV"):
        x.text(rates, tag, 1 if tag == "ALPH" else 0)
    x.text(el, "alphaBlendType", part.blend_type.label)
    x.text(el, "show", 1)
    x.text(el, "locked", 0)
    x.text(el, "colorLabel", part.color_label)
    x.text(el, "maskInfluence", part.mask_influence)
    ref = split_reference(part.ref_name)
    if ref is not None:
        x.text(el, "refAnimePack", ref[0])
        x.text(el, "refAnime", ref[1])
    x.text(el, "refEffectName", part.effect_name)


def _value_to_xml(key: etree._Element, value: object) -> None:
    el = etree.SubElement(key, "value")
    if value is None:
        return
    if isinstance(value, CellRef):
        x.text(el, "mapId", value.map_id)
        x.text(el, "name", value.name)
    elif isinstance(value, PartsColor):
        x.text(el, "blendType", "mix")
        x.text(el, "target", value.target)
        for corner, (color, rate) in value.colors.items():
            c = etree.SubElement(el, corner)
            x.text(c, "rgba", f"{color:08X}")
            x.text(c, "rate", rate)
    elif isinstance(value, VertexOffsets):
        for corner in CORNERS:
            x.text(el, corner, "%d %d" % value.corners.get(corner, (0, 0)))
    else:
        el.text = x.fmt(value)


def track_to_xml(parent: etree._Element, track: PartTrack) -> None:
    el = etree.SubElement(parent, "partAnime")
    x.text(el, "partName", track.part_name)
    attrs = etree.SubElement(el, "attributes")
    for tag, keys in track.attributes.items():
        attr = etree.SubElement(attrs, "attribute", tag=tag)
        for frame, value in keys:
            key = etree.SubElement(attr, "key", time=str(frame))
            if tag not in _STEPPED_TAGS:
                key.set("ipType", "linear")
            _value_to_xml(key, value)


def anime_pack_to_xml(
    view: ByteView,
    pack: AnimePack,
    cells: CellResolver,
    cellmap_names: List[str],
) -> bytes:
    parts = pack.get_parts(view)
    anims = pack.get_anims(view)
    decoder = TrackDecoder(view, parts, cells)

    root = x.new_document("SpriteStudioAnimePack")
    settings = etree.SubElement(root, "settings")
    if anims:
        first = anims[0]
        anime_settings_to_xml(
            settings,
            fps=first.fps,
            frame_count=first.total_frames,
            canvas=(first.canvas_w, first.canvas_h),
            pivot=(first.canvas_pivot_x, first.canvas_pivot_y),
            start_frame=first.start_frames,
            end_frame=first.end_frames,
        )
    else:
        anime_settings_to_xml(settings)
    x.text(root, "name", pack.name)
    x.blank(root, "exportPath")

    model = etree.SubElement(root, "Model")
    part_list = x.container(model, "partList")
    for part in parts:
        part_to_xml(part_list, part)
    x.empty(model, "boneList")
    x.empty(model, "meshList")

    x.name_list(root, "cellmapNames", cellmap_names)

    anime_list = x.container(root, "animeList")
    for anim in anims:
        el = etree.SubElement(anime_list, "anime")
        x.text(el, "name", anim.name)
        x.text(el, "overrideSettings", 1)
        _clip_settings(el, anim)
        labels = x.container(el, "labels")
        for label in anim.get_labels(view):
            lv = etree.SubElement(labels, "value")
            x.text(lv, "name", label.name)
            x.text(lv, "time", label.time)
        part_animes = x.container(el, "partAnimes")
        for track in decoder.decode(anim):
            track_to_xml(part_animes, track)
        x.text(el, "isSetup", 1 if anim.is_setup else 0)
    return x.serialize(root)
