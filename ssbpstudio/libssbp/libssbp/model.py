from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Dict, List, Optional, Tuple, Type, TypeVar

from .binary import ByteView, Layout, Ref, StrRef
from .errors import UnknownDiscriminantError

E = TypeVar("E", bound=IntEnum)


# -----------------------------
# Enumerations stored as 16-bit ordinals.
#
# `label` is the spelling the authoring tool writes into its documents,
# including its own typos ("nearlest", "Emmiter").
# -----------------------------

class TexWrapMode(IntEnum):
    CLAMP = 0
    REPEAT = 1
    MIRROR = 2

    @property
    def label(self) -> str:
        return self.name.lower()


class TexFilterMode(IntEnum):
    NEAREST = 0
    LINEAR = 1

    @property
    def label(self) -> str:
        return "nearlest" if self is TexFilterMode.NEAREST else "linear"


class PartType(IntEnum):
    NULL = 0
    NORMAL = 1
    TEXT = 2
    INSTANCE = 3
    ARMATURE = 4
    EFFECT = 5
    MESH = 6
    MOVENODE = 7
    CONSTRAINT = 8
    MASK = 9
    JOINT = 10
    BONEPOINT = 11

    @property
    def label(self) -> str:
        return self.name.lower()


class BoundsType(IntEnum):
    NONE = 0
    QUAD = 1
    AABB = 2
    CIRCLE = 3
    CIRCLE_SMIN = 4
    CIRCLE_SMAX = 5

    @property
    def label(self) -> str:
        return self.name.lower()


class BlendType(IntEnum):
    MIX = 0
    MUL = 1
    ADD = 2
    SUB = 3
    MULALPHA = 4
    SCREEN = 5
    EXCLUSION = 6
    INVERT = 7

    @property
    def label(self) -> str:
        return self.name.lower()


class EffectNodeType(IntEnum):
    ROOT = 0
    EMITTER = 1
    PARTICLE = 2

    @property
    def label(self) -> str:
        return {0: "Root", 1: "Emmiter", 2: "Particle"}[int(self)]


class RenderBlendType(IntEnum):
    MIX = 0
    ADD = 1

    @property
    def label(self) -> str:
        return self.name.capitalize()


def decode_enum(enum_cls: Type[E], value: int, offset: Optional[int] = None) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise UnknownDiscriminantError(enum_cls.__name__, value, offset) from None


# -----------------------------
# Fixed-size records. Each one names its layout; ByteView.value() unpacks
# the layout and hands the raw tuple to from_fields().
# -----------------------------

@dataclass
class CellMap:
    LAYOUT: ClassVar[Layout] = Layout("CellMap", "<2I3H2x", 0x10)

    offset: int
    name: str
    image_path: str
    index: int
    wrap_mode: TexWrapMode
    filter_mode: TexFilterMode

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "CellMap":
        return cls(
            offset=offset,
            name=StrRef(f[0]).value(view),
            image_path=StrRef(f[1]).value(view),
            index=f[2],
            wrap_mode=decode_enum(TexWrapMode, f[3], offset),
            filter_mode=decode_enum(TexFilterMode, f[4], offset),
        )


@dataclass
class CellEntry:
    LAYOUT: ClassVar[Layout] = Layout("CellEntry", "<2I5H2x6f", 0x2C)

    offset: int
    name: str
    cell_map: Ref[CellMap]
    index: int
    x: int
    y: int
    width: int
    height: int
    pivot_x: float
    pivot_y: float
    u1: float
    v1: float
    u2: float
    v2: float

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "CellEntry":
        return cls(offset, StrRef(f[0]).value(view), Ref(f[1], CellMap), *f[2:])

    def get_cell_map(self, view: ByteView) -> CellMap:
        return self.cell_map.value(view)


@dataclass
class PartEntry:
    LAYOUT: ClassVar[Layout] = Layout("PartEntry", "<I2h3H2x3IH2x", 0x20)

    name: str
    index: int
    parent_index: int
    type: PartType
    bounds_type: BoundsType
    blend_type: BlendType
    ref_name: str
    effect_name: str
    color_label: str
    mask_influence: int

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "PartEntry":
        return cls(
            name=StrRef(f[0]).value(view),
            index=f[1],
            parent_index=f[2],
            type=decode_enum(PartType, f[3], offset),
            bounds_type=decode_enum(BoundsType, f[4], offset),
            blend_type=decode_enum(BlendType, f[5], offset),
            ref_name=StrRef(f[6]).value(view),
            effect_name=StrRef(f[7]).value(view),
            color_label=StrRef(f[8]).value(view),
            mask_influence=f[9],
        )


@dataclass
class AnimInitial:
    """Default pose of one part; backs the Setup clip and the high flags."""

    LAYOUT: ClassVar[Layout] = Layout("AnimInitial", "<2H2IHh4H20f4ifi2ifi", 0x90)

    index: int
    lowflag: int
    highflag: int
    priority: int
    cell_index: int
    opacity: int
    local_opacity: int
    masklimen: int
    position_x: float
    position_y: float
    position_z: float
    pivot_x: float
    pivot_y: float
    rotation_x: float
    rotation_y: float
    rotation_z: float
    scale_x: float
    scale_y: float
    local_scale_x: float
    local_scale_y: float
    size_x: float
    size_y: float
    uv_move_x: float
    uv_move_y: float
    uv_rotation: float
    uv_scale_x: float
    uv_scale_y: float
    bounding_radius: float
    instance: Tuple[int, int, int, int, float, int]
    effect: Tuple[int, int, float, int]

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "AnimInitial":
        # f[1] and f[9] are reserved
        head = (f[0], f[2], f[3], f[4], f[5], f[6], f[7], f[8])
        return cls(*head, *f[10:30], instance=tuple(f[30:36]), effect=tuple(f[36:40]))


@dataclass
class LabelEntry:
    LAYOUT: ClassVar[Layout] = Layout("LabelEntry", "<IH2x", 0x08)

    name: str
    time: int

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "LabelEntry":
        return cls(StrRef(f[0]).value(view), f[1])


@dataclass
class AnimEntry:
    LAYOUT: ClassVar[Layout] = Layout("AnimEntry", "<7I7H2x2f", 0x34)

    name: str
    default_data: Ref[AnimInitial]
    frame_data: int
    user_data: int
    label_data: Ref[LabelEntry]
    mesh_data_uv: int
    mesh_data_indices: int
    start_frames: int
    end_frames: int
    total_frames: int
    fps: int
    label_num: int
    canvas_w: int
    canvas_h: int
    canvas_pivot_x: float
    canvas_pivot_y: float

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "AnimEntry":
        return cls(
            StrRef(f[0]).value(view),
            Ref(f[1], AnimInitial),
            f[2],
            f[3],
            Ref(f[4], LabelEntry),
            *f[5:],
        )

    @property
    def is_setup(self) -> bool:
        return self.name == "Setup"

    def get_default_data(self, view: ByteView, num_parts: int) -> List[AnimInitial]:
        return self.default_data.array(view, num_parts)

    def get_frame_offsets(self, view: ByteView) -> List[int]:
        return view.scalars(self.frame_data, "I", self.total_frames)

    def get_labels(self, view: ByteView) -> List[LabelEntry]:
        return self.label_data.array(view, self.label_num)


@dataclass
class AnimePack:
    LAYOUT: ClassVar[Layout] = Layout("Anime", "<3I2H", 0x10)

    name: str
    parts: Ref[PartEntry]
    anims: Ref[AnimEntry]
    part_count: int
    anim_count: int

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "AnimePack":
        return cls(StrRef(f[0]).value(view), Ref(f[1], PartEntry), Ref(f[2], AnimEntry), f[3], f[4])

    def get_parts(self, view: ByteView) -> List[PartEntry]:
        return self.parts.array(view, self.part_count)

    def get_anims(self, view: ByteView) -> List[AnimEntry]:
        return self.anims.array(view, self.anim_count)


@dataclass
class Node:
    LAYOUT: ClassVar[Layout] = Layout("Node", "<2hHhHHI", 0x10)

    offset: int
    array_index: int
    parent_index: int
    type: EffectNodeType
    cell_index: int
    blend_type: RenderBlendType
    num_behavior: int
    behaviors: int

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "Node":
        return cls(
            offset,
            f[0],
            f[1],
            decode_enum(EffectNodeType, f[2], offset),
            f[3],
            decode_enum(RenderBlendType, f[4], offset),
            f[5],
            f[6],
        )

    def get_behavior_offsets(self, view: ByteView) -> List[int]:
        if self.num_behavior == 0:
            return []
        return view.scalars(self.behaviors, "I", self.num_behavior)


@dataclass
class EffectFile:
    LAYOUT: ClassVar[Layout] = Layout("Effect", "<I6HI", 0x14)

    name: str
    fps: int
    is_lock_random_seed: int
    lock_random_seed: int
    layout_scale_x: int
    layout_scale_y: int
    num_node_list: int
    nodes: Ref[Node]

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "EffectFile":
        return cls(StrRef(f[0]).value(view), *f[1:7], nodes=Ref(f[7], Node))

    def get_nodes(self, view: ByteView) -> List[Node]:
        return self.nodes.array(view, self.num_node_list)


@dataclass
class ProjectHeader:
    LAYOUT: ClassVar[Layout] = Layout("ProjectHeader", "<7I4H", 0x24)

    data_id: int
    version: int
    flags: int
    image_base_dir: str
    cells: Ref[CellEntry]
    anime_packs: Ref[AnimePack]
    effect_files: Ref[EffectFile]
    num_cells: int
    num_anime_packs: int
    num_effect_files: int
    num_sequence_packs: int

    @classmethod
    def from_fields(cls, view: ByteView, offset: int, f: Tuple) -> "ProjectHeader":
        return cls(
            f[0],
            f[1],
            f[2],
            StrRef(f[3]).value(view),
            Ref(f[4], CellEntry),
            Ref(f[5], AnimePack),
            Ref(f[6], EffectFile),
            *f[7:],
        )


# -----------------------------
# Decoded, in-memory results
# -----------------------------

@dataclass
class SsbpFile:
    """Header plus every table, decoded from one buffer."""

    view: ByteView
    header: ProjectHeader
    cells: List[CellEntry]
    anime_packs: List[AnimePack]
    effects: List[EffectFile]


@dataclass
class Keyframe:
    frame: int
    tag: str
    value: object


@dataclass
class PartTrack:
    """Keyframes of one part, grouped by attribute tag in first-seen order."""

    part_name: str
    attributes: Dict[str, List[Tuple[int, object]]] = field(default_factory=dict)

    def add(self, key: Keyframe) -> None:
        self.attributes.setdefault(key.tag, []).append((key.frame, key.value))

    def __len__(self) -> int:
        return sum(len(v) for v in self.attributes.values())


# -----------------------------
# High-level DTOs used by summarize_ssbp
# -----------------------------

@dataclass
class CellMapInfo:
    index: int
    name: str
    image_path: str
    cells: int


@dataclass
class AnimePackInfo:
    name: str
    parts: int
    anims: List[str]


@dataclass
class EffectInfo:
    name: str
    fps: int
    nodes: int


@dataclass
class SsbpSummary:
    path: str
    file_size: int
    version: int
    image_base_dir: str
    cell_maps: List[CellMapInfo]
    anime_packs: List[AnimePackInfo]
    effects: List[EffectInfo]
