"""libssbp.effect

Particle effect files: a flat node list (root / emitter / particle) where
every node owns an array of offsets to behavior records.

A behavior record starts with a 16-bit type; the rest of the record depends
on it. The set of shapes is fixed by the format, so decoding goes through
one table (BEHAVIOR_SHAPES) from type to layout and rendering, not through
classes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Tuple

from lxml import etree

from . import xmlout as x
from .binary import ByteView, Layout
from .cell import CellResolver
from .errors import UnknownDiscriminantError
from .model import EffectFile, EffectNodeType, Node, decode_enum

log = logging.getLogger(__name__)


class BehaviorType(IntEnum):
    BASE = 0
    BASIC = 1
    RND_SEED_CHANGE = 2
    DELAY = 3
    GRAVITY = 4
    POSITION = 5
    ROTATION = 6
    TRANS_ROTATION = 7
    TRANS_SPEED = 8
    TANGENTIAL_ACCELERATION = 9
    INIT_COLOR = 10
    TRANS_COLOR = 11
    ALPHA_FADE = 12
    SIZE = 13
    TRANS_SIZE = 14
    POINT_GRAVITY = 15
    TURN_TO_DIRECTION_ENABLED = 16
    INFINITE_EMIT_ENABLED = 17


_HEADER = Layout("Behavior", "<H", 2)

# Render ops: (op, element tag, field names...)
#   text   <tag>v</tag>
#   pair   <tag>a b</tag>
#   range  <tag value="min" subvalue="max"/>
#   color  range, printed as uppercase hex
Op = Tuple[str, ...]


@dataclass(frozen=True)
class BehaviorShape:
    label: str
    layout: Layout
    fields: Tuple[str, ...]
    render: Tuple[Op, ...]


def _shape(label: str, fmt: str, size: int, fields: str, *render: Op) -> BehaviorShape:
    # Every payload follows the 16-bit type plus 2 bytes of alignment padding.
    return BehaviorShape(label, Layout(label, "<H2x" + fmt, size), tuple(fields.split()), render)


BEHAVIOR_SHAPES: Dict[BehaviorType, BehaviorShape] = {
    BehaviorType.BASIC: _shape(
        "Basic", "5I2f2I2f", 0x30,
        "priority maximum_particle attime_create interval lifetime "
        "speed_min speed_max lifespan_min lifespan_max angle angle_variance",
        ("text", "priority", "priority"),
        ("text", "maxximumParticle", "maximum_particle"),
        ("text", "attimeCreate", "attime_create"),
        ("text", "interval", "interval"),
        ("text", "lifetime", "lifetime"),
        ("range", "speed", "speed_min", "speed_max"),
        ("range", "lifespan", "lifespan_min", "lifespan_max"),
        ("text", "angle", "angle"),
        ("text", "angleVariance", "angle_variance"),
    ),
    BehaviorType.RND_SEED_CHANGE: _shape(
        "OverWriteSeed", "I", 0x08, "seed",
        ("text", "seed", "seed"),
    ),
    BehaviorType.DELAY: _shape(
        "Delay", "I", 0x08, "delay_time",
        ("text", "DelayTime", "delay_time"),
    ),
    BehaviorType.GRAVITY: _shape(
        "Gravity", "2f", 0x0C, "gravity_x gravity_y",
        ("pair", "Gravity", "gravity_x", "gravity_y"),
    ),
    BehaviorType.POSITION: _shape(
        "init_position", "4f", 0x14, "offset_x_min offset_x_max offset_y_min offset_y_max",
        ("range", "OffsetX", "offset_x_min", "offset_x_max"),
        ("range", "OffsetY", "offset_y_min", "offset_y_max"),
    ),
    BehaviorType.ROTATION: _shape(
        "init_rotation", "4f", 0x14, "rotation_min rotation_max rotation_add_min rotation_add_max",
        ("range", "Rotation", "rotation_min", "rotation_max"),
        ("range", "RotationAdd", "rotation_add_min", "rotation_add_max"),
    ),
    BehaviorType.TRANS_ROTATION: _shape(
        "trans_rotation", "2f", 0x0C, "rotation_factor end_life_time_per",
        ("text", "RotationFactor", "rotation_factor"),
        ("text", "EndLifePerTime", "end_life_time_per"),
    ),
    BehaviorType.TRANS_SPEED: _shape(
        "trans_speed", "2f", 0x0C, "speed_min speed_max",
        ("range", "Speed", "speed_min", "speed_max"),
    ),
    BehaviorType.TANGENTIAL_ACCELERATION: _shape(
        "add_tangentiala", "2f", 0x0C, "acceleration_min acceleration_max",
        ("range", "Acceleration", "acceleration_min", "acceleration_max"),
    ),
    BehaviorType.INIT_COLOR: _shape(
        "init_vertexcolor", "2I", 0x0C, "color_min color_max",
        ("color", "Color", "color_min", "color_max"),
    ),
    BehaviorType.TRANS_COLOR: _shape(
        "trans_vertexcolor", "2I", 0x0C, "color_min color_max",
        ("color", "Color", "color_min", "color_max"),
    ),
    BehaviorType.ALPHA_FADE: _shape(
        "trans_colorfade", "2f", 0x0C, "disprange_min disprange_max",
        ("range", "Disprange", "disprange_min", "disprange_max"),
    ),
    BehaviorType.SIZE: _shape(
        "init_size", "6f", 0x1C,
        "size_x_min size_x_max size_y_min size_y_max scale_factor_min scale_factor_max",
        ("range", "SizeX", "size_x_min", "size_x_max"),
        ("range", "SizeY", "size_y_min", "size_y_max"),
        ("range", "ScaleFactor", "scale_factor_min", "scale_factor_max"),
    ),
    BehaviorType.TRANS_SIZE: _shape(
        "trans_size", "6f", 0x1C,
        "size_x_min size_x_max size_y_min size_y_max scale_factor_min scale_factor_max",
        ("range", "SizeX", "size_x_min", "size_x_max"),
        ("range", "SizeY", "size_y_min", "size_y_max"),
        ("range", "ScaleFactor", "scale_factor_min", "scale_factor_max"),
    ),
    BehaviorType.POINT_GRAVITY: _shape(
        "add_pointgravity", "3f", 0x10, "position_x position_y power",
        ("pair", "Position", "position_x", "position_y"),
        ("text", "Power", "power"),
    ),
    BehaviorType.TURN_TO_DIRECTION_ENABLED: _shape(
        "TurnToDirection", "f", 0x08, "rotation",
        ("text", "Rotation", "rotation"),
    ),
    BehaviorType.INFINITE_EMIT_ENABLED: _shape(
        "InfiniteEmit", "I", 0x08, "flag",
        ("text", "calcGen", "flag"),
    ),
}

assert set(BEHAVIOR_SHAPES) == set(BehaviorType) - {BehaviorType.BASE}


@dataclass(frozen=True)
class Behavior:
    kind: BehaviorType
    values: Dict[str, object]

    @property
    def shape(self) -> BehaviorShape:
        return BEHAVIOR_SHAPES[self.kind]

    def to_xml(self, parent: etree._Element) -> None:
        shape = self.shape
        el = etree.SubElement(parent, "value", name=shape.label)
        x.text(el, "name", shape.label)
        for op, tag, *names in shape.render:
            vals = [self.values[n] for n in names]
            if op == "text":
                x.text(el, tag, vals[0])
            elif op == "pair":
                x.text(el, tag, x.pair(*vals))
            elif op == "range":
                x.value_range(el, tag, *vals)
            elif op == "color":
                x.empty(el, tag, value=f"{vals[0]:X}", subvalue=f"{vals[1]:X}")
            else:
                raise ValueError(f"Unknown render op {op!r} in {shape.label}")


def decode_behavior(view: ByteView, offset: int) -> Behavior:
    (raw,) = view.unpack(offset, _HEADER)
    kind = decode_enum(BehaviorType, raw, offset)
    if kind is BehaviorType.BASE:
        raise UnknownDiscriminantError("Behavior (base type)", raw, offset)
    shape = BEHAVIOR_SHAPES[kind]
    fields = view.unpack(offset, shape.layout)[1:]
    return Behavior(kind, dict(zip(shape.fields, fields)))


class NodeCounter:
    """Emitter_N / Particle_N numbering for one effect file."""

    def __init__(self):
        self.emitters = 1
        self.particles = 1

    def name_for(self, node_type: EffectNodeType) -> str:
        if node_type is EffectNodeType.EMITTER:
            n, self.emitters = self.emitters, self.emitters + 1
            return f"Emitter_{n}"
        if node_type is EffectNodeType.PARTICLE:
            n, self.particles = self.particles, self.particles + 1
            return f"Particle_{n}"
        return "Root"


def node_to_xml(
    parent: etree._Element,
    view: ByteView,
    node: Node,
    cells: CellResolver,
    counter: NodeCounter,
) -> None:
    el = etree.SubElement(parent, "node")
    x.text(el, "name", counter.name_for(node.type))
    x.text(el, "type", node.type.label)
    x.text(el, "arrayIndex", node.array_index)
    x.text(el, "parentIndex", node.parent_index)
    x.text(el, "visible", 1)
    if node.type is EffectNodeType.ROOT:
        return

    behavior = etree.SubElement(el, "behavior")
    cell_name, cell_map_name = cells.lookup_names(node.cell_index)
    x.text(behavior, "CellName", cell_name)
    x.text(behavior, "CellMapName", cell_map_name)
    x.text(behavior, "BlendType", node.blend_type.label)
    behaviors = [decode_behavior(view, ofs) for ofs in node.get_behavior_offsets(view)]
    lst = x.empty(behavior, "list")
    for b in behaviors:
        b.to_xml(lst)


def effect_document_name(effect: EffectFile) -> str:
    return f"{effect.name}.ssee"


def effect_to_xml(view: ByteView, effect: EffectFile, cells: CellResolver) -> bytes:
    root = x.new_document("SpriteStudioEffect")
    x.text(root, "name", effect.name)
    x.blank(root, "exportPath")
    data = etree.SubElement(root, "effectData")
    x.text(data, "lockRandSeed", effect.lock_random_seed)
    x.text(data, "isLockRandSeed", effect.is_lock_random_seed)
    x.text(data, "fps", effect.fps)
    x.text(data, "bgColor", "FF000000")
    x.text(data, "renderVersion", 2)
    x.text(data, "layoutScaleX", effect.layout_scale_x)
    x.text(data, "layoutScaleY", effect.layout_scale_y)
    node_list = x.container(data, "nodeList")
    counter = NodeCounter()
    nodes = effect.get_nodes(view)
    for node in nodes:
        node_to_xml(node_list, view, node, cells, counter)
    log.debug("effect %r: %d nodes", effect.name, len(nodes))
    return x.serialize(root)
