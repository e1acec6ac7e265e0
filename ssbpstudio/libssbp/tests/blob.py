"""Builds small synthetic .ssbp buffers for the tests.

Records are appended in any order and point at each other by offset, the
same way the real files do. The header is reserved at offset 0 and filled
in last by finish().
"""

from __future__ import annotations

import struct

from libssbp.anime import LowFlag

HEADER = "<7I4H"
CELL_MAP = "<2I3H2x"
CELL = "<2I5H2x6f"
ANIME = "<3I2H"
PART = "<I2h3H2x3IH2x"
ANIM = "<7I7H2x2f"
INITIAL = "<2H2IHh4H20f4ifi2ifi"
LABEL = "<IH2x"
EFFECT = "<I6HI"
NODE = "<2hHhHHI"

# AnimInitial field order, reserved slots included.
INITIAL_FIELDS = (
    "index", "_r0", "lowflag", "highflag", "priority", "cell_index",
    "opacity", "local_opacity", "masklimen", "_r1",
    "position_x", "position_y", "position_z", "pivot_x", "pivot_y",
    "rotation_x", "rotation_y", "rotation_z", "scale_x", "scale_y",
    "local_scale_x", "local_scale_y", "size_x", "size_y",
    "uv_move_x", "uv_move_y", "uv_rotation", "uv_scale_x", "uv_scale_y",
    "bounding_radius",
    "inst_cur", "inst_next", "inst_start", "inst_end", "inst_speed", "inst_loop",
    "eff_time", "eff_start", "eff_speed", "eff_loop",
)

NEUTRAL_INITIAL = dict.fromkeys(INITIAL_FIELDS, 0)
NEUTRAL_INITIAL.update(
    opacity=255, local_opacity=255, size_x=32.0, size_y=32.0,
    scale_x=1.0, scale_y=1.0, local_scale_x=1.0, local_scale_y=1.0,
    uv_scale_x=1.0, uv_scale_y=1.0, inst_speed=1.0, eff_speed=1.0,
)


def initial(**overrides) -> tuple:
    values = dict(NEUTRAL_INITIAL, **overrides)
    return tuple(values[name] for name in INITIAL_FIELDS)


class BlobBuilder:
    def __init__(self):
        self.buf = bytearray(struct.calcsize(HEADER))
        self._strings = {}

    def tell(self) -> int:
        return len(self.buf)

    def align(self, n: int = 4) -> None:
        while len(self.buf) % n:
            self.buf.append(0)

    def put(self, fmt: str, *values) -> int:
        self.align()
        ofs = len(self.buf)
        self.buf += struct.pack(fmt, *values)
        return ofs

    def raw(self, data: bytes) -> int:
        self.align()
        ofs = len(self.buf)
        self.buf += data
        return ofs

    def patch(self, ofs: int, fmt: str, *values) -> None:
        struct.pack_into(fmt, self.buf, ofs, *values)

    def string(self, s: str) -> int:
        if s not in self._strings:
            ofs = len(self.buf)
            self.buf += s.encode("utf-8") + b"\0"
            self._strings[s] = ofs
        return self._strings[s]

    def table(self, fmt: str, rows) -> int:
        """Contiguous array of records; returns 0 for an empty table."""
        rows = list(rows)
        if not rows:
            return 0
        self.align()
        ofs = len(self.buf)
        for row in rows:
            self.buf += struct.pack(fmt, *row)
        return ofs

    def finish(self, cells=0, num_cells=0, packs=0, num_packs=0, effects=0, num_effects=0, version=1) -> bytes:
        self.patch(0, HEADER, 0x42505353, version, 0, 0, cells, packs, effects,
                   num_cells, num_packs, num_effects, 0)
        return bytes(self.buf)


def frame_record(part_index: int, lowflag: int, payload: bytes = b"") -> bytes:
    return struct.pack("<hI", part_index, lowflag) + payload


def build_scenario(run_stream: bytes = None, with_effect: bool = True) -> bytes:
    """One cell map with one cell, one pack with one normal part and the
    clips Setup and Run, and optionally one effect with a root and an
    emitter node.

    Run's single frame defaults to POSX=10, SCLY=2 for the part.
    """
    b = BlobBuilder()
    atlas = b.put(CELL_MAP, b.string("atlas"), b.string("atlas.png"), 0, 0, 1)
    cells = b.table(CELL, [(b.string("body"), atlas, 0, 0, 0, 32, 32, 0.5, 0.5, 0.0, 0.0, 1.0, 1.0)])

    parts = b.table(PART, [(b.string("body"), 0, -1, 1, 1, 0, 0, 0, 0, 0)])
    initials = b.table(INITIAL, [initial(cell_index=0)])

    if run_stream is None:
        run_stream = frame_record(
            0, LowFlag.POSITION_X | LowFlag.SCALE_Y, struct.pack("<2f", 10.0, 2.0)
        )
    stream = b.raw(run_stream)
    frames = b.put("<I", stream)
    labels = b.table(LABEL, [(b.string("hit"), 0)])

    anims = b.table(ANIM, [
        (b.string("Setup"), initials, 0, 0, 0, 0, 0, 0, 0, 1, 30, 0, 320, 320, 0.0, 0.0),
        (b.string("Run"), initials, frames, 0, labels, 0, 0, 0, 0, 1, 30, 1, 320, 320, 0.0, 0.0),
    ])
    packs = b.table(ANIME, [(b.string("pack"), parts, anims, 1, 2)])

    effects = 0
    if with_effect:
        delay = b.put("<H2xI", 3, 12)
        behaviors = b.put("<I", delay)
        nodes = b.table(NODE, [
            (0, -1, 0, -1, 0, 0, 0),
            (1, 0, 1, 0, 1, 1, behaviors),
        ])
        effects = b.table(EFFECT, [(b.string("fx"), 60, 0, 0, 0, 0, 2, nodes)])

    return b.finish(
        cells=cells, num_cells=1,
        packs=packs, num_packs=1,
        effects=effects, num_effects=1 if with_effect else 0,
    )
