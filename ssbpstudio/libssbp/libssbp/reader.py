"""libssbp.reader

Entry point for decoding a compiled .ssbp project.

- The header sits at offset 0 and is the only record with a fixed location.
- The cell, anime pack and effect tables are reached through its offsets.
- Tables are decoded eagerly; the per-frame streams are left to libssbp.anime,
  which walks them while rendering each pack.

The buffer is never modified, so one SsbpFile can be rendered any number of
times (and from several threads) with identical results.
"""

from __future__ import annotations

import logging
from typing import Union

from .binary import ByteView
from .model import ProjectHeader, SsbpFile

log = logging.getLogger(__name__)


def _parse_header(view: ByteView) -> ProjectHeader:
    header = view.value(0, ProjectHeader)
    log.debug(
        "header id=0x%08X version=%d flags=0x%X cells=%d packs=%d effects=%d sequences=%d",
        header.data_id,
        header.version,
        header.flags,
        header.num_cells,
        header.num_anime_packs,
        header.num_effect_files,
        header.num_sequence_packs,
    )
    return header


def parse_ssbp(data: Union[bytes, ByteView]) -> SsbpFile:
    view = data if isinstance(data, ByteView) else ByteView(data)
    header = _parse_header(view)

    cells = header.cells.array(view, header.num_cells)
    anime_packs = header.anime_packs.array(view, header.num_anime_packs)
    effects = header.effect_files.array(view, header.num_effect_files)

    return SsbpFile(
        view=view,
        header=header,
        cells=cells,
        anime_packs=anime_packs,
        effects=effects,
    )


def read_ssbp(path: str) -> SsbpFile:
    with open(path, "rb") as f:
        data = f.read()
    return parse_ssbp(data)
