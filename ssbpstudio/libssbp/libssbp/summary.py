from __future__ import annotations

import os

from .cell import CellResolver
from .model import AnimePackInfo, CellMapInfo, EffectInfo, SsbpSummary
from .reader import read_ssbp


def summarize_ssbp(path: str) -> SsbpSummary:
    ssbp = read_ssbp(path)
    view = ssbp.view

    # Grouping through the resolver also surfaces duplicate cell indices.
    cells = CellResolver(view, ssbp.cells)
    cell_maps = [
        CellMapInfo(index=c.index, name=c.name, image_path=c.data.image_path, cells=len(c.entries))
        for c in cells.cells()
    ]

    packs = [
        AnimePackInfo(name=p.name, parts=p.part_count, anims=[a.name for a in p.get_anims(view)])
        for p in ssbp.anime_packs
    ]

    effects = [EffectInfo(name=e.name, fps=e.fps, nodes=e.num_node_list) for e in ssbp.effects]

    return SsbpSummary(
        path=path,
        file_size=os.path.getsize(path),
        version=ssbp.header.version,
        image_base_dir=ssbp.header.image_base_dir,
        cell_maps=cell_maps,
        anime_packs=packs,
        effects=effects,
    )
