"""libssbp.cell

Cells are stored as one flat table; each entry points back at the CellMap
(texture atlas) it belongs to. The tool's .ssce documents are per atlas, so
the table is regrouped here:

  CellResolver.maps        CellMap index -> Cell aggregate (one .ssce each)
  CellResolver.flat        flat table position -> (CellMap index, cell name)

Keyframes and effect nodes reference cells by flat position, never by the
per-map index, so both views are built in the same pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from lxml import etree

from . import xmlout as x
from .binary import ByteView
from .errors import BoundsError, DuplicateIndexError
from .model import CellEntry, CellMap

# (image path as stored in the file) -> (output image name, width, height)
TextureResolver = Callable[[str], Tuple[str, int, int]]


@dataclass
class Cell:
    """One atlas and every CellEntry that points at it, in file order."""

    data: CellMap
    entries: List[CellEntry] = field(default_factory=list)
    _by_index: Dict[int, CellEntry] = field(default_factory=dict, repr=False)

    @property
    def index(self) -> int:
        return self.data.index

    @property
    def name(self) -> str:
        return self.data.name

    @property
    def document_name(self) -> str:
        return f"{self.data.name}.ssce"

    def add(self, entry: CellEntry) -> None:
        if entry.index in self._by_index:
            raise DuplicateIndexError(
                f"CellMap {self.data.name!r}: cell index {entry.index} used by "
                f"{self._by_index[entry.index].name!r} and {entry.name!r}"
            )
        self._by_index[entry.index] = entry
        self.entries.append(entry)

    def get_name_by_index(self, index: int) -> Optional[str]:
        entry = self._by_index.get(index)
        return entry.name if entry is not None else None

    # .ssce layout:
    #
    # <SpriteStudioCellMap version="2.00.00">
    #   <name/> <exportPath/> <generator/> <packed/> <imagePath/> <pixelSize/>
    #   <overrideTexSettings/> <wrapMode/> <filterMode/>
    #   <imagePathAtImport/> <packInfoFilePath/> <texPackSettings/>
    #   <cells> <cell>...</cell> </cells>
    # </SpriteStudioCellMap>
    def to_xml(self, textures: TextureResolver) -> bytes:
        root = x.new_document("SpriteStudioCellMap")
        x.text(root, "name", self.data.name)
        x.blank(root, "exportPath")
        x.text(root, "generator", "SpriteStudio")
        x.text(root, "packed", 0)
        img_name, width, height = textures(self.data.image_path)
        x.text(root, "imagePath", img_name)
        x.text(root, "pixelSize", f"{width} {height}")
        x.text(root, "overrideTexSettings", 0)
        x.text(root, "wrapMode", self.data.wrap_mode.label)
        x.text(root, "filterMode", self.data.filter_mode.label)
        x.blank(root, "imagePathAtImport")
        x.blank(root, "packInfoFilePath")
        tex_pack_settings_to_xml(root)
        cells = x.container(root, "cells")
        for entry in self.entries:
            cell_to_xml(cells, entry)
        return x.serialize(root)


def cell_to_xml(parent: etree._Element, entry: CellEntry) -> None:
    el = etree.SubElement(parent, "cell")
    x.text(el, "name", entry.name)
    x.text(el, "pos", f"{entry.x} {entry.y}")
    x.text(el, "size", f"{entry.width} {entry.height}")
    x.text(el, "pivot", x.pair(entry.pivot_x, entry.pivot_y))
    x.text(el, "rotated", 0)
    x.blank(el, "orgImageName")
    x.text(el, "posStable", 0)
    x.text(el, "ismesh", 0)
    x.text(el, "divtype", "unknown")
    x.empty(el, "innerPoint")
    x.empty(el, "outerPoint")
    x.empty(el, "meshPointList")
    x.empty(el, "meshTriList")


def tex_pack_settings_to_xml(parent: etree._Element) -> None:
    el = etree.SubElement(parent, "texPackSettings")
    x.text(el, "maxSize", "4096 4096")
    x.text(el, "forcePo2", 1)
    x.text(el, "forceSquare", 0)
    x.text(el, "margin", 0)
    x.text(el, "padding", 1)


class CellResolver:
    def __init__(self, view: ByteView, entries: List[CellEntry]):
        self.maps: Dict[int, Cell] = {}
        self.flat: List[Tuple[int, str]] = []
        for entry in entries:
            cell_map = entry.get_cell_map(view)
            cell = self.maps.get(cell_map.index)
            if cell is None:
                cell = self.maps[cell_map.index] = Cell(cell_map)
            cell.add(entry)
            self.flat.append((cell_map.index, entry.name))
        self._order = sorted(self.maps)
        self._map_ids = {idx: pos for pos, idx in enumerate(self._order)}

    def __len__(self) -> int:
        return len(self.maps)

    def cells(self) -> List[Cell]:
        """Aggregates in ascending CellMap index, the order documents are written."""
        return [self.maps[i] for i in self._order]

    def document_names(self) -> List[str]:
        return [c.document_name for c in self.cells()]

    def map_id(self, cellmap_index: int) -> int:
        """Position of a CellMap in the emitted cellmapNames list."""
        return self._map_ids[cellmap_index]

    def lookup(self, flat_index: int) -> Optional[Tuple[int, str]]:
        if flat_index < 0:
            return None
        if flat_index >= len(self.flat):
            raise BoundsError(flat_index, 1, len(self.flat), "cell table index")
        return self.flat[flat_index]

    def lookup_names(self, flat_index: int) -> Tuple[str, str]:
        """(cell name, "<cellmap>.ssce") for an effect node; blank for -1."""
        hit = self.lookup(flat_index)
        if hit is None:
            return "", ""
        map_index, cell_name = hit
        return cell_name, self.maps[map_index].document_name
