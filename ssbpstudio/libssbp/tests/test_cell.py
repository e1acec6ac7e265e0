import pytest
from lxml import etree

from blob import CELL, CELL_MAP, BlobBuilder
from libssbp.cell import CellResolver
from libssbp.errors import BoundsError, DuplicateIndexError
from libssbp.reader import parse_ssbp


def _cell_row(b, name, cell_map, index):
    return (b.string(name), cell_map, index, 0, 0, 16, 16, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0)


def _resolver(rows_for):
    b = BlobBuilder()
    maps = {
        "face": b.put(CELL_MAP, b.string("face"), b.string("face.png"), 1, 0, 0),
        "body": b.put(CELL_MAP, b.string("body"), b.string("body.png"), 0, 0, 1),
    }
    rows = rows_for(b, maps)
    cells = b.table(CELL, rows)
    ssbp = parse_ssbp(b.finish(cells=cells, num_cells=len(rows)))
    return CellResolver(ssbp.view, ssbp.cells)


def test_groups_by_cell_map():
    """k distinct CellMaps give k aggregates, ordered by CellMap index."""
    cells = _resolver(lambda b, m: [
        _cell_row(b, "eye", m["face"], 0),
        _cell_row(b, "arm", m["body"], 0),
        _cell_row(b, "mouth", m["face"], 1),
    ])
    assert len(cells) == 2
    assert [c.name for c in cells.cells()] == ["body", "face"]
    assert cells.document_names() == ["body.ssce", "face.ssce"]
    face = cells.maps[1]
    assert [e.name for e in face.entries] == ["eye", "mouth"]
    assert face.get_name_by_index(1) == "mouth"
    assert face.get_name_by_index(5) is None


def test_flat_lookup():
    cells = _resolver(lambda b, m: [
        _cell_row(b, "eye", m["face"], 0),
        _cell_row(b, "arm", m["body"], 0),
    ])
    assert cells.lookup(0) == (1, "eye")
    assert cells.map_id(1) == 1
    assert cells.map_id(0) == 0
    assert cells.lookup(-1) is None
    assert cells.lookup_names(-1) == ("", "")
    assert cells.lookup_names(1) == ("arm", "body.ssce")
    with pytest.raises(BoundsError):
        cells.lookup(2)


def test_duplicate_index():
    with pytest.raises(DuplicateIndexError):
        _resolver(lambda b, m: [
            _cell_row(b, "eye", m["face"], 3),
            _cell_row(b, "mouth", m["face"], 3),
        ])


def test_same_index_in_different_maps():
    cells = _resolver(lambda b, m: [
        _cell_row(b, "eye", m["face"], 0),
        _cell_row(b, "arm", m["body"], 0),
    ])
    assert len(cells) == 2


def test_cell_map_document():
    cells = _resolver(lambda b, m: [_cell_row(b, "eye", m["face"], 0)])
    seen = []

    def textures(path):
        seen.append(path)
        return "face.png", 64, 128

    payload = cells.cells()[0].to_xml(textures)
    assert seen == ["face.png"]
    assert payload.startswith(b'<?xml version="1.0" encoding="utf-8" standalone="yes"?>\n')
    root = etree.fromstring(payload)
    assert root.tag == "SpriteStudioCellMap"
    assert root.get("version") == "2.00.00"
    assert root.findtext("imagePath") == "face.png"
    assert root.findtext("pixelSize") == "64 128"
    assert root.findtext("filterMode") == "nearlest"
    assert root.findtext("wrapMode") == "clamp"
    cell = root.find("cells/cell")
    assert cell.findtext("name") == "eye"
    assert cell.findtext("size") == "16 16"
    assert cell.findtext("pivot") == "0 0"
    assert b"<exportPath></exportPath>" in payload
    assert b"<innerPoint/>" in payload
