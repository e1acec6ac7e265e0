import struct

import pytest

from libssbp.binary import ByteView, Cursor, Layout, Ref, StrRef, fmt_float
from libssbp.errors import BoundsError, InvalidStringError, LayoutAssertionError
from libssbp.model import (AnimEntry, AnimePack, AnimInitial, CellEntry,
    CellMap, EffectFile, LabelEntry, Node, PartEntry, ProjectHeader)


@pytest.mark.parametrize("record, size", [
    (ProjectHeader, 0x24),
    (CellMap, 0x10),
    (CellEntry, 0x2C),
    (AnimePack, 0x10),
    (PartEntry, 0x20),
    (AnimEntry, 0x34),
    (AnimInitial, 0x90),
    (LabelEntry, 0x08),
    (EffectFile, 0x14),
    (Node, 0x10),
])
def test_record_sizes(record, size):
    assert record.LAYOUT.size == size
    assert record.LAYOUT.struct.size == size


def test_layout_mismatch():
    with pytest.raises(LayoutAssertionError):
        Layout("Broken", "<I", 8)


class TestByteView(object):
    def test_check_past_end(self):
        view = ByteView(b"\0" * 8)
        view.check(4, 4)
        with pytest.raises(BoundsError):
            view.check(5, 4)
        with pytest.raises(BoundsError):
            view.check(-1, 1)

    def test_record_past_end(self):
        view = ByteView(b"\0" * 0x20)
        with pytest.raises(BoundsError):
            view.value(0, ProjectHeader)

    def test_array_bounds_checked_before_reading(self):
        view = ByteView(b"\0" * 0x30)
        with pytest.raises(BoundsError):
            view.array(0, CellMap, 4)

    def test_scalars(self):
        view = ByteView(struct.pack("<3I", 7, 8, 9))
        assert view.scalars(4, "I", 2) == [8, 9]
        with pytest.raises(BoundsError):
            view.scalars(4, "I", 3)

    def test_string(self):
        view = ByteView(b"\0abc\0h\xc3\xa9\0")
        assert view.string(1) == "abc"
        assert view.string(5) == "hé"

    def test_string_unterminated(self):
        with pytest.raises(InvalidStringError):
            ByteView(b"\0abc").string(1)

    def test_string_not_utf8(self):
        with pytest.raises(InvalidStringError):
            ByteView(b"\0\xff\xfe\0").string(1)

    def test_string_out_of_range(self):
        with pytest.raises(BoundsError):
            ByteView(b"\0abc\0").string(5)


def test_refs():
    view = ByteView(b"\0\0\0\0name\0")
    assert StrRef(0).value(view) == ""
    assert StrRef(4).value(view) == "name"
    assert Ref(0, CellMap).is_null
    assert Ref(0, CellMap).array(view, 0) == []


def test_cursor():
    view = ByteView(struct.pack("<hIf", -2, 0x10, 1.5))
    cur = Cursor(view)
    assert cur.s16() == -2
    assert cur.u32() == 0x10
    assert cur.f32() == 1.5
    assert cur.tell() == 10
    with pytest.raises(BoundsError):
        cur.u16()
    # a failed read does not move the cursor
    assert cur.tell() == 10


@pytest.mark.parametrize("value, text", [
    (0.0, "0"),
    (1.0, "1"),
    (10.0, "10"),
    (0.5, "0.5"),
    (0.1, "0.1"),
    (-2.25, "-2.25"),
    (1e-07, "0.0000001"),
    (123456.0, "123456"),
])
def test_fmt_float(value, text):
    assert fmt_float(value) == text
