"""libssbp.binary

Bounds-checked access to one .ssbp buffer.

The file is a flat arena: every record points at others through 32-bit
offsets from the start of the buffer. Nothing here ever follows an offset
without first checking that the whole target span lies inside the buffer.

- Layout: a struct format paired with the record size the file uses. The two
  are compared when the module defining the record is imported.
- ByteView: typed reads of records, record arrays and NUL-terminated strings.
- Ref / StrRef: an offset plus the record type it points at.
- Cursor: sequential reads for the variable-width frame streams.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Generic, List, Tuple, Type, TypeVar

from .errors import BoundsError, InvalidStringError, LayoutAssertionError

T = TypeVar("T")


class Layout:
    __slots__ = ("name", "size", "struct")

    def __init__(self, name: str, fmt: str, size: int):
        self.name = name
        self.size = size
        self.struct = struct.Struct(fmt)
        if self.struct.size != size:
            raise LayoutAssertionError(
                f"{name}: format {fmt!r} is {self.struct.size} bytes, expected 0x{size:X}"
            )

    def __repr__(self) -> str:
        return f"Layout({self.name!r}, {self.struct.format!r}, 0x{self.size:X})"


class ByteView:
    """Read-only typed view over the raw bytes of one file."""

    __slots__ = ("data",)

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def __len__(self) -> int:
        return len(self.data)

    def check(self, offset: int, size: int, what: str = "read") -> None:
        if offset < 0 or size < 0 or offset + size > len(self.data):
            raise BoundsError(offset, size, len(self.data), what)

    def unpack(self, offset: int, layout: Layout) -> Tuple[Any, ...]:
        self.check(offset, layout.size, layout.name)
        return layout.struct.unpack_from(self.data, offset)

    def value(self, offset: int, record: Type[T]) -> T:
        fields = self.unpack(offset, record.LAYOUT)
        return record.from_fields(self, offset, fields)

    def array(self, offset: int, record: Type[T], count: int) -> List[T]:
        layout = record.LAYOUT
        self.check(offset, layout.size * count, f"{layout.name}[{count}]")
        return [self.value(offset + i * layout.size, record) for i in range(count)]

    def scalars(self, offset: int, fmt: str, count: int) -> List[Any]:
        """Array of a single primitive, e.g. the per-frame offset table."""
        item = struct.Struct("<" + fmt)
        self.check(offset, item.size * count, f"{fmt}[{count}]")
        return [item.unpack_from(self.data, offset + i * item.size)[0] for i in range(count)]

    def string(self, offset: int) -> str:
        if offset < 0 or offset >= len(self.data):
            raise BoundsError(offset, 1, len(self.data), "string")
        end = self.data.find(b"\0", offset)
        if end == -1:
            raise InvalidStringError(f"Unterminated string at 0x{offset:X}")
        raw = self.data[offset:end]
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidStringError(f"String at 0x{offset:X} is not UTF-8: {e}") from e


@dataclass(frozen=True)
class Ref(Generic[T]):
    """32-bit offset to a record (or array of records) of a known type."""

    offset: int
    target: Type[T]

    @property
    def is_null(self) -> bool:
        return self.offset == 0

    def value(self, view: ByteView) -> T:
        return view.value(self.offset, self.target)

    def array(self, view: ByteView, count: int) -> List[T]:
        if count == 0:
            return []
        return view.array(self.offset, self.target, count)


@dataclass(frozen=True)
class StrRef:
    offset: int

    def value(self, view: ByteView) -> str:
        # Offset 0 is the header's data id, never a string.
        if self.offset == 0:
            return ""
        return view.string(self.offset)


class Cursor:
    """Position in a ByteView that advances as fields are read.

    Used for the frame streams, which carry no lengths: the offset of the
    next field is only known once the previous one has been read.
    """

    __slots__ = ("view", "ofs")

    def __init__(self, view: ByteView, ofs: int = 0):
        self.view = view
        self.ofs = ofs

    def tell(self) -> int:
        return self.ofs

    def _take(self, fmt: str, size: int) -> Any:
        self.view.check(self.ofs, size, fmt)
        v = struct.unpack_from(fmt, self.view.data, self.ofs)[0]
        self.ofs += size
        return v

    def skip(self, n: int) -> None:
        self.view.check(self.ofs, n, "skip")
        self.ofs += n

    def u16(self) -> int:
        return self._take("<H", 2)

    def s16(self) -> int:
        return self._take("<h", 2)

    def u32(self) -> int:
        return self._take("<I", 4)

    def s32(self) -> int:
        return self._take("<i", 4)

    def f32(self) -> float:
        return self._take("<f", 4)


def fmt_float(v: float) -> str:
    """Shortest text that reads back as the same 32-bit float."""
    if v != v or v in (float("inf"), float("-inf")):
        return str(v)
    target = struct.unpack("<f", struct.pack("<f", v))[0]
    for digits in range(1, 10):
        s = f"{target:.{digits}g}"
        if struct.unpack("<f", struct.pack("<f", float(s)))[0] == target:
            break
    if "e" in s:
        s = format(Decimal(s), "f")
    return s
