"""libssbp.errors

Every failure raised while decoding one .ssbp file. All of them abort the
current file only; batch callers catch SsbpError and move on.
"""

from __future__ import annotations


class SsbpError(RuntimeError):
    pass


class BoundsError(SsbpError):
    """An offset or offset+count reaches past the end of the buffer."""

    def __init__(self, offset: int, size: int, buffer_len: int, what: str = "read"):
        self.offset = offset
        self.size = size
        self.buffer_len = buffer_len
        super().__init__(
            f"{what} of {size} bytes at 0x{offset:X} exceeds buffer of {buffer_len} bytes"
        )


class LayoutAssertionError(SsbpError):
    """A record's struct format does not match its documented size.

    This is a bug in the record description, never in the input file.
    """


class InvalidStringError(SsbpError):
    pass


class UnknownDiscriminantError(SsbpError):
    def __init__(self, kind: str, value: int, offset: int | None = None):
        self.kind = kind
        self.value = value
        self.offset = offset
        where = f" at 0x{offset:X}" if offset is not None else ""
        super().__init__(f"Unknown {kind} value {value}{where}")


class MalformedReferenceError(SsbpError):
    pass


class DuplicateIndexError(SsbpError):
    pass


class CollaboratorError(SsbpError):
    """Raised by the bundled texture resolver and sink implementations."""
