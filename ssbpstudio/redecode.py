#!/usr/bin/env python3
"""Decode an .ssbp file twice through libssbp and compare the output.

Usage:
  python ssbpstudio/redecode.py path/to/file.ssbp

Needs libssbp installed (pip install -e .). Textures are looked up next to
the input and re-encoded into a scratch folder.

Prints one sha256 per run over every rendered document, then whether the
two runs are byte-identical.
"""

from __future__ import annotations

import hashlib
import os
import sys
import tempfile

from libssbp.project import convert_file
from libssbp.texture import PillowTextureResolver
from libssbp.writer import MemorySink


def _sha256(docs: MemorySink) -> str:
    h = hashlib.sha256()
    for name, payload in docs.items():
        h.update(name.encode("utf-8"))
        h.update(b"\0")
        h.update(payload)
    return h.hexdigest()


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print("Usage: python ssbpstudio/redecode.py <file.ssbp>")
        return 2

    inp = os.path.abspath(argv[1])
    if not os.path.exists(inp):
        print(f"File not found: {inp}")
        return 2

    with tempfile.TemporaryDirectory(prefix="redecode-") as tmp:
        textures = PillowTextureResolver([os.path.dirname(inp)], tmp)
        a_docs, b_docs = MemorySink(), MemorySink()
        convert_file(inp, textures, a_docs)
        convert_file(inp, textures, b_docs)

    a = _sha256(a_docs)
    b = _sha256(b_docs)
    print(f"RUN 1: {len(a_docs)} documents\n       sha256={a}")
    print(f"RUN 2: {len(b_docs)} documents\n       sha256={b}")
    print("IDENTICAL" if a == b else "DIFF")
    return 0 if a == b else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
