"""libssbp.writer

Document sink: (document name, rendered bytes) -> somewhere.

DirectorySink writes each document into one folder as soon as it is
rendered. A failure later in the same .ssbp leaves the earlier documents in
place; callers that need all-or-nothing output should point the sink at a
staging folder and move it once convert() returns.
"""

from __future__ import annotations

import logging
import os

from .errors import CollaboratorError

log = logging.getLogger(__name__)


class DirectorySink:
    def __init__(self, out_dir: str):
        self.out_dir = out_dir

    def __call__(self, name: str, payload: bytes) -> None:
        path = os.path.join(self.out_dir, name)
        tmp = path + ".part"
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(payload)
            os.replace(tmp, path)
        except OSError as e:
            raise CollaboratorError(f"Could not write {path!r}: {e}") from e
        log.info("wrote %s (%d bytes)", path, len(payload))


class MemorySink(dict):
    """Collects documents in insertion order; used by verify-determinism and tests."""

    def __call__(self, name: str, payload: bytes) -> None:
        self[name] = payload
