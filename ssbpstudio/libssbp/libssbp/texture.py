"""libssbp.texture

Default texture collaborator: image path as stored in the .ssbp ->
(image name written into the .ssce, pixel width, pixel height).

Two kinds of image path show up in cell maps:

  foo.png   a plain image next to the .ssbp (or in one of the texture dirs);
            it is copied to the output folder once and measured with Pillow.
  foo.apk   a texture archive holding foo.dds. The archive format is game
            specific, so reading it is delegated to `archive_loader`; the DDS
            payload is decoded with Pillow and re-encoded as foo.png.

Conversions run in parallel share the output folder, so the
"already re-encoded?" check and the write happen under one lock per output
name.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import threading
from typing import Callable, Dict, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import CollaboratorError

log = logging.getLogger(__name__)

# (archive path on disk, member name inside it) -> member bytes
ArchiveLoader = Callable[[str, str], bytes]


class PillowTextureResolver:
    def __init__(
        self,
        image_dirs: Sequence[str],
        output_dir: str,
        archive_loader: Optional[ArchiveLoader] = None,
    ):
        self.image_dirs = list(image_dirs)
        self.output_dir = output_dir
        self.archive_loader = archive_loader
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    def _find(self, rel_path: str) -> str:
        for d in self.image_dirs:
            p = os.path.join(d, rel_path)
            if os.path.isfile(p):
                return p
        raise CollaboratorError(
            f"Texture {rel_path!r} not found in: {', '.join(self.image_dirs) or '(no dirs)'}"
        )

    def __call__(self, image_path: str) -> Tuple[str, int, int]:
        base, dot, ext = image_path.rpartition(".")
        if not dot:
            raise CollaboratorError(f"Texture path {image_path!r} has no extension")
        if ext.lower() == "apk":
            name = f"{base}.png"
            with self._lock_for(name):
                return (name, *self._from_archive(image_path, base, name))
        with self._lock_for(image_path):
            return (image_path, *self._from_image(image_path))

    def _from_image(self, image_path: str) -> Tuple[int, int]:
        out = os.path.join(self.output_dir, image_path)
        if not os.path.isfile(out):
            src = self._find(image_path)
            os.makedirs(os.path.dirname(out) or ".", exist_ok=True)
            shutil.copyfile(src, out)
            log.info("copied %s", image_path)
        return _measure(out)

    def _from_archive(self, image_path: str, base: str, name: str) -> Tuple[int, int]:
        out = os.path.join(self.output_dir, name)
        if os.path.isfile(out):
            # re-encoded by an earlier file of the same batch
            return _measure(out)
        if self.archive_loader is None:
            raise CollaboratorError(f"{image_path!r} is a texture archive but no archive loader is configured")
        archive = self._find(image_path)
        payload = self.archive_loader(archive, f"{base}.dds")
        tmp = out + ".part"
        try:
            with Image.open(io.BytesIO(payload)) as img:
                img.load()
                size = img.size
                os.makedirs(os.path.dirname(out) or ".", exist_ok=True)
                img.save(tmp, format="PNG")
        except (UnidentifiedImageError, OSError) as e:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise CollaboratorError(f"Could not decode {name!r} from {archive!r}: {e}") from e
        os.replace(tmp, out)
        log.info("re-encoded %s (%dx%d)", name, *size)
        return size


def _measure(path: str) -> Tuple[int, int]:
    try:
        with Image.open(path) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        raise CollaboratorError(f"Could not read image size of {path!r}: {e}") from e
