import io
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from PIL import Image

from libssbp.errors import CollaboratorError
from libssbp.texture import PillowTextureResolver


def _png_bytes(size):
    buf = io.BytesIO()
    Image.new("RGBA", size, (255, 0, 0, 255)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def src(tmp_path):
    d = tmp_path / "src"
    d.mkdir()
    (d / "atlas.png").write_bytes(_png_bytes((48, 24)))
    return d


def test_plain_image_is_copied_and_measured(src, tmp_path):
    out = tmp_path / "out"
    textures = PillowTextureResolver([str(src)], str(out))
    assert textures("atlas.png") == ("atlas.png", 48, 24)
    assert (out / "atlas.png").is_file()
    # second lookup uses the copy
    (src / "atlas.png").unlink()
    assert textures("atlas.png") == ("atlas.png", 48, 24)


def test_search_order(src, tmp_path):
    other = tmp_path / "other"
    other.mkdir()
    (other / "atlas.png").write_bytes(_png_bytes((8, 8)))
    textures = PillowTextureResolver([str(other), str(src)], str(tmp_path / "out"))
    assert textures("atlas.png") == ("atlas.png", 8, 8)


def test_missing_image(tmp_path):
    textures = PillowTextureResolver([str(tmp_path)], str(tmp_path / "out"))
    with pytest.raises(CollaboratorError):
        textures("nope.png")


def test_not_an_image(src, tmp_path):
    (src / "bad.png").write_bytes(b"not a png")
    textures = PillowTextureResolver([str(src)], str(tmp_path / "out"))
    with pytest.raises(CollaboratorError):
        textures("bad.png")


class TestArchive(object):
    def test_reencoded_once(self, tmp_path):
        (tmp_path / "atlas.apk").write_bytes(b"archive")
        calls = []

        def loader(archive, member):
            calls.append((archive, member))
            return _png_bytes((16, 32))

        out = tmp_path / "out"
        textures = PillowTextureResolver([str(tmp_path)], str(out), archive_loader=loader)
        assert textures("atlas.apk") == ("atlas.png", 16, 32)
        assert textures("atlas.apk") == ("atlas.png", 16, 32)
        assert calls == [(str(tmp_path / "atlas.apk"), "atlas.dds")]
        with Image.open(out / "atlas.png") as img:
            assert img.format == "PNG"
        assert not (out / "atlas.png.part").exists()

    def test_without_loader(self, tmp_path):
        (tmp_path / "atlas.apk").write_bytes(b"archive")
        textures = PillowTextureResolver([str(tmp_path)], str(tmp_path / "out"))
        with pytest.raises(CollaboratorError):
            textures("atlas.apk")

    def test_undecodable_payload(self, tmp_path):
        (tmp_path / "atlas.apk").write_bytes(b"archive")
        textures = PillowTextureResolver(
            [str(tmp_path)], str(tmp_path / "out"), archive_loader=lambda a, m: b"garbage"
        )
        with pytest.raises(CollaboratorError):
            textures("atlas.apk")

    def test_concurrent_callers_share_one_conversion(self, tmp_path):
        (tmp_path / "atlas.apk").write_bytes(b"archive")
        payload = _png_bytes((8, 8))
        calls = []

        def loader(archive, member):
            calls.append(member)
            time.sleep(0.05)
            return payload

        textures = PillowTextureResolver([str(tmp_path)], str(tmp_path / "out"), archive_loader=loader)
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: textures("atlas.apk"), range(8)))
        assert results == [("atlas.png", 8, 8)] * 8
        assert calls == ["atlas.dds"]

    def test_failed_save_leaves_no_partial_file(self, tmp_path, monkeypatch):
        (tmp_path / "atlas.apk").write_bytes(b"archive")
        payload = _png_bytes((8, 8))

        def broken_save(img, fp, format=None, **params):
            with open(fp, "wb") as f:
                f.write(b"\x89PNG")
            raise OSError("disk full")

        monkeypatch.setattr(Image.Image, "save", broken_save)
        out = tmp_path / "out"
        textures = PillowTextureResolver([str(tmp_path)], str(out), archive_loader=lambda a, m: payload)
        with pytest.raises(CollaboratorError):
            textures("atlas.apk")
        assert not (out / "atlas.png.part").exists()
        assert not (out / "atlas.png").exists()
