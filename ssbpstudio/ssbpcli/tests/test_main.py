from PIL import Image

from blob import build_scenario
from ssbpcli.main import build_parser, find_ssbp_files, main, plan_batch


def _project(folder, name="scenario"):
    folder.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", (32, 32)).save(folder / "atlas.png")
    path = folder / f"{name}.ssbp"
    path.write_bytes(build_scenario())
    return path


def test_parser_defaults():
    args = build_parser().parse_args(["convert", "in", "out"])
    assert args.texture_dir == []
    assert args.jobs == 1
    assert args.verbose is False
    args = build_parser().parse_args(["convert", "in", "out", "--verbose", "--texture-dir", "a", "--texture-dir", "b"])
    assert args.verbose is True
    assert args.texture_dir == ["a", "b"]


def test_plan_batch(tmp_path):
    _project(tmp_path / "in" / "b")
    _project(tmp_path / "in" / "a")
    (tmp_path / "in" / "notes.txt").write_text("x")
    found = find_ssbp_files(str(tmp_path / "in"))
    assert [p[len(str(tmp_path / "in")) + 1:] for p in found] == ["a/scenario.ssbp", "b/scenario.ssbp"]
    jobs = plan_batch(str(tmp_path / "in"), str(tmp_path / "out"))
    assert [out for _, out in jobs] == [
        str(tmp_path / "out" / "a" / "scenario"),
        str(tmp_path / "out" / "b" / "scenario"),
    ]


def test_convert_single(tmp_path):
    path = _project(tmp_path / "in")
    out = tmp_path / "out"
    assert main(["convert", str(path), str(out)]) == 0
    assert sorted(p.name for p in out.iterdir()) == [
        "atlas.png", "atlas.ssce", "fx.ssee", "pack.ssae", "scenario.sspj",
    ]


def test_convert_batch_continues_after_failure(tmp_path):
    _project(tmp_path / "in" / "a")
    _project(tmp_path / "in" / "c")
    (tmp_path / "in" / "b").mkdir()
    (tmp_path / "in" / "b" / "broken.ssbp").write_bytes(b"\0" * 8)
    out = tmp_path / "out"
    assert main(["convert", str(tmp_path / "in"), str(out), "--jobs", "2"]) == 1
    assert (out / "a" / "scenario" / "scenario.sspj").is_file()
    assert (out / "c" / "scenario" / "scenario.sspj").is_file()
    assert not (out / "b" / "broken").exists()


def test_convert_empty_folder(tmp_path):
    assert main(["convert", str(tmp_path), str(tmp_path / "out")]) == 1


def test_summary(tmp_path):
    assert main(["summary", str(_project(tmp_path))]) == 0


def test_summary_of_broken_file(tmp_path):
    path = tmp_path / "broken.ssbp"
    path.write_bytes(b"\0" * 8)
    assert main(["summary", str(path)]) == 1


def test_verify_determinism(tmp_path):
    assert main(["verify-determinism", str(_project(tmp_path))]) == 0
