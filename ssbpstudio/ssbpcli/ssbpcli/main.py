from __future__ import annotations
import argparse
import hashlib
import logging
import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from libssbp.errors import SsbpError
from libssbp.project import ConversionResult, convert_file
from libssbp.summary import summarize_ssbp
from libssbp.texture import PillowTextureResolver
from libssbp.writer import DirectorySink, MemorySink

console = Console()
log = logging.getLogger("ssbpcli")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _image_dirs(path: str, extra: List[str]) -> List[str]:
    return [os.path.dirname(os.path.abspath(path))] + list(extra)


def cmd_summary(args: argparse.Namespace) -> int:
    s = summarize_ssbp(args.ssbp)
    console.print(f"[bold]File:[/bold] {s.path}")
    console.print(f"[bold]Size:[/bold] {s.file_size} bytes")
    console.print(f"[bold]Version:[/bold] {s.version}")
    console.print(f"[bold]Image base dir:[/bold] {s.image_base_dir or '(none)'}")

    ct = Table(title="Cell maps")
    ct.add_column("Index", justify="right")
    ct.add_column("Name", overflow="fold")
    ct.add_column("Image", overflow="fold")
    ct.add_column("Cells", justify="right")
    if s.cell_maps:
        for c in s.cell_maps:
            ct.add_row(str(c.index), c.name, c.image_path, str(c.cells))
    else:
        ct.add_row("-", "(none found)", "-", "-")
    console.print(ct)

    at = Table(title="Anime packs")
    at.add_column("Name", overflow="fold")
    at.add_column("Parts", justify="right")
    at.add_column("Animations", overflow="fold")
    if s.anime_packs:
        for p in s.anime_packs:
            at.add_row(p.name, str(p.parts), ", ".join(p.anims))
    else:
        at.add_row("(none found)", "-", "-")
    console.print(at)

    et = Table(title="Effects")
    et.add_column("Name", overflow="fold")
    et.add_column("FPS", justify="right")
    et.add_column("Nodes", justify="right")
    if s.effects:
        for e in s.effects:
            et.add_row(e.name, str(e.fps), str(e.nodes))
    else:
        et.add_row("(none found)", "-", "-")
    console.print(et)
    return 0


def find_ssbp_files(root: str) -> List[str]:
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for fn in sorted(filenames):
            if fn.lower().endswith(".ssbp"):
                found.append(os.path.join(dirpath, fn))
    return found


def plan_batch(inp: str, out: str) -> List[Tuple[str, str]]:
    """(input file, output folder) pairs. Batch outputs mirror the input tree."""
    if not os.path.isdir(inp):
        return [(inp, out)]
    jobs = []
    for path in find_ssbp_files(inp):
        rel = os.path.relpath(path, inp)
        jobs.append((path, os.path.join(out, os.path.splitext(rel)[0])))
    return jobs


class BatchConverter:
    """Runs one conversion per file; one texture resolver per output folder."""

    def __init__(self, texture_dirs: List[str]):
        self.texture_dirs = texture_dirs
        self._resolvers: Dict[str, PillowTextureResolver] = {}
        self._guard = threading.Lock()

    def resolver_for(self, path: str, out_dir: str) -> PillowTextureResolver:
        with self._guard:
            r = self._resolvers.get(out_dir)
            if r is None:
                r = self._resolvers[out_dir] = PillowTextureResolver(
                    _image_dirs(path, self.texture_dirs), out_dir
                )
            return r

    def convert_one(self, path: str, out_dir: str) -> Optional[ConversionResult]:
        try:
            return convert_file(path, self.resolver_for(path, out_dir), DirectorySink(out_dir))
        except (SsbpError, OSError) as e:
            log.error("%s: %s", path, e)
            return None


def cmd_convert(args: argparse.Namespace) -> int:
    jobs = plan_batch(args.input, args.output)
    if not jobs:
        console.print(f"[yellow]No .ssbp files under {args.input}[/yellow]")
        return 1

    batch = BatchConverter(args.texture_dir)
    with ThreadPoolExecutor(max_workers=max(args.jobs, 1)) as pool:
        results = list(pool.map(lambda job: batch.convert_one(*job), jobs))

    t = Table(title="Conversion")
    t.add_column("Input", overflow="fold")
    t.add_column("Output", overflow="fold")
    t.add_column("Documents", justify="right")
    failed = 0
    for (path, out_dir), res in zip(jobs, results):
        if res is None:
            failed += 1
            t.add_row(path, out_dir, "[red]failed[/red]")
        else:
            n = len(res.cellmap_names) + len(res.animepack_names) + len(res.effect_names) + 1
            t.add_row(path, out_dir, str(n))
    console.print(t)

    if failed:
        console.print(f"[red]{failed} of {len(jobs)} file(s) failed.[/red]")
        return 1
    console.print("[green]Done.[/green]")
    return 0


def _digest(docs: MemorySink) -> Dict[str, str]:
    return {name: hashlib.sha256(payload).hexdigest() for name, payload in docs.items()}


def cmd_verify_determinism(args: argparse.Namespace) -> int:
    runs = []
    with tempfile.TemporaryDirectory(prefix="ssbpcli-") as tmp:
        textures = PillowTextureResolver(_image_dirs(args.ssbp, args.texture_dir), tmp)
        for _ in range(2):
            docs = MemorySink()
            convert_file(args.ssbp, textures, docs)
            runs.append(_digest(docs))

    first, second = runs
    t = Table(title="Determinism")
    t.add_column("Document", overflow="fold")
    t.add_column("sha256", overflow="fold")
    t.add_column("Result", justify="center")
    same = list(first) == list(second)
    for name in first:
        ok = first[name] == second.get(name)
        same = same and ok
        t.add_row(name, first[name], "[green]IDENTICAL[/green]" if ok else "[red]DIFF[/red]")
    console.print(t)
    console.print("[green]IDENTICAL[/green]" if same else "[red]DIFF[/red]")
    return 0 if same else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ssbpcli")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug-level logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("summary", help="Print info about an .ssbp file")
    s.add_argument("ssbp")
    s.set_defaults(fn=cmd_summary)

    c = sub.add_parser("convert", help="Convert an .ssbp file (or a folder of them) to project documents")
    c.add_argument("input", help=".ssbp file, or a folder searched recursively")
    c.add_argument("output", help="Output folder")
    c.add_argument("--texture-dir", action="append", default=[], metavar="DIR",
                   help="Extra folder to look up textures in (repeatable)")
    c.add_argument("--jobs", type=int, default=1, help="Files converted in parallel")
    c.add_argument("--verbose", action="store_true", default=argparse.SUPPRESS, help="Debug-level logging")
    c.set_defaults(fn=cmd_convert)

    d = sub.add_parser("verify-determinism", help="Convert twice in memory and compare document hashes")
    d.add_argument("ssbp")
    d.add_argument("--texture-dir", action="append", default=[], metavar="DIR")
    d.set_defaults(fn=cmd_verify_determinism)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        return int(args.fn(args))
    except SsbpError as e:
        log.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
