from __future__ import annotations

import argparse
import json
import os
import sys
from importlib import metadata
from pathlib import Path

import tomllib
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .blocks import BlockKind, segment_blocks
from .convert import convert_directory, decode_source_bytes
from .glossary import GlossaryEntry, build_glossary_index
from .inline import GlossaryAnnotation, InlineNode, PlainText, Ruby, compose_inline, serialize_inline_nodes
from .library import search_scriptures, set_debug_logging
from .logging_utils import build_uvicorn_log_config
from .render import render_chapter_html
from .web import WebConfig, create_app

DATA_DIR_ENV = "SEIKYO_DATA_DIR"
DEFAULT_DATA_DIR = "data"

_BLOCK_STYLES = {
    BlockKind.CITATION_HEADER: "bold yellow",
    BlockKind.CITATION: "cyan",
    BlockKind.COMMENTARY: "default",
}


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - installed without a source tree
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("seikyo")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _default_root() -> str:
    return os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"seikyo {__version__}",
    )


def _add_root_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root",
        default=None,
        help=f"Scripture data directory (default: ${DATA_DIR_ENV} or ./{DEFAULT_DATA_DIR}).",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="seikyo",
        description=(
            "Read annotated scripture: split citations from commentary and render ruby "
            "with glossary notes. Commands: segment, render, convert, search, web."
        ),
    )
    _add_version_flag(ap)
    return ap


def build_segment_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="seikyo segment",
        description="Show how a chapter body splits into citation and commentary blocks.",
    )
    _add_version_flag(ap)
    ap.add_argument("path", help="Text file holding one chapter body.")
    ap.add_argument("--json", action="store_true", help="Emit blocks as JSON.")
    return ap


def build_render_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="seikyo render",
        description="Compose ruby notation and glossary annotations for a chapter body.",
    )
    _add_version_flag(ap)
    ap.add_argument("path", help="Text file holding one chapter body.")
    ap.add_argument(
        "-g",
        "--glossary",
        help="JSON file with a list of {term, reading, meaning} records.",
    )
    output = ap.add_mutually_exclusive_group()
    output.add_argument("--html", action="store_true", help="Emit an HTML fragment.")
    output.add_argument("--json", action="store_true", help="Emit blocks with their nodes as JSON.")
    return ap


def build_convert_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="seikyo convert",
        description="Convert <category>/*.txt exports into scripture JSON records.",
    )
    _add_version_flag(ap)
    ap.add_argument("data_dir", help="Directory with one subdirectory per category.")
    return ap


def build_search_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="seikyo search",
        description="Find chapters containing an exact phrase.",
    )
    _add_version_flag(ap)
    ap.add_argument("query", nargs="+", help="Phrase to search for.")
    _add_root_option(ap)
    ap.add_argument("--limit", type=int, default=50, help="Maximum hits (default: 50).")
    ap.add_argument("--debug", action="store_true", help="Report skipped data files.")
    return ap


def build_web_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="seikyo web",
        description="Serve the scripture reader over HTTP.",
    )
    _add_version_flag(ap)
    _add_root_option(ap)
    ap.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the web server (default: 127.0.0.1).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for the web server (default: 3000).",
    )
    ap.add_argument("--username", help="Require basic auth with this user (or $AUTH_USERNAME).")
    ap.add_argument("--password", help="Basic auth password (or $AUTH_PASSWORD).")
    ap.add_argument("--debug", action="store_true", help="Report skipped data files.")
    return ap


def _read_text_file(path_value: str) -> str:
    path = Path(path_value)
    if not path.is_file():
        raise SystemExit(f"Input file not found: {path}")
    return decode_source_bytes(path.read_bytes())


def _load_glossary_file(path_value: str | None) -> list[GlossaryEntry] | None:
    if not path_value:
        return None
    path = Path(path_value)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SystemExit(f"Glossary file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Glossary file is not valid JSON: {path} ({exc})") from exc
    if isinstance(payload, dict):
        payload = payload.get("glossary")
    if not isinstance(payload, list):
        raise SystemExit(f"Glossary file must hold a list of entries: {path}")
    entries: list[GlossaryEntry] = []
    for item in payload:
        entry = GlossaryEntry.from_payload(item)
        if entry is not None:
            entries.append(entry)
    return entries


def _describe_node(node: InlineNode) -> str:
    if isinstance(node, PlainText):
        return escape(node.text)
    if isinstance(node, Ruby):
        return f"[magenta]{escape(node.base_text)}[/]([dim]{escape(node.reading)}[/])"
    if isinstance(node, GlossaryAnnotation):
        inner = "".join(_describe_node(child) for child in node.children)
        return f"[bold green]⟨{inner}⟩[/][dim]{{{escape(node.reading)}: {escape(node.meaning)}}}[/]"
    return escape(str(node))


def _run_segment(args: argparse.Namespace) -> int:
    blocks = segment_blocks(_read_text_file(args.path))
    if args.json:
        print(json.dumps([block.to_payload() for block in blocks], ensure_ascii=False, indent=2))
        return 0
    console = Console()
    table = Table(show_lines=True)
    table.add_column("#", justify="right")
    table.add_column("kind")
    table.add_column("source")
    table.add_column("content")
    for idx, block in enumerate(blocks, start=1):
        style = _BLOCK_STYLES.get(block.kind, "default")
        table.add_row(
            str(idx),
            f"[{style}]{block.kind.value}[/]",
            escape(block.source or ""),
            escape(block.content),
        )
    console.print(table)
    return 0


def _run_render(args: argparse.Namespace) -> int:
    content = _read_text_file(args.path)
    glossary = _load_glossary_file(args.glossary)
    if args.html:
        print(render_chapter_html(content, glossary))
        return 0
    index = build_glossary_index(glossary)
    blocks = segment_blocks(content)
    if args.json:
        payload = []
        for block in blocks:
            entry = block.to_payload()
            entry["nodes"] = serialize_inline_nodes(compose_inline(block.content, index))
            payload.append(entry)
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0
    console = Console()
    for block in blocks:
        style = _BLOCK_STYLES.get(block.kind, "default")
        label = block.kind.value
        if block.source:
            label = f"{label} ({block.source})"
        console.print(f"[{style}]── {escape(label)}[/]")
        nodes = compose_inline(block.content, index)
        console.print("".join(_describe_node(node) for node in nodes))
    return 0


def _run_convert(args: argparse.Namespace) -> int:
    data_dir = Path(args.data_dir).expanduser()
    try:
        results = convert_directory(data_dir)
    except FileNotFoundError as exc:
        raise SystemExit(str(exc)) from exc
    console = Console()
    console.print("聖教テキストをJSON形式に変換中...\n")
    for output_path, scripture in results:
        console.print(
            f"[green]✓[/] {escape(scripture.title or scripture.id)} "
            f"({len(scripture.chapters)}章) → {escape(str(output_path))}"
        )
    if not results:
        console.print("[yellow]No .txt files found.[/]")
    console.print("\n完了！")
    return 0


def _run_search(args: argparse.Namespace) -> int:
    set_debug_logging(bool(args.debug))
    root = Path(args.root or _default_root()).expanduser()
    query = " ".join(args.query).strip()
    if not query:
        raise SystemExit("No search phrase provided.")
    hits = search_scriptures(root, query, limit=args.limit)
    console = Console()
    if not hits:
        console.print(f"No chapters contain “{escape(query)}”.")
        return 1
    for hit in hits:
        console.print(
            f"[bold]{escape(hit.scripture.title)}[/] / {escape(hit.chapter.title)} "
            f"[dim]({escape(hit.scripture.category)}/{escape(hit.scripture.id)}/{escape(hit.chapter.id)})[/]"
        )
        console.print(f"  {escape(hit.snippet)}")
    return 0


def _run_web(args: argparse.Namespace) -> None:
    set_debug_logging(bool(args.debug))
    root = Path(args.root or _default_root()).expanduser().resolve()
    config = WebConfig(root=root, username=args.username, password=args.password)
    try:
        app = create_app(config)
    except FileNotFoundError as exc:
        raise SystemExit(str(exc)) from exc
    print(f"Serving seikyo from {root}")
    print(f"Web URL: http://{args.host}:{args.port}/")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info",
        log_config=build_uvicorn_log_config(),
    )


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "segment":
        return _run_segment(build_segment_parser().parse_args(argv[1:]))
    if argv and argv[0] == "render":
        return _run_render(build_render_parser().parse_args(argv[1:]))
    if argv and argv[0] == "convert":
        return _run_convert(build_convert_parser().parse_args(argv[1:]))
    if argv and argv[0] == "search":
        return _run_search(build_search_parser().parse_args(argv[1:]))
    if argv and argv[0] == "web":
        _run_web(build_web_parser().parse_args(argv[1:]))
        return 0

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    parser.parse_args(argv)
    raise SystemExit(f"Unknown command: {argv[0]}")


if __name__ == "__main__":
    raise SystemExit(main())
