from __future__ import annotations

import json
import re
from pathlib import Path

from .library import Chapter, Scripture, scripture_to_payload

__all__ = [
    "DEFAULT_SOURCE",
    "decode_source_bytes",
    "format_chapter_title",
    "parse_scripture_text",
    "convert_file",
    "convert_directory",
]

DEFAULT_SOURCE = "浄土真宗本願寺派総合研究所「浄土真宗聖典」聖教データベース"

_TITLE_MARK = "#1"
_CHAPTER_MARK = "#2"
_PAGE_MARK = "P--"
_SOURCE_ENCODINGS = ("utf-8", "cp932", "shift_jis", "euc_jp")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def decode_source_bytes(raw: bytes) -> str:
    """
    Decode a downloaded scripture file.

    The database exports are mostly Shift_JIS; anything that fails every
    codec is decoded as UTF-8 with undecodable bytes dropped.
    """
    text: str | None = None
    if raw.startswith((b"\xff\xfe", b"\xfe\xff")):
        try:
            text = raw.decode("utf-16")
        except UnicodeDecodeError:
            text = None
    if text is None:
        for enc in _SOURCE_ENCODINGS:
            try:
                text = raw.decode(enc)
                break
            except UnicodeDecodeError:
                continue
    if text is None:
        text = raw.decode("utf-8", errors="ignore")
    text = text.lstrip("\ufeff")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def format_chapter_title(raw: str) -> str:
    if raw.isascii() and raw.isdigit():
        return f"第{raw}条"
    return raw


def _chapter_content(lines: list[str]) -> str:
    return _BLANK_RUN_RE.sub("\n\n", "\n".join(lines).strip())


def parse_scripture_text(
    text: str,
    scripture_id: str,
    source: str = DEFAULT_SOURCE,
) -> Scripture:
    """
    Build a scripture record from the marked-up plain text export.

    ``#1`` carries the work title and each ``#2`` heading opens a chapter.
    Page markers (``P--``) and blank lines are dropped.
    """
    title = ""
    chapters: list[Chapter] = []
    heading: str | None = None
    lines: list[str] = []

    def finish_chapter() -> None:
        if heading is None:
            return
        chapters.append(
            Chapter(
                id=heading,
                title=format_chapter_title(heading),
                content=_chapter_content(lines),
            )
        )

    for line in text.split("\n"):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith(_PAGE_MARK):
            continue
        if trimmed.startswith(_TITLE_MARK):
            title = trimmed[len(_TITLE_MARK) :].strip()
            continue
        if trimmed.startswith(_CHAPTER_MARK):
            finish_chapter()
            heading = trimmed[len(_CHAPTER_MARK) :].strip()
            lines = []
            continue
        if heading is not None:
            lines.append(line)

    finish_chapter()
    return Scripture(id=scripture_id, title=title, source=source, chapters=chapters)


def convert_file(input_path: Path, output_path: Path) -> Scripture:
    text = decode_source_bytes(input_path.read_bytes())
    scripture = parse_scripture_text(text, input_path.stem)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(scripture_to_payload(scripture), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return scripture


def convert_directory(data_dir: Path) -> list[tuple[Path, Scripture]]:
    """Convert every ``<category>/*.txt`` under ``data_dir`` to a sibling ``.json``."""
    if not data_dir.is_dir():
        raise FileNotFoundError(f"Data directory not found: {data_dir}")
    results: list[tuple[Path, Scripture]] = []
    for category_dir in sorted(data_dir.iterdir(), key=lambda entry: entry.name):
        if not category_dir.is_dir():
            continue
        for text_path in sorted(category_dir.glob("*.txt"), key=lambda entry: entry.name):
            output_path = text_path.with_suffix(".json")
            scripture = convert_file(text_path, output_path)
            results.append((output_path, scripture))
    return results
