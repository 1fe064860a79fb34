from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .glossary import GlossaryEntry

__all__ = [
    "Chapter",
    "Scripture",
    "ScriptureInfo",
    "ChapterLookup",
    "SearchHit",
    "list_categories",
    "list_scriptures",
    "list_all_scriptures",
    "load_scripture",
    "find_chapter",
    "search_scriptures",
    "scripture_to_payload",
    "set_debug_logging",
]

SCRIPTURE_SUFFIX = ".json"
SNIPPET_BEFORE = 30
SNIPPET_AFTER = 50
DEFAULT_SEARCH_LIMIT = 50

_DEBUG_LOG = False


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def _debug_log(message: str) -> None:
    if _DEBUG_LOG:
        print(f"[seikyo debug] {message}")


@dataclass
class Chapter:
    id: str
    title: str
    content: str
    glossary: list[GlossaryEntry] = field(default_factory=list)


@dataclass
class Scripture:
    id: str
    title: str
    source: str
    chapters: list[Chapter]

    def chapter_index(self, chapter_id: str) -> int | None:
        for idx, chapter in enumerate(self.chapters):
            if chapter.id == chapter_id:
                return idx
        return None


@dataclass(slots=True)
class ScriptureInfo:
    id: str
    title: str
    category: str
    chapter_count: int


@dataclass(slots=True)
class ChapterLookup:
    scripture: Scripture
    chapter: Chapter
    index: int
    previous: Chapter | None
    next: Chapter | None


@dataclass(slots=True)
class SearchHit:
    scripture: ScriptureInfo
    chapter: Chapter
    snippet: str


def _is_safe_component(value: str) -> bool:
    if not value or value in {".", ".."}:
        return False
    return "/" not in value and "\\" not in value and "\x00" not in value


def _chapter_from_payload(payload: object) -> Chapter | None:
    if not isinstance(payload, Mapping):
        return None
    chapter_id = payload.get("id")
    content = payload.get("content")
    if not isinstance(chapter_id, str) or not isinstance(content, str):
        return None
    title = payload.get("title")
    glossary: list[GlossaryEntry] = []
    raw_glossary = payload.get("glossary")
    if isinstance(raw_glossary, list):
        for item in raw_glossary:
            entry = GlossaryEntry.from_payload(item)
            if entry is not None:
                glossary.append(entry)
    return Chapter(
        id=chapter_id,
        title=title if isinstance(title, str) and title else chapter_id,
        content=content,
        glossary=glossary,
    )


def _scripture_from_payload(payload: object, fallback_id: str) -> Scripture | None:
    if not isinstance(payload, Mapping):
        return None
    raw_chapters = payload.get("chapters")
    if not isinstance(raw_chapters, list):
        return None
    chapters: list[Chapter] = []
    for item in raw_chapters:
        chapter = _chapter_from_payload(item)
        if chapter is None:
            _debug_log(f"Skipping malformed chapter in {fallback_id}: {item!r:.80}")
            continue
        chapters.append(chapter)
    scripture_id = payload.get("id")
    title = payload.get("title")
    source = payload.get("source")
    return Scripture(
        id=scripture_id if isinstance(scripture_id, str) and scripture_id else fallback_id,
        title=title if isinstance(title, str) else "",
        source=source if isinstance(source, str) else "",
        chapters=chapters,
    )


def _read_scripture_file(path: Path) -> Scripture | None:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        _debug_log(f"Failed to read {path}: {exc}")
        return None
    scripture = _scripture_from_payload(payload, path.stem)
    if scripture is None:
        _debug_log(f"Ignoring {path}: not a scripture record")
    return scripture


def scripture_to_payload(scripture: Scripture) -> dict[str, object]:
    chapters: list[dict[str, object]] = []
    for chapter in scripture.chapters:
        entry: dict[str, object] = {
            "id": chapter.id,
            "title": chapter.title,
            "content": chapter.content,
        }
        if chapter.glossary:
            entry["glossary"] = [item.to_payload() for item in chapter.glossary]
        chapters.append(entry)
    return {
        "id": scripture.id,
        "title": scripture.title,
        "source": scripture.source,
        "chapters": chapters,
    }


def list_categories(root: Path) -> list[str]:
    try:
        entries = sorted(root.iterdir(), key=lambda entry: entry.name)
    except OSError:
        return []
    return [entry.name for entry in entries if entry.is_dir() and not entry.name.startswith(".")]


def list_scriptures(root: Path, category: str) -> list[ScriptureInfo]:
    if not _is_safe_component(category):
        return []
    category_dir = root / category
    try:
        files = sorted(
            (entry for entry in category_dir.iterdir() if entry.suffix == SCRIPTURE_SUFFIX),
            key=lambda entry: entry.name,
        )
    except OSError:
        return []
    infos: list[ScriptureInfo] = []
    for path in files:
        scripture = _read_scripture_file(path)
        if scripture is None:
            continue
        infos.append(
            ScriptureInfo(
                id=path.stem,
                title=scripture.title or scripture.id,
                category=category,
                chapter_count=len(scripture.chapters),
            )
        )
    return infos


def list_all_scriptures(root: Path) -> list[ScriptureInfo]:
    infos: list[ScriptureInfo] = []
    for category in list_categories(root):
        infos.extend(list_scriptures(root, category))
    return infos


def load_scripture(root: Path, category: str, scripture_id: str) -> Scripture | None:
    if not _is_safe_component(category) or not _is_safe_component(scripture_id):
        return None
    path = root / category / f"{scripture_id}{SCRIPTURE_SUFFIX}"
    if not path.is_file():
        return None
    return _read_scripture_file(path)


def find_chapter(
    root: Path,
    category: str,
    scripture_id: str,
    chapter_id: str,
) -> ChapterLookup | None:
    scripture = load_scripture(root, category, scripture_id)
    if scripture is None:
        return None
    idx = scripture.chapter_index(chapter_id)
    if idx is None:
        return None
    chapters = scripture.chapters
    return ChapterLookup(
        scripture=scripture,
        chapter=chapters[idx],
        index=idx,
        previous=chapters[idx - 1] if idx > 0 else None,
        next=chapters[idx + 1] if idx + 1 < len(chapters) else None,
    )


def _build_snippet(content: str, position: int, query_length: int) -> str:
    start = max(0, position - SNIPPET_BEFORE)
    end = min(len(content), position + query_length + SNIPPET_AFTER)
    snippet = content[start:end].replace("\n", " ")
    if start > 0:
        snippet = "..." + snippet
    if end < len(content):
        snippet = snippet + "..."
    return snippet


def search_scriptures(
    root: Path,
    query: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> list[SearchHit]:
    """Exact substring search over every chapter, one hit per chapter."""
    needle = query.strip()
    if not needle or limit <= 0:
        return []
    hits: list[SearchHit] = []
    for info in list_all_scriptures(root):
        scripture = load_scripture(root, info.category, info.id)
        if scripture is None:
            continue
        for chapter in scripture.chapters:
            position = chapter.content.find(needle)
            if position < 0:
                continue
            hits.append(
                SearchHit(
                    scripture=info,
                    chapter=chapter,
                    snippet=_build_snippet(chapter.content, position, len(needle)),
                )
            )
            if len(hits) >= limit:
                return hits
    return hits
