from __future__ import annotations

import json
from pathlib import Path

from seikyo.glossary import GlossaryEntry
from seikyo.library import (
    find_chapter,
    list_all_scriptures,
    list_categories,
    list_scriptures,
    load_scripture,
    search_scriptures,
    set_debug_logging,
)


def _write_scripture(root: Path, category: str, scripture_id: str, chapters: list[dict]) -> Path:
    category_dir = root / category
    category_dir.mkdir(parents=True, exist_ok=True)
    path = category_dir / f"{scripture_id}.json"
    payload = {
        "id": scripture_id,
        "title": f"{scripture_id} title",
        "source": "聖教データベース",
        "chapters": chapters,
    }
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return path


def _sample_root(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    _write_scripture(
        root,
        "tannisho",
        "tannisho",
        [
            {"id": "序文", "title": "序文", "content": "竊回愚案"},
            {
                "id": "第一条",
                "title": "第一条",
                "content": "弥陀の誓願不思議にたすけられまゐらせて",
                "glossary": [{"term": "誓願", "reading": "せいがん", "meaning": "vow"}],
            },
            {"id": "第二条", "title": "第二条", "content": "ただ念仏して"},
        ],
    )
    _write_scripture(
        root,
        "kyogyoshinsho",
        "kyogyoshinsho",
        [{"id": "総序", "content": "竊以難思弘誓\nただ念仏"}],
    )
    return root


def test_categories_and_listings(tmp_path: Path) -> None:
    root = _sample_root(tmp_path)
    (root / ".cache").mkdir()
    assert list_categories(root) == ["kyogyoshinsho", "tannisho"]
    (info,) = list_scriptures(root, "tannisho")
    assert info.id == "tannisho"
    assert info.title == "tannisho title"
    assert info.chapter_count == 3
    assert [item.category for item in list_all_scriptures(root)] == ["kyogyoshinsho", "tannisho"]


def test_missing_root_lists_nothing(tmp_path: Path) -> None:
    missing = tmp_path / "nope"
    assert list_categories(missing) == []
    assert list_scriptures(missing, "tannisho") == []
    assert search_scriptures(missing, "念仏") == []


def test_load_scripture_parses_glossary_and_default_title(tmp_path: Path) -> None:
    root = _sample_root(tmp_path)
    scripture = load_scripture(root, "tannisho", "tannisho")
    assert scripture is not None
    assert scripture.chapters[1].glossary == [GlossaryEntry("誓願", "せいがん", "vow")]
    other = load_scripture(root, "kyogyoshinsho", "kyogyoshinsho")
    assert other.chapters[0].title == "総序"


def test_unsafe_components_are_rejected(tmp_path: Path) -> None:
    root = _sample_root(tmp_path)
    assert load_scripture(root, "..", "tannisho") is None
    assert load_scripture(root, "tannisho", "../tannisho/tannisho") is None
    assert list_scriptures(root, "..") == []


def test_find_chapter_reports_neighbours(tmp_path: Path) -> None:
    root = _sample_root(tmp_path)
    lookup = find_chapter(root, "tannisho", "tannisho", "第一条")
    assert lookup is not None
    assert lookup.index == 1
    assert lookup.previous.id == "序文"
    assert lookup.next.id == "第二条"
    first = find_chapter(root, "tannisho", "tannisho", "序文")
    assert first.previous is None
    last = find_chapter(root, "tannisho", "tannisho", "第二条")
    assert last.next is None
    assert find_chapter(root, "tannisho", "tannisho", "第十九条") is None
    assert find_chapter(root, "tannisho", "missing", "序文") is None


def test_malformed_file_is_skipped_with_debug_log(tmp_path: Path, capsys) -> None:
    root = _sample_root(tmp_path)
    (root / "tannisho" / "broken.json").write_text("{not json", encoding="utf-8")
    set_debug_logging(True)
    try:
        infos = list_scriptures(root, "tannisho")
    finally:
        set_debug_logging(False)
    assert [info.id for info in infos] == ["tannisho"]
    assert "[seikyo debug]" in capsys.readouterr().out


def test_search_returns_one_hit_per_chapter_with_snippet(tmp_path: Path) -> None:
    root = _sample_root(tmp_path)
    hits = search_scriptures(root, " 念仏 ")
    assert [(hit.scripture.id, hit.chapter.id) for hit in hits] == [
        ("kyogyoshinsho", "総序"),
        ("tannisho", "第二条"),
    ]
    assert hits[0].snippet == "竊以難思弘誓 ただ念仏"
    assert hits[1].snippet == "ただ念仏して"


def test_search_snippet_truncation(tmp_path: Path) -> None:
    root = tmp_path / "data"
    content = "あ" * 40 + "念仏" + "い" * 60
    _write_scripture(root, "c", "w", [{"id": "1", "content": content}])
    (hit,) = search_scriptures(root, "念仏")
    assert hit.snippet == "..." + "あ" * 30 + "念仏" + "い" * 50 + "..."


def test_search_blank_query_and_limit(tmp_path: Path) -> None:
    root = _sample_root(tmp_path)
    assert search_scriptures(root, "   ") == []
    assert len(search_scriptures(root, "念仏", limit=1)) == 1
    assert search_scriptures(root, "念仏", limit=0) == []
