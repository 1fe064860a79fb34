from __future__ import annotations

import warnings

import pytest

from seikyo.glossary import (
    EMPTY_INDEX,
    GlossaryEntry,
    GlossaryWarning,
    build_glossary_index,
    fold_kana,
)


def test_fold_kana_maps_katakana_only() -> None:
    assert fold_kana("サトリ") == "さとり"
    assert fold_kana("さとり") == "さとり"
    assert fold_kana("ヴヵヶ") == "ゔゕゖ"
    assert fold_kana("ヽヾ") == "ゝゞ"
    # Prolonged sound mark, kanji and latin are untouched.
    assert fold_kana("ナーム阿弥陀A") == "なーむ阿弥陀A"


def test_fold_kana_preserves_length() -> None:
    text = "{覚|サト}リヲ得ル"
    assert len(fold_kana(text)) == len(text)


def test_index_orders_longest_first_with_input_order_ties() -> None:
    entries = [
        GlossaryEntry("信", "しん", "belief"),
        GlossaryEntry("念仏", "ねんぶつ", "nembutsu"),
        GlossaryEntry("信心", "しんじん", "faith"),
        GlossaryEntry("本願", "ほんがん", "vow"),
    ]
    index = build_glossary_index(entries)
    assert [entry.term for _, entry in index.ordered] == ["念仏", "信心", "本願", "信"]
    assert index.max_term_length == 2
    assert len(index) == 4


def test_folded_duplicates_keep_first_entry() -> None:
    entries = [
        GlossaryEntry("さとり", "さとり", "hiragana"),
        GlossaryEntry("サトリ", "さとり", "katakana"),
    ]
    index = build_glossary_index(entries)
    assert len(index) == 1
    assert index.ordered[0][1].meaning == "hiragana"
    # Both spellings resolve to the surviving entry.
    assert index.lookup("サトリ").meaning == "hiragana"
    assert index.lookup("さとり").meaning == "hiragana"


def test_lookup_prefers_exact_then_folded() -> None:
    index = build_glossary_index([GlossaryEntry("サトリ", "さとり", "enlightenment")])
    assert index.lookup("サトリ").term == "サトリ"
    assert index.lookup("さとり").term == "サトリ"
    assert index.lookup("悟") is None


def test_candidates_starting_with_prefix() -> None:
    index = build_glossary_index(
        [
            GlossaryEntry("信", "しん", "belief"),
            GlossaryEntry("信心", "しんじん", "faith"),
            GlossaryEntry("心", "しん", "mind"),
        ]
    )
    candidates = index.candidates_starting_with("信")
    assert [term for term, _ in candidates] == ["信心", "信"]
    assert index.candidates_starting_with("") == []
    assert index.candidates_starting_with("仏") == []


def test_match_at_returns_longest_term() -> None:
    index = build_glossary_index(
        [GlossaryEntry("念", "ねん", "thought"), GlossaryEntry("念仏", "ねんぶつ", "nembutsu")]
    )
    folded = fold_kana("ただ念仏")
    term, entry = index.match_at(folded, 2)
    assert term == "念仏"
    assert entry.meaning == "nembutsu"
    assert index.match_at(folded, 0) is None


def test_empty_term_is_rejected_with_warning() -> None:
    bad = GlossaryEntry("", "なし", "nothing")
    with pytest.warns(GlossaryWarning):
        index = build_glossary_index([bad, GlossaryEntry("仏", "ぶつ", "buddha")])
    assert index.rejected == (bad,)
    assert [entry.term for _, entry in index.ordered] == ["仏"]


def test_whitespace_term_is_rejected() -> None:
    with pytest.warns(GlossaryWarning):
        index = build_glossary_index([GlossaryEntry("　", "", "")])
    assert len(index) == 0


def test_none_glossary_is_empty_index() -> None:
    assert build_glossary_index(None) is EMPTY_INDEX
    assert len(build_glossary_index([])) == 0


def test_mapping_records_are_accepted() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        index = build_glossary_index([{"term": "本願", "reading": "ほんがん", "meaning": "vow"}])
    assert index.lookup("本願") == GlossaryEntry("本願", "ほんがん", "vow")


def test_malformed_mapping_is_skipped_with_warning() -> None:
    with pytest.warns(GlossaryWarning):
        index = build_glossary_index([{"reading": "x"}, {"term": "仏"}])
    assert index.lookup("仏") == GlossaryEntry("仏", "", "")
    assert len(index) == 1


def test_input_list_is_not_mutated() -> None:
    entries = [GlossaryEntry("信", "しん", "belief"), GlossaryEntry("信心", "しんじん", "faith")]
    snapshot = list(entries)
    build_glossary_index(entries)
    assert entries == snapshot


def test_entry_from_payload_rejects_non_mapping() -> None:
    assert GlossaryEntry.from_payload("信") is None
    assert GlossaryEntry.from_payload({"term": 3}) is None
