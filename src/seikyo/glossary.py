from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Iterable, Mapping

__all__ = [
    "GlossaryEntry",
    "GlossaryIndex",
    "GlossaryWarning",
    "build_glossary_index",
    "fold_kana",
    "EMPTY_INDEX",
]


class GlossaryWarning(UserWarning):
    """Emitted when a glossary entry cannot be indexed."""


@dataclass(frozen=True, slots=True)
class GlossaryEntry:
    term: str
    reading: str
    meaning: str

    def to_payload(self) -> dict[str, str]:
        return {"term": self.term, "reading": self.reading, "meaning": self.meaning}

    @classmethod
    def from_payload(cls, payload: object) -> "GlossaryEntry | None":
        if not isinstance(payload, Mapping):
            return None
        term = payload.get("term")
        if not isinstance(term, str):
            return None
        reading = payload.get("reading")
        meaning = payload.get("meaning")
        return cls(
            term=term,
            reading=reading if isinstance(reading, str) else "",
            meaning=meaning if isinstance(meaning, str) else "",
        )


def fold_kana(text: str) -> str:
    """
    Map katakana to hiragana for matching.

    The mapping is one character to one character, so offsets in the folded
    string line up with offsets in the source string.
    """
    result_chars: list[str] = []
    for ch in text:
        code = ord(ch)
        if 0x30A1 <= code <= 0x30F6:
            result_chars.append(chr(code - 0x60))
        elif ch == "ヽ":
            result_chars.append("ゝ")
        elif ch == "ヾ":
            result_chars.append("ゞ")
        elif ch == "ヿ":
            result_chars.append("ゟ")
        else:
            result_chars.append(ch)
    return "".join(result_chars)


@dataclass(frozen=True)
class GlossaryIndex:
    """
    Read-only lookup structure over one chapter's glossary.

    ``ordered`` holds ``(folded_term, entry)`` pairs longest first; equal
    lengths keep the order the entries were supplied in.
    """

    ordered: tuple[tuple[str, GlossaryEntry], ...] = ()
    exact: Mapping[str, GlossaryEntry] = field(default_factory=dict)
    folded: Mapping[str, GlossaryEntry] = field(default_factory=dict)
    rejected: tuple[GlossaryEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.ordered)

    @property
    def max_term_length(self) -> int:
        return len(self.ordered[0][0]) if self.ordered else 0

    def lookup(self, term: str) -> GlossaryEntry | None:
        entry = self.exact.get(term)
        if entry is not None:
            return entry
        return self.folded.get(fold_kana(term))

    def candidates_starting_with(self, folded_prefix: str) -> list[tuple[str, GlossaryEntry]]:
        """Entries whose folded term begins with ``folded_prefix``, longest first."""
        if not folded_prefix:
            return []
        return [
            (folded_term, entry)
            for folded_term, entry in self.ordered
            if folded_term.startswith(folded_prefix)
        ]

    def match_at(self, folded_text: str, position: int) -> tuple[str, GlossaryEntry] | None:
        """Longest entry whose folded term occurs in ``folded_text`` at ``position``."""
        for folded_term, entry in self.ordered:
            if folded_text.startswith(folded_term, position):
                return folded_term, entry
        return None


EMPTY_INDEX = GlossaryIndex()


def _coerce_entries(
    entries: Iterable[GlossaryEntry | Mapping[str, object]],
) -> list[GlossaryEntry]:
    coerced: list[GlossaryEntry] = []
    for item in entries:
        if isinstance(item, GlossaryEntry):
            coerced.append(item)
            continue
        entry = GlossaryEntry.from_payload(item)
        if entry is None:
            warnings.warn(
                f"Skipping malformed glossary record: {item!r}",
                GlossaryWarning,
                stacklevel=3,
            )
            continue
        coerced.append(entry)
    return coerced


def build_glossary_index(
    entries: Iterable[GlossaryEntry | Mapping[str, object]] | None,
) -> GlossaryIndex:
    """
    Index a chapter glossary for the inline compositor.

    Entries are inserted longest original term first, so when two terms fold
    to the same key the longer (then earlier) one keeps the slot. Entries with
    an empty term are rejected with a ``GlossaryWarning``.
    """
    if entries is None:
        return EMPTY_INDEX

    accepted: list[GlossaryEntry] = []
    rejected: list[GlossaryEntry] = []
    for entry in _coerce_entries(entries):
        if not entry.term.strip():
            warnings.warn(
                f"Glossary entry with empty term rejected (reading={entry.reading!r}).",
                GlossaryWarning,
                stacklevel=2,
            )
            rejected.append(entry)
            continue
        accepted.append(entry)

    # Stable sort: equal lengths keep input order.
    accepted.sort(key=lambda entry: len(entry.term), reverse=True)

    exact: dict[str, GlossaryEntry] = {}
    folded: dict[str, GlossaryEntry] = {}
    ordered: list[tuple[str, GlossaryEntry]] = []
    for entry in accepted:
        key = fold_kana(entry.term)
        if key in folded:
            continue
        exact[entry.term] = entry
        folded[key] = entry
        ordered.append((key, entry))

    ordered.sort(key=lambda item: len(item[0]), reverse=True)
    return GlossaryIndex(
        ordered=tuple(ordered),
        exact=exact,
        folded=folded,
        rejected=tuple(rejected),
    )
