from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .glossary import EMPTY_INDEX, GlossaryEntry, GlossaryIndex, fold_kana
from .ruby import RubyToken, scan_ruby

__all__ = [
    "PlainText",
    "Ruby",
    "GlossaryAnnotation",
    "InlineNode",
    "compose_inline",
    "walk_glossary",
    "display_text",
    "serialize_inline_nodes",
]


@dataclass(frozen=True, slots=True)
class PlainText:
    text: str

    @property
    def display_text(self) -> str:
        return self.text

    def to_payload(self) -> dict[str, object]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True, slots=True)
class Ruby:
    base_text: str
    reading: str

    @property
    def display_text(self) -> str:
        return self.base_text

    def to_payload(self) -> dict[str, object]:
        return {"type": "ruby", "base": self.base_text, "reading": self.reading}


@dataclass(frozen=True, slots=True)
class GlossaryAnnotation:
    reading: str
    meaning: str
    children: tuple[PlainText | Ruby, ...]

    @property
    def display_text(self) -> str:
        return "".join(child.display_text for child in self.children)

    def to_payload(self) -> dict[str, object]:
        return {
            "type": "glossary",
            "reading": self.reading,
            "meaning": self.meaning,
            "children": [child.to_payload() for child in self.children],
        }


InlineNode = PlainText | Ruby | GlossaryAnnotation


@dataclass(frozen=True, slots=True)
class _Extension:
    entry: GlossaryEntry
    first_token: int
    token_count: int
    tokens_end: int
    end: int

    def to_node(self, content: str, tokens: Sequence[RubyToken]) -> GlossaryAnnotation:
        children: list[PlainText | Ruby] = [
            Ruby(token.base_text, token.reading)
            for token in tokens[self.first_token : self.first_token + self.token_count]
        ]
        if self.end > self.tokens_end:
            children.append(PlainText(content[self.tokens_end : self.end]))
        return GlossaryAnnotation(self.entry.reading, self.entry.meaning, tuple(children))


def walk_glossary(text: str, index: GlossaryIndex | None = None) -> list[InlineNode]:
    """
    Annotate glossary terms in a run of text that contains no ruby notation.

    At each position the longest folded term wins; anything unmatched is
    gathered into ``PlainText`` one character at a time.
    """
    if not text:
        return []
    if index is None or not len(index):
        return [PlainText(text)]

    folded = fold_kana(text)
    nodes: list[InlineNode] = []
    pending: list[str] = []
    position = 0
    while position < len(text):
        hit = index.match_at(folded, position)
        if hit is None:
            pending.append(text[position])
            position += 1
            continue
        folded_term, entry = hit
        if pending:
            nodes.append(PlainText("".join(pending)))
            pending = []
        end = position + len(folded_term)
        nodes.append(
            GlossaryAnnotation(entry.reading, entry.meaning, (PlainText(text[position:end]),))
        )
        position = end
    if pending:
        nodes.append(PlainText("".join(pending)))
    return nodes


def _extend_candidate(
    content: str,
    tokens: Sequence[RubyToken],
    keys: Sequence[str],
    first: int,
    folded_term: str,
) -> tuple[int, int, int] | None:
    # Returns (token_count, tokens_end, end) when folded_term is consumed exactly.
    accumulated = keys[first]
    tokens_end = tokens[first].end_offset
    following = first + 1
    while accumulated != folded_term and following < len(tokens):
        token = tokens[following]
        if token.start_offset != tokens_end:
            break
        extended = accumulated + keys[following]
        if not folded_term.startswith(extended):
            break
        accumulated = extended
        tokens_end = token.end_offset
        following += 1

    token_count = following - first
    if accumulated == folded_term:
        return token_count, tokens_end, tokens_end

    remainder = folded_term[len(accumulated) :]
    limit = tokens[following].start_offset if following < len(tokens) else len(content)
    end = tokens_end + len(remainder)
    if end > limit:
        return None
    if fold_kana(content[tokens_end:end]) != remainder:
        return None
    return token_count, tokens_end, end


def _match_extension(
    content: str,
    tokens: Sequence[RubyToken],
    key_sets: Sequence[Sequence[str]],
    first: int,
    index: GlossaryIndex,
) -> _Extension | None:
    # Candidates arrive longest first, so the first success per key set is
    # that set's longest. Across sets the longer term wins; ties keep base keys.
    best: _Extension | None = None
    best_length = 0
    for keys in key_sets:
        for folded_term, entry in index.candidates_starting_with(keys[first]):
            result = _extend_candidate(content, tokens, keys, first, folded_term)
            if result is None:
                continue
            if best is None or len(folded_term) > best_length:
                token_count, tokens_end, end = result
                best = _Extension(entry, first, token_count, tokens_end, end)
                best_length = len(folded_term)
            break
    return best


def _coalesce(nodes: Iterable[InlineNode]) -> list[InlineNode]:
    merged: list[InlineNode] = []
    for node in nodes:
        if isinstance(node, PlainText) and merged and isinstance(merged[-1], PlainText):
            merged[-1] = PlainText(merged[-1].text + node.text)
        else:
            merged.append(node)
    return merged


def compose_inline(content: str, index: GlossaryIndex | None = None) -> list[InlineNode]:
    """
    Turn one block of ruby-annotated text into display nodes.

    Ruby notation becomes ``Ruby`` nodes; glossary terms become
    ``GlossaryAnnotation`` nodes, including terms spelled across several
    adjacent ruby tokens or across a token and the characters right after it.
    The display text of the result always equals ``strip_ruby(content)``.
    """
    if index is None:
        index = EMPTY_INDEX
    tokens = scan_ruby(content)
    if not tokens:
        return walk_glossary(content, index)

    key_sets: tuple[list[str], ...] = ()
    if len(index):
        key_sets = (
            [fold_kana(token.base_text) for token in tokens],
            [fold_kana(token.reading) for token in tokens],
        )

    nodes: list[InlineNode] = []
    cursor = 0
    position = 0
    while position < len(tokens):
        token = tokens[position]
        nodes.extend(walk_glossary(content[cursor : token.start_offset], index))
        extension = _match_extension(content, tokens, key_sets, position, index)
        if extension is None:
            nodes.append(Ruby(token.base_text, token.reading))
            cursor = token.end_offset
            position += 1
            continue
        nodes.append(extension.to_node(content, tokens))
        cursor = extension.end
        position += extension.token_count
    nodes.extend(walk_glossary(content[cursor:], index))
    return _coalesce(nodes)


def display_text(nodes: Iterable[InlineNode]) -> str:
    return "".join(node.display_text for node in nodes)


def serialize_inline_nodes(nodes: Iterable[InlineNode]) -> list[dict[str, object]]:
    return [node.to_payload() for node in nodes]
