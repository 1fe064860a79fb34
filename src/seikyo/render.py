from __future__ import annotations

from typing import Iterable, Sequence

from bs4 import BeautifulSoup, Tag

from .blocks import BlockKind, TextBlock, segment_blocks
from .glossary import GlossaryEntry, GlossaryIndex, build_glossary_index
from .inline import GlossaryAnnotation, InlineNode, PlainText, Ruby, compose_inline

__all__ = [
    "render_inline_html",
    "render_blocks_html",
    "render_glossary_list",
    "render_chapter_html",
]

GLOSSARY_HEADING = "語釈"


def _fragment() -> BeautifulSoup:
    return BeautifulSoup("", "html.parser")


def _ruby_tag(soup: BeautifulSoup, base: str, reading: str) -> Tag:
    ruby = soup.new_tag("ruby")
    ruby.append(base)
    open_paren = soup.new_tag("rp")
    open_paren.string = "("
    rt = soup.new_tag("rt")
    rt.string = reading
    close_paren = soup.new_tag("rp")
    close_paren.string = ")"
    ruby.append(open_paren)
    ruby.append(rt)
    ruby.append(close_paren)
    return ruby


def _append_nodes(soup: BeautifulSoup, parent: Tag, nodes: Iterable[InlineNode]) -> None:
    for node in nodes:
        if isinstance(node, PlainText):
            if node.text:
                parent.append(node.text)
        elif isinstance(node, Ruby):
            parent.append(_ruby_tag(soup, node.base_text, node.reading))
        elif isinstance(node, GlossaryAnnotation):
            span = soup.new_tag(
                "span",
                attrs={
                    "class": "glossary",
                    "data-reading": node.reading,
                    "data-meaning": node.meaning,
                    "title": f"{node.reading}: {node.meaning}",
                },
            )
            _append_nodes(soup, span, node.children)
            parent.append(span)


def _append_lines(
    soup: BeautifulSoup,
    parent: Tag,
    content: str,
    index: GlossaryIndex | None,
) -> None:
    lines = content.split("\n")
    for line_index, line in enumerate(lines):
        _append_nodes(soup, parent, compose_inline(line, index))
        if line_index < len(lines) - 1:
            parent.append(soup.new_tag("br"))


def _block_tag(soup: BeautifulSoup, block: TextBlock, index: GlossaryIndex | None) -> Tag:
    if block.kind is BlockKind.CITATION_HEADER:
        tag = soup.new_tag("h3", attrs={"class": "citation-header"})
        if block.source:
            tag["data-source"] = block.source
        _append_lines(soup, tag, block.content, index)
        return tag
    if block.kind is BlockKind.CITATION:
        tag = soup.new_tag("blockquote", attrs={"class": "citation"})
        if block.source:
            tag["data-source"] = block.source
        paragraph = soup.new_tag("p")
        _append_lines(soup, paragraph, block.content, index)
        tag.append(paragraph)
        return tag
    tag = soup.new_tag("p", attrs={"class": "commentary"})
    _append_lines(soup, tag, block.content, index)
    return tag


def render_inline_html(nodes: Iterable[InlineNode]) -> str:
    soup = _fragment()
    _append_nodes(soup, soup, nodes)
    return str(soup)


def render_blocks_html(blocks: Iterable[TextBlock], index: GlossaryIndex | None = None) -> str:
    """
    Render segmented blocks as HTML fragments.

    Each line is composed on its own and joined with ``<br>``, so a glossary
    term spanning a line break is left unannotated here, unlike the JSON
    payloads, which compose whole blocks.
    """
    soup = _fragment()
    for block in blocks:
        soup.append(_block_tag(soup, block, index))
    return str(soup)


def render_glossary_list(entries: Sequence[GlossaryEntry] | None) -> str:
    """Definition list of a chapter's glossary, shown below the text."""
    visible = [entry for entry in entries or () if entry.term.strip()]
    if not visible:
        return ""
    soup = _fragment()
    section = soup.new_tag("section", attrs={"class": "glossary-list"})
    heading = soup.new_tag("h3")
    heading.string = GLOSSARY_HEADING
    section.append(heading)
    definitions = soup.new_tag("dl")
    for entry in visible:
        term = soup.new_tag("dt")
        if entry.reading:
            term.append(_ruby_tag(soup, entry.term, entry.reading))
        else:
            term.append(entry.term)
        meaning = soup.new_tag("dd")
        meaning.string = entry.meaning
        definitions.append(term)
        definitions.append(meaning)
    section.append(definitions)
    soup.append(section)
    return str(soup)


def render_chapter_html(content: str, glossary: Sequence[GlossaryEntry] | None = None) -> str:
    index = build_glossary_index(glossary)
    body = render_blocks_html(segment_blocks(content), index)
    return body + render_glossary_list(glossary)
