from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "BlockKind",
    "TextBlock",
    "segment_blocks",
    "CONTINUATION_SOURCE",
    "COMMENTARY_OPENERS",
]


class BlockKind(str, Enum):
    CITATION_HEADER = "citation-header"
    CITATION = "citation"
    COMMENTARY = "commentary"


@dataclass(frozen=True, slots=True)
class TextBlock:
    kind: BlockKind
    content: str
    source: str | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "source": self.source,
            "content": self.content,
        }


# Source name (katakana, kanji or latin letters) followed by a speech verb,
# e.g. 善導言 / 論註曰.  A bare 又 is a continuation marker, not a name.
_CITATION_HEADER_RE = re.compile(
    r"^(?!又[言云曰]$)([ァ-ヶー一-龥a-zA-Z]+)[言云曰]$"
)
_CONTINUATION_RE = re.compile(r"^又[言云曰]$")
_TERMINATION_MARKER = "已上"
_BLANK_RUN_RE = re.compile(r"\n{3,}")

CONTINUATION_SOURCE = "続"

# Leading glyphs of the compiler's own commentary (謹按, 爾者, 夫, 然 ...).
COMMENTARY_OPENERS = ("謹", "按", "爾", "夫", "然")


def _starts_commentary(trimmed: str) -> bool:
    return trimmed.startswith(COMMENTARY_OPENERS)


def _collapse_block_text(lines: list[str]) -> str:
    text = "\n".join(lines).strip()
    return _BLANK_RUN_RE.sub("\n\n", text)


def segment_blocks(content: str) -> list[TextBlock]:
    """
    Split a chapter body into citation headers, quoted citations and commentary.

    Lines are classified one at a time; only explicit header, termination and
    commentary-opening lines start a new block. Blank lines stay inside the
    block they fall in so paragraph spacing survives.
    """
    blocks: list[TextBlock] = []
    buffer: list[str] = []
    in_citation = False
    current_source: str | None = None

    def flush(as_citation: bool) -> None:
        if buffer:
            text = _collapse_block_text(buffer)
            if text:
                if as_citation:
                    blocks.append(TextBlock(BlockKind.CITATION, text, current_source))
                else:
                    blocks.append(TextBlock(BlockKind.COMMENTARY, text))
        buffer.clear()

    for line in content.split("\n"):
        trimmed = line.strip()

        header = _CITATION_HEADER_RE.match(trimmed)
        if header:
            flush(in_citation)
            current_source = header.group(1)
            blocks.append(TextBlock(BlockKind.CITATION_HEADER, trimmed, current_source))
            in_citation = True
            continue

        if _CONTINUATION_RE.match(trimmed):
            flush(in_citation)
            blocks.append(
                TextBlock(
                    BlockKind.CITATION_HEADER,
                    trimmed,
                    current_source or CONTINUATION_SOURCE,
                )
            )
            in_citation = True
            continue

        if _TERMINATION_MARKER in trimmed:
            buffer.append(line)
            flush(True)
            in_citation = False
            current_source = None
            continue

        if _starts_commentary(trimmed):
            flush(in_citation)
            in_citation = False
            current_source = None

        buffer.append(line)

    flush(in_citation)
    return blocks
