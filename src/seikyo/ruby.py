from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = ["RubyToken", "scan_ruby", "strip_ruby", "RUBY_NOTATION_RE"]

# {base|reading}: base stops at the first "|", reading at the first "}".
RUBY_NOTATION_RE = re.compile(r"\{([^|]+)\|([^}]+)\}")


@dataclass(frozen=True, slots=True)
class RubyToken:
    """
    One ``{base|reading}`` notation found in a block's text.

    Offsets index the raw string including the markup; ``end_offset`` points
    just past the closing brace.
    """

    base_text: str
    reading: str
    start_offset: int
    end_offset: int


def scan_ruby(text: str) -> list[RubyToken]:
    """Return every ruby notation in ``text`` from left to right."""
    return [
        RubyToken(
            base_text=match.group(1),
            reading=match.group(2),
            start_offset=match.start(),
            end_offset=match.end(),
        )
        for match in RUBY_NOTATION_RE.finditer(text)
    ]


def strip_ruby(text: str) -> str:
    """Replace each notation with its base text, leaving everything else intact."""
    return RUBY_NOTATION_RE.sub(lambda match: match.group(1), text)
