from .blocks import BlockKind, TextBlock, segment_blocks
from .glossary import (
    GlossaryEntry,
    GlossaryIndex,
    GlossaryWarning,
    build_glossary_index,
    fold_kana,
)
from .inline import (
    GlossaryAnnotation,
    InlineNode,
    PlainText,
    Ruby,
    compose_inline,
    walk_glossary,
)
from .ruby import RubyToken, scan_ruby, strip_ruby

__all__ = [
    "BlockKind",
    "TextBlock",
    "segment_blocks",
    "RubyToken",
    "scan_ruby",
    "strip_ruby",
    "GlossaryEntry",
    "GlossaryIndex",
    "GlossaryWarning",
    "build_glossary_index",
    "fold_kana",
    "PlainText",
    "Ruby",
    "GlossaryAnnotation",
    "InlineNode",
    "compose_inline",
    "walk_glossary",
]
