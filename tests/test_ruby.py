from __future__ import annotations

from seikyo.ruby import RubyToken, scan_ruby, strip_ruby


def test_adjacent_tokens_have_raw_offsets() -> None:
    tokens = scan_ruby("{信|しん}{心|じん}")
    assert tokens == [
        RubyToken("信", "しん", 0, 6),
        RubyToken("心", "じん", 6, 12),
    ]


def test_offsets_point_past_closing_brace() -> None:
    text = "ただ{念仏|ねんぶつ}して"
    (token,) = scan_ruby(text)
    assert token.base_text == "念仏"
    assert token.reading == "ねんぶつ"
    assert text[token.start_offset : token.end_offset] == "{念仏|ねんぶつ}"
    assert text[token.end_offset :] == "して"


def test_text_without_notation_has_no_tokens() -> None:
    assert scan_ruby("ただ念仏して") == []
    assert scan_ruby("") == []


def test_malformed_notation_is_not_matched() -> None:
    assert scan_ruby("{abc") == []
    assert scan_ruby("{a|}") == []
    assert scan_ruby("{|b}") == []
    assert scan_ruby("{信しん}") == []


def test_reading_stops_at_first_closing_brace_only() -> None:
    (token,) = scan_ruby("{a|b|c}")
    assert token.base_text == "a"
    assert token.reading == "b|c"


def test_base_may_swallow_stray_open_brace() -> None:
    (token,) = scan_ruby("{x{y|z}")
    assert token.base_text == "x{y"
    assert token.start_offset == 0


def test_unterminated_notation_before_valid_one() -> None:
    tokens = scan_ruby("{信|しん{心|じん}")
    # The first "}" closes the notation started at offset 0.
    assert len(tokens) == 1
    assert tokens[0].reading == "しん{心|じん"


def test_scan_is_independent_between_calls() -> None:
    first = scan_ruby("{仏|ぶつ}")
    second = scan_ruby("{仏|ぶつ}")
    assert first == second
    assert first is not second


def test_strip_ruby_keeps_base_text() -> None:
    assert strip_ruby("ただ{念仏|ねんぶつ}して{信|しん}") == "ただ念仏して信"
    assert strip_ruby("{abc") == "{abc"
