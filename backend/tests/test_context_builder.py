"""Tests for prompt context assembly."""

import pytest

from studyspace.db.models import Source
from studyspace.services.context_builder import TextSource, build_context, trim_text


def test_empty_sources_give_empty_context():
    payload = build_context([], max_chars=100, per_source_max_chars=50)
    assert payload.context == ""
    assert payload.was_truncated is False


def test_single_source_gets_header():
    payload = build_context([TextSource("a", "hello")], max_chars=100, per_source_max_chars=50)
    assert payload.context == "[SOURCE: a]\nhello"
    assert payload.was_truncated is False


def test_sources_joined_by_blank_line_in_order():
    payload = build_context(
        [TextSource("a", "first"), TextSource("b", "second")],
        max_chars=1000,
        per_source_max_chars=1000,
    )
    assert payload.context == "[SOURCE: a]\nfirst\n\n[SOURCE: b]\nsecond"


def test_headers_can_be_omitted():
    payload = build_context(
        [TextSource("a", "first")], max_chars=100, per_source_max_chars=100, include_headers=False
    )
    assert payload.context == "first"


def test_per_source_limit_truncates():
    payload = build_context([TextSource("a", "x" * 100)], max_chars=1000, per_source_max_chars=10)
    assert payload.context == "[SOURCE: a]\n" + "x" * 10
    assert payload.was_truncated is True


def test_exact_fit_is_not_truncated():
    header = "[SOURCE: a]\n"
    payload = build_context(
        [TextSource("a", "hello")], max_chars=len(header) + 5, per_source_max_chars=5
    )
    assert payload.context == header + "hello"
    assert payload.was_truncated is False


def test_source_dropped_when_budget_exhausted():
    first = TextSource("a", "hello")
    limit = len("[SOURCE: a]\nhello")
    payload = build_context([first, TextSource("b", "world")], max_chars=limit, per_source_max_chars=100)
    assert payload.context == "[SOURCE: a]\nhello"
    assert payload.was_truncated is True


def test_empty_source_contributes_nothing():
    payload = build_context(
        [TextSource("empty", ""), TextSource("b", "text")], max_chars=100, per_source_max_chars=100
    )
    assert payload.context == "[SOURCE: b]\ntext"
    assert "empty" not in payload.context
    assert payload.was_truncated is False


@pytest.mark.parametrize("max_chars", [0, 5, 13, 20, 47, 100, 250])
@pytest.mark.parametrize("per_source", [1, 10, 60, 1000])
def test_never_exceeds_global_budget(max_chars, per_source):
    sources = [TextSource(f"S{i}", chr(ord("a") + i) * (i * 17 + 3)) for i in range(6)]
    payload = build_context(sources, max_chars=max_chars, per_source_max_chars=per_source)

    assert len(payload.context) <= max_chars

    full = sum(len(s.text) for s in sources)
    contributed = sum(payload.context.count(chr(ord("a") + i)) for i in range(6))
    # Flag is set exactly when some text was left out
    assert payload.was_truncated == (contributed < full)


def test_pdf_without_extracted_text_never_sends_base64():
    pdf = Source(name="scan.pdf", file_type="pdf", content="JVBERi0xLjcKJcfs")
    text = Source(name="notes.txt", file_type="txt", content="plain notes")

    payload = build_context([pdf, text], max_chars=1000, per_source_max_chars=1000)

    assert "JVBER" not in payload.context
    assert "scan.pdf" not in payload.context
    assert payload.context == "[SOURCE: notes.txt]\nplain notes"


def test_extracted_text_preferred_over_content():
    pdf = Source(name="lecture.pdf", file_type="pdf", content="JVBERi0x", extracted_text="Cells divide.")
    payload = build_context([pdf], max_chars=1000, per_source_max_chars=1000)
    assert payload.context == "[SOURCE: lecture.pdf]\nCells divide."


def test_trim_text():
    assert trim_text("abcdef", 3) == ("abc", True)
    assert trim_text("abc", 3) == ("abc", False)
    assert trim_text("abc", 0) == ("", True)
