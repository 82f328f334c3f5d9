"""Tests for Markdown → plain-text excerpts."""

from __future__ import annotations

import pytest

from blogsearch.search.excerpt import make_excerpt, markdown_to_text


def test_strips_markdown_syntax():
    text = markdown_to_text("# Title\n\nSome **bold** text with `code` and a [link](url).")
    for token in ("#", "**", "`", "[", "]", "(", ")"):
        assert token not in text
    assert "link" in text
    assert text == "Title Some bold text with and a link."


@pytest.mark.parametrize(
    "markdown,expected",
    [
        ("<p>Hola <b>mundo</b></p>", "Hola mundo"),
        ("Antes ![gato](gato.png) después", "Antes después"),
        ("Texto\n\n```python\nprint('x')\n```\n\nfin", "Texto fin"),
        ("> cita\n\n---\n\n- uno\n- dos\n1. tres", "cita uno dos tres"),
        ("_cursiva_ y __negrita__", "cursiva y negrita"),
    ],
)
def test_markdown_to_text_cases(markdown, expected):
    assert markdown_to_text(markdown) == expected


@pytest.mark.parametrize("empty", [None, ""])
def test_missing_content_gives_empty_excerpt(empty):
    assert make_excerpt(empty) == ""


def test_short_text_not_truncated():
    assert make_excerpt("Hola mundo") == "Hola mundo"


def test_long_text_truncated_to_180_with_ellipsis():
    excerpt = make_excerpt("a" * 500)
    assert excerpt == "a" * 180 + "..."


def test_exact_length_not_truncated():
    assert make_excerpt("b" * 180) == "b" * 180


def test_custom_length():
    assert make_excerpt("abcdef", length=3) == "abc..."


def test_astral_characters_count_as_two_units():
    text = "😀" * 90
    assert make_excerpt(text) == text
    assert make_excerpt(text + "a") == text + "..."


def test_cut_never_splits_astral_character():
    assert make_excerpt("a" + "😀" * 90) == "a" + "😀" * 89 + "..."
