"""Tests for the lexical similarity helpers."""

from __future__ import annotations

import pytest

from scribe.process.similarity import (
    key_terms,
    levenshtein,
    normalize,
    similarity,
    term_overlap,
)


def test_key_terms_filters_short_and_stop_words():
    terms = key_terms("The new GPU chips are faster than ever before, says Nvidia")
    assert terms == ["chips", "faster", "ever", "nvidia"]


def test_key_terms_distinct_and_capped():
    text = " ".join(f"word{i} word{i}" for i in range(30))
    terms = key_terms(text)
    assert len(terms) == 20
    assert len(set(terms)) == 20
    assert terms[0] == "word0"


def test_term_overlap():
    assert term_overlap(["alpha", "beta", "gamma"], ["alpha", "beta"]) == pytest.approx(2 / 3)
    assert term_overlap([], ["alpha"]) == 0.0
    assert term_overlap([], []) == 0.0


def test_normalize():
    assert normalize("Hello, World! 2024_v2") == "helloworld2024v2"


def test_levenshtein():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("same", "same") == 0


def test_similarity_identity_and_empty():
    assert similarity("GPT-5 Released", "gpt 5 released!") == 1.0
    assert similarity("", "") == 1.0
    assert similarity("", "something") == 0.0


def test_similarity_is_symmetric_and_bounded():
    pairs = [
        ("New transformer model beats benchmarks", "New transformer models beat benchmark"),
        ("abc", "xyz"),
        ("Rust 2.0", "Python 4"),
    ]
    for a, b in pairs:
        forward = similarity(a, b)
        assert forward == similarity(b, a)
        assert 0.0 <= forward <= 1.0


def test_near_identical_titles_exceed_duplicate_ratio():
    a = "OpenAI launches new reasoning model"
    b = "OpenAI launches a new reasoning model"
    assert similarity(a, b) > 0.8
    assert similarity(a, "Quantum computing hits error-correction milestone") < 0.5
