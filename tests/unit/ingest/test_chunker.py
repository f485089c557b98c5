"""Tests for the semantic chunker."""

from __future__ import annotations

import pytest

from lawcrawl.ingest.chunker import (
    DEFAULT_DOCUMENT_NAME,
    SemanticChunker,
    build_windows,
    cosine_similarity,
)

from fakes import KeywordEmbedder


# ------------------------------------------------------------------
# cosine_similarity / build_windows
# ------------------------------------------------------------------


def test_cosine_identical():
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)


def test_cosine_orthogonal():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_cosine_symmetric():
    a, b = [0.3, -1.2, 4.0], [2.5, 0.1, -0.7]
    assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_cosine_zero_vector():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_cosine_length_mismatch():
    with pytest.raises(ValueError, match="mismatch"):
        cosine_similarity([1.0], [1.0, 0.0])


def test_build_windows_clipped_at_edges():
    assert build_windows(["a", "b", "c"], 1) == ["a b", "a b c", "b c"]


def test_build_windows_zero_width():
    assert build_windows(["a", "b"], 0) == ["a", "b"]


# ------------------------------------------------------------------
# SemanticChunker
# ------------------------------------------------------------------


def test_invalid_arguments():
    embedder = KeywordEmbedder()
    with pytest.raises(ValueError):
        SemanticChunker(embedder, window_size=-1)
    with pytest.raises(ValueError):
        SemanticChunker(embedder, max_tokens=0)


def test_heading_and_sentences_split_on_similarity_drop():
    embedder = KeywordEmbedder(("title", "sentence", "apple"))
    chunker = SemanticChunker(embedder, window_size=1, similarity_threshold=0.99, max_tokens=1000)

    chunks = chunker.chunk("# Title\nSentence one. Sentence two.")

    assert len(chunks) >= 2
    assert chunks[0].text.startswith("# Title")


def test_empty_text_yields_no_chunks(embedder):
    assert SemanticChunker(embedder).chunk("") == []
    assert embedder.calls == []


def test_topic_change_cuts_chunk(embedder):
    text = "Apple trees grow. Apple pies bake. Car engines roar. Car tires spin."
    chunks = SemanticChunker(embedder, window_size=0, similarity_threshold=0.5).chunk(text)
    assert [c.text for c in chunks] == [
        "Apple trees grow. Apple pies bake.",
        "Car engines roar. Car tires spin.",
    ]


def test_max_tokens_caps_chunk_length(embedder):
    text = " ".join(["Apple sentence number %d." % i for i in range(20)])
    chunker = SemanticChunker(embedder, window_size=1, similarity_threshold=0.0, max_tokens=60)
    chunks = chunker.chunk(text)
    assert len(chunks) > 1
    assert all(len(c.text) <= 60 for c in chunks)


def test_oversized_single_unit_still_emitted(embedder):
    long_unit = "Apple " * 50 + "end."
    chunks = SemanticChunker(embedder, max_tokens=10).chunk(long_unit)
    assert len(chunks) == 1
    assert chunks[0].text == long_unit.strip()


def test_chunk_numbering_and_shared_document_id(embedder):
    text = "Apple one. Car two. Tax three. Apple four."
    chunks = SemanticChunker(embedder, window_size=0, similarity_threshold=0.5).chunk(
        text, document_name="https://a.gov/x"
    )
    assert [c.chunk_number for c in chunks] == list(range(1, len(chunks) + 1))
    assert {c.number_of_chunks for c in chunks} == {len(chunks)}
    assert len({c.document_id for c in chunks}) == 1
    assert all(c.document_name == "https://a.gov/x" for c in chunks)


def test_units_cover_text_in_order(embedder):
    text = "# Heading\nApple one. Car two.\n- item about tax"
    chunks = SemanticChunker(embedder, window_size=1, similarity_threshold=0.9).chunk(text)
    flattened = [u for c in chunks for u in c.units]
    assert flattened == ["# Heading", "Apple one.", "Car two.", "- item about tax"]


def test_default_document_name(embedder):
    chunks = SemanticChunker(embedder).chunk("Apple.")
    assert chunks[0].document_name == DEFAULT_DOCUMENT_NAME


def test_each_call_gets_new_document_id(embedder):
    chunker = SemanticChunker(embedder)
    assert chunker.chunk("Apple.")[0].document_id != chunker.chunk("Apple.")[0].document_id


def test_optional_fields_off_by_default(embedder):
    chunk = SemanticChunker(embedder).chunk("Apple pie.")[0]
    assert chunk.embedding is None
    assert chunk.token_length is None


def test_optional_fields_on_request(embedder):
    chunk = SemanticChunker(embedder).chunk(
        "Apple pie.", return_embedding=True, return_token_length=True
    )[0]
    assert chunk.embedding is not None
    assert len(chunk.embedding) == embedder.dimensions
    assert chunk.token_length == len("Apple pie.")


def test_windows_are_embedded(embedder):
    SemanticChunker(embedder, window_size=1).chunk("Apple one. Car two. Tax three.")
    assert embedder.calls == [
        "Apple one. Car two.",
        "Apple one. Car two. Tax three.",
        "Car two. Tax three.",
    ]
