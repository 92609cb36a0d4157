"""Tests for the hashed embedder and in-memory retriever."""

import math

import pytest

from equilibrium.protocols import Retriever
from equilibrium.retrieval import (
    Document,
    HashEmbedder,
    InMemoryRetriever,
    chunk_text,
    cosine_similarity,
    fnv1a,
    retriever_for_session,
    session_documents,
)


class TestFnv1a:
    def test_known_values(self):
        assert fnv1a("") == 2166136261
        assert fnv1a("a") == 0xE40C292C
        assert fnv1a("foobar") == 0xBF9CF968


class TestHashEmbedder:
    def test_dimension_is_clamped(self):
        assert HashEmbedder(4).dimension == 16
        assert HashEmbedder(10**6).dimension == 4096

    def test_empty_text_is_zero_vector(self):
        assert HashEmbedder().embed("  !!  ") == [0.0] * 128

    def test_unit_length(self):
        vector = HashEmbedder().embed("Lying is wrong because trust matters")
        assert math.sqrt(sum(v * v for v in vector)) == pytest.approx(1.0)

    def test_case_and_punctuation_insensitive(self):
        embedder = HashEmbedder()
        assert embedder.embed("Hello, WORLD!") == embedder.embed("hello world")

    def test_deterministic(self):
        assert HashEmbedder().embed_batch(["a b", "a b"])[0] == HashEmbedder().embed("a b")


class TestCosineSimilarity:
    def test_identical(self):
        v = HashEmbedder().embed("keep promises")
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
        assert cosine_similarity([], []) == 0.0


class TestChunkText:
    def test_empty(self):
        assert chunk_text("   ") == []

    def test_short_text_is_one_chunk(self):
        assert chunk_text("one  two\nthree") == ["one two three"]

    def test_long_text_is_split_on_spaces(self):
        text = " ".join(["word"] * 100)
        chunks = chunk_text(text, max_chars=80, overlap_chars=10)
        assert len(chunks) > 1
        assert all(len(c) <= 80 for c in chunks)
        assert all(c.split(" ")[0] in ("word", "ord", "rd", "d") for c in chunks)
        assert chunks[-1].endswith("word")

    def test_max_chars_lower_bound(self):
        text = "x" * 200
        assert all(len(c) <= 80 for c in chunk_text(text, max_chars=10))
        assert len(chunk_text(text, max_chars=10, overlap_chars=0)) == 3


class TestInMemoryRetriever:
    def test_conforms_to_protocol(self):
        assert isinstance(InMemoryRetriever(), Retriever)

    def test_empty_retriever(self):
        assert InMemoryRetriever().retrieve("anything", 3) == []

    def test_exact_match_ranks_first(self):
        retriever = InMemoryRetriever()
        written = retriever.add_documents(
            [
                Document(id="d1", text="cars and trucks on the road"),
                Document(id="d2", text="apples and oranges in a bowl"),
            ]
        )
        assert written == 2
        assert retriever.retrieve("apples and oranges in a bowl", 1) == [
            "apples and oranges in a bowl"
        ]

    def test_k_is_at_least_one(self):
        retriever = InMemoryRetriever()
        retriever.add_documents([Document(id="d1", text="alpha"), Document(id="d2", text="beta")])
        assert len(retriever.retrieve("alpha", 0)) == 1
        assert len(retriever.retrieve("alpha", 10)) == 2

    def test_re_adding_a_document_upserts(self):
        retriever = InMemoryRetriever()
        retriever.add_documents([Document(id="d1", text="alpha")])
        retriever.add_documents([Document(id="d1", text="beta")])
        assert len(retriever) == 1
        assert retriever.retrieve("beta", 1) == ["beta"]


class TestSessionDocuments:
    def test_documents(self, dilemma_session):
        docs = session_documents(dilemma_session)
        assert [d.id for d in docs] == ["judgment:j1", "judgment:j2", "principle:p1"]
        assert docs[2].text == "Always do A.\nScope: universal\nPlausibility: 0.92"
        assert docs[0].metadata == {"type": "judgment", "sourceId": "j1"}

    def test_retriever_for_session(self, dilemma_session):
        retriever = retriever_for_session(dilemma_session)
        assert len(retriever) == 3
        assert retriever.retrieve("Always do A. Scope: universal Plausibility: 0.92", 1) == [
            "Always do A. Scope: universal Plausibility: 0.92"
        ]
