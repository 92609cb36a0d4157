"""Toy retrieval for prompt enrichment.

A deterministic hashed bag-of-words embedder and a brute-force cosine
store. Good enough to pull the two or three most related judgments into a
model prompt; the scorer and the conflict detector never consult it.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from equilibrium.types import Session

logger = logging.getLogger(__name__)

_TOKEN_STRIP = re.compile(r"[^a-z0-9_-]")
_WHITESPACE = re.compile(r"\s+")

FNV_OFFSET = 2166136261
FNV_PRIME = 16777619


def normalize_whitespace(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def fnv1a(token: str) -> int:
    """32-bit FNV-1a over UTF-16 code units."""
    h = FNV_OFFSET
    encoded = token.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        h ^= encoded[i] | (encoded[i + 1] << 8)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


class HashEmbedder:
    """Signed hashed bag-of-words projection, L2-normalized."""

    def __init__(self, dimension: int = 128) -> None:
        self.dimension = max(16, min(4096, int(dimension)))

    def embed(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        tokens = [
            _TOKEN_STRIP.sub("", token)
            for token in normalize_whitespace(text.lower()).split(" ")
        ]
        tokens = [token for token in tokens if token]
        if not tokens:
            return vector

        for token in tokens:
            h = fnv1a(token)
            vector[h % self.dimension] += 1.0 if h % 2 == 0 else -1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm > 0:
            vector = [v / norm for v in vector]
        return vector

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]


def cosine_similarity(a: List[float], b: List[float]) -> float:
    length = min(len(a), len(b))
    if length == 0:
        return 0.0
    dot = norm_a = norm_b = 0.0
    for i in range(length):
        dot += a[i] * b[i]
        norm_a += a[i] * a[i]
        norm_b += b[i] * b[i]
    if norm_a <= 0 or norm_b <= 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def chunk_text(text: str, max_chars: int = 420, overlap_chars: int = 60) -> List[str]:
    """Split text into overlapping chunks, preferring to break on spaces."""
    max_chars = max(80, min(4000, int(max_chars)))
    overlap = max(0, min(max_chars // 2, int(overlap_chars)))

    normalized = normalize_whitespace(text)
    if not normalized:
        return []

    chunks: List[str] = []
    start = 0
    while start < len(normalized):
        hard_end = min(len(normalized), start + max_chars)
        end = hard_end
        if hard_end < len(normalized):
            break_at = normalized.rfind(" ", 0, hard_end + 1)
            if break_at > start + 40:
                end = break_at

        chunk = normalized[start:end].strip()
        if chunk:
            chunks.append(chunk)

        if end >= len(normalized):
            break
        start = max(0, end - overlap)

    return chunks


@dataclass
class Document:
    id: str
    text: str
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class _Chunk:
    id: str
    document_id: str
    text: str
    vector: List[float]


class InMemoryRetriever:
    """Brute-force cosine retriever. Conforms to the Retriever protocol."""

    def __init__(
        self,
        embedder: Optional[HashEmbedder] = None,
        max_chars: int = 340,
        overlap_chars: int = 40,
    ) -> None:
        self._embedder = embedder or HashEmbedder()
        self._max_chars = max_chars
        self._overlap_chars = overlap_chars
        self._chunks: Dict[str, _Chunk] = {}

    def __len__(self) -> int:
        return len(self._chunks)

    def add_documents(self, documents: List[Document]) -> int:
        """Chunk, embed and upsert documents. Returns the number of chunks written."""
        written = 0
        for doc in documents:
            for i, text in enumerate(chunk_text(doc.text, self._max_chars, self._overlap_chars)):
                chunk_id = f"{doc.id}_chunk_{i + 1}"
                self._chunks[chunk_id] = _Chunk(
                    id=chunk_id,
                    document_id=doc.id,
                    text=text,
                    vector=self._embedder.embed(text),
                )
                written += 1
        return written

    def retrieve(self, query: str, k: int) -> List[str]:
        if not self._chunks:
            return []
        query_vector = self._embedder.embed(query)
        ranked = sorted(
            self._chunks.values(),
            key=lambda chunk: cosine_similarity(query_vector, chunk.vector),
            reverse=True,
        )
        return [chunk.text for chunk in ranked[: max(1, k)]]


def session_documents(session: Session) -> List[Document]:
    """One document per judgment and principle."""
    docs = []
    for judgment in session.judgments:
        docs.append(
            Document(
                id=f"judgment:{judgment.id}",
                text=(
                    f"{judgment.text}\nTags: {', '.join(judgment.tags)}\n"
                    f"Source: {judgment.source_note}"
                ),
                metadata={"type": "judgment", "sourceId": judgment.id},
            )
        )
    for principle in session.principles:
        docs.append(
            Document(
                id=f"principle:{principle.id}",
                text=(
                    f"{principle.text}\nScope: {principle.scope.value}\n"
                    f"Plausibility: {principle.plausibility:.2f}"
                ),
                metadata={"type": "principle", "sourceId": principle.id},
            )
        )
    return docs


def retriever_for_session(
    session: Session, max_chars: int = 340, overlap_chars: int = 40
) -> InMemoryRetriever:
    """Build a retriever indexed over one session snapshot."""
    retriever = InMemoryRetriever(max_chars=max_chars, overlap_chars=overlap_chars)
    count = retriever.add_documents(session_documents(session))
    logger.debug("Indexed %d chunks for session %s", count, session.id)
    return retriever
