from __future__ import annotations

import json
import re
from dataclasses import asdict
from pathlib import Path
from typing import Any

from loguru import logger
from rank_bm25 import BM25Okapi

from coinscope.config import Settings, settings as default_settings
from coinscope.models.interfaces import ContextDocument, ContextHit, ContextStore

TOKEN_RE = re.compile(r"[a-z0-9]+")


def _tokenize(text: str) -> list[str]:
    return TOKEN_RE.findall(text.lower())


def _matches_filters(doc: ContextDocument, filters: dict[str, Any] | None) -> bool:
    if not filters:
        return True
    for key, expected in filters.items():
        actual = doc.kind if key == "kind" else doc.metadata.get(key)
        if actual != expected:
            return False
    return True


class NullContextStore:
    """Store that remembers nothing."""

    async def store(self, doc: ContextDocument) -> None:
        return None

    async def query_relevant(
        self,
        text: str,
        filters: dict[str, Any] | None = None,
        top_k: int = 3,
    ) -> list[ContextHit]:
        return []


class InMemoryContextStore:
    """Process-local document store ranked with BM25."""

    def __init__(self) -> None:
        self._docs: dict[str, ContextDocument] = {}

    def __len__(self) -> int:
        return len(self._docs)

    async def store(self, doc: ContextDocument) -> None:
        self._docs[doc.id] = doc

    async def query_relevant(
        self,
        text: str,
        filters: dict[str, Any] | None = None,
        top_k: int = 3,
    ) -> list[ContextHit]:
        candidates = [doc for doc in self._docs.values() if _matches_filters(doc, filters)]
        query_tokens = _tokenize(text)
        if not candidates or not query_tokens:
            return []

        corpus = [_tokenize(doc.text) or [""] for doc in candidates]
        bm25 = BM25Okapi(corpus)
        scores = [float(s) for s in bm25.get_scores(query_tokens)]
        # BM25 idf goes negative for terms present in most of a small corpus, so
        # relevance is decided by term overlap and the score only orders hits.
        wanted = set(query_tokens)
        ranked = sorted(
            (
                (doc, score)
                for doc, tokens, score in zip(candidates, corpus, scores)
                if wanted.intersection(tokens)
            ),
            key=lambda pair: pair[1],
            reverse=True,
        )
        return [ContextHit(document=doc, score=score) for doc, score in ranked[: max(top_k, 0)]]


class SafeContextStore:
    """Wraps a store so its failures are logged instead of aborting a run."""

    def __init__(self, inner: ContextStore):
        self.inner = inner

    async def store(self, doc: ContextDocument) -> None:
        try:
            await self.inner.store(doc)
        except Exception as exc:
            logger.warning(f"Context store write failed for {doc.id}: {exc}")

    async def query_relevant(
        self,
        text: str,
        filters: dict[str, Any] | None = None,
        top_k: int = 3,
    ) -> list[ContextHit]:
        try:
            return await self.inner.query_relevant(text, filters, top_k)
        except Exception as exc:
            logger.warning(f"Context store query failed: {exc}")
            return []


class JsonFileContextStore(InMemoryContextStore):
    """In-memory store mirrored to a JSON file so analyses survive restarts.

    Only the newest ``max_documents`` documents are kept. An unreadable file
    is logged and treated as empty.
    """

    def __init__(self, path: str | Path, *, max_documents: int = 200) -> None:
        super().__init__()
        self.path = Path(path)
        self.max_documents = max(int(max_documents), 1)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            docs = [ContextDocument(**item) for item in payload.get("documents", [])]
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning(f"Ignoring unreadable context store {self.path}: {exc}")
            return
        for doc in docs:
            self._docs[doc.id] = doc

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"documents": [asdict(doc) for doc in self._docs.values()]}
        self.path.write_text(json.dumps(payload, ensure_ascii=True, default=str), encoding="utf-8")

    async def store(self, doc: ContextDocument) -> None:
        self._docs.pop(doc.id, None)
        self._docs[doc.id] = doc
        while len(self._docs) > self.max_documents:
            del self._docs[next(iter(self._docs))]
        self._save()


def get_context_store(config: Settings | None = None) -> ContextStore:
    config = config or default_settings
    backend = config.context_store.lower().strip()
    if backend == "none":
        return NullContextStore()
    if backend == "memory":
        return InMemoryContextStore()
    if backend == "file":
        return JsonFileContextStore(
            config.context_store_path,
            max_documents=config.context_store_max_documents,
        )
    raise ValueError(f"Unsupported CONTEXT_STORE: {config.context_store}")
