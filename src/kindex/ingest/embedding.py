"""Embedding gateway over litellm.embedding().

Document vectors (indexing) and query vectors (search) are requested with
the provider's retrieval task mode where the provider distinguishes them:

  gemini/*, vertex_ai/*  task_type  = RETRIEVAL_DOCUMENT | RETRIEVAL_QUERY
  cohere/*               input_type = search_document    | search_query

Other providers embed documents and queries identically.
"""

from __future__ import annotations

from collections.abc import Callable

import litellm

from kindex.ingest.base import BaseEmbedder
from kindex.rag.llm_client import provider_of, validate_api_key

DEFAULT_EMBEDDING_MODEL = "gemini/gemini-embedding-001"
DEFAULT_DIMENSIONS = 768

_TASK_PARAMS: dict[str, tuple[str, str, str]] = {
    # provider: (param name, document value, query value)
    "gemini": ("task_type", "RETRIEVAL_DOCUMENT", "RETRIEVAL_QUERY"),
    "vertex_ai": ("task_type", "RETRIEVAL_DOCUMENT", "RETRIEVAL_QUERY"),
    "cohere": ("input_type", "search_document", "search_query"),
}


class EmbeddingError(RuntimeError):
    """Raised when the provider response carries no usable vector data."""


class LiteLLMEmbedder(BaseEmbedder):
    """Embed texts with any LiteLLM embedding model.

    Model and dimensions can be given as callables so they are resolved at
    call time (e.g. from config/env), not frozen at construction.

    Args:
        model: LiteLLM model string or a zero-argument callable returning one.
        dimensions: Output dimensionality, or a callable returning it.
        num_retries: Retries on transient provider errors.
    """

    def __init__(
        self,
        model: str | Callable[[], str] = DEFAULT_EMBEDDING_MODEL,
        dimensions: int | Callable[[], int] = DEFAULT_DIMENSIONS,
        num_retries: int = 3,
    ) -> None:
        self._model = model
        self._dimensions = dimensions
        self._num_retries = num_retries

    @property
    def model(self) -> str:
        return self._model() if callable(self._model) else self._model

    @property
    def dimensions(self) -> int:
        return self._dimensions() if callable(self._dimensions) else self._dimensions

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = self._embed(texts, mode="document")
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding response has {len(vectors)} vectors for {len(texts)} inputs."
            )
        return vectors

    def embed_query(self, text: str) -> list[float]:
        return self._embed([text], mode="query")[0]

    # ------------------------------------------------------------------
    # Provider call
    # ------------------------------------------------------------------

    def _embed(self, texts: list[str], mode: str) -> list[list[float]]:
        model = self.model
        validate_api_key(model)

        response = litellm.embedding(
            model=model,
            input=texts,
            dimensions=self.dimensions,
            num_retries=self._num_retries,
            drop_params=True,
            **task_params(model, mode),
        )
        return _extract_vectors(response)


def task_params(model: str, mode: str) -> dict[str, str]:
    """Return the provider-specific retrieval task argument for *mode*.

    Args:
        model: LiteLLM model string.
        mode: 'document' or 'query'.
    """
    spec = _TASK_PARAMS.get(provider_of(model))
    if spec is None:
        return {}
    name, document_value, query_value = spec
    return {name: document_value if mode == "document" else query_value}


def _extract_vectors(response: object) -> list[list[float]]:
    data = getattr(response, "data", None)
    if not data:
        raise EmbeddingError("Embedding response contains no vector data.")

    vectors: list[list[float]] = []
    for item in data:
        vector = item.get("embedding") if isinstance(item, dict) else getattr(item, "embedding", None)
        if not vector:
            raise EmbeddingError("Embedding response contains an empty vector.")
        vectors.append(list(vector))
    return vectors
