"""kindex ingest pipeline: collector, chunker, embedder, indexing."""

from kindex.ingest.base import BaseChunker, BaseCollector, BaseEmbedder
from kindex.ingest.chunker import TextChunker, chunk_text
from kindex.ingest.collector import CollectorError, SsrfError, WebCollector
from kindex.ingest.embedding import EmbeddingError, LiteLLMEmbedder
from kindex.ingest.pipeline import IndexingPipeline, run_indexing_pipeline
from kindex.ingest.sources import SourceValidationError, load_knowledge_config, validate_source

__all__ = [
    "BaseChunker",
    "BaseCollector",
    "BaseEmbedder",
    "CollectorError",
    "EmbeddingError",
    "IndexingPipeline",
    "LiteLLMEmbedder",
    "SourceValidationError",
    "SsrfError",
    "TextChunker",
    "WebCollector",
    "chunk_text",
    "load_knowledge_config",
    "run_indexing_pipeline",
    "validate_source",
]
