"""kindex: knowledge ingestion and hybrid retrieval for RAG."""
