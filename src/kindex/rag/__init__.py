"""kindex retrieval and answering: hybrid search, prompts, sessions, limits."""
