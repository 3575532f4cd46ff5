"""Embedding provider implementations.

Embeddings turn a record's identity text into a vector so near-duplicate
crops and diseases can be matched by cosine similarity.

    - OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims)
    - NomicEmbeddingProvider  -- nomic-embed-text via Ollama (768 dims)
"""

from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider", "NomicEmbeddingProvider"]
