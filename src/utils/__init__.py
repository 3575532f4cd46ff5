"""Utility modules for agroSage.

Available utility modules (the commonly used names are re-exported here):

- **errors** -- Domain-specific exception hierarchy rooted at AgroSageError;
  each failure class of the pipelines has its own subclass so callers can
  handle failures without broad ``except Exception`` blocks.
- **json_parsing** -- Fence-stripping, strict JSON parsing of model output.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **retry** -- Bounded exponential-backoff retries for generation calls.
- **similarity** -- numpy cosine similarity and best-match selection for
  embedding dedup.
- **text_normalizer** -- Identity keys, search tokens, slugs, and
  near-duplicate name collapsing.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    AgroSageError,
    ConfigurationError,
    DetectionRejectedError,
    EmbeddingError,
    GenerationError,
    MalformedOutputError,
    PersistenceError,
    PipelineError,
)

# -- Model output parsing --------------------------------------------------
from src.utils.json_parsing import parse_json_payload

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- Retry helper ----------------------------------------------------------
from src.utils.retry import retry_async

# -- Similarity matching ---------------------------------------------------
from src.utils.similarity import cosine_similarity, find_best_match

# -- Text normalization ----------------------------------------------------
from src.utils.text_normalizer import normalize_identity, slugify, tokenize

__all__ = [
    "AgroSageError",
    "ConfigurationError",
    "DetectionRejectedError",
    "EmbeddingError",
    "GenerationError",
    "MalformedOutputError",
    "PersistenceError",
    "PipelineError",
    "configure_logging",
    "cosine_similarity",
    "find_best_match",
    "get_logger",
    "normalize_identity",
    "parse_json_payload",
    "retry_async",
    "slugify",
    "tokenize",
]
