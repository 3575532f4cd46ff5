"""Single entry point from the pipelines to the AI providers.

Wraps one :class:`ILLMProvider` and one :class:`IEmbeddingProvider` and
returns raw text or vectors.  The adapter does not retry and does not
parse; the pipelines decide which calls are retried and parse the output
inside the retried callable.
"""

from __future__ import annotations

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.services.prompts import SYSTEM_PROMPT
from src.utils.errors import EmbeddingError, GenerationError
from src.utils.logging import get_logger

_logger = get_logger(__name__)


class GenerationAdapter:
    """Text, vision and embedding calls with typed failures.

    Parameters
    ----------
    llm:
        Provider used for text and vision prompts.
    embedder:
        Provider used for identity embeddings.
    temperature:
        Sampling temperature for text prompts.
    max_tokens:
        Upper bound on the size of a text answer; the crop detail document
        is the largest one.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        embedder: IEmbeddingProvider,
        temperature: float = 0.3,
        max_tokens: int = 8000,
    ) -> None:
        self._llm = llm
        self._embedder = embedder
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def embedding_dimension(self) -> int:
        return self._embedder.get_dimension()

    async def generate_text(self, prompt: str) -> str:
        """Return the model's answer to *prompt*.

        Raises
        ------
        GenerationError
            If the provider fails or answers with blank text.
        """
        text = await self._llm.complete(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return self._require_text(text)

    async def generate_text_from_image(self, prompt: str, image_bytes: bytes) -> str:
        """Return the model's answer to *prompt* about the attached image."""
        if not self._llm.supports_vision():
            raise GenerationError(
                message="Configured LLM provider has no vision support",
                provider_name=self._llm.get_provider_name(),
            )
        text = await self._llm.vision_extract(image_bytes, prompt)
        return self._require_text(text)

    async def generate_embedding(self, text: str) -> list[float]:
        """Embed *text* into a non-empty vector.

        Raises
        ------
        EmbeddingError
            If the provider fails or returns an empty vector.
        """
        vector = await self._embedder.embed_single(text)
        if not vector:
            raise EmbeddingError(
                message="Embedding provider returned an empty vector",
                provider_name=self._embedder.get_provider_name(),
            )
        _logger.debug("embedding_generated", dimension=len(vector))
        return list(vector)

    def _require_text(self, text: str | None) -> str:
        if text is None or not text.strip():
            raise GenerationError(
                message="Model returned an empty answer",
                provider_name=self._llm.get_provider_name(),
            )
        return text
