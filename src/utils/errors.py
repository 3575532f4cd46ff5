"""Custom exception hierarchy for agroSage.

All application exceptions inherit from :class:`AgroSageError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "imagekit", "open-meteo") caused the
failure.

The hierarchy follows the pipeline's failure taxonomy:

    AgroSageError  (base -- catch-all for any agroSage error)
    +-- UploadRejectedError      (input validation, before a run starts)
    +-- AuthenticationError      (missing / invalid user token)
    +-- GenerationError          (text or vision generation failed)
    |   +-- MalformedOutputError (AI output could not be parsed)
    |   +-- DetectionRejectedError (AI refused the image: sentinel answer)
    +-- EmbeddingError           (embedding generation failed)
    +-- PersistenceError         (knowledge store read/write failure)
    +-- WeatherError             (weather / geocoding lookup failure)
    +-- ImageHostError           (external image upload / delete failure)
    +-- PipelineError            (orchestration / stage transitions)
    +-- ConfigurationError       (startup / missing config)

Callers handle errors at the level they care about: the orchestrator turns
any of them into a single ``failed`` notification, while the HTTP layer
maps the synchronous ones onto status codes.
"""


class AgroSageError(Exception):
    """Base exception for all agroSage errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Boundary errors (raised before a run is started)
# ---------------------------------------------------------------------------

class UploadRejectedError(AgroSageError):
    """Raised when an uploaded file is too large or of an unsupported type."""

    def __init__(
        self,
        message: str = "Uploaded file was rejected",
        provider_name: str | None = None,
        status_code: int = 400,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.status_code = status_code


class AuthenticationError(AgroSageError):
    """Raised when a request or socket carries no valid user token."""

    def __init__(
        self,
        message: str = "Authentication required",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Upstream generation errors
# ---------------------------------------------------------------------------

class GenerationError(AgroSageError):
    """Raised when a text or vision generation call fails or returns nothing."""

    def __init__(
        self,
        message: str = "AI generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class MalformedOutputError(GenerationError):
    """Raised when AI output cannot be parsed into the expected structure."""

    def __init__(
        self,
        message: str = "AI output could not be parsed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DetectionRejectedError(GenerationError):
    """Raised when the model answers with a refusal sentinel for an image.

    Unlike other generation failures, ``user_message`` is safe to forward
    to the client as-is.
    """

    def __init__(
        self,
        message: str = "Image was rejected by the detector",
        provider_name: str | None = None,
        user_message: str = "The image could not be analysed.",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.user_message = user_message


class EmbeddingError(AgroSageError):
    """Raised when an embedding vector cannot be produced."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Persistence / collaborator errors
# ---------------------------------------------------------------------------

class PersistenceError(AgroSageError):
    """Raised when the knowledge store fails to read or write."""

    def __init__(
        self,
        message: str = "Knowledge store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class WeatherError(AgroSageError):
    """Raised when weather averages or coordinates cannot be resolved."""

    def __init__(
        self,
        message: str = "Weather lookup failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ImageHostError(AgroSageError):
    """Raised when uploading to or deleting from the image host fails."""

    def __init__(
        self,
        message: str = "Image hosting operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(AgroSageError):
    """Raised when a pipeline stage or stage transition fails."""

    def __init__(
        self,
        message: str = "Pipeline execution failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(AgroSageError):
    """Raised when required configuration is missing or invalid."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
