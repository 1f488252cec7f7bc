"""Error taxonomy of the retrieval and answering core."""


class RagError(Exception):
    """Base class for errors raised by the core."""


class InvalidInput(RagError, ValueError):
    """Empty question or text, detected before any network call."""


class InvalidConfiguration(InvalidInput):
    """Chunking, retrieval or provider settings that cannot work."""


class EmbeddingServiceError(RagError):
    """Embedding call failed or returned a malformed payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ChatServiceError(RagError):
    """Single chat-completion attempt failed.

    ``transient`` marks failures worth another attempt (timeouts, dropped
    connections, rate limiting).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        transient: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient


class RateLimited(ChatServiceError):
    """HTTP 429 from the chat endpoint."""

    def __init__(self, message: str, retry_after: str | None = None):
        super().__init__(message, status_code=429, transient=True)
        self.retry_after = retry_after


class AnswerGenerationError(RagError):
    """Terminal failure of one generator call."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class VectorIndexError(RagError):
    """Vector index management failed."""


class UpsertError(VectorIndexError):
    """Some points of an upsert batch were not written."""

    def __init__(self, message: str, failed_ids: list[int], upserted: int = 0):
        super().__init__(message)
        self.failed_ids = failed_ids
        self.upserted = upserted


class DimensionMismatch(UserWarning):
    """Recorded index dimension differs from the current embedding dimension."""

    def __init__(self, collection: str, recorded: int, expected: int):
        super().__init__(
            f"Collection '{collection}' has dimension {recorded}, embeddings have "
            f"{expected}. Recreate the collection if the embedding model changed."
        )
        self.collection = collection
        self.recorded = recorded
        self.expected = expected
