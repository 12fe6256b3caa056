"""Error taxonomy for the conflict engine.

Only InvalidQuery reaches the caller. Every other error is recovered
locally and turned into a neutral value plus a diagnostic note.
"""


class ConflictEngineError(Exception):
    """Base class for all engine errors."""


class InvalidQuery(ConflictEngineError):
    """A required identifying parameter is missing or malformed."""


class ProviderUnavailable(ConflictEngineError):
    """An event provider cannot serve the request (credentials, HTTP, timeout)."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"Provider '{provider}' unavailable: {reason}")
        self.provider = provider
        self.reason = reason


class ClassificationFailure(ConflictEngineError):
    """AI-assisted category matching failed."""


class CategoryMatchParseError(ClassificationFailure):
    """The AI provider returned output that is not a valid category match."""

    def __init__(self, message: str, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class CacheUnavailable(ConflictEngineError):
    """The cache store could not be read or written."""
