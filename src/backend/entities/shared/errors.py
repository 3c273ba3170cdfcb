"""Error taxonomy shared by the generators, repository and orchestrator.

Every error carries a stable ``code`` so the orchestrator can classify a
failure without inspecting exception types from third-party libraries.
"""

from __future__ import annotations


class DbChatError(Exception):
    """Base class for application errors.

    Args:
        code: Stable machine-readable error code.
        message: Human-readable description.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class SqlValidationError(DbChatError):
    """A query was rejected by policy outside the validation pipeline."""

    def __init__(self, message: str) -> None:
        super().__init__("SQL_VALIDATION", message)


class SchemaError(DbChatError):
    """The database catalog could not be read."""

    def __init__(self, message: str) -> None:
        super().__init__("SCHEMA_ERROR", message)


class ProviderError(DbChatError):
    """An upstream SQL generator failed or returned an unusable response.

    Args:
        message: Description of the failure.
        retryable: Typed classification from the generator. ``True`` or
            ``False`` when the generator knows; ``None`` leaves the decision
            to the retry policy's message vocabulary.
    """

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__("LLM_ERROR", message)
        self.retryable = retryable


class ConfigurationError(DbChatError):
    """A setting is missing or holds an unsupported value."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIG_ERROR", message)
