"""
SQL generation and validation models.

These are short-lived values created and consumed within a single
query-processing call.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class Provider(str, Enum):
    """Closed set of supported SQL generator backends."""

    OPENAI = "OpenAI"
    GEMINI = "Gemini"
    OLLAMA = "Ollama"

    @classmethod
    def parse(cls, name: str | None) -> "Provider":
        """Resolve a configured provider name case-insensitively.

        Raises:
            ValueError: If ``name`` is not one of the supported providers.
        """
        wanted = (name or "").strip().upper()
        for provider in cls:
            if provider.value.upper() == wanted:
                return provider
        raise ValueError(f"Unknown LLM provider: {name}")


class GenerationResult(BaseModel):
    """
    Output of a SQL generator.

    When ``requires_clarification`` is set the ``generated_sql`` is ignored
    downstream and ``clarification_question`` is shown to the user instead.
    """

    generated_sql: str = Field(default="", description="Candidate SQL (untrusted)")
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Named parameter (without '@') -> bound value",
    )
    requires_clarification: bool = Field(default=False)
    clarification_question: str = Field(default="")
    language: str = Field(default="en", description="Detected language tag: 'en' or 'hi-en'")


class ValidationCode(str, Enum):
    """Error codes produced by the validation pipeline rules."""

    SELECT_ONLY_VIOLATION = "SELECT_ONLY_VIOLATION"
    SEMICOLON_VIOLATION = "SEMICOLON_VIOLATION"
    COMMENT_VIOLATION = "COMMENT_VIOLATION"
    DANGEROUS_FUNCTION_VIOLATION = "DANGEROUS_FUNCTION_VIOLATION"
    SCHEMA_VIOLATION = "SCHEMA_VIOLATION"
    ROW_LIMIT_VIOLATION = "ROW_LIMIT_VIOLATION"
    ROW_LIMIT_EXCEEDED = "ROW_LIMIT_EXCEEDED"


class ValidationOutcome(BaseModel):
    """Pass/fail verdict of a single rule or of the whole pipeline."""

    is_valid: bool
    error_message: str = ""
    error_code: ValidationCode | None = None

    @model_validator(mode="after")
    def _failure_is_explained(self) -> "ValidationOutcome":
        if not self.is_valid and (not self.error_message or self.error_code is None):
            raise ValueError("A failed validation must carry an error code and message")
        return self

    @classmethod
    def success(cls) -> "ValidationOutcome":
        """Return a passing outcome."""
        return cls(is_valid=True)

    @classmethod
    def failure(cls, message: str, code: ValidationCode) -> "ValidationOutcome":
        """Return a failing outcome with its reason."""
        return cls(is_valid=False, error_message=message, error_code=code)
