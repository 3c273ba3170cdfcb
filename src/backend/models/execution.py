"""
Query execution and results models.

These models represent the final response returned to users
after SQL execution.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

FailureKind = Literal["provider", "validation", "structural", "clarification", "unexpected"]


class TabularResult(BaseModel):
    """Rows and column metadata returned by the database."""

    columns: list[str] = Field(default_factory=list, description="Column names in result order")
    rows: list[dict[str, Any]] = Field(
        default_factory=list, description="One JSON-safe dict per row"
    )

    @property
    def row_count(self) -> int:
        """Number of rows in the result."""
        return len(self.rows)


class QueryExecutionResult(BaseModel):
    """
    Unified outcome of one orchestrator call.

    Exactly one of three shapes:

    * success: ``success=True`` with ``results`` populated;
    * clarification: ``requires_clarification=True`` with a question;
    * failure: ``error_message`` set and ``failure_kind`` classifying it.
    """

    success: bool = Field(default=False)
    results: TabularResult | None = Field(default=None)
    generated_sql: str = Field(
        default="", description="Final SQL actually executed (after TOP enforcement)"
    )
    parameters: dict[str, Any] = Field(default_factory=dict)
    error_message: str = Field(default="")
    error_code: str | None = Field(
        default=None, description="Validation rule code or error-taxonomy code"
    )
    failure_kind: FailureKind | None = Field(default=None)
    recovery_hint: str | None = Field(
        default=None, description="Suggestion to help the user rephrase"
    )
    requires_clarification: bool = Field(default=False)
    clarification_question: str = Field(default="")
    language: str = Field(default="en")
    execution_time_ms: int = Field(default=0, ge=0)
    row_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _shape_is_consistent(self) -> "QueryExecutionResult":
        if self.success and (self.error_message or self.requires_clarification):
            raise ValueError("A successful result cannot carry an error or a clarification")
        if self.requires_clarification and self.error_message:
            raise ValueError("A clarification is not an error")
        return self
