"""
Validation Result Models

Shared shape for reporting what is wrong with user input,
so the presentation layer can show every problem at once.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'identity_collision')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class IdentityValidationResult(BaseModel):
    """
    Result of the two-stage identity check.

    Stage 1: Schema validation (name present, email well-formed)
    Stage 2: Semantic validation (storage key not owned by another email)
    """

    name: str
    email: str
    player_key: Optional[str] = Field(
        default=None,
        description="Normalized storage key, if the email could be normalized"
    )
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    # Stage results
    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    semantic_valid: bool = Field(
        ...,
        description="Did semantic validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    # What stage 2 found in storage
    record_exists: bool = Field(
        default=False,
        description="Is there already a record under the key?"
    )
    stored_email: Optional[str] = Field(
        default=None,
        description="Email of the record already under the key"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_collision(self) -> bool:
        return any(issue.issue_type == "identity_collision" for issue in self.issues)
