"""
Validation Models

Validation never fixes anything. It reports issues; the lifecycle manager
decides whether a run may proceed.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from household_settlement.models.ledger import utc_now


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field or record with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'invalid_period', 'no_active_members', 'unknown_payer')"
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

    def to_log_dict(self) -> dict:
        return {"field": self.field, "type": self.issue_type, "message": self.message}


class ValidationResult(BaseModel):
    """Result of validating a ledger snapshot before a settlement run."""

    household_id: str
    period_label: Optional[str] = None
    validated_at: datetime = Field(default_factory=utc_now)

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]
