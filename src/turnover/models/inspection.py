"""Inspection submission model."""

from typing import Optional

from pydantic import BaseModel, Field

from turnover.models.enums import IssueSeverity, TaskPriority


class InspectionIssue(BaseModel):
    description: str = Field(..., min_length=1)
    severity: IssueSeverity = IssueSeverity.MEDIUM
    requires_blocking: bool = False

    def maintenance_priority(self) -> TaskPriority:
        """Maintenance priority is one step above the issue severity."""
        return {
            IssueSeverity.HIGH: TaskPriority.URGENT,
            IssueSeverity.MEDIUM: TaskPriority.HIGH,
            IssueSeverity.LOW: TaskPriority.MEDIUM,
        }[self.severity]

    def maintenance_duration_minutes(self) -> int:
        return 240 if self.severity == IssueSeverity.HIGH else 120


class InspectionResult(BaseModel):
    """Structured outcome of an inspection run."""

    passed: bool
    issues_found: list[InspectionIssue] = Field(default_factory=list)
    approval_notes: Optional[str] = None
    photos_reviewed: bool = False
