"""
Audit Models for Household Settlement

Every settlement run, recompute and finalization is logged for audit purposes.
This provides:
1. Traceability of how each draft came to be
2. Debugging information when a run is rejected or aborted
3. Accountability for who finalized what

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from household_settlement.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the settlement lifecycle has its own event type.
    """
    # Runs
    SETTLEMENT_RUN_STARTED = "settlement_run_started"
    SETTLEMENT_DRAFT_SAVED = "settlement_draft_saved"
    SETTLEMENT_RUN_REJECTED = "settlement_run_rejected"

    # Validation
    LEDGER_VALIDATION_FAILED = "ledger_validation_failed"

    # Finalization
    SETTLEMENT_FINALIZED = "settlement_finalized"
    SETTLEMENT_FINALIZE_REJECTED = "settlement_finalize_rejected"

    # Faults
    CONSISTENCY_FAULT = "consistency_fault"
    CONCURRENCY_CONFLICT = "concurrency_conflict"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    household_id: Optional[str] = Field(
        default=None,
        description="Household the event belongs to"
    )
    period_label: Optional[str] = Field(
        default=None,
        description="Settlement period as YYYY-MM"
    )
    settlement_id: Optional[UUID] = Field(
        default=None,
        description="Settlement this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # Who asked for it, if known
    actor_id: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "household_id": self.household_id,
            "period": self.period_label,
            "settlement_id": str(self.settlement_id) if self.settlement_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "actor_id": self.actor_id,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, household_id, period,
         settlement_id, correlation_id, description, details_json,
         error_code, error_message, actor_id]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.household_id or "",
            self.period_label or "",
            str(self.settlement_id) if self.settlement_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            self.actor_id or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.run_started(household_id, "2024-05", correlation_id)
        event = AuditEventBuilder.finalized(settlement, actor_id, correlation_id)
    """

    @staticmethod
    def run_started(
        household_id: str,
        period_label: str,
        correlation_id: UUID,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RUN_STARTED,
            household_id=household_id,
            period_label=period_label,
            correlation_id=correlation_id,
            description=f"Settlement run started for {period_label}",
            actor_id=actor_id,
        )

    @staticmethod
    def draft_saved(
        household_id: str,
        period_label: str,
        settlement_id: UUID,
        revision: int,
        transfer_count: int,
        total_expenses: int,
        correlation_id: UUID,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_DRAFT_SAVED,
            household_id=household_id,
            period_label=period_label,
            settlement_id=settlement_id,
            correlation_id=correlation_id,
            description=f"Draft settlement saved with {transfer_count} transfers",
            details={
                "revision": revision,
                "transfer_count": transfer_count,
                "total_expenses": total_expenses,
            },
            actor_id=actor_id,
        )

    @staticmethod
    def run_rejected(
        household_id: str,
        period_label: str,
        reason: str,
        correlation_id: UUID,
        settlement_id: Optional[UUID] = None,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RUN_REJECTED,
            severity=AuditSeverity.WARNING,
            household_id=household_id,
            period_label=period_label,
            settlement_id=settlement_id,
            correlation_id=correlation_id,
            description=f"Settlement run rejected for {period_label}",
            error_code="conflict",
            error_message=reason,
            actor_id=actor_id,
        )

    @staticmethod
    def validation_failed(
        household_id: str,
        period_label: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            household_id=household_id,
            period_label=period_label,
            correlation_id=correlation_id,
            description=f"Ledger validation failed with {len(issues)} issues",
            details={"issues": issues},
            error_code="validation_error",
        )

    @staticmethod
    def consistency_fault(
        household_id: str,
        period_label: str,
        imbalance: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_FAULT,
            severity=AuditSeverity.CRITICAL,
            household_id=household_id,
            period_label=period_label,
            correlation_id=correlation_id,
            description="Balances do not sum to zero; run aborted",
            details={"imbalance": imbalance},
            error_code="consistency_fault",
        )

    @staticmethod
    def finalized(
        household_id: str,
        period_label: str,
        settlement_id: UUID,
        correlation_id: UUID,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_FINALIZED,
            household_id=household_id,
            period_label=period_label,
            settlement_id=settlement_id,
            correlation_id=correlation_id,
            description=f"Settlement for {period_label} finalized",
            actor_id=actor_id,
        )

    @staticmethod
    def finalize_rejected(
        settlement_id: UUID,
        reason: str,
        correlation_id: UUID,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_FINALIZE_REJECTED,
            severity=AuditSeverity.WARNING,
            settlement_id=settlement_id,
            correlation_id=correlation_id,
            description="Finalize rejected",
            error_code="conflict",
            error_message=reason,
            actor_id=actor_id,
        )

    @staticmethod
    def concurrency_conflict(
        operation: str,
        error_message: str,
        correlation_id: UUID,
        settlement_id: Optional[UUID] = None,
        household_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENCY_CONFLICT,
            severity=AuditSeverity.WARNING,
            household_id=household_id,
            settlement_id=settlement_id,
            correlation_id=correlation_id,
            description=f"Concurrent modification during {operation}",
            details={"operation": operation},
            error_code="concurrency_conflict",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
