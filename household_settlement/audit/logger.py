"""
Audit Logger

DESIGN DECISION: Every settlement run and every finalization is logged.
This provides:
1. Traceability of how each draft came to be
2. Debugging capability when a run is rejected or aborted
3. Accountability for who finalized what

The audit logger:
- Is async to fit the lifecycle manager's flow
- Gracefully handles failures (a broken audit sink never fails a settlement)
- Supports correlation IDs to trace all events of one run
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_settlement.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from household_settlement.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, if configured (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("household_settlement.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.CRITICAL:
            self._logger.critical("audit_event", **log_dict)
        elif event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_run_started(
        self,
        household_id: str,
        period_label: str,
        correlation_id: UUID,
        actor_id: Optional[str] = None,
    ) -> None:
        """Log the start of a settlement run."""
        await self.log(AuditEventBuilder.run_started(
            household_id=household_id,
            period_label=period_label,
            correlation_id=correlation_id,
            actor_id=actor_id,
        ))

    async def log_draft_saved(
        self,
        household_id: str,
        period_label: str,
        settlement_id: UUID,
        revision: int,
        transfer_count: int,
        total_expenses: int,
        correlation_id: UUID,
        actor_id: Optional[str] = None,
    ) -> None:
        """Log a persisted draft."""
        await self.log(AuditEventBuilder.draft_saved(
            household_id=household_id,
            period_label=period_label,
            settlement_id=settlement_id,
            revision=revision,
            transfer_count=transfer_count,
            total_expenses=total_expenses,
            correlation_id=correlation_id,
            actor_id=actor_id,
        ))

    async def log_run_rejected(
        self,
        household_id: str,
        period_label: str,
        reason: str,
        correlation_id: UUID,
        settlement_id: Optional[UUID] = None,
        actor_id: Optional[str] = None,
    ) -> None:
        """Log a run refused because the period is already finalized."""
        await self.log(AuditEventBuilder.run_rejected(
            household_id=household_id,
            period_label=period_label,
            reason=reason,
            correlation_id=correlation_id,
            settlement_id=settlement_id,
            actor_id=actor_id,
        ))

    async def log_validation_failed(
        self,
        household_id: str,
        period_label: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            household_id=household_id,
            period_label=period_label,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_consistency_fault(
        self,
        household_id: str,
        period_label: str,
        imbalance: int,
        correlation_id: UUID,
    ) -> None:
        """Log an aborted run whose balances did not sum to zero."""
        await self.log(AuditEventBuilder.consistency_fault(
            household_id=household_id,
            period_label=period_label,
            imbalance=imbalance,
            correlation_id=correlation_id,
        ))

    async def log_finalized(
        self,
        household_id: str,
        period_label: str,
        settlement_id: UUID,
        correlation_id: UUID,
        actor_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.finalized(
            household_id=household_id,
            period_label=period_label,
            settlement_id=settlement_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
        ))

    async def log_finalize_rejected(
        self,
        settlement_id: UUID,
        reason: str,
        correlation_id: UUID,
        actor_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.finalize_rejected(
            settlement_id=settlement_id,
            reason=reason,
            correlation_id=correlation_id,
            actor_id=actor_id,
        ))

    async def log_concurrency_conflict(
        self,
        operation: str,
        error_message: str,
        correlation_id: UUID,
        settlement_id: Optional[UUID] = None,
        household_id: Optional[str] = None,
    ) -> None:
        """Log a lost race against another writer."""
        await self.log(AuditEventBuilder.concurrency_conflict(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
            settlement_id=settlement_id,
            household_id=household_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a settlement run or finalization.
    Pass it through all subsequent operations.
    """
    return uuid4()
