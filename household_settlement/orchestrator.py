"""
Settlement Lifecycle Manager

This module ties together all the components and defines the
end-to-end flows for:
1. Run (period → snapshot → validate → compute → upsert DRAFT)
2. Finalize (DRAFT → FINALIZED, compare-and-set)
3. Reads (find_one, find_all) and dry runs (preview)

DESIGN DECISION: The lifecycle manager enforces the boundaries:
- A FINALIZED settlement is never recomputed or modified
- Nothing is written unless validation and the zero-sum check pass
- Every step is audited

State machine: NONE → DRAFT → FINALIZED (terminal).
Re-running a DRAFT replaces it in place (same id, revision + 1).
"""

from typing import Optional
from uuid import UUID

import structlog

from household_settlement.audit import AuditLogger, create_correlation_id
from household_settlement.config import get_settings
from household_settlement.config.settings import EngineSettings
from household_settlement.engine import (
    ConcurrencyConflict,
    ConflictError,
    ConsistencyFault,
    NotFoundError,
    ValidationError,
    compute_settlement,
)
from household_settlement.models.ledger import Period
from household_settlement.models.settlement import (
    Settlement,
    SettlementComputation,
    SettlementStatus,
)
from household_settlement.services.ledger import (
    GoogleSheetsLedgerReader,
    GoogleSheetsPolicyResolver,
    InMemoryLedger,
    LedgerReaderInterface,
    PolicyResolverInterface,
    StaticPolicyResolver,
)
from household_settlement.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    SettlementStorageInterface,
    SqlSettlementStorage,
    StorageError,
)
from household_settlement.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class SettlementLifecycleManager:
    """
    Orchestrates settlement runs and finalization for every household.

    The engine is pure; this class owns everything around it: reading the
    ledger, validation, persistence and the audit trail.
    """

    def __init__(
        self,
        ledger_reader: LedgerReaderInterface,
        policy_resolver: PolicyResolverInterface,
        storage: SettlementStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        engine_settings: Optional[EngineSettings] = None,
    ):
        self._ledger = ledger_reader
        self._policies = policy_resolver
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._engine_settings = engine_settings or EngineSettings()

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    async def _check_period(
        self,
        household_id: str,
        year: int,
        month: int,
        correlation_id: UUID,
    ) -> Period:
        try:
            return self._validator.check_period(household_id, year, month)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                household_id=household_id,
                period_label=None,
                issues=[issue.to_log_dict() for issue in e.issues],
                correlation_id=correlation_id,
            )
            raise

    async def _compute(
        self,
        household_id: str,
        period: Period,
        correlation_id: UUID,
    ) -> SettlementComputation:
        """
        Load, validate and compute. Writes nothing.

        Raises:
            ValidationError: If the snapshot has error-level issues
            ConsistencyFault: If the balances do not sum to zero
            StorageError: If the ledger could not be read
        """
        try:
            policy = await self._policies.get_policy(household_id)
            snapshot = await self._ledger.load_snapshot(household_id, period, policy)
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="ledger",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        result = self._validator.validate(snapshot)
        if result.warnings:
            logger.warning(
                "ledger_warnings",
                household_id=household_id,
                period=period.label,
                warnings=[issue.to_log_dict() for issue in result.warnings],
                correlation_id=str(correlation_id),
            )
        if result.has_errors:
            errors = [issue for issue in result.issues if issue.severity == "error"]
            await self._audit_logger.log_validation_failed(
                household_id=household_id,
                period_label=period.label,
                issues=[issue.to_log_dict() for issue in errors],
                correlation_id=correlation_id,
            )
            raise ValidationError(
                "; ".join(issue.message for issue in errors),
                issues=errors,
            )

        try:
            return compute_settlement(
                snapshot,
                transfer_description=self._engine_settings.transfer_description,
            )
        except ConsistencyFault as e:
            await self._audit_logger.log_consistency_fault(
                household_id=household_id,
                period_label=period.label,
                imbalance=e.imbalance,
                correlation_id=correlation_id,
            )
            raise

    async def _reject_run(
        self,
        household_id: str,
        period: Period,
        settlement_id: Optional[UUID],
        correlation_id: UUID,
        actor_id: Optional[str],
    ) -> ConflictError:
        reason = f"Settlement for {period.label} is already finalized"
        await self._audit_logger.log_run_rejected(
            household_id=household_id,
            period_label=period.label,
            reason=reason,
            correlation_id=correlation_id,
            settlement_id=settlement_id,
            actor_id=actor_id,
        )
        return ConflictError(reason, settlement_id=settlement_id)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def run(
        self,
        household_id: str,
        year: int,
        month: int,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Settlement:
        """
        Compute the household month and save it as a DRAFT.

        Running twice on an unchanged ledger yields the same transfers.

        Raises:
            ValidationError: Invalid period or unusable ledger (nothing written)
            ConflictError: The month is already FINALIZED (nothing written)
            ConsistencyFault: The ledger does not balance (nothing written)
            ConcurrencyConflict: A concurrent run kept winning the upsert race
        """
        correlation_id = correlation_id or create_correlation_id()
        period = await self._check_period(household_id, year, month, correlation_id)

        await self._audit_logger.log_run_started(
            household_id=household_id,
            period_label=period.label,
            correlation_id=correlation_id,
            actor_id=actor_id,
        )

        # Fail fast; upsert_draft re-checks inside its transaction
        existing = await self._storage.get_by_period(household_id, period)
        if existing is not None and existing.is_finalized:
            raise await self._reject_run(
                household_id, period, existing.id, correlation_id, actor_id
            )

        computation = await self._compute(household_id, period, correlation_id)

        try:
            settlement = await self._storage.upsert_draft(
                household_id=household_id,
                period=period,
                transfers=computation.transfers,
                total_expenses=computation.total_expenses,
            )
        except ConcurrencyConflict as e:
            await self._audit_logger.log_concurrency_conflict(
                operation="run",
                error_message=str(e),
                correlation_id=correlation_id,
                household_id=household_id,
            )
            raise
        except ConflictError as e:
            # Finalized between the check above and the upsert
            raise await self._reject_run(
                household_id, period, e.settlement_id, correlation_id, actor_id
            ) from e

        await self._audit_logger.log_draft_saved(
            household_id=household_id,
            period_label=period.label,
            settlement_id=settlement.id,
            revision=settlement.revision,
            transfer_count=len(settlement.transfers),
            total_expenses=settlement.total_expenses,
            correlation_id=correlation_id,
            actor_id=actor_id,
        )
        return settlement

    async def preview(
        self,
        household_id: str,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementComputation:
        """
        Dry run: the full computation, nothing persisted.

        Works for finalized months too, which makes it useful for checking
        whether the ledger has changed since finalization.
        """
        correlation_id = correlation_id or create_correlation_id()
        period = await self._check_period(household_id, year, month, correlation_id)
        return await self._compute(household_id, period, correlation_id)

    async def finalize(
        self,
        settlement_id: UUID,
        actor_id: Optional[str] = None,
        expected_revision: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Settlement:
        """
        Move a DRAFT to FINALIZED. Terminal.

        Args:
            settlement_id: Settlement to finalize
            actor_id: Recorded as finalized_by
            expected_revision: The revision the caller reviewed; if the draft
                was recomputed since, the finalize is refused

        Raises:
            ConflictError: Missing (NotFoundError) or already FINALIZED
            ConcurrencyConflict: The draft changed since expected_revision
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            settlement = await self._storage.mark_finalized(
                settlement_id,
                expected_revision=expected_revision,
                finalized_by=actor_id,
            )
        except ConcurrencyConflict as e:
            await self._audit_logger.log_concurrency_conflict(
                operation="finalize",
                error_message=str(e),
                correlation_id=correlation_id,
                settlement_id=settlement_id,
            )
            raise
        except ConflictError as e:
            await self._audit_logger.log_finalize_rejected(
                settlement_id=settlement_id,
                reason=str(e),
                correlation_id=correlation_id,
                actor_id=actor_id,
            )
            raise

        await self._audit_logger.log_finalized(
            household_id=settlement.household_id,
            period_label=settlement.period.label,
            settlement_id=settlement.id,
            correlation_id=correlation_id,
            actor_id=actor_id,
        )
        return settlement

    async def find_one(
        self,
        settlement_id: UUID,
        household_id: Optional[str] = None,
    ) -> Settlement:
        """
        Raises:
            NotFoundError: No such settlement (or it belongs to another household)
        """
        settlement = await self._storage.get_by_id(settlement_id)
        if settlement is None or (
            household_id is not None and settlement.household_id != household_id
        ):
            raise NotFoundError(
                f"Settlement {settlement_id} not found",
                settlement_id=settlement_id,
            )
        return settlement

    async def find_all(
        self,
        household_id: str,
        status: Optional[SettlementStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Settlement]:
        """The household's settlements, newest period first."""
        return await self._storage.list_for_household(
            household_id,
            status=status,
            limit=limit,
            offset=offset,
        )


def create_app_components(
    use_google_sheets: Optional[bool] = None,
) -> tuple[SettlementLifecycleManager, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_google_sheets: Read the ledger (and write the audit trail)
                    through Google Sheets. Defaults to the app setting.
                    Settlements always go to the SQL database.

    Returns:
        (lifecycle_manager, sheets_client)
    """
    settings = get_settings()
    engine_settings = settings.engine
    database = settings.database

    if use_google_sheets is None:
        use_google_sheets = settings.app.use_google_sheets

    storage = SqlSettlementStorage.from_url(
        database.url,
        echo=database.echo,
        retry_attempts=engine_settings.upsert_retry_attempts,
    )
    storage.create_schema()

    static_policies = StaticPolicyResolver.from_settings(engine_settings)

    sheets_client = None
    ledger_reader: LedgerReaderInterface = InMemoryLedger()
    policy_resolver: PolicyResolverInterface = static_policies
    audit_logger = AuditLogger()  # Local-only logging

    if use_google_sheets:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_reader = GoogleSheetsLedgerReader(sheets_client)
            policy_resolver = GoogleSheetsPolicyResolver(
                sheets_client,
                default=static_policies.default,
            )
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Sheets not configured - continue with the in-memory ledger
            logger.warning("google_sheets_not_configured", error=str(e))
            sheets_client = None
            ledger_reader = InMemoryLedger()
            policy_resolver = static_policies
            audit_logger = AuditLogger()

    manager = SettlementLifecycleManager(
        ledger_reader=ledger_reader,
        policy_resolver=policy_resolver,
        storage=storage,
        audit_logger=audit_logger,
        engine_settings=engine_settings,
    )

    return manager, sheets_client
