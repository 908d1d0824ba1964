"""
Tests for Household Settlement models

Test strategy:
1. Unit tests for individual components (models, engine steps)
2. Integration tests for the lifecycle (with in-memory and SQLite storage)
3. No real API calls in tests (use mocks)
"""

from datetime import date, datetime, timezone
from fractions import Fraction
from uuid import uuid4

import pytest

from household_settlement.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from household_settlement.models.ledger import (
    IncomeDeclaration,
    LedgerSnapshot,
    Member,
    Period,
    SharedExpenseRecord,
)
from household_settlement.models.settlement import (
    ApportionmentWeight,
    Balance,
    Settlement,
    SettlementStatus,
    Transfer,
)
from household_settlement.models.validation import ValidationIssue, ValidationResult


class TestPeriod:
    """Tests for the Period model."""

    def test_label(self):
        """Test the YYYY-MM label is zero padded."""
        assert Period(year=2024, month=3).label == "2024-03"
        assert str(Period(year=2024, month=11)) == "2024-11"

    @pytest.mark.parametrize("year,month", [(1999, 1), (2101, 1), (2024, 0), (2024, 13)])
    def test_rejects_out_of_range(self, year, month):
        """Test that invalid years and months are rejected."""
        with pytest.raises(ValueError):
            Period(year=year, month=month)

    def test_contains(self):
        """Test month boundaries, including December."""
        december = Period(year=2024, month=12)
        assert december.contains(date(2024, 12, 1))
        assert december.contains(date(2024, 12, 31))
        assert not december.contains(date(2025, 1, 1))
        assert not december.contains(date(2024, 11, 30))

    def test_parse(self):
        """Test parsing a YYYY-MM label."""
        assert Period.parse(" 2024-05 ") == Period(year=2024, month=5)

    def test_parse_rejects_garbage(self):
        """Test that a malformed label raises ValueError."""
        with pytest.raises(ValueError):
            Period.parse("May 2024")

    def test_periods_are_hashable_and_comparable(self):
        """Test that equal periods compare equal and hash alike."""
        assert Period(year=2024, month=5) == Period(year=2024, month=5)
        assert len({Period(year=2024, month=5), Period(year=2024, month=5)}) == 1
        assert Period(year=2023, month=12).sort_key < Period(year=2024, month=1).sort_key


class TestLedgerModels:
    """Tests for ledger input models."""

    def test_member_strips_whitespace(self):
        """Test that whitespace is stripped from member ids."""
        assert Member(member_id="  alice  ").member_id == "alice"

    def test_net_amount_never_negative(self, period):
        """Test that deductions larger than gross give zero net income."""
        declaration = IncomeDeclaration(
            member_id="a", period=period, gross_amount=100, deduction_amount=250,
        )
        assert declaration.net_amount == 0

    def test_income_rejects_negative_amount(self, period):
        """Test that negative incomes are rejected."""
        with pytest.raises(ValueError):
            IncomeDeclaration(member_id="a", period=period, gross_amount=-1)

    def test_expense_rejects_negative_amount(self, period):
        """Test that negative expenses are rejected."""
        with pytest.raises(ValueError):
            SharedExpenseRecord(payer_member_id="a", amount_minor_units=-5, period=period)

    def test_expense_date_must_fall_in_period(self, period):
        """Test that occurred_on outside the period is rejected."""
        with pytest.raises(ValueError, match="outside period 2024-05"):
            SharedExpenseRecord(
                payer_member_id="a",
                amount_minor_units=100,
                period=period,
                occurred_on=date(2024, 6, 1),
            )

    def test_expense_defaults_to_shared(self, period):
        """Test that expenses are apportioned unless flagged otherwise."""
        expense = SharedExpenseRecord(payer_member_id="a", amount_minor_units=1, period=period)
        assert expense.should_apportion is True

    def test_ledger_models_are_frozen(self, period):
        """Test that the engine cannot mutate ledger records."""
        expense = SharedExpenseRecord(payer_member_id="a", amount_minor_units=1, period=period)
        with pytest.raises(ValueError):
            expense.amount_minor_units = 2

    def test_active_member_ids(self, period):
        """Test that inactive and duplicate members are dropped, ids sorted."""
        snapshot = LedgerSnapshot(
            household_id="h",
            period=period,
            members=(
                Member(member_id="c"),
                Member(member_id="a"),
                Member(member_id="b", is_active=False),
                Member(member_id="a"),
            ),
        )
        assert snapshot.active_member_ids == ["a", "c"]


class TestSettlementModels:
    """Tests for engine outputs and the persisted settlement."""

    def test_weight_must_be_within_unit_interval(self):
        """Test that weights outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            ApportionmentWeight(member_id="a", weight=Fraction(3, 2))

    def test_weight_keeps_exact_fraction(self):
        """Test that weights are stored as exact fractions."""
        weight = ApportionmentWeight(member_id="a", weight=Fraction(1, 3))
        assert weight.weight == Fraction(1, 3)

    def test_balance_direction(self):
        """Test creditor and debtor flags."""
        assert Balance(member_id="a", delta_minor_units=5).is_creditor
        assert Balance(member_id="b", delta_minor_units=-5).is_debtor
        zero = Balance(member_id="c", delta_minor_units=0)
        assert not zero.is_creditor and not zero.is_debtor

    def test_transfer_requires_positive_amount(self):
        """Test that zero transfers are rejected."""
        with pytest.raises(ValueError):
            Transfer(from_member_id="a", to_member_id="b", amount_minor_units=0)

    def test_transfer_requires_two_members(self):
        """Test that a member cannot pay themselves."""
        with pytest.raises(ValueError, match="two different members"):
            Transfer(from_member_id="a", to_member_id="a", amount_minor_units=10)

    def test_settlement_defaults(self, period):
        """Test a new settlement is a revision 0 draft."""
        settlement = Settlement(household_id="h", period=period)
        assert settlement.status == SettlementStatus.DRAFT
        assert settlement.revision == 0
        assert settlement.finalized_at is None
        assert settlement.created_at.tzinfo is not None

    def test_finalized_needs_timestamp(self, period):
        """Test that FINALIZED without finalized_at is rejected."""
        with pytest.raises(ValueError, match="needs finalized_at"):
            Settlement(household_id="h", period=period, status=SettlementStatus.FINALIZED)

    def test_draft_cannot_carry_finalized_at(self, period):
        """Test that a DRAFT with finalized_at is rejected."""
        with pytest.raises(ValueError, match="cannot carry finalized_at"):
            Settlement(
                household_id="h",
                period=period,
                finalized_at=datetime.now(timezone.utc),
            )

    def test_transfer_total(self, period):
        """Test the sum of transfer amounts."""
        settlement = Settlement(
            household_id="h",
            period=period,
            transfers=[
                Transfer(from_member_id="b", to_member_id="a", amount_minor_units=100),
                Transfer(from_member_id="c", to_member_id="a", amount_minor_units=200),
            ],
        )
        assert settlement.transfer_total == 300


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RUN_STARTED,
            description="Run started",
        )
        assert event.event_type == AuditEventType.SETTLEMENT_RUN_STARTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_DRAFT_SAVED,
            description="Draft saved",
            household_id="h",
            period_label="2024-05",
            details={"transfer_count": 2},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "settlement_draft_saved"
        assert log_dict["period"] == "2024-05"
        assert log_dict["details"]["transfer_count"] == 2

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_FINALIZED,
            description="Finalized",
            actor_id="alice",
        )
        row = event.to_sheets_row()
        assert len(row) == 13  # Expected number of columns
        assert row[2] == "settlement_finalized"
        assert row[9] == ""  # no details
        assert row[12] == "alice"

    def test_builder_draft_saved(self):
        """Test AuditEventBuilder.draft_saved."""
        settlement_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.draft_saved(
            household_id="h",
            period_label="2024-05",
            settlement_id=settlement_id,
            revision=2,
            transfer_count=3,
            total_expenses=1000,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.SETTLEMENT_DRAFT_SAVED
        assert event.settlement_id == settlement_id
        assert event.correlation_id == correlation_id
        assert event.details == {"revision": 2, "transfer_count": 3, "total_expenses": 1000}

    def test_builder_consistency_fault_is_critical(self):
        """Test that a consistency fault is logged as CRITICAL."""
        event = AuditEventBuilder.consistency_fault(
            household_id="h",
            period_label="2024-05",
            imbalance=500,
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.CRITICAL
        assert event.details["imbalance"] == 500
        assert event.error_code == "consistency_fault"

    def test_builder_finalize_rejected(self):
        """Test AuditEventBuilder.finalize_rejected."""
        event = AuditEventBuilder.finalize_rejected(
            settlement_id=uuid4(),
            reason="already finalized",
            correlation_id=uuid4(),
            actor_id="bob",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "already finalized"
        assert event.actor_id == "bob"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            household_id="h",
            issues=[
                ValidationIssue(
                    field="members",
                    issue_type="no_active_members",
                    message="No active members",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            household_id="h",
            issues=[
                ValidationIssue(
                    field="incomes[a]",
                    issue_type="missing_declaration",
                    message="No declaration",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert len(result.warnings) == 1

    def test_issue_severity_is_constrained(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
