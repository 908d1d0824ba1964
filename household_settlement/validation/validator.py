"""
Ledger Snapshot Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - PERIOD VALIDATION:
- Year and month range checks
- Runs before anything is read, so a bad request costs nothing

STAGE 2 - SNAPSHOT VALIDATION:
- At least one active member
- Every record belongs to the requested period
- Suspicious but settleable data (unknown payers, duplicate or missing
  income declarations) is reported as a warning

WHY TWO STAGES:
1. A malformed request never reaches the ledger
2. Better error messages (know exactly what kind of issue)
3. Stage 2 needs the snapshot, stage 1 does not

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; errors stop the run before anything is written.
An expense paid by a non-member is only a warning here because the
engine reports it as a ConsistencyFault with the exact imbalance.
"""

from collections import Counter

from household_settlement.engine.errors import ValidationError
from household_settlement.models.ledger import (
    MAX_YEAR,
    MIN_YEAR,
    LedgerSnapshot,
    Period,
    WeightingMode,
)
from household_settlement.models.validation import ValidationIssue, ValidationResult


class LedgerValidator:
    """
    Validates settlement requests and ledger snapshots.

    Stage 1: check_period (no I/O)
    Stage 2: validate (on a loaded snapshot)
    """

    def check_period(self, household_id: str, year: int, month: int) -> Period:
        """
        Stage 1: turn (year, month) into a Period or raise ValidationError.
        """
        issues = []

        if not household_id or not str(household_id).strip():
            issues.append(ValidationIssue(
                field="household_id",
                issue_type="missing",
                message="Household id is required",
                severity="error",
            ))

        if not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
            issues.append(ValidationIssue(
                field="year",
                issue_type="invalid_period",
                message=f"Year {year!r} is outside {MIN_YEAR}..{MAX_YEAR}",
                severity="error",
                suggested_fix=f"Use a four-digit year between {MIN_YEAR} and {MAX_YEAR}",
            ))

        if not isinstance(month, int) or not 1 <= month <= 12:
            issues.append(ValidationIssue(
                field="month",
                issue_type="invalid_period",
                message=f"Month {month!r} is outside 1..12",
                severity="error",
                suggested_fix="Use a month number between 1 and 12",
            ))

        if issues:
            raise ValidationError(
                "; ".join(issue.message for issue in issues),
                issues=issues,
            )

        return Period(year=year, month=month)

    def _validate_members(self, snapshot: LedgerSnapshot) -> list[ValidationIssue]:
        issues = []

        if not snapshot.active_member_ids:
            issues.append(ValidationIssue(
                field="members",
                issue_type="no_active_members",
                message=f"Household {snapshot.household_id} has no active members",
                severity="error",
                suggested_fix="Activate at least one member before settling",
            ))

        counts = Counter(m.member_id for m in snapshot.members)
        for member_id in sorted(mid for mid, n in counts.items() if n > 1):
            issues.append(ValidationIssue(
                field="members",
                issue_type="duplicate_member",
                message=f"Member {member_id} is listed {counts[member_id]} times",
                severity="warning",
            ))

        return issues

    def _validate_expenses(self, snapshot: LedgerSnapshot) -> list[ValidationIssue]:
        issues = []
        active = set(snapshot.active_member_ids)

        for index, expense in enumerate(snapshot.expenses):
            ref = expense.record_id or f"#{index}"

            if expense.period != snapshot.period:
                issues.append(ValidationIssue(
                    field=f"expenses[{ref}]",
                    issue_type="period_mismatch",
                    message=(
                        f"Expense {ref} belongs to {expense.period.label}, "
                        f"not {snapshot.period.label}"
                    ),
                    severity="error",
                ))
                continue

            if expense.should_apportion and expense.payer_member_id not in active:
                issues.append(ValidationIssue(
                    field=f"expenses[{ref}]",
                    issue_type="unknown_payer",
                    message=(
                        f"Shared expense {ref} was paid by {expense.payer_member_id}, "
                        f"who is not an active member"
                    ),
                    severity="warning",
                    suggested_fix="Reassign the expense or reactivate the member",
                ))

            if (
                not expense.should_apportion
                and snapshot.policy.include_personal_reimbursements
                and expense.beneficiary_member_id
                and expense.beneficiary_member_id not in active
            ):
                issues.append(ValidationIssue(
                    field=f"expenses[{ref}]",
                    issue_type="unknown_beneficiary",
                    message=(
                        f"Personal expense {ref} is for {expense.beneficiary_member_id}, "
                        f"who is not an active member"
                    ),
                    severity="warning",
                ))

        return issues

    def _validate_incomes(self, snapshot: LedgerSnapshot) -> list[ValidationIssue]:
        issues = []
        active = set(snapshot.active_member_ids)

        for declaration in snapshot.incomes:
            if declaration.period != snapshot.period:
                issues.append(ValidationIssue(
                    field=f"incomes[{declaration.member_id}]",
                    issue_type="period_mismatch",
                    message=(
                        f"Income of {declaration.member_id} belongs to "
                        f"{declaration.period.label}, not {snapshot.period.label}"
                    ),
                    severity="error",
                ))

        in_period = [d for d in snapshot.incomes if d.period == snapshot.period]
        counts = Counter(d.member_id for d in in_period)

        for member_id in sorted(counts):
            if member_id not in active:
                issues.append(ValidationIssue(
                    field=f"incomes[{member_id}]",
                    issue_type="non_member_income",
                    message=f"Income declared by {member_id}, who is not an active member, is ignored",
                    severity="info",
                ))
            elif counts[member_id] > 1:
                issues.append(ValidationIssue(
                    field=f"incomes[{member_id}]",
                    issue_type="duplicate_declaration",
                    message=(
                        f"{member_id} declared income {counts[member_id]} times; "
                        f"the latest declaration is used"
                    ),
                    severity="warning",
                ))

        if snapshot.policy.weighting_mode == WeightingMode.INCOME_WEIGHTED:
            for member_id in sorted(active - set(counts)):
                issues.append(ValidationIssue(
                    field=f"incomes[{member_id}]",
                    issue_type="missing_declaration",
                    message=(
                        f"{member_id} has no income declaration for "
                        f"{snapshot.period.label}; treated as "
                        f"{snapshot.policy.missing_income_policy.value}"
                    ),
                    severity="warning",
                    suggested_fix="Ask the member to declare their income",
                ))

        return issues

    def validate(self, snapshot: LedgerSnapshot) -> ValidationResult:
        """
        Stage 2: validate a loaded snapshot.

        Returns:
            ValidationResult with all issues found
        """
        issues = []
        issues.extend(self._validate_members(snapshot))
        issues.extend(self._validate_expenses(snapshot))
        issues.extend(self._validate_incomes(snapshot))

        return ValidationResult(
            household_id=snapshot.household_id,
            period_label=snapshot.period.label,
            issues=issues,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a readable summary of validation results.

        This is what we show to household members.
        """
        if result.is_valid and not result.warnings:
            return "✅ Ledger looks good. Ready to settle."

        lines = []

        if result.has_errors:
            lines.append("❌ This month cannot be settled yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please check the following:")
            for issue in result.warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
