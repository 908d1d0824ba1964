"""
Google Sheets Ledger Reader and Policy Resolver

Reads the household ledger from the Members, Expenses, Incomes and
Policies worksheets (column layouts in services/storage/google_sheets.py).

IMPORTANT: Unlike the audit reader, a malformed ledger row is NEVER
skipped. Dropping an expense would silently change everyone's balance,
so the whole read fails with the sheet name and row number instead.
"""

from datetime import date, datetime
from typing import Any, Callable, Optional, TypeVar

from household_settlement.models.ledger import (
    HouseholdPolicy,
    IncomeDeclaration,
    LedgerSnapshot,
    Member,
    MissingIncomePolicy,
    Period,
    RoundingMode,
    SharedExpenseRecord,
    WeightingMode,
)
from household_settlement.services.ledger.interface import (
    LedgerReaderInterface,
    PolicyResolverInterface,
)
from household_settlement.services.storage.google_sheets import (
    EXPENSE_COLUMNS,
    INCOME_COLUMNS,
    MEMBER_COLUMNS,
    POLICY_COLUMNS,
    GoogleSheetsClient,
)
from household_settlement.services.storage.interface import LedgerReadError


T = TypeVar("T")

TRUE_VALUES = {"true", "yes", "y", "1"}
FALSE_VALUES = {"false", "no", "n", "0", ""}


def _cell(row: list, index: int) -> Any:
    try:
        return row[index]
    except IndexError:
        return ""


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _optional_text(value: Any) -> Optional[str]:
    return _text(value) or None


def _as_int(value: Any) -> int:
    """Whole minor units; '1,200' and 1200.0 are fine, 12.5 is not."""
    if isinstance(value, bool):
        raise ValueError(f"Expected an amount, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Amount must be whole minor units, got {value}")
        return int(value)
    text = _text(value).replace(",", "")
    return int(text) if text else 0


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    text = _text(value).lower()
    if not text:
        return default
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f"Expected TRUE/FALSE, got {value!r}")


def _as_date(value: Any) -> Optional[date]:
    text = _text(value)
    return date.fromisoformat(text) if text else None


def _as_datetime(value: Any) -> Optional[datetime]:
    text = _text(value)
    return datetime.fromisoformat(text) if text else None


class GoogleSheetsLedgerReader(LedgerReaderInterface):
    """
    Ledger reader backed by one Google spreadsheet shared by all households.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @property
    def _names(self):
        return self._client.settings

    # -------------------------------------------------------------------------
    # Row parsing
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_rows(
        sheet_name: str,
        rows: list[list],
        columns: list[str],
        parse: Callable[[list], Optional[T]],
    ) -> list[T]:
        """
        Check the header row against `columns`, then parse every data row.

        Extra columns to the right of the expected ones are allowed.
        """
        if not rows:
            return []
        header = [_text(cell).lower() for cell in rows[0]]
        if header[:len(columns)] != columns:
            raise LedgerReadError(
                f"{sheet_name} row 1: expected columns {columns}, got {header}"
            )

        parsed = []
        for row_number, row in enumerate(rows[1:], start=2):
            if not any(_text(cell) for cell in row):
                continue
            try:
                record = parse(row)
            except (ValueError, TypeError) as e:
                raise LedgerReadError(f"{sheet_name} row {row_number}: {e}") from e
            if record is not None:
                parsed.append(record)
        return parsed

    @staticmethod
    def _member_parser(household_id: str) -> Callable[[list], Optional[Member]]:
        def parse(row: list) -> Optional[Member]:
            if _text(_cell(row, 0)) != household_id:
                return None
            return Member(
                member_id=_text(_cell(row, 1)),
                display_name=_optional_text(_cell(row, 2)),
                is_active=_as_bool(_cell(row, 3), default=True),
            )
        return parse

    @staticmethod
    def _expense_parser(
        household_id: str,
        period: Period,
    ) -> Callable[[list], Optional[SharedExpenseRecord]]:
        def parse(row: list) -> Optional[SharedExpenseRecord]:
            if _text(_cell(row, 1)) != household_id:
                return None
            if Period.parse(_text(_cell(row, 2))) != period:
                return None
            return SharedExpenseRecord(
                record_id=_optional_text(_cell(row, 0)),
                period=period,
                payer_member_id=_text(_cell(row, 3)),
                amount_minor_units=_as_int(_cell(row, 4)),
                should_apportion=_as_bool(_cell(row, 5), default=True),
                beneficiary_member_id=_optional_text(_cell(row, 6)),
                description=_optional_text(_cell(row, 7)),
                occurred_on=_as_date(_cell(row, 8)),
            )
        return parse

    @staticmethod
    def _income_parser(
        household_id: str,
        period: Period,
    ) -> Callable[[list], Optional[IncomeDeclaration]]:
        def parse(row: list) -> Optional[IncomeDeclaration]:
            if _text(_cell(row, 0)) != household_id:
                return None
            if Period.parse(_text(_cell(row, 2))) != period:
                return None
            return IncomeDeclaration(
                member_id=_text(_cell(row, 1)),
                period=period,
                gross_amount=_as_int(_cell(row, 3)),
                deduction_amount=_as_int(_cell(row, 4)),
                declared_at=_as_datetime(_cell(row, 5)),
            )
        return parse

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _read(self, sheet_names: list[str]) -> dict[str, list[list]]:
        try:
            return self._client.batch_get_tables(sheet_names)
        except LedgerReadError:
            raise
        except Exception as e:
            raise LedgerReadError(f"Failed to read ledger sheets {sheet_names}: {e}") from e

    async def load_members(self, household_id: str) -> list[Member]:
        name = self._names.members_sheet_name
        rows = self._read([name])[name]
        return self._parse_rows(
            name, rows, MEMBER_COLUMNS, self._member_parser(household_id)
        )

    async def load_expenses(
        self,
        household_id: str,
        period: Period,
    ) -> list[SharedExpenseRecord]:
        name = self._names.expenses_sheet_name
        rows = self._read([name])[name]
        return self._parse_rows(
            name, rows, EXPENSE_COLUMNS, self._expense_parser(household_id, period)
        )

    async def load_incomes(
        self,
        household_id: str,
        period: Period,
    ) -> list[IncomeDeclaration]:
        name = self._names.incomes_sheet_name
        rows = self._read([name])[name]
        return self._parse_rows(
            name, rows, INCOME_COLUMNS, self._income_parser(household_id, period)
        )

    async def load_snapshot(
        self,
        household_id: str,
        period: Period,
        policy: HouseholdPolicy,
    ) -> LedgerSnapshot:
        """All three tables from a single batch read."""
        members_sheet = self._names.members_sheet_name
        expenses_sheet = self._names.expenses_sheet_name
        incomes_sheet = self._names.incomes_sheet_name
        tables = self._read([members_sheet, expenses_sheet, incomes_sheet])

        return LedgerSnapshot(
            household_id=household_id,
            period=period,
            members=tuple(self._parse_rows(
                members_sheet, tables.get(members_sheet, []), MEMBER_COLUMNS,
                self._member_parser(household_id),
            )),
            expenses=tuple(self._parse_rows(
                expenses_sheet, tables.get(expenses_sheet, []), EXPENSE_COLUMNS,
                self._expense_parser(household_id, period),
            )),
            incomes=tuple(self._parse_rows(
                incomes_sheet, tables.get(incomes_sheet, []), INCOME_COLUMNS,
                self._income_parser(household_id, period),
            )),
            policy=policy,
        )


class GoogleSheetsPolicyResolver(PolicyResolverInterface):
    """
    Household policies from the Policies worksheet.

    Blank cells fall back to the default policy's value; households with
    no row get the default policy.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        default: Optional[HouseholdPolicy] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._default = default or HouseholdPolicy()

    def _row_to_policy(self, row: list) -> HouseholdPolicy:
        d = self._default
        return HouseholdPolicy(
            weighting_mode=WeightingMode(_text(_cell(row, 1)) or d.weighting_mode.value),
            rounding_mode=RoundingMode(_text(_cell(row, 2)) or d.rounding_mode.value),
            missing_income_policy=MissingIncomePolicy(
                _text(_cell(row, 3)) or d.missing_income_policy.value
            ),
            include_personal_reimbursements=_as_bool(
                _cell(row, 4), default=d.include_personal_reimbursements
            ),
        )

    async def get_policy(self, household_id: str) -> HouseholdPolicy:
        name = self._client.settings.policies_sheet_name
        try:
            rows = self._client.batch_get_tables([name])[name]
        except Exception as e:
            raise LedgerReadError(f"Failed to read policy sheet: {e}") from e

        policies = GoogleSheetsLedgerReader._parse_rows(
            name,
            rows,
            POLICY_COLUMNS,
            lambda row: (
                self._row_to_policy(row)
                if _text(_cell(row, 0)) == household_id
                else None
            ),
        )
        # Last row wins if a household is listed twice
        return policies[-1] if policies else self._default
