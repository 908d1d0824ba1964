"""
SQL Storage Implementation

DESIGN DECISION: Settlements live in a relational database because the
lifecycle needs real transactions:
- A unique constraint on (household_id, year, month) guarantees one
  settlement per household month, across any number of processes.
- A draft upsert happens in a single transaction. If two runs race to
  create the same month, the loser hits the constraint and retries, and on
  retry finds the winner's row and replaces its draft.
- Replacing a draft is a conditional UPDATE (status = draft AND revision =
  the revision read), with the transfer rows deleted and rewritten in the
  same transaction. A writer that lost the race sees zero rows updated and
  retries; nothing it wrote survives.
- Finalization is a conditional UPDATE (status = draft AND revision = n).
  Whichever of finalize and recompute commits first wins; the other
  sees zero rows updated.

Uses SQLAlchemy 2.x with a synchronous engine, called from the async
interface methods in the same way the Sheets backend calls gspread.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    DateTime,
    Engine,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    create_engine,
    delete,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    selectinload,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from household_settlement.engine.errors import (
    ConcurrencyConflict,
    ConflictError,
    NotFoundError,
)
from household_settlement.models.ledger import Period, utc_now
from household_settlement.models.settlement import (
    Settlement,
    SettlementStatus,
    Transfer,
)
from household_settlement.services.storage.interface import (
    SettlementStorageInterface,
    StorageError,
)


class Base(DeclarativeBase):
    pass


class SettlementRow(Base):
    """One settlement per household month."""
    __tablename__ = "settlements"
    __table_args__ = (
        UniqueConstraint("household_id", "year", "month", name="uq_settlement_household_period"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    household_id: Mapped[str] = mapped_column(String(100), index=True)
    year: Mapped[int] = mapped_column(Integer)
    month: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20), default=SettlementStatus.DRAFT.value)
    total_expenses: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    revision: Mapped[int] = mapped_column(Integer, default=0)

    transfers: Mapped[list["TransferRow"]] = relationship(
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="TransferRow.position",
    )


class TransferRow(Base):
    """A transfer line, owned by exactly one settlement."""
    __tablename__ = "settlement_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    settlement_id: Mapped[UUID] = mapped_column(
        ForeignKey("settlements.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer)
    from_member_id: Mapped[str] = mapped_column(String(100))
    to_member_id: Mapped[str] = mapped_column(String(100))
    amount_minor_units: Mapped[int] = mapped_column(Integer)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    settlement: Mapped[SettlementRow] = relationship(back_populates="transfers")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; everything we store is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class SqlSettlementStorage(SettlementStorageInterface):
    """
    SQLAlchemy implementation of settlement storage.
    """

    def __init__(self, engine: Engine, retry_attempts: int = 3):
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._retry_attempts = retry_attempts

    @classmethod
    def from_url(
        cls,
        url: str,
        echo: bool = False,
        retry_attempts: int = 3,
    ) -> "SqlSettlementStorage":
        """Build a storage backend (and its engine) from a database URL."""
        engine_kwargs: dict = {"echo": echo}
        if url.startswith("sqlite") and (url == "sqlite://" or ":memory:" in url):
            # One shared connection, or every session would see a fresh empty database
            engine_kwargs.update(
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        engine = create_engine(url, **engine_kwargs)
        return cls(engine, retry_attempts)

    def create_schema(self) -> None:
        """Create tables if they don't exist."""
        Base.metadata.create_all(self._engine)

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _transfer_rows(
        settlement_id: UUID,
        transfers: Sequence[Transfer],
    ) -> list[TransferRow]:
        return [
            TransferRow(
                settlement_id=settlement_id,
                position=position,
                from_member_id=t.from_member_id,
                to_member_id=t.to_member_id,
                amount_minor_units=t.amount_minor_units,
                description=t.description,
            )
            for position, t in enumerate(transfers)
        ]

    @staticmethod
    def _to_model(row: SettlementRow) -> Settlement:
        return Settlement(
            id=row.id,
            household_id=row.household_id,
            period=Period(year=row.year, month=row.month),
            status=SettlementStatus(row.status),
            transfers=[
                Transfer(
                    from_member_id=t.from_member_id,
                    to_member_id=t.to_member_id,
                    amount_minor_units=t.amount_minor_units,
                    description=t.description,
                )
                for t in row.transfers
            ],
            total_expenses=row.total_expenses,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            finalized_at=_as_utc(row.finalized_at),
            finalized_by=row.finalized_by,
            revision=row.revision,
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def _find_row(
        session: Session,
        household_id: str,
        period: Period,
    ) -> Optional[SettlementRow]:
        return session.execute(
            select(SettlementRow).where(
                SettlementRow.household_id == household_id,
                SettlementRow.year == period.year,
                SettlementRow.month == period.month,
            )
        ).scalar_one_or_none()

    def _load(self, session: Session, settlement_id: UUID) -> Settlement:
        row = session.execute(
            select(SettlementRow)
            .where(SettlementRow.id == settlement_id)
            .options(selectinload(SettlementRow.transfers))
            .execution_options(populate_existing=True)
        ).scalar_one()
        return self._to_model(row)

    def _replace_transfers(
        self,
        session: Session,
        settlement_id: UUID,
        transfers: Sequence[Transfer],
    ) -> None:
        session.execute(
            delete(TransferRow).where(TransferRow.settlement_id == settlement_id)
        )
        session.add_all(self._transfer_rows(settlement_id, transfers))
        session.flush()

    def _upsert_once(
        self,
        household_id: str,
        period: Period,
        transfers: Sequence[Transfer],
        total_expenses: int,
    ) -> Settlement:
        try:
            with self._session_factory.begin() as session:
                row = self._find_row(session, household_id, period)
                now = utc_now()

                if row is None:
                    settlement_id = uuid4()
                    session.add(SettlementRow(
                        id=settlement_id,
                        household_id=household_id,
                        year=period.year,
                        month=period.month,
                        status=SettlementStatus.DRAFT.value,
                        total_expenses=total_expenses,
                        created_at=now,
                        updated_at=now,
                        revision=0,
                    ))
                    session.flush()
                    self._replace_transfers(session, settlement_id, transfers)
                    return self._load(session, settlement_id)

                if row.status == SettlementStatus.FINALIZED.value:
                    raise ConflictError(
                        f"Settlement for {period.label} is already finalized",
                        settlement_id=row.id,
                    )

                result = session.execute(
                    update(SettlementRow)
                    .where(
                        SettlementRow.id == row.id,
                        SettlementRow.status == SettlementStatus.DRAFT.value,
                        SettlementRow.revision == row.revision,
                    )
                    .values(
                        total_expenses=total_expenses,
                        updated_at=now,
                        revision=SettlementRow.revision + 1,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    current = session.get(SettlementRow, row.id, populate_existing=True)
                    if current is not None and current.status == SettlementStatus.FINALIZED.value:
                        raise ConflictError(
                            f"Settlement for {period.label} was finalized during the run",
                            settlement_id=row.id,
                        )
                    raise ConcurrencyConflict(
                        f"Concurrent run replaced the draft for {period.label} first"
                    )

                self._replace_transfers(session, row.id, transfers)
                return self._load(session, row.id)
        except IntegrityError as e:
            raise ConcurrencyConflict(
                f"Concurrent run created the settlement for {period.label} first"
            ) from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save draft settlement: {e}") from e

    async def upsert_draft(
        self,
        household_id: str,
        period: Period,
        transfers: Sequence[Transfer],
        total_expenses: int,
    ) -> Settlement:
        """Create or replace the draft, retrying a lost race."""
        for attempt in Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            retry=retry_if_exception_type(ConcurrencyConflict),
            reraise=True,
        ):
            with attempt:
                return self._upsert_once(household_id, period, transfers, total_expenses)

    def _finalize_once(
        self,
        settlement_id: UUID,
        expected_revision: Optional[int],
        finalized_by: Optional[str],
    ) -> Settlement:
        try:
            with self._session_factory.begin() as session:
                conditions = [
                    SettlementRow.id == settlement_id,
                    SettlementRow.status == SettlementStatus.DRAFT.value,
                ]
                if expected_revision is not None:
                    conditions.append(SettlementRow.revision == expected_revision)

                now = utc_now()
                result = session.execute(
                    update(SettlementRow)
                    .where(*conditions)
                    .values(
                        status=SettlementStatus.FINALIZED.value,
                        finalized_at=now,
                        finalized_by=finalized_by,
                        updated_at=now,
                        revision=SettlementRow.revision + 1,
                    )
                    .execution_options(synchronize_session=False)
                )

                if result.rowcount == 0:
                    row = session.get(SettlementRow, settlement_id)
                    if row is None:
                        raise NotFoundError(f"Settlement not found: {settlement_id}")
                    if row.status == SettlementStatus.FINALIZED.value:
                        raise ConflictError(
                            "Settlement is already finalized",
                            settlement_id=settlement_id,
                        )
                    raise ConcurrencyConflict(
                        f"Settlement {settlement_id} changed (revision "
                        f"{row.revision}, expected {expected_revision})"
                    )

                return self._load(session, settlement_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to finalize settlement: {e}") from e

    async def mark_finalized(
        self,
        settlement_id: UUID,
        expected_revision: Optional[int] = None,
        finalized_by: Optional[str] = None,
    ) -> Settlement:
        """Compare-and-set DRAFT -> FINALIZED."""
        return self._finalize_once(settlement_id, expected_revision, finalized_by)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_by_id(self, settlement_id: UUID) -> Optional[Settlement]:
        try:
            with self._session_factory() as session:
                row = session.execute(
                    select(SettlementRow)
                    .where(SettlementRow.id == settlement_id)
                    .options(selectinload(SettlementRow.transfers))
                ).scalar_one_or_none()
                return self._to_model(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get settlement: {e}") from e

    async def get_by_period(
        self,
        household_id: str,
        period: Period,
    ) -> Optional[Settlement]:
        try:
            with self._session_factory() as session:
                row = session.execute(
                    select(SettlementRow)
                    .where(
                        SettlementRow.household_id == household_id,
                        SettlementRow.year == period.year,
                        SettlementRow.month == period.month,
                    )
                    .options(selectinload(SettlementRow.transfers))
                ).scalar_one_or_none()
                return self._to_model(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get settlement: {e}") from e

    async def list_for_household(
        self,
        household_id: str,
        status: Optional[SettlementStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Settlement]:
        try:
            with self._session_factory() as session:
                query = (
                    select(SettlementRow)
                    .where(SettlementRow.household_id == household_id)
                    .options(selectinload(SettlementRow.transfers))
                    .order_by(SettlementRow.year.desc(), SettlementRow.month.desc())
                    .limit(limit)
                    .offset(offset)
                )
                if status is not None:
                    query = query.where(SettlementRow.status == status.value)
                rows = session.execute(query).scalars().all()
                return [self._to_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list settlements: {e}") from e
