"""Record store used by the registrant endpoints and the spreadsheet importer.

`RecordStore` is the whole surface the rest of the package needs from the
database; the importer and service only ever talk to it, so tests can swap in
an in-memory store.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import and_, func, nulls_last, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.registrants.models import Registrant

logger = logging.getLogger(__name__)

# Database functions the application may call through `invoke`.
REMOTE_OPERATIONS = ("assign_all_ungrouped_registrants", "assign_group_to_registrant")

WRITABLE_FIELDS = ("full_name", "age", "gender", "church_location")


class StoreError(Exception):
    """A record store operation failed; `message` is what the store reported."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordStore(ABC):
    """Capability surface of the participant store."""

    @abstractmethod
    def insert(self, record: Mapping[str, Any]) -> Registrant:
        ...

    @abstractmethod
    def select(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        order: Sequence[str] = (),
    ) -> List[Registrant]:
        ...

    @abstractmethod
    def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        ...

    @abstractmethod
    def upsert(self, records: Sequence[Mapping[str, Any]], conflict_columns: Sequence[str] = ()) -> int:
        """Insert or merge `records` atomically and return the affected row count."""

    @abstractmethod
    def invoke(self, operation: str, *args: Any) -> Any:
        ...


def _store_error(exc: SQLAlchemyError) -> StoreError:
    # DBAPI errors carry the database's own message on `orig`
    return StoreError(str(getattr(exc, "orig", None) or exc))


def _condition(lookup: str, value: Any):
    field, _, op = lookup.partition("__")
    if field not in Registrant.__table__.columns:
        raise ValueError(f"Unknown registrant field: {field}")
    column = getattr(Registrant, field)
    if op == "":
        return column.is_(None) if value is None else column == value
    if op == "gte":
        return column >= value
    if op == "lte":
        return column <= value
    if op == "isnull":
        return column.is_(None) if value else column.is_not(None)
    raise ValueError(f"Unsupported lookup: {lookup}")


def _order_clause(field: str):
    descending = field.startswith("-")
    name = field.lstrip("-")
    if name not in Registrant.__table__.columns:
        raise ValueError(f"Unknown registrant field: {name}")
    column = getattr(Registrant, name)
    clause = column.desc() if descending else column.asc()
    # Unassigned registrants go after every numbered group
    if name == "assigned_group":
        clause = nulls_last(clause)
    return clause


class SqlRegistrantStore(RecordStore):
    """RecordStore backed by the `registrants` table."""

    def __init__(self, session: Session):
        self.session = session

    def _where(self, filters: Optional[Mapping[str, Any]]):
        conditions = [_condition(lookup, value) for lookup, value in (filters or {}).items()]
        return and_(*conditions) if conditions else None

    def insert(self, record: Mapping[str, Any]) -> Registrant:
        registrant = Registrant(**{key: record[key] for key in WRITABLE_FIELDS if key in record})
        try:
            self.session.add(registrant)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Registrant insert failed: %s", exc)
            raise _store_error(exc) from exc
        self.session.refresh(registrant)
        return registrant

    def select(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        order: Sequence[str] = (),
    ) -> List[Registrant]:
        stmt = select(Registrant)
        where = self._where(filters)
        if where is not None:
            stmt = stmt.where(where)
        # Rows created in the same instant keep insertion order, newest first when the primary sort is descending
        tiebreak = Registrant.id.desc() if order and order[0].startswith("-") else Registrant.id.asc()
        stmt = stmt.order_by(*[_order_clause(field) for field in order], tiebreak)
        try:
            return list(self.session.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Registrant select failed: %s", exc)
            raise _store_error(exc) from exc

    def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        stmt = select(func.count()).select_from(Registrant)
        where = self._where(filters)
        if where is not None:
            stmt = stmt.where(where)
        try:
            return self.session.execute(stmt).scalar_one()
        except SQLAlchemyError as exc:
            logger.error("Registrant count failed: %s", exc)
            raise _store_error(exc) from exc

    def upsert(self, records: Sequence[Mapping[str, Any]], conflict_columns: Sequence[str] = ()) -> int:
        """
        Insert `records`, merging into existing rows that match on `conflict_columns`.

        The batch is one transaction: on any database error nothing is kept.
        Returns the number of inserted plus updated rows.
        """
        for column in conflict_columns:
            if column not in WRITABLE_FIELDS:
                raise ValueError(f"Cannot match registrants on column: {column}")

        affected = 0
        try:
            existing: Dict[tuple, Registrant] = {}
            if conflict_columns:
                for row in self.session.execute(select(Registrant)).scalars():
                    existing[tuple(getattr(row, c) for c in conflict_columns)] = row

            for record in records:
                values = {key: record[key] for key in WRITABLE_FIELDS if key in record}
                key = tuple(values.get(c) for c in conflict_columns)
                match = existing.get(key) if conflict_columns else None
                if match is None:
                    registrant = Registrant(**values)
                    self.session.add(registrant)
                    if conflict_columns:
                        existing[key] = registrant
                else:
                    for field, value in values.items():
                        setattr(match, field, value)
                affected += 1

            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Registrant upsert of %d rows failed: %s", len(records), exc)
            raise _store_error(exc) from exc
        return affected

    def invoke(self, operation: str, *args: Any) -> Any:
        if operation not in REMOTE_OPERATIONS:
            raise ValueError(f"Unknown remote operation: {operation}")
        try:
            result = self.session.execute(select(getattr(func, operation)(*args))).scalar()
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Remote operation %s failed: %s", operation, exc)
            raise _store_error(exc) from exc
        return result
