"""
Record Store
============

The persistence collaborator the engine reads and writes through.

`Store` is the interface (get / create / update / filter / bulk_create);
`SqlAlchemyStore` implements it over an ORM session. The store flushes so
generated ids are available immediately but never commits: the caller owns
the transaction, which lets one ingestion be applied or rolled back as a unit.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Type, TypeVar
from uuid import UUID

from sqlalchemy import asc, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from almanac.database import Base
from almanac.errors import PersistenceError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class Store(Protocol):
    """Generic record store keyed by model class."""

    def get(self, model: Type[ModelT], record_id: Optional[UUID]) -> Optional[ModelT]:
        ...

    def create(self, model: Type[ModelT], fields: Dict[str, Any]) -> ModelT:
        ...

    def update(self, model: Type[ModelT], record_id: UUID, fields: Dict[str, Any]) -> ModelT:
        ...

    def filter(
        self,
        model: Type[ModelT],
        criteria: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
    ) -> List[ModelT]:
        ...

    def bulk_create(self, model: Type[ModelT], records: Iterable[Dict[str, Any]]) -> List[ModelT]:
        ...


class SqlAlchemyStore:
    """Store backed by a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, model: Type[ModelT], record_id: Optional[UUID]) -> Optional[ModelT]:
        """Fetch one record by id. A missing id or record returns None."""
        if record_id is None:
            return None
        try:
            return self.session.get(model, record_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load {model.__name__} {record_id}: {exc}") from exc

    def create(self, model: Type[ModelT], fields: Dict[str, Any]) -> ModelT:
        record = model(**fields)
        try:
            self.session.add(record)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to create {model.__name__}: {exc}") from exc
        return record

    def update(self, model: Type[ModelT], record_id: UUID, fields: Dict[str, Any]) -> ModelT:
        record = self.get(model, record_id)
        if record is None:
            raise PersistenceError(f"{model.__name__} {record_id} not found")

        for key, value in fields.items():
            setattr(record, key, value)

        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            # StaleDataError lands here when another session bumped version_id
            raise PersistenceError(f"Failed to update {model.__name__} {record_id}: {exc}") from exc
        return record

    def filter(
        self,
        model: Type[ModelT],
        criteria: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
    ) -> List[ModelT]:
        """
        Return records matching every criterion.

        Criteria map column names to a value (equality) or to a list/tuple/set
        of values (membership). `sort` names a column, prefixed with "-" for
        descending order.
        """
        stmt = select(model)

        for column_name, value in (criteria or {}).items():
            column = getattr(model, column_name)
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            elif value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == value)

        if sort:
            direction = desc if sort.startswith("-") else asc
            stmt = stmt.order_by(direction(getattr(model, sort.lstrip("-"))))

        try:
            return list(self.session.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to query {model.__name__}: {exc}") from exc

    def bulk_create(self, model: Type[ModelT], records: Iterable[Dict[str, Any]]) -> List[ModelT]:
        created = [model(**fields) for fields in records]
        if not created:
            return []
        try:
            self.session.add_all(created)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to bulk create {model.__name__}: {exc}") from exc
        logger.debug(f"Created {len(created)} {model.__name__} records")
        return created
