"""Record source: lazy, distinct reads of every live instance of a type."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import contains_eager
from sqlmodel import select

from searchbuild.core.errors import ReadError
from searchbuild.core.logging import get_logger

if TYPE_CHECKING:
    from sqlmodel import Session

    from searchbuild.catalog import RecordType

log = get_logger("source")


class RecordSource:
    """Read-only adapter over the run's ORM session.

    Every read runs on the session handed in by the run, inside whatever
    transaction the run has open; no connection is opened here.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def statement_for(self, record_type: RecordType) -> Any:
        """Build the SELECT for ``record_type``.

        Embedded relationships are joined and eagerly populated from the same
        rows, which repeats the root entity once per related row.
        """
        meta = record_type.metadata
        if not meta.mapped:
            raise ReadError.unmappable_type(record_type.name)

        model = meta.model
        stmt = select(model)
        for rel_name in record_type.search.embedded:
            if rel_name not in meta.relationships:
                raise ReadError.query_failed(
                    record_type.name, f"'{rel_name}' is not a relationship of {meta.name}"
                )
            attr = getattr(model, rel_name)
            stmt = stmt.outerjoin(attr).options(contains_eager(attr))
        return stmt

    def fetch_all(self, record_type: RecordType) -> Iterator[Any]:
        """Yield each live instance of ``record_type`` exactly once.

        The read is issued on first iteration and each call re-executes it.

        Raises:
            ReadError: On any store failure, at issue time or mid-iteration.
        """
        stmt = self.statement_for(record_type)
        return self._iterate(record_type, stmt)

    def _iterate(self, record_type: RecordType, stmt: Any) -> Iterator[Any]:
        try:
            # unique() collapses join fan-out to one object per identity
            result = self._session.exec(stmt).unique()
            count = 0
            for record in result:
                count += 1
                yield record
        except SQLAlchemyError as e:
            raise ReadError.query_failed(record_type.name, str(e)) from e
        log.debug("records_fetched", type=record_type.name, count=count)
