from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type

from sqlalchemy import JSON, and_, delete, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlmodel import SQLModel, select

from backoffice.core.exceptions.exceptions import (
    FetchError,
    InvalidCursorError,
    InvalidSortFieldError,
    UnknownCollectionError,
)
from backoffice.models.event import Event
from backoffice.models.song import Song
from backoffice.services.cursor import Cursor, SortDirection
from backoffice.services.database import SessionLocal
from backoffice.utils.dates import to_naive_utc, to_utc
from backoffice.utils.log import app_logger


Document = Dict[str, Any]

COLLECTIONS: Dict[str, Type[SQLModel]] = {
    "songs": Song,
    "events": Event,
}


class DocumentStore:
    """Keyset-paginated read access to the document collections.

    Every query is ordered by ``(sort_field, id)`` so that each document has
    a unique position, which is what makes "start after" / "end before"
    cursors stable while rows are inserted or removed elsewhere in the
    collection. Offsets are never used.

    Documents are returned as plain dicts; date columns are normalized to
    aware UTC datetimes on the way out.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        collections: Optional[Dict[str, Type[SQLModel]]] = None,
    ):
        self.session_factory = session_factory
        self.collections = collections if collections is not None else dict(COLLECTIONS)

    def _model(self, collection: str) -> Type[SQLModel]:
        model = self.collections.get(collection)
        if model is None:
            raise UnknownCollectionError(collection)
        return model

    def sort_column(self, collection: str, sort_field: str):
        """Return the column for `sort_field`, rejecting unknown or unorderable fields."""
        model = self._model(collection)
        column = model.__table__.columns.get(sort_field)
        if column is None or isinstance(column.type, JSON):
            raise InvalidSortFieldError(collection, sort_field)
        return getattr(model, sort_field)

    @staticmethod
    def _to_document(row: SQLModel) -> Document:
        doc = row.model_dump()
        for key, value in doc.items():
            if isinstance(value, datetime):
                doc[key] = to_utc(value)
        return doc

    @staticmethod
    def _db_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return to_naive_utc(value)
        return value

    @staticmethod
    def _order(column, pk, ascending: bool):
        # NULL sorts below every value in both directions
        if ascending:
            return column.asc().nulls_first(), pk.asc()
        return column.desc().nulls_last(), pk.desc()

    def _seek(self, column, pk, cursor: Cursor, forward: bool):
        """Condition selecting rows strictly after (forward) or before the cursor position."""
        value = self._db_value(cursor.sort_value)
        ascending = cursor.direction is SortDirection.ASC
        if forward == ascending:
            if value is None:
                return or_(column.is_not(None), and_(column.is_(None), pk > cursor.doc_id))
            return or_(column > value, and_(column == value, pk > cursor.doc_id))
        if value is None:
            return and_(column.is_(None), pk < cursor.doc_id)
        return or_(column < value, and_(column == value, pk < cursor.doc_id), column.is_(None))

    def fetch_page(
        self,
        collection: str,
        sort_field: str,
        direction: SortDirection,
        limit: int,
        start_after: Optional[Cursor] = None,
        end_before: Optional[Cursor] = None,
    ) -> List[Document]:
        """Fetch at most `limit` documents in (sort_field, direction) order.

        With `start_after`, the page begins right after that cursor. With
        `end_before`, the page is the last `limit` documents ending right
        before that cursor, still returned in the requested order.
        """
        direction = SortDirection(direction)
        model = self._model(collection)
        column = self.sort_column(collection, sort_field)
        pk = model.id

        for cursor in (start_after, end_before):
            if cursor is not None and not cursor.matches(sort_field, direction):
                raise InvalidCursorError(
                    f"cursor was taken for {cursor.sort_field} {cursor.direction.value}, "
                    f"query is {sort_field} {direction.value}"
                )

        # walking backwards means reading the reversed order and flipping the page
        backwards = end_before is not None and start_after is None
        ascending = (direction is SortDirection.ASC) != backwards
        stmt = select(model).order_by(*self._order(column, pk, ascending)).limit(limit)
        if start_after is not None:
            stmt = stmt.where(self._seek(column, pk, start_after, forward=True))
        if end_before is not None:
            stmt = stmt.where(self._seek(column, pk, end_before, forward=False))

        session = self.session_factory()
        try:
            rows = session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            app_logger.error("document_store.fetch_failed", collection=collection, error=str(e))
            raise FetchError(collection, str(e)) from e
        finally:
            session.close()

        docs = [self._to_document(r) for r in rows]
        if backwards:
            docs.reverse()
        app_logger.debug("document_store.fetch_page", collection=collection, sort_field=sort_field,
                         direction=direction.value, limit=limit, returned=len(docs))
        return docs

    def count(self, collection: str) -> int:
        """Return the total number of documents in `collection`."""
        model = self._model(collection)
        stmt = select(func.count()).select_from(model)
        session = self.session_factory()
        try:
            # scalar_one returns the single aggregated integer result
            return int(session.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            app_logger.error("document_store.count_failed", collection=collection, error=str(e))
            raise FetchError(collection, str(e)) from e
        finally:
            session.close()

    def list_upcoming_events(self, now: Optional[datetime] = None) -> List[Event]:
        """Events that have not ended yet, soonest ending first."""
        cutoff = to_naive_utc(now or datetime.now(timezone.utc))
        stmt = select(Event).where(Event.end_date > cutoff).order_by(Event.end_date.asc())
        session = self.session_factory()
        try:
            rows = session.execute(stmt).scalars().all()
            # detach so callers can read attributes after the session is gone
            session.expunge_all()
            return list(rows)
        except SQLAlchemyError as e:
            app_logger.error("document_store.upcoming_failed", error=str(e))
            raise FetchError("events", str(e)) from e
        finally:
            session.close()

    def delete_events_ended_before(self, cutoff: datetime) -> int:
        """Delete events whose end date is before `cutoff`; returns the row count."""
        stmt = delete(Event).where(Event.end_date < to_naive_utc(cutoff))
        session = self.session_factory()
        try:
            result = session.execute(stmt)
            session.commit()
            return int(result.rowcount or 0)
        except SQLAlchemyError as e:
            session.rollback()
            app_logger.error("document_store.cleanup_failed", error=str(e))
            raise FetchError("events", str(e)) from e
        finally:
            session.close()
