"""
Record store used by the scheduling services.

Thin wrapper around a SQLModel Session exposing the handful of record
operations the generator and the batch editor need:

- select / get_many: read rows
- insert: add new rows
- update: patch every row matching a filter
- delete: remove every row matching a filter
- upsert: write rows keyed by primary key, optionally guarded by version

Every database failure is rolled back, logged and re-raised as StoreError.
Calls made inside ``transaction()`` only flush; the surrounding block commits
once or rolls everything back.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class StoreError(Exception):
    """A store call failed; nothing from that call was applied."""
    pass


class StaleRecordError(Exception):
    """A guarded write found rows changed (or removed) since they were read."""

    def __init__(self, model_name: str, stale_ids: Sequence[int]):
        self.model_name = model_name
        self.stale_ids = sorted(stale_ids)
        super().__init__(
            f"{model_name} rows {self.stale_ids} were modified by another session; reload and retry"
        )


class MatchStore:
    def __init__(self, session: Session):
        self.session = session
        self._in_transaction = False

    # ------------------------------------------------------------------
    # Transaction handling
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["MatchStore"]:
        """Group several store calls into one commit."""
        if self._in_transaction:
            yield self
            return
        self._in_transaction = True
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Store transaction failed: %s", exc)
            raise StoreError(str(exc)) from exc
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._in_transaction = False

    def _finish(self) -> None:
        if self._in_transaction:
            self.session.flush()
        else:
            self.session.commit()

    def _fail(self, operation: str, exc: SQLAlchemyError) -> StoreError:
        if not self._in_transaction:
            self.session.rollback()
        logger.exception("Store %s failed: %s", operation, exc)
        return StoreError(f"{operation} failed: {exc}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def select(self, model: Type[ModelT], *where: Any, order_by: Optional[Sequence[Any]] = None) -> List[ModelT]:
        query = select(model)
        if where:
            query = query.where(*where)
        if order_by:
            query = query.order_by(*order_by)
        try:
            return list(self.session.exec(query).all())
        except SQLAlchemyError as exc:
            raise self._fail("select", exc)

    def get_many(self, model: Type[ModelT], ids: Iterable[int]) -> Dict[int, ModelT]:
        """Fresh read of rows by id, bypassing anything cached in the session."""
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return {}
        try:
            rows = self.session.exec(
                select(model).where(model.id.in_(wanted)).execution_options(populate_existing=True)
            ).all()
        except SQLAlchemyError as exc:
            raise self._fail("select", exc)
        return {row.id: row for row in rows}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _matching(self, model: Type[ModelT], where: Sequence[Any]) -> List[ModelT]:
        query = select(model)
        if where:
            query = query.where(*where)
        return list(self.session.exec(query).all())

    def insert(self, rows: Sequence[ModelT]) -> List[ModelT]:
        try:
            self.session.add_all(rows)
            self._finish()
            if not self._in_transaction:
                for row in rows:
                    self.session.refresh(row)
        except SQLAlchemyError as exc:
            raise self._fail("insert", exc)
        return list(rows)

    def update(self, model: Type[ModelT], patch: Dict[str, Any], *where: Any) -> int:
        """Apply ``patch`` to every row matching ``where``; returns the row count."""
        try:
            rows = self._matching(model, where)
            for row in rows:
                for key, value in patch.items():
                    setattr(row, key, value)
                _bump_version(row)
                self.session.add(row)
            self._finish()
        except SQLAlchemyError as exc:
            raise self._fail("update", exc)
        return len(rows)

    def delete(self, model: Type[ModelT], *where: Any) -> int:
        """Delete every row matching ``where``; returns the row count."""
        try:
            rows = self._matching(model, where)
            for row in rows:
                self.session.delete(row)
            self._finish()
        except SQLAlchemyError as exc:
            raise self._fail("delete", exc)
        return len(rows)

    def upsert(
        self,
        model: Type[ModelT],
        rows: Sequence[Dict[str, Any]],
        expected_versions: Optional[Dict[int, int]] = None,
    ) -> List[ModelT]:
        """
        Write rows keyed by ``id``.

        Existing rows only receive the keys present in each dict; rows without
        a stored counterpart are created. When ``expected_versions`` is given,
        every guarded id must still exist with that version or the whole call
        is rejected with StaleRecordError before anything is written.
        """
        ids = [row["id"] for row in rows if row.get("id") is not None]
        existing = self.get_many(model, ids)

        if expected_versions:
            stale = [
                row_id
                for row_id, version in expected_versions.items()
                if row_id not in existing or getattr(existing[row_id], "version", version) != version
            ]
            if stale:
                logger.warning("Rejected write to stale %s rows %s", model.__name__, stale)
                raise StaleRecordError(model.__name__, stale)

        written: List[ModelT] = []
        try:
            for data in rows:
                current = existing.get(data.get("id"))
                if current is None:
                    current = model(**data)
                else:
                    for key, value in data.items():
                        if key != "id":
                            setattr(current, key, value)
                    _bump_version(current)
                self.session.add(current)
                written.append(current)
            self._finish()
            if not self._in_transaction:
                for row in written:
                    self.session.refresh(row)
        except SQLAlchemyError as exc:
            raise self._fail("upsert", exc)
        return written


def _bump_version(row: SQLModel) -> None:
    if hasattr(row, "version"):
        row.version = (row.version or 0) + 1
