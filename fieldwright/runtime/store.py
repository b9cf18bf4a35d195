"""Storage collaborator protocol and an in-memory implementation.

fieldwright performs no I/O itself. The materializer only calls
``find_one`` (to load the existing record on update); EntityModel also uses
the transaction and write methods.
"""

import copy
import logging
from typing import Any, Protocol, runtime_checkable

from ..errors import UsageError

logger = logging.getLogger(__name__)


@runtime_checkable
class RecordStore(Protocol):
    async def begin(self) -> Any: ...

    async def commit(self, tx: Any) -> None: ...

    async def rollback(self, tx: Any) -> None: ...

    async def find_one(
        self, entity: str, where: dict[str, Any], tx: Any = None
    ) -> dict[str, Any] | None: ...

    async def insert(
        self, entity: str, values: dict[str, Any], tx: Any = None
    ) -> dict[str, Any]: ...

    async def update(
        self, entity: str, values: dict[str, Any], where: dict[str, Any], tx: Any = None
    ) -> int: ...

    async def delete(self, entity: str, where: dict[str, Any], tx: Any = None) -> int: ...


class _Transaction:
    __slots__ = ("id", "snapshot", "closed")

    def __init__(self, tx_id: int, snapshot: dict[str, list[dict[str, Any]]]):
        self.id = tx_id
        self.snapshot = snapshot
        self.closed = False

    def __repr__(self) -> str:
        return f"<Transaction {self.id}{' closed' if self.closed else ''}>"


class InMemoryStore:
    """Dict-backed RecordStore.

    A transaction snapshots all tables at begin(); rollback() restores the
    snapshot. Only one transaction may be open at a time.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self._active: _Transaction | None = None
        self._next_tx = 1

    async def begin(self) -> _Transaction:
        if self._active is not None:
            raise UsageError("A transaction is already open on this store")
        tx = _Transaction(self._next_tx, copy.deepcopy(self.tables))
        self._next_tx += 1
        self._active = tx
        logger.debug("Begin %r", tx)
        return tx

    def _close(self, tx: _Transaction) -> None:
        if tx is not self._active or tx.closed:
            raise UsageError(f"{tx!r} is not the open transaction")
        tx.closed = True
        self._active = None

    async def commit(self, tx: _Transaction) -> None:
        self._close(tx)
        logger.debug("Commit %r", tx)

    async def rollback(self, tx: _Transaction) -> None:
        self._close(tx)
        self.tables = tx.snapshot
        logger.debug("Rollback %r", tx)

    @staticmethod
    def _matches(record: dict[str, Any], where: dict[str, Any]) -> bool:
        return all(record.get(k) == v for k, v in where.items())

    async def find_one(
        self, entity: str, where: dict[str, Any], tx: Any = None
    ) -> dict[str, Any] | None:
        for record in self.tables.get(entity, []):
            if self._matches(record, where):
                return dict(record)
        return None

    async def insert(
        self, entity: str, values: dict[str, Any], tx: Any = None
    ) -> dict[str, Any]:
        record = dict(values)
        self.tables.setdefault(entity, []).append(record)
        return dict(record)

    async def update(
        self, entity: str, values: dict[str, Any], where: dict[str, Any], tx: Any = None
    ) -> int:
        count = 0
        for record in self.tables.get(entity, []):
            if self._matches(record, where):
                record.update(values)
                count += 1
        return count

    async def delete(self, entity: str, where: dict[str, Any], tx: Any = None) -> int:
        rows = self.tables.get(entity, [])
        kept = [r for r in rows if not self._matches(r, where)]
        self.tables[entity] = kept
        return len(rows) - len(kept)
