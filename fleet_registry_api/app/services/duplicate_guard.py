"""
Uniqueness enforcement for designated fields.

``DuplicateKeyGuard`` checks for an existing record holding any of the
submitted constrained values before a write and then performs the
write.  The pre-check gives callers a readable error naming the field,
but it cannot close the race with a concurrent writer on its own; the
store's unique indexes do.  A ``DuplicateKeyConflict`` raised by the
write is therefore translated into the same ``DuplicateKey`` error the
pre-check raises.  Duplicate writes are never retried.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from ..core.db import RecordStore
from ..core.errors import DuplicateKey, DuplicateKeyConflict, NotFound
from ..core.filters import Eq, Ne, Predicate, all_of, any_of

logger = logging.getLogger(__name__)


class DuplicateKeyGuard:
    """Guard inserts and updates of one collection.

    Parameters
    ----------
    store : RecordStore
        Store performing the writes.
    collection : str
        Guarded collection.
    fields : sequence of str
        Uniqueness-constrained fields.
    label : str
        Human readable entity name used in error messages.
    """

    def __init__(self, store: RecordStore, collection: str, fields: Sequence[str], label: str) -> None:
        self.store = store
        self.collection = collection
        self.fields = tuple(fields)
        self.label = label

    def _message(self) -> str:
        names = " or ".join(self.fields)
        return f"{self.label} with this {names} already exists"

    def _conflict_predicate(self, values: Dict[str, Any], exclude_id: Optional[str]) -> Optional[Predicate]:
        clause = any_of([Eq(f, values[f]) for f in self.fields if values.get(f) is not None])
        if clause is None:
            return None
        terms = [clause]
        if exclude_id is not None:
            terms.append(Ne("id", exclude_id))
        return all_of(terms)

    async def check(self, values: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        """Raise ``DuplicateKey`` if another record already holds one of ``values``."""
        predicate = self._conflict_predicate(values, exclude_id)
        if predicate is None:
            return
        existing = await self.store.find_matching(self.collection, predicate)
        if not existing:
            return
        clash = existing[0]
        field = next((f for f in self.fields if values.get(f) is not None and clash.get(f) == values[f]), None)
        logger.warning("Duplicate %s rejected on %s=%r", self.label, field, values.get(field))
        raise DuplicateKey(self._message(), {"field": field, "value": values.get(field)})

    def _translate(self, conflict: DuplicateKeyConflict, values: Dict[str, Any]) -> DuplicateKey:
        logger.warning("Write-time duplicate %s on %s", self.label, conflict.field)
        details: Dict[str, Any] = {"field": conflict.field}
        if conflict.field is not None:
            details["value"] = values.get(conflict.field)
        return DuplicateKey(self._message(), details)

    async def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        await self.check(document)
        try:
            return await self.store.insert(self.collection, document)
        except DuplicateKeyConflict as conflict:
            raise self._translate(conflict, document) from conflict

    async def update(self, record_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Apply ``partial`` to ``record_id``.

        Constrained fields are re-checked only if ``partial`` changes
        them.  Raises ``NotFound`` if the record does not exist.
        """
        if any(partial.get(f) is not None for f in self.fields):
            await self.check(partial, exclude_id=record_id)
        try:
            updated = await self.store.update_by_id(self.collection, record_id, partial)
        except DuplicateKeyConflict as conflict:
            raise self._translate(conflict, partial) from conflict
        if updated is None:
            raise NotFound(f"{self.label} not found")
        return updated
