"""
Cross-reference resolution.

Primary records store other entities' identifiers in reference fields
(``account_id``, ``driver_id``, ...).  ``CrossReferenceResolver`` turns
a batch of such records into result views: a copy of each record with,
per declared reference, a snapshot of the referenced record's public
fields, or ``None`` when the reference is absent or dangling.

All distinct identifiers of one reference field are fetched in a
single store round trip, and the different reference fields are
fetched concurrently, so resolving a page of n records costs one query
per referenced collection rather than one per record.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from ..core.db import RecordStore
from ..core.filters import Contains, Or
from ..core.ids import normalize_id

logger = logging.getLogger(__name__)

View = Dict[str, Any]


@dataclass(frozen=True)
class ReferenceSpec:
    """Declares one reference field and how to resolve it.

    Attributes:
        field: Reference field on the primary record, e.g. ``driver_id``.
        collection: Collection holding the referenced records.
        alias: Key under which the snapshot is attached to the view.
        projection: Public fields copied into the snapshot (``id`` is
            always included).
        search_fields: Fields of the referenced record matched by
            cross-reference free-text search.
    """

    field: str
    collection: str
    alias: str
    projection: Tuple[str, ...]
    search_fields: Tuple[str, ...] = ()


class CrossReferenceResolver:
    """Resolve declared reference fields for batches of records."""

    def __init__(self, store: RecordStore, references: Sequence[ReferenceSpec]) -> None:
        self.store = store
        self.references = tuple(references)

    def _snapshot(self, spec: ReferenceSpec, record: Dict[str, Any]) -> Dict[str, Any]:
        snapshot = {"id": record["id"]}
        for name in spec.projection:
            snapshot[name] = record.get(name)
        return snapshot

    async def _lookup(self, spec: ReferenceSpec, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not ids:
            return {}
        matches = await self.store.batch_fetch_by_ids(spec.collection, ids)
        found: Dict[str, Dict[str, Any]] = {}
        # Matches arrive in creation order; the first one per key wins.
        for match in matches:
            found.setdefault(match["id"], self._snapshot(spec, match))
        return found

    async def resolve(self, records: Sequence[Dict[str, Any]]) -> List[View]:
        """Return one view per record, in input order."""
        if not records:
            return []
        wanted: List[List[str]] = []
        for spec in self.references:
            ids: List[str] = []
            seen = set()
            for record in records:
                key = normalize_id(record.get(spec.field))
                if key is not None and key not in seen:
                    seen.add(key)
                    ids.append(key)
            wanted.append(ids)

        lookups = await asyncio.gather(
            *(self._lookup(spec, ids) for spec, ids in zip(self.references, wanted))
        )

        views: List[View] = []
        for record in records:
            view = dict(record)
            for spec, found in zip(self.references, lookups):
                key = normalize_id(record.get(spec.field))
                view[spec.alias] = found.get(key) if key is not None else None
            views.append(view)
        return views

    async def resolve_one(self, record: Dict[str, Any]) -> View:
        views = await self.resolve([record])
        return views[0]

    async def search_references(self, text: str) -> Dict[str, List[str]]:
        """Find referenced records whose searchable fields contain ``text``.

        Returns a mapping from reference field to matching identifiers,
        which ``FilterBuilder.build`` folds into the free-text clause.
        """
        text = (text or "").strip()
        searchable = [spec for spec in self.references if spec.search_fields]
        if not text or not searchable:
            return {}

        async def _ids(spec: ReferenceSpec) -> List[str]:
            predicate = Or(tuple(Contains(f, text) for f in spec.search_fields))
            matches = await self.store.find_matching(spec.collection, predicate)
            return [m["id"] for m in matches]

        results = await asyncio.gather(*(_ids(spec) for spec in searchable))
        hits = {spec.field: ids for spec, ids in zip(searchable, results)}
        logger.debug("Cross-reference search for %r matched %s", text, {k: len(v) for k, v in hits.items()})
        return hits

