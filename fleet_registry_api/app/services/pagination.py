"""
Deterministic pagination over the record store.

Pages are always ordered by creation time, most recent first.  The
windowed query and the count query share one predicate object and are
issued concurrently.  They are not wrapped in a transaction: a record
written between the two may show up in the count but not in the page,
or the other way round.  That race is accepted; within a quiescent
data set the count always equals the number of records the predicate
matches.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.db import DESCENDING, RecordStore
from ..core.filters import Predicate
from .cross_reference import CrossReferenceResolver

NEWEST_FIRST = (("created_at", DESCENDING),)
# Largest value SQLite accepts for LIMIT and OFFSET.
SQLITE_MAX_INTEGER = 2**63 - 1
# Upper bound for the page query parameter.
MAX_PAGE = 2**31 - 1


@dataclass
class Page:
    """One window of result views plus the unwindowed total."""

    items: List[Dict[str, Any]]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.items,
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
        }


class Paginator:
    """Window a collection by predicate and resolve the resulting records.

    Parameters
    ----------
    store : RecordStore
        Store holding ``collection``.
    collection : str
        Collection to page through.
    resolver : CrossReferenceResolver, optional
        Used to turn the windowed records into result views.  Without
        it records are returned as stored.
    """

    def __init__(
        self,
        store: RecordStore,
        collection: str,
        resolver: Optional[CrossReferenceResolver] = None,
    ) -> None:
        self.store = store
        self.collection = collection
        self.resolver = resolver

    async def paginate(self, predicate: Predicate, page: int = 1, limit: int = 10) -> Page:
        """Return page ``page`` (1-based, clamped to 1) of size ``limit``.

        A ``limit`` of 0, or a window starting past the largest offset
        the store accepts, yields an empty page with the correct total.
        """
        page = max(int(page or 1), 1)
        limit = min(max(int(limit or 0), 0), SQLITE_MAX_INTEGER)
        skip = (page - 1) * limit

        if limit == 0 or skip > SQLITE_MAX_INTEGER:
            total = await self.store.count_matching(self.collection, predicate)
            return Page(items=[], page=page, limit=limit, total=total)

        records, total = await asyncio.gather(
            self.store.find_matching_page(self.collection, predicate, NEWEST_FIRST, skip, limit),
            self.store.count_matching(self.collection, predicate),
        )
        items = await self.resolver.resolve(records) if self.resolver else list(records)
        return Page(items=items, page=page, limit=limit, total=total)
