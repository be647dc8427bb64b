"""
Common service logic for every entity type.

``RecordService`` wires the pipeline pieces for one collection: the
duplicate-key guard for writes, the filter builder for list/search,
the cross-reference resolver and the paginator for reads, and the
export layout for downloads.  Entity services subclass it and only
declare their collection, constrained fields, references, searchable
fields and export columns, so list, search, get and export all share
the same lookup logic.

Each public operation reports its outcome to the remote log service
through ``EventLogClient.emit``; that call never blocks or fails the
operation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..core.config import Settings
from ..core.db import RecordStore
from ..core.errors import FleetRegistryError, NotFound
from ..core.filters import FilterBuilder, FilterParams, Predicate
from ..core.ids import require_id
from .cross_reference import CrossReferenceResolver, ReferenceSpec
from .duplicate_guard import DuplicateKeyGuard
from .event_log_service import EventLogClient, elapsed_ms
from .export_service import ExportEncoder, ExportFormat, ExportLayout, get_encoder
from .pagination import NEWEST_FIRST, Page, Paginator

logger = logging.getLogger(__name__)

View = Dict[str, Any]


class RecordService:
    """Base class of the entity services.

    Class attributes describe the entity; instances receive the store,
    the log client and the settings from the application factory.
    """

    collection: str = ""
    label: str = "Record"
    resource: str = "RECORD"
    url: str = "/"
    unique_fields: Tuple[str, ...] = ()
    required_fields: Tuple[str, ...] = ()
    references: Tuple[ReferenceSpec, ...] = ()
    search_fields: Tuple[str, ...] = ()
    # Reference fields whose target must exist when written.
    verified_references: Tuple[str, ...] = ()
    export_layout: Optional[ExportLayout] = None

    def __init__(self, store: RecordStore, events: EventLogClient, settings: Settings) -> None:
        self.store = store
        self.events = events
        self.settings = settings
        self.resolver = CrossReferenceResolver(store, self.references)
        self.paginator = Paginator(store, self.collection, self.resolver)
        self.guard = DuplicateKeyGuard(store, self.collection, self.unique_fields, self.label)
        self.filters = self.build_filters()

    # -- hooks -------------------------------------------------------------

    def build_filters(self) -> FilterBuilder:
        return FilterBuilder(self.search_fields)

    def prepare(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        """Normalise an incoming document or partial update.

        Reference fields are converted to canonical identifiers
        (``InvalidReference`` for malformed ones).  In a partial update
        ``None`` removes an optional field and is ignored for required
        fields.
        """
        document: Dict[str, Any] = {}
        reference_fields = {spec.field for spec in self.references}
        for key, value in data.items():
            if isinstance(value, Enum):
                value = value.value
            if value is None:
                if partial and key not in self.required_fields:
                    document[key] = None
                continue
            if key in reference_fields:
                value = require_id(value, key)
            document[key] = value
        return document

    async def verify_references(self, document: Dict[str, Any]) -> None:
        """Raise ``NotFound`` if a verified reference points at nothing."""
        for spec in self.references:
            key = document.get(spec.field)
            if spec.field not in self.verified_references or key is None:
                continue
            if await self.store.find_by_id(spec.collection, key) is None:
                raise NotFound(f"{spec.alias.capitalize()} not found", details={"field": spec.field, "id": key})

    # -- logging -----------------------------------------------------------

    def _emit(
        self,
        method: str,
        operation: str,
        status_code: int,
        message: str,
        started: float,
        path: str = "",
        metadata: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.events.emit(
            method=method,
            url=f"{self.url}{path}",
            operation=operation,
            resource=self.resource,
            status_code=status_code,
            message=message,
            metadata=metadata,
            response_time=elapsed_ms(started),
            error=error,
        )

    # -- reads -------------------------------------------------------------

    async def _fetch(self, record_id: str) -> Dict[str, Any]:
        key = require_id(record_id, f"{self.label.lower()} id")
        record = await self.store.find_by_id(self.collection, key)
        if record is None:
            raise NotFound(f"{self.label} not found")
        return record

    async def get(self, record_id: str) -> View:
        """Return the resolved view of one record."""
        record = await self._fetch(record_id)
        return await self.resolver.resolve_one(record)

    async def build_predicate(self, params: FilterParams, cross_reference: bool = False) -> Predicate:
        """Validate ``params`` and build the match predicate.

        Reference parameters are validated before any store access.
        With ``cross_reference`` the free text is also matched against
        the searchable fields of referenced records.
        """
        self.filters.validate(params)
        hits = None
        if cross_reference and params.search:
            hits = await self.resolver.search_references(params.search)
        return self.filters.build(params, reference_hits=hits)

    async def list(
        self,
        params: FilterParams,
        page: int = 1,
        limit: Optional[int] = None,
        cross_reference: bool = False,
    ) -> Page:
        started = time.monotonic()
        limit = self.settings.default_page_size if limit is None else limit
        limit = min(limit, self.settings.max_page_size)
        operation = "SEARCH" if cross_reference else "LIST"
        try:
            predicate = await self.build_predicate(params, cross_reference)
            result = await self.paginator.paginate(predicate, page, limit)
        except FleetRegistryError as exc:
            self._emit("GET", operation, exc.status_code, f"{self.label} {operation.lower()} failed", started, error=exc)
            raise
        logger.info(
            "%s %s returned %d of %d records", self.label, operation.lower(), len(result.items), result.total
        )
        self._emit(
            "GET",
            operation,
            200,
            f"{self.label} {operation.lower()} completed - found {len(result.items)} records",
            started,
            path="/search" if cross_reference else "",
            metadata={"search": params.search, "page": result.page, "limit": result.limit, "total": result.total},
        )
        return result

    # -- writes ------------------------------------------------------------

    async def create(self, data: Dict[str, Any]) -> View:
        started = time.monotonic()
        try:
            document = self.prepare(data)
            await self.verify_references(document)
            record = await self.guard.insert(document)
        except FleetRegistryError as exc:
            self._emit("POST", "CREATE", exc.status_code, f"{self.label} creation failed", started, error=exc)
            raise
        logger.info("Created %s %s", self.label.lower(), record["id"])
        self._emit(
            "POST", "CREATE", 201, f"{self.label} created successfully", started, metadata={"id": record["id"]}
        )
        return await self.resolver.resolve_one(record)

    async def update(self, record_id: str, updates: Dict[str, Any]) -> View:
        """Apply a partial update and return the resolved view."""
        started = time.monotonic()
        try:
            key = require_id(record_id, f"{self.label.lower()} id")
            partial = self.prepare(updates, partial=True)
            await self.verify_references(partial)
            if partial:
                record = await self.guard.update(key, partial)
            else:
                record = await self._fetch(key)
        except FleetRegistryError as exc:
            self._emit("PATCH", "UPDATE", exc.status_code, f"{self.label} update failed", started, path=f"/{record_id}", error=exc)
            raise
        logger.info("Updated %s %s fields=%s", self.label.lower(), key, sorted(partial))
        self._emit(
            "PATCH",
            "UPDATE",
            200,
            f"{self.label} updated successfully",
            started,
            path=f"/{key}",
            metadata={"fields": sorted(partial)},
        )
        return await self.resolver.resolve_one(record)

    async def delete(self, record_id: str) -> None:
        started = time.monotonic()
        try:
            key = require_id(record_id, f"{self.label.lower()} id")
            if not await self.store.delete_by_id(self.collection, key):
                raise NotFound(f"{self.label} not found")
        except FleetRegistryError as exc:
            self._emit("DELETE", "DELETE", exc.status_code, f"{self.label} deletion failed", started, path=f"/{record_id}", error=exc)
            raise
        logger.info("Deleted %s %s", self.label.lower(), key)
        self._emit("DELETE", "DELETE", 200, f"{self.label} deleted successfully", started, path=f"/{key}")

    # -- export ------------------------------------------------------------

    async def export_rows(self, params: Optional[FilterParams] = None, cross_reference: bool = False) -> List[View]:
        """Return every matching record resolved, newest first, unpaginated."""
        predicate = await self.build_predicate(params or FilterParams(), cross_reference)
        records = await self.store.find_matching(self.collection, predicate, NEWEST_FIRST)
        return await self.resolver.resolve(records)

    def encoder(self, export_format: ExportFormat) -> ExportEncoder:
        if self.export_layout is None:
            raise NotImplementedError(f"{self.label} records cannot be exported")
        return get_encoder(export_format, self.export_layout, self.settings.export_placeholder)

    async def open_export(
        self, export_format: ExportFormat, params: Optional[FilterParams] = None
    ) -> Tuple[ExportEncoder, Iterator[bytes]]:
        """Resolve the rows and start encoding them.

        Returns the encoder (for content type and filename) and the
        primed chunk iterator.  Raises ``ExportFailed`` if encoding
        breaks before producing output.
        """
        started = time.monotonic()
        encoder = self.encoder(export_format)
        try:
            rows = await self.export_rows(params)
            # Priming may run the whole encoding (xlsx, pdf), so keep it off the event loop.
            stream = await asyncio.to_thread(encoder.open_stream, rows)
        except FleetRegistryError as exc:
            self._emit(
                "GET", "EXPORT", exc.status_code, f"{encoder.format_name} export failed", started,
                path="/export", metadata={"exportFormat": encoder.format_name}, error=exc,
            )
            raise
        self._emit(
            "GET",
            "EXPORT",
            200,
            f"{encoder.format_name} export started for {len(rows)} records",
            started,
            path="/export",
            metadata={"exportFormat": encoder.format_name, "recordCount": len(rows)},
        )
        return encoder, stream
