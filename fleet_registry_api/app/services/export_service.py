"""
Shared plumbing for the export encoders.

An export turns the full, resolved set of result views of one entity
type into a downloadable document.  The column set of each entity is a
fixed ``ExportLayout``; the three encoders (``csv_export``,
``xlsx_export`` and ``pdf_export``) only decide how those columns are
laid out.

Every encoder produces its output as an iterator of byte chunks
(``iter_encode``) so that output can be handed to the client while
later rows are still being processed.  ``ExportEncoder.open_stream``
and ``ExportEncoder.encode`` implement the failure contract on top of
that iterator:

* if encoding fails before the first chunk is handed over, the caller
  gets ``ExportFailed`` with the format name and the number of rows
  processed and can still answer with a clean error;
* once a chunk has been handed over nothing can be rolled back, so a
  later failure is logged, the stream simply ends and the sink is
  aborted instead of finalised.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from ..core.errors import ExportFailed

logger = logging.getLogger(__name__)

View = Dict[str, Any]

DEFAULT_PLACEHOLDER = "N/A"


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    PDF = "pdf"


@dataclass(frozen=True)
class ExportColumn:
    """One exported column.

    Attributes:
        header: Column title.
        value: Extracts the cell value from a result view.  ``None`` or
            an empty string is rendered as the placeholder.
        width: Spreadsheet column width in characters.
        pdf_width: Column width in points for the tabular document;
            ``None`` leaves the column out of that format.
        number_format: Spreadsheet number format for the data cells.
        highlight: Colour the data cell from the layout's highlight
            map.  Set on the status column only.
    """

    header: str
    value: Callable[[View], Any]
    width: float = 15
    pdf_width: Optional[float] = None
    number_format: Optional[str] = None
    highlight: bool = False


@dataclass(frozen=True)
class ExportLayout:
    """Fixed export description of one entity type."""

    title: str
    sheet_name: str
    basename: str
    columns: Tuple[ExportColumn, ...]
    highlights: Mapping[str, str] = field(default_factory=dict)

    @property
    def pdf_columns(self) -> Tuple[ExportColumn, ...]:
        return tuple(c for c in self.columns if c.pdf_width is not None)


def field_value(name: str) -> Callable[[View], Any]:
    return lambda view: view.get(name)


def reference_value(alias: str, name: str) -> Callable[[View], Any]:
    """Read ``name`` from the snapshot attached under ``alias``, if any."""

    def _get(view: View) -> Any:
        snapshot = view.get(alias)
        return snapshot.get(name) if snapshot else None

    return _get


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored ISO timestamp into a naive UTC ``datetime``."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def timestamp_value(name: str) -> Callable[[View], Any]:
    return lambda view: parse_timestamp(view.get(name))


class ExportSink:
    """Writable byte destination for one export.

    Response metadata must be set once, before the first write.
    Subclasses implement ``_write``, ``_finalize`` and ``_discard``.
    """

    def __init__(self) -> None:
        self.content_type: Optional[str] = None
        self.filename: Optional[str] = None
        self.bytes_written = 0
        self.closed = False
        self.aborted = False

    def set_metadata(self, content_type: str, filename: str) -> None:
        if self.bytes_written:
            raise RuntimeError("metadata must be set before the first write")
        self.content_type = content_type
        self.filename = filename

    def write(self, chunk: bytes) -> None:
        if self.closed:
            raise RuntimeError("sink is closed")
        self._write(chunk)
        self.bytes_written += len(chunk)

    def close(self) -> None:
        if not self.closed:
            self._finalize()
            self.closed = True

    def abort(self) -> None:
        if not self.closed:
            self._discard()
            self.closed = True
            self.aborted = True

    def _write(self, chunk: bytes) -> None:
        raise NotImplementedError

    def _finalize(self) -> None:
        pass

    def _discard(self) -> None:
        pass


class BufferSink(ExportSink):
    """Collect the export in memory."""

    def __init__(self) -> None:
        super().__init__()
        self._chunks = []

    def _write(self, chunk: bytes) -> None:
        self._chunks.append(chunk)

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)


class FileSink(ExportSink):
    """Write the export to ``path``.

    Output goes to ``<path>.part`` and is renamed into place only when
    the export completes; an aborted export leaves no file behind.
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self._partial_path = f"{path}.part"
        self._handle = open(self._partial_path, "wb")

    def _write(self, chunk: bytes) -> None:
        self._handle.write(chunk)
        self._handle.flush()

    def _finalize(self) -> None:
        self._handle.close()
        os.replace(self._partial_path, self.path)

    def _discard(self) -> None:
        self._handle.close()
        if os.path.exists(self._partial_path):
            os.remove(self._partial_path)


@dataclass
class ExportResult:
    format_name: str
    rows: int
    completed: bool


class ExportEncoder:
    """Base class of the three encoders.

    Subclasses set ``format_name``, ``content_type`` and ``extension``
    and implement ``iter_encode``, which must increment
    ``rows_processed`` per row and set ``completed`` after the last
    chunk.  An encoder instance encodes one export only.
    """

    format_name = ""
    content_type = "application/octet-stream"
    extension = ""

    def __init__(self, layout: ExportLayout, placeholder: str = DEFAULT_PLACEHOLDER) -> None:
        self.layout = layout
        self.placeholder = placeholder
        self.rows_processed = 0
        self.completed = False

    def filename(self, today: Optional[date] = None) -> str:
        today = today or date.today()
        return f"{self.layout.basename}_{today.isoformat()}.{self.extension}"

    def cell_text(self, column: ExportColumn, view: View) -> str:
        value = column.value(view)
        if value is None or value == "":
            return self.placeholder
        if isinstance(value, datetime):
            return value.strftime("%Y-%m-%d %H:%M:%S")
        return str(value)

    def iter_encode(self, rows: Iterable[View]) -> Iterator[bytes]:
        raise NotImplementedError

    def open_stream(self, rows: Iterable[View]) -> Iterator[bytes]:
        """Start encoding and return the chunk iterator for a response body.

        The first chunk is produced eagerly so that a failure before any
        output exists surfaces here as ``ExportFailed``.
        """
        chunks = self.iter_encode(rows)
        try:
            first = next(chunks, b"")
        except Exception as exc:
            chunks.close()
            logger.error("%s export failed before output: %s", self.format_name, exc)
            raise ExportFailed(self.format_name, self.rows_processed, str(exc)) from exc
        return self._committed(first, chunks)

    def _committed(self, first: bytes, chunks: Iterator[bytes]) -> Iterator[bytes]:
        try:
            if first:
                yield first
            for chunk in chunks:
                yield chunk
        except Exception:
            # Output already left; the response cannot be turned into an error any more.
            logger.exception(
                "%s export failed after output was sent (%d rows processed)",
                self.format_name,
                self.rows_processed,
            )
        finally:
            chunks.close()

    def encode(self, rows: Iterable[View], sink: ExportSink) -> ExportResult:
        """Encode ``rows`` into ``sink`` and finalise or abort it."""
        sink.set_metadata(self.content_type, self.filename())
        try:
            stream = self.open_stream(rows)
        except ExportFailed:
            sink.abort()
            raise
        try:
            for chunk in stream:
                try:
                    sink.write(chunk)
                except Exception as exc:
                    if sink.bytes_written == 0:
                        raise ExportFailed(self.format_name, self.rows_processed, str(exc)) from exc
                    logger.exception("%s export sink failed mid-stream", self.format_name)
                    break
        except BaseException:
            sink.abort()
            raise
        finally:
            stream.close()
        if self.completed:
            sink.close()
            logger.info("%s export completed: %d rows", self.format_name, self.rows_processed)
        else:
            sink.abort()
        return ExportResult(self.format_name, self.rows_processed, self.completed)


def get_encoder(export_format: ExportFormat, layout: ExportLayout, placeholder: str = DEFAULT_PLACEHOLDER) -> ExportEncoder:
    """Return a fresh encoder for ``export_format``."""
    from .csv_export import CsvEncoder
    from .pdf_export import PdfEncoder
    from .xlsx_export import XlsxEncoder

    encoders = {
        ExportFormat.CSV: CsvEncoder,
        ExportFormat.XLSX: XlsxEncoder,
        ExportFormat.PDF: PdfEncoder,
    }
    return encoders[ExportFormat(export_format)](layout, placeholder)
