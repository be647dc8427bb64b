"""
Delimited-text export.

One header record, then one record per result view, written through
the standard ``csv`` module (comma delimiter, double-quote quoting with
doubled quotes as escape).  Each record is handed out as soon as it is
written, and every record, the last one included, ends with the record
delimiter.
"""

import csv
import io
import logging
from typing import Iterable, Iterator

from .export_service import ExportEncoder, View

logger = logging.getLogger(__name__)


class CsvEncoder(ExportEncoder):
    format_name = "CSV"
    content_type = "text/csv"
    extension = "csv"

    @staticmethod
    def _drain(buffer: io.StringIO) -> bytes:
        data = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return data.encode("utf-8")

    def iter_encode(self, rows: Iterable[View]) -> Iterator[bytes]:
        columns = self.layout.columns
        buffer = io.StringIO()
        writer = csv.writer(
            buffer,
            delimiter=",",
            quotechar='"',
            doublequote=True,
            quoting=csv.QUOTE_MINIMAL,
            lineterminator="\n",
        )
        writer.writerow([column.header for column in columns])
        yield self._drain(buffer)

        for view in rows:
            writer.writerow([self.cell_text(column, view) for column in columns])
            self.rows_processed += 1
            yield self._drain(buffer)

        self.completed = True
        logger.info("CSV export completed successfully: %d rows", self.rows_processed)
