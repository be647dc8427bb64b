"""
Spreadsheet export built with openpyxl.

The workbook is opened in write-only mode so rows are serialised as
they are appended instead of being kept as cell objects for the whole
sheet.  Sheet-level settings (column widths, frozen header, fit-to-width
landscape printing, sheet properties) are fixed before the first row is
appended because write-only sheets emit them with the first row.  The
finished archive is copied to the sink in chunks.
"""

import logging
import tempfile
from datetime import datetime
from typing import Iterable, Iterator

from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .export_service import ExportColumn, ExportEncoder, View

logger = logging.getLogger(__name__)

HEADER_FILL = "FF4472C4"
HEADER_FONT_COLOR = "FFFFFFFF"
CHUNK_SIZE = 64 * 1024
# Spool in memory up to this size before falling back to a temp file.
SPOOL_LIMIT = 8 * 1024 * 1024

_THIN = Side(style="thin")
THIN_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)


class XlsxEncoder(ExportEncoder):
    format_name = "XLSX"
    content_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    extension = "xlsx"

    def _header_cell(self, sheet, column: ExportColumn) -> WriteOnlyCell:
        cell = WriteOnlyCell(sheet, value=column.header)
        cell.font = Font(bold=True, color=HEADER_FONT_COLOR)
        cell.fill = PatternFill(fill_type="solid", fgColor=HEADER_FILL)
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER
        return cell

    def _data_cell(self, sheet, column: ExportColumn, view: View) -> WriteOnlyCell:
        value = column.value(view)
        if value is None or value == "":
            value = self.placeholder
        elif not isinstance(value, (int, float, datetime)):
            value = str(value)
        cell = WriteOnlyCell(sheet, value=value)
        cell.border = THIN_BORDER
        if column.number_format and value != self.placeholder:
            cell.number_format = column.number_format
        highlight = None
        if column.highlight and isinstance(value, str):
            highlight = self.layout.highlights.get(value)
        if highlight:
            cell.fill = PatternFill(fill_type="solid", fgColor=highlight)
        return cell

    def iter_encode(self, rows: Iterable[View]) -> Iterator[bytes]:
        columns = self.layout.columns
        workbook = Workbook(write_only=True)
        try:
            workbook.properties.creator = self.layout.title
            sheet = workbook.create_sheet(self.layout.sheet_name)

            for index, column in enumerate(columns, start=1):
                sheet.column_dimensions[get_column_letter(index)].width = column.width
            sheet.freeze_panes = "A2"
            sheet.page_setup.orientation = "landscape"
            sheet.page_setup.fitToWidth = 1
            sheet.page_setup.fitToHeight = 0
            sheet.sheet_properties.pageSetUpPr.fitToPage = True
            sheet.auto_filter.ref = f"A1:{get_column_letter(len(columns))}1"

            sheet.append([self._header_cell(sheet, column) for column in columns])
            for view in rows:
                sheet.append([self._data_cell(sheet, column, view) for column in columns])
                self.rows_processed += 1

            with tempfile.SpooledTemporaryFile(max_size=SPOOL_LIMIT) as spool:
                workbook.save(spool)
                spool.seek(0)
                while chunk := spool.read(CHUNK_SIZE):
                    yield chunk
            self.completed = True
            logger.info("XLSX export completed: %d rows", self.rows_processed)
        finally:
            workbook.close()
