"""
Tabular document export rendered with reportlab.

Columns have fixed widths (``ExportColumn.pdf_width``).  Each cell is
wrapped to its column width; the height of a row is the tallest
wrapped cell plus padding.  ``TableLayout`` keeps a vertical cursor
measured from the top of the page and starts a new page whenever the
next row would cross the bottom margin, so rows never straddle pages
and every continuation page starts at the top margin.
"""

import logging
import tempfile
from dataclasses import dataclass
from typing import Iterable, Iterator, List

from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from .export_service import ExportEncoder, View

logger = logging.getLogger(__name__)

MARGIN = 30
TITLE_FONT_SIZE = 18
HEADER_FONT = "Helvetica-Bold"
HEADER_FONT_SIZE = 9
BODY_FONT = "Helvetica"
BODY_FONT_SIZE = 8
LINE_SPACING = 1.2
ROW_PADDING = 10
HEADER_ROW_HEIGHT = 25
TABLE_TOP_GAP = 40
CELL_GUTTER = 4
CHUNK_SIZE = 64 * 1024
# Spool in memory up to this size before falling back to a temp file.
SPOOL_LIMIT = 8 * 1024 * 1024


@dataclass
class Placement:
    page: int
    top: float
    height: float


class TableLayout:
    """Vertical placement of table rows on equally sized pages.

    Coordinates are distances from the top edge of the page.
    """

    def __init__(self, page_height: float, margin_top: float = MARGIN, margin_bottom: float = MARGIN) -> None:
        self.page_height = page_height
        self.margin_top = margin_top
        self.margin_bottom = margin_bottom
        self.page = 1
        self.cursor = margin_top

    @property
    def printable_bottom(self) -> float:
        return self.page_height - self.margin_bottom

    def advance(self, height: float) -> None:
        """Move the cursor down without placing a row (title, header)."""
        self.cursor += height

    def place(self, height: float) -> Placement:
        # A row taller than a whole page is still placed, alone, at the top.
        if self.cursor + height > self.printable_bottom and self.cursor > self.margin_top:
            self.page += 1
            self.cursor = self.margin_top
        placement = Placement(page=self.page, top=self.cursor, height=height)
        self.cursor += height
        return placement


def wrap_lines(text: str, font: str, size: float, width: float) -> List[str]:
    lines = simpleSplit(text, font, size, max(width - CELL_GUTTER, 1))
    return lines or [""]


class PdfEncoder(ExportEncoder):
    format_name = "PDF"
    content_type = "application/pdf"
    extension = "pdf"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.placements: List[Placement] = []
        self.page_count = 0

    def _page_size(self):
        columns_width = sum(c.pdf_width for c in self.layout.pdf_columns)
        portrait_width, _ = letter
        if columns_width > portrait_width - 2 * MARGIN:
            return landscape(letter)
        return letter

    def _draw_cells(self, pdf, cells: List[List[str]], top: float, size: float, page_height: float) -> None:
        x = MARGIN
        leading = size * LINE_SPACING
        for column, lines in zip(self.layout.pdf_columns, cells):
            for index, line in enumerate(lines):
                pdf.drawString(x, page_height - top - size - index * leading, line)
            x += column.pdf_width

    def iter_encode(self, rows: Iterable[View]) -> Iterator[bytes]:
        columns = self.layout.pdf_columns
        page_width, page_height = self._page_size()
        spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_LIMIT)
        try:
            pdf = canvas.Canvas(spool, pagesize=(page_width, page_height))
            pdf.setTitle(self.layout.title)
            layout = TableLayout(page_height)

            pdf.setFont(BODY_FONT, TITLE_FONT_SIZE)
            pdf.drawCentredString(page_width / 2, page_height - MARGIN - TITLE_FONT_SIZE, self.layout.title)
            layout.advance(TITLE_FONT_SIZE * LINE_SPACING + TABLE_TOP_GAP)

            pdf.setFont(HEADER_FONT, HEADER_FONT_SIZE)
            headers = [wrap_lines(c.header, HEADER_FONT, HEADER_FONT_SIZE, c.pdf_width) for c in columns]
            self._draw_cells(pdf, headers, layout.cursor, HEADER_FONT_SIZE, page_height)
            layout.advance(HEADER_ROW_HEIGHT)
            rule_y = page_height - layout.cursor + 5
            pdf.line(MARGIN, rule_y, page_width - MARGIN, rule_y)

            pdf.setFont(BODY_FONT, BODY_FONT_SIZE)
            leading = BODY_FONT_SIZE * LINE_SPACING
            for view in rows:
                cells = [
                    wrap_lines(self.cell_text(c, view), BODY_FONT, BODY_FONT_SIZE, c.pdf_width)
                    for c in columns
                ]
                height = max(len(lines) for lines in cells) * leading + ROW_PADDING
                previous_page = layout.page
                placement = layout.place(height)
                if placement.page != previous_page:
                    pdf.showPage()
                    pdf.setFont(BODY_FONT, BODY_FONT_SIZE)
                self._draw_cells(pdf, cells, placement.top, BODY_FONT_SIZE, page_height)
                self.placements.append(placement)
                self.rows_processed += 1

            pdf.showPage()
            pdf.save()
            self.page_count = layout.page

            spool.seek(0)
            while chunk := spool.read(CHUNK_SIZE):
                yield chunk
            self.completed = True
            logger.info("PDF export completed: %d rows on %d pages", self.rows_processed, self.page_count)
        finally:
            spool.close()
