from io import BytesIO
from typing import Sequence, Tuple

from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TITLE_FONT = Font(name="Calibri", size=16, bold=True)
HEADER_FONT = Font(bold=True)
CENTER_ALIGN = Alignment(horizontal="center", vertical="center")

# (header label, column width)
Column = Tuple[str, int]


def set_columns(ws: Worksheet, columns: Sequence[Column]) -> None:
    for idx, (_, width) in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width


def write_title(ws: Worksheet, title: str, column_count: int) -> None:
    """Write a centered title in row 1, merged across `column_count` columns."""
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=column_count)
    cell = ws.cell(row=1, column=1, value=title)
    cell.font = TITLE_FONT
    cell.alignment = CENTER_ALIGN


def write_header(ws: Worksheet, columns: Sequence[Column]) -> int:
    """Append a bold header row and return its row number."""
    ws.append([header for header, _ in columns])
    row = ws.max_row
    for col in range(1, len(columns) + 1):
        ws.cell(row=row, column=col).font = HEADER_FONT
    return row


def workbook_to_stream(wb: Workbook) -> BytesIO:
    """Save the workbook to an in-memory stream positioned at the start."""
    stream = BytesIO()
    wb.save(stream)
    stream.seek(0)
    return stream


def xlsx_response(stream: BytesIO, filename: str) -> StreamingResponse:
    return StreamingResponse(
        stream,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
