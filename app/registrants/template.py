"""Import template workbook."""

from io import BytesIO

from openpyxl import Workbook
from openpyxl.worksheet.datavalidation import DataValidation

from app.common.exporter import set_columns, workbook_to_stream, write_header
from app.registrants.rules import CHURCH_LOCATIONS, IMPORT_HEADERS

TEMPLATE_FILENAME = "family-camp-import-template.xlsx"
TEMPLATE_SHEET_TITLE = "Registrants Template"

_COLUMN_WIDTHS = (30, 10, 15, 25)
LOCATION_COLUMN = "D"


def location_validation(last_row: int) -> DataValidation:
    """List validation restricting the Location column to the known church locations."""
    validation = DataValidation(
        type="list",
        # Excel wants the options as one double-quoted, comma separated string
        formula1=f'"{",".join(CHURCH_LOCATIONS)}"',
        allow_blank=True,
        showErrorMessage=True,
        errorStyle="stop",
        errorTitle="Invalid Location",
        # Excel caps the error text at 255 characters
        error=f"Choose a location from the list: {', '.join(CHURCH_LOCATIONS)}.",
    )
    validation.add(f"{LOCATION_COLUMN}2:{LOCATION_COLUMN}{last_row}")
    return validation


def build_import_template(validation_rows: int = 1000) -> BytesIO:
    """
    Build the registrant import template.

    The sheet holds only the bold header row; data rows 2..`validation_rows`
    carry a dropdown on the Location column.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = TEMPLATE_SHEET_TITLE

    columns = list(zip(IMPORT_HEADERS, _COLUMN_WIDTHS))
    set_columns(ws, columns)
    write_header(ws, columns)
    ws.add_data_validation(location_validation(max(validation_rows, 2)))

    return workbook_to_stream(wb)
