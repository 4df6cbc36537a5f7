"""Participant roster export.

One workbook with an "All Participants" sheet, one sheet per non-empty group
and an "Unassigned" sheet when anyone is still without a group.
"""

from datetime import date
from io import BytesIO
from typing import Any, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from app.common.exporter import Column, set_columns, workbook_to_stream, write_header, write_title
from app.registrants.rules import GROUP_NUMBERS, IMPORT_HEADERS, MINIMUM_AGE
from app.registrants.views import UNASSIGNED, filter_by_group

ALL_SHEET_TITLE = "All Participants"
UNASSIGNED_SHEET_TITLE = "Unassigned"

# (header, column width, record attribute)
_GROUPED_FIELDS = tuple(
    zip(IMPORT_HEADERS, (30, 10, 15, 25), ("full_name", "age", "gender", "church_location"))
)
# Group sheets leave out the group column, it is the same on every row
_FIELDS = _GROUPED_FIELDS + (("Assigned Group", 15, "assigned_group"),)


def export_filename(on: Optional[date] = None) -> str:
    return f"family-camp-export-{(on or date.today()).isoformat()}.xlsx"


def group_sheet_title(group: int) -> str:
    return f"Group {group}"


def _write_sheet(ws: Worksheet, title: str, fields: Sequence[tuple], records: Sequence[Any]) -> None:
    columns: List[Column] = [(header, width) for header, width, _ in fields]
    set_columns(ws, columns)
    write_title(ws, title, len(columns))
    ws.append([])  # spacer row
    write_header(ws, columns)
    for record in records:
        row = []
        for _, _, attribute in fields:
            value = getattr(record, attribute, None)
            if attribute == "assigned_group" and value is None:
                value = "None"
            row.append(value)
        ws.append(row)


def build_participants_export(records: Sequence[Any], event_title: str) -> BytesIO:
    """
    Build the roster workbook for `records`, kept in the given order.

    Records only need `full_name`, `age`, `gender`, `church_location` and
    `assigned_group` attributes. The caller decides who is eligible; nothing
    is filtered out here.

    Raises:
        ValueError: If there are no records to export
    """
    if not records:
        raise ValueError("No participant data available to export.")

    wb = Workbook()
    wb.properties.creator = "Camp Registration System"

    all_sheet = wb.active
    all_sheet.title = ALL_SHEET_TITLE
    _write_sheet(all_sheet, f"{event_title} - All Participants (Age {MINIMUM_AGE}+)", _FIELDS, records)

    for group in GROUP_NUMBERS:
        members = filter_by_group(records, group)
        if not members:
            continue
        title = group_sheet_title(group)
        _write_sheet(wb.create_sheet(title), f"{event_title} - {title} Participants", _GROUPED_FIELDS, members)

    unassigned = filter_by_group(records, UNASSIGNED)
    if unassigned:
        _write_sheet(
            wb.create_sheet(UNASSIGNED_SHEET_TITLE),
            f"{event_title} - Unassigned Participants (Age {MINIMUM_AGE}+)",
            _GROUPED_FIELDS,
            unassigned,
        )

    return workbook_to_stream(wb)
