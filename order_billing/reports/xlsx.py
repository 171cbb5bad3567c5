from __future__ import annotations

from io import BytesIO

from openpyxl.styles import Font, PatternFill
from openpyxl.utils.cell import coordinate_from_string
from openpyxl.workbook import Workbook

from order_billing.reports.reference_sheet import ReferenceSheet

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
MIN_COLUMN_WIDTH = 10
MAX_COLUMN_WIDTH = 60


def _display_width(value) -> int:
    if value is None:
        return 0
    text = str(value)
    # formulas render as numbers
    if text.startswith("="):
        return 12
    return len(text)


def render_workbook(sheet: ReferenceSheet) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet.title

    widths: dict[str, int] = {}
    for ref, cell in sheet.cells.items():
        target = ws[ref]
        target.value = cell.value
        if cell.bold or cell.size:
            target.font = Font(bold=cell.bold, size=cell.size or 11)
        if cell.fill:
            target.fill = PatternFill(fill_type="solid", start_color=cell.fill, end_color=cell.fill)
        if cell.number_format:
            target.number_format = cell.number_format

        column, _ = coordinate_from_string(ref)
        widths[column] = max(widths.get(column, 0), _display_width(cell.value))

    for column, width in widths.items():
        ws.column_dimensions[column].width = min(MAX_COLUMN_WIDTH, max(MIN_COLUMN_WIDTH, width + 2))
    return wb


def write_xlsx(sheet: ReferenceSheet) -> bytes:
    bio = BytesIO()
    render_workbook(sheet).save(bio)
    return bio.getvalue()
