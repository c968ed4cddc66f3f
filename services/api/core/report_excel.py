# services/api/core/report_excel.py
from __future__ import annotations
import io
from typing import Dict, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from core.reconciler import TaggedRow, to_combined_view
from models import Request

DEPARTMENT_HEADER = "Department"
DEPARTMENT_TAG_HEADER = "Department (tag)"
PROGRESS_SHEET = "Progress"

HEADER_FILL = PatternFill(start_color="FFDDEBF7", end_color="FFDDEBF7", fill_type="solid")
MAX_COL_WIDTH = 60


def export_columns(request: Request, view: List[TaggedRow]) -> List[str]:
    """
    Declared columns first, then any row keys not in `columns`
    (schema drift), in first-seen order.
    """
    out = list(request.columns)
    seen = set(out)
    for tr in view:
        for key in tr.row:
            if key not in seen:
                seen.add(key)
                out.append(key)
    return out


def _force_text(ws: Worksheet) -> None:
    """Store every string as text so values like "=1+1" never become formulas."""
    for row in ws.iter_rows():
        for cell in row:
            if isinstance(cell.value, str):
                cell.data_type = "s"


def _style_header(ws: Worksheet) -> None:
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(vertical="center")
    ws.freeze_panes = "A2"


def _autosize(ws: Worksheet) -> None:
    widths: Dict[int, int] = {}
    for row in ws.iter_rows():
        for cell in row:
            length = len(str(cell.value)) if cell.value is not None else 0
            widths[cell.column] = max(widths.get(cell.column, 0), length)
    for col, width in widths.items():
        ws.column_dimensions[get_column_letter(col)].width = min(width + 2, MAX_COL_WIDTH)


def _write_progress_sheet(wb: Workbook, request: Request) -> None:
    ws = wb.create_sheet(PROGRESS_SHEET)
    ws.append(["Department", "Submitted", "Completed"])
    for dept in request.departments:
        subs = [s for s in request.submissions if s.department == dept]
        ws.append([
            dept,
            "Yes" if subs else "No",
            "Yes" if any(s.completed for s in subs) else "No",
        ])
    _force_text(ws)
    _style_header(ws)
    _autosize(ws)


def build_combined_workbook(request: Request) -> bytes:
    """
    Export the combined view of a request as an .xlsx file.

    Sheet 1 ("Data"): Department + columns (+ drift keys), one row per
      combined-view row, initial rows first.
    Sheet 2 ("Progress"): per listed department, submitted / completed.
    """
    view = to_combined_view(request)
    columns = export_columns(request, view)

    wb = Workbook()
    ws = wb.active
    ws.title = "Data"

    tag_header = DEPARTMENT_TAG_HEADER if DEPARTMENT_HEADER in columns else DEPARTMENT_HEADER
    ws.append([tag_header, *columns])
    for tr in view:
        ws.append([tr.tag, *[tr.row.get(c, "") for c in columns]])
    _force_text(ws)

    _style_header(ws)
    _autosize(ws)
    _write_progress_sheet(wb, request)

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()
