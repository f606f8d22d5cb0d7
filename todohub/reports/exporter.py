"""
Report Exporter — tabular artifacts over the Filter Builder + Task Store read path.

Produces either an .xlsx workbook (openpyxl) or a JSON-shaped preview of the
same rows. The exporter never filters on its own: zero matches still yield a
valid sheet with the header and summary rows.
"""

from __future__ import annotations

import io
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from todohub.engine.errors import BadRequestError
from todohub.engine.logging import log, log_report_export
from todohub.tasks.filters import FilterCriteria
from todohub.tasks.helpers import format_enum_value
from todohub.tasks.store import TaskStore

logger = logging.getLogger("todohub.reports.exporter")

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADERS = ["Title", "Assignee", "Due Date", "Time Tracked", "Status", "Priority"]
BLANK_ROWS_BEFORE_SUMMARY = 2

HEADER_FONT = Font(bold=True, size=12)
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE2E8F0")
SUMMARY_FONT = Font(bold=True, size=11)
SUMMARY_FILL = PatternFill(fill_type="solid", fgColor="FFFEF3C7")
_THIN = Side(style="thin")
THIN_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)


def excel_safe(value: Any) -> Any:
    """Strip control characters that cannot be stored in an .xlsx cell."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def render_row(record: Dict[str, Any]) -> Dict[str, Any]:
    """One report row: blanks for a missing title, "-" for missing assignee/date."""
    return {
        "title": record.get("title") or "",
        "assigne": record.get("assignee") or "-",
        "due_date": record.get("due_date") or "-",
        "time_tracked": record.get("time_tracked") or 0,
        "status": format_enum_value(record.get("status")) or "",
        "priority": format_enum_value(record.get("priority")) or "",
    }


def export_filename(now: Optional[datetime] = None) -> str:
    """``todolist_report_2026-10-18_14_05_09.xlsx``"""
    now = now or datetime.now()
    return f"todolist_report_{now.strftime('%Y-%m-%d_%H_%M_%S')}.xlsx"


class ReportExporter:
    """
    Args:
        store: Task Store providing ``query_for_report``.
        sheet_title: Worksheet name.
        max_column_width: Cap for auto-sized column widths (character widths).
    """

    def __init__(self, store: TaskStore, sheet_title: str = "TodoList Report", max_column_width: int = 50):
        self._store = store
        self._sheet_title = sheet_title
        self._max_column_width = max_column_width

    def rows(self, criteria: Optional[FilterCriteria], case_insensitive: bool = True) -> List[Dict[str, Any]]:
        return [render_row(r) for r in self._store.query_for_report(criteria, case_insensitive)]

    def export_workbook(self, criteria: Optional[FilterCriteria] = None) -> bytes:
        """
        Build the .xlsx artifact and return its bytes.

        Raises:
            BadRequestError: the workbook could not be generated.
        """
        started = time.perf_counter()
        rows = self.rows(criteria, case_insensitive=False)
        try:
            content = self._build_workbook(rows)
        except (IllegalCharacterError, ValueError, TypeError) as e:
            logger.error("Report generation failed: %s", e)
            raise BadRequestError("An error occurred while generating the report", error=str(e)) from e

        duration = round((time.perf_counter() - started) * 1000, 2)
        log(log_report_export("export", len(rows), duration, criteria.applied() if criteria else None))
        logger.info("Exported %d row(s) to xlsx in %.1fms", len(rows), duration)
        return content

    def _build_workbook(self, rows: List[Dict[str, Any]]) -> bytes:
        total_time = sum(row["time_tracked"] for row in rows)

        wb = Workbook()
        ws = wb.active
        ws.title = self._sheet_title

        ws.append(HEADERS)
        for cell in ws[1]:
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = Alignment(horizontal="center", vertical="center")

        for row in rows:
            ws.append([
                excel_safe(row["title"]), excel_safe(row["assigne"]), row["due_date"],
                row["time_tracked"], row["status"], row["priority"],
            ])

        summary_row = len(rows) + 1 + BLANK_ROWS_BEFORE_SUMMARY + 1
        ws.cell(row=summary_row, column=1, value="SUMMARY")
        ws.cell(row=summary_row, column=3, value="Total Time Tracked:")
        ws.cell(row=summary_row, column=4, value=f"{total_time} minutes")
        for col in range(1, len(HEADERS) + 1):
            cell = ws.cell(row=summary_row, column=col)
            cell.font = SUMMARY_FONT
            cell.fill = SUMMARY_FILL

        self._size_columns(ws, summary_row)
        for ws_row in ws.iter_rows(min_row=1, max_row=summary_row, min_col=1, max_col=len(HEADERS)):
            for cell in ws_row:
                cell.border = THIN_BORDER

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    def _size_columns(self, ws, last_row: int) -> None:
        """Width = longest rendered value + 2, capped at max_column_width."""
        for col in range(1, len(HEADERS) + 1):
            longest = 0
            for row in range(1, last_row + 1):
                value = ws.cell(row=row, column=col).value
                if value is not None:
                    longest = max(longest, len(str(value)))
            ws.column_dimensions[get_column_letter(col)].width = min(longest + 2, self._max_column_width)

    def preview(self, criteria: Optional[FilterCriteria] = None) -> Dict[str, Any]:
        """JSON-shaped rows, a summary block and the echoed filter set."""
        started = time.perf_counter()
        rows = self.rows(criteria, case_insensitive=True)
        applied = criteria.applied() if criteria else {}
        log(log_report_export("preview", len(rows), round((time.perf_counter() - started) * 1000, 2), applied))
        return {
            "todos": rows,
            "summary": {
                "total_records": len(rows),
                "total_time_tracked": sum(row["time_tracked"] for row in rows),
            },
            "filters_applied": applied,
        }
