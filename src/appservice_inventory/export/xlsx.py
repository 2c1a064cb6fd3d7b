from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..collect.results import NamedTable
from ..logging import get_logger
from ..util.errors import ExportError
from ..util.serialization import to_cell_value

LOG = get_logger(__name__)

MAX_SHEET_NAME = 31
MIN_COLUMN_WIDTH = 10
MAX_COLUMN_WIDTH = 60
_INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")


def sheet_title(name: str, taken: Sequence[str] = ()) -> str:
    """
    Return an Excel-safe, unique worksheet title for a table name.
    """
    base = _INVALID_SHEET_CHARS.sub("_", name).strip("'") or "Sheet"
    title = base[:MAX_SHEET_NAME]
    lowered = {t.lower() for t in taken}
    suffix = 2
    while title.lower() in lowered:
        tail = f"_{suffix}"
        title = f"{base[: MAX_SHEET_NAME - len(tail)]}{tail}"
        suffix += 1
    return title


def _autosize_columns(ws: Worksheet, widths: Dict[int, int]) -> None:
    for idx, width in widths.items():
        ws.column_dimensions[get_column_letter(idx)].width = min(
            max(width + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH
        )


def _write_sheet(ws: Worksheet, table: NamedTable) -> int:
    result = table.result
    if result is None:
        return 0
    headers = result.column_names()
    widths: Dict[int, int] = {idx: len(h) for idx, h in enumerate(headers, start=1)}

    ws.append(headers)
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL

    written = 0
    for record in result.as_dicts():
        row = [to_cell_value(record.get(h)) for h in headers]
        ws.append(row)
        for cell in ws[ws.max_row]:
            # literal text, not a formula
            if isinstance(cell.value, str) and cell.value.startswith("="):
                cell.data_type = "s"
        for idx, value in enumerate(row, start=1):
            if value is not None:
                widths[idx] = max(widths.get(idx, 0), len(str(value)))
        written += 1

    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions
    _autosize_columns(ws, widths)
    return written


def write_workbook(tables: Sequence[NamedTable], path: Path) -> Tuple[Optional[Path], List[str]]:
    """
    Write each present table as one worksheet, in order.

    Absent or zero-row tables are skipped with a log line. When nothing is
    present no file is created and (None, []) is returned.
    """
    wb: Optional[Workbook] = None
    written: List[str] = []

    for table in tables:
        if not table.present:
            LOG.info(
                "Skipping table",
                extra={
                    "step": "export",
                    "phase": "skipped",
                    "table": table.name,
                    "status": table.outcome.status.value,
                },
            )
            continue
        if wb is None:
            wb = Workbook()
            ws = wb.active
            ws.title = sheet_title(table.name)
        else:
            ws = wb.create_sheet(title=sheet_title(table.name, wb.sheetnames))
        rows = _write_sheet(ws, table)
        written.append(ws.title)
        LOG.info(
            "Wrote worksheet",
            extra={"step": "export", "phase": "complete", "table": table.name, "count": rows},
        )

    if wb is None:
        LOG.warning("No table had rows; workbook not written", extra={"step": "export", "phase": "skipped"})
        return None, []

    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        wb.save(path)
    except OSError as e:
        raise ExportError(f"Failed to write workbook {path}: {e}") from e
    return path, written
