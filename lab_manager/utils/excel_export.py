from io import BytesIO
from datetime import datetime
from typing import Iterable, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from lab_manager.models.timetable import Timetable
from lab_manager.utils.timeslots import DAY_NAMES, parse_time_range

TIMETABLE_COLUMNS = ("Day", "Start", "End", "Minutes", "Lab")


def timetable_to_xlsx_bytes(slots: Iterable[Tuple[Timetable, str]], sheet_name: str = "Timetable") -> bytes:
    """
    slots: (Timetable, lab name) pairs, already in day/start order.
    One sheet named after the class, header row frozen.
    """
    wb = Workbook()
    ws = wb.active
    # excel caps sheet titles at 31 chars
    ws.title = sheet_name[:31]

    ws.append(TIMETABLE_COLUMNS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center", vertical="center")
    ws.freeze_panes = "A2"

    for t, lab_name in slots:
        start, end = parse_time_range(t.start_time, t.end_time)
        ws.append([DAY_NAMES[t.day_of_week], t.start_time, t.end_time, end - start, lab_name])

    _autosize(ws)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _autosize(ws: Worksheet):
    for col_idx, column in enumerate(ws.iter_cols(values_only=True), start=1):
        width = max(len(str(v)) for v in column if v is not None)
        ws.column_dimensions[get_column_letter(col_idx)].width = min(width + 2, 60)


def make_filename(class_name: str) -> str:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"timetable_{class_name.replace(' ', '_')}_{ts}.xlsx"
