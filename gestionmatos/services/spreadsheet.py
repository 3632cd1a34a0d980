import io
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from gestionmatos.models import Material

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (header, attribute, column width)
MATERIAL_COLUMNS = [
    ("ID", "id", 8),
    ("Name", "name", 26),
    ("Category", "category", 16),
    ("Serial number", "serial_number", 18),
    ("Status", "status", 13),
    ("Location", "location", 16),
    ("Purchase date", "purchase_date", 14),
    ("Purchase price", "purchase_price", 14),
    ("QR code", "qr_code", 30),
    ("Updated at", "updated_at", 20),
]


def _cell(value):
    # Excel has no time zones: write UTC wall time
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, str):
        return value.strip()
    return value


def materials_workbook(materials: Iterable[Material]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Materials"

    ws.append([header for header, _, _ in MATERIAL_COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for m in materials:
        ws.append([_cell(getattr(m, attr)) for _, attr, _ in MATERIAL_COLUMNS])

    for idx, (_, _, width) in enumerate(MATERIAL_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width
    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
