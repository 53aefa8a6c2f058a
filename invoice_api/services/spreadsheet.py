# invoice_api/services/spreadsheet.py
#
# Reads the two sheet import workbook (invoices, line items) into plain
# row dicts, and writes the empty template users fill in.

from io import BytesIO
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from invoice_api.core.config import settings


INVOICE_COLUMNS = ["invoice_no", "customer_name", "salesperson", "payment_type", "notes"]
PRODUCT_COLUMNS = ["invoice_no", "item", "quantity", "total_cogs", "total_price"]


class SpreadsheetError(ValueError):
    """Raised when an uploaded workbook cannot be read."""


def _normalize_header(value) -> str:
    if value is None:
        return ""
    return "_".join(str(value).strip().lower().split())


def _find_sheet(workbook, name: str):
    wanted = name.strip().lower()
    for sheet in workbook.worksheets:
        if sheet.title.strip().lower() == wanted:
            return sheet
    raise SpreadsheetError(f"Sheet '{name}' not found in workbook")


def _sheet_rows(sheet) -> list[dict]:
    values = sheet.iter_rows(values_only=True)

    header_row = next(values, None)
    if header_row is None:
        return []

    headers = [_normalize_header(cell) for cell in header_row]
    rows = []

    for raw in values:
        row = {
            headers[i]: cell
            for i, cell in enumerate(raw)
            if i < len(headers) and headers[i] and cell is not None
        }
        if row:
            rows.append(row)

    return rows


def read_import_workbook(content: bytes) -> tuple[list[dict], list[dict]]:
    if not content:
        raise SpreadsheetError("Uploaded file is empty")

    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, OSError) as exc:
        raise SpreadsheetError("Uploaded file is not a readable .xlsx workbook") from exc

    try:
        invoice_rows = _sheet_rows(_find_sheet(workbook, settings.IMPORT_INVOICE_SHEET))
        product_rows = _sheet_rows(_find_sheet(workbook, settings.IMPORT_PRODUCT_SHEET))
    finally:
        workbook.close()

    return invoice_rows, product_rows


def build_import_template() -> BytesIO:
    workbook = Workbook()

    invoices = workbook.active
    invoices.title = settings.IMPORT_INVOICE_SHEET
    invoices.append(INVOICE_COLUMNS)

    products = workbook.create_sheet(title=settings.IMPORT_PRODUCT_SHEET)
    products.append(PRODUCT_COLUMNS)

    output = BytesIO()
    workbook.save(output)
    output.seek(0)

    return output
