# invoice_api/services/validation.py
#
# Field level validation of spreadsheet rows. Pure: never touches storage.

from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import ValidationError

from invoice_api.schemas.imports import InvoiceImportRow, ProductImportRow


FIELD_LABELS = {
    "invoice_no": "Invoice number",
    "customer_name": "Customer name",
    "salesperson": "Salesperson name",
    "notes": "Notes",
    "item": "Item name",
    "quantity": "Quantity",
    "total_cogs": "Total COGS",
    "total_price": "Total price",
}

_INTEGER_ERRORS = {"int_type", "int_parsing", "int_from_float"}
_NUMBER_ERRORS = {"decimal_type", "decimal_parsing", "finite_number"}
_OVERSIZE_ERRORS = {"decimal_max_digits", "decimal_whole_digits", "less_than"}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class RowValidationError(ValueError):
    """Raised when a row breaks one or more field rules."""

    def __init__(self, errors: list[FieldError]):
        self.errors = errors
        super().__init__("; ".join(error.message for error in errors))

    @property
    def messages(self) -> list[str]:
        return [error.message for error in self.errors]


def _describe(error: dict[str, Any]) -> FieldError:
    field = str(error["loc"][0]) if error.get("loc") else "row"
    label = FIELD_LABELS.get(field, field)
    kind = error["type"]
    ctx = error.get("ctx") or {}

    if kind == "missing":
        message = f"{label} is required"
    elif kind == "string_too_short":
        if ctx.get("min_length") == 1:
            message = f"{label} is required"
        else:
            message = f"{label} must be at least {ctx.get('min_length')} characters"
    elif kind == "string_type":
        message = f"{label} must be text"
    elif kind in ("greater_than", "greater_than_equal"):
        message = f"{label} must be positive"
    elif kind in _INTEGER_ERRORS:
        message = f"{label} must be an integer"
    elif kind in _NUMBER_ERRORS:
        message = f"{label} must be a number"
    elif kind == "decimal_max_places":
        message = f"{label} must have at most {ctx.get('decimal_places')} decimal places"
    elif kind in _OVERSIZE_ERRORS:
        message = f"{label} is too large"
    else:
        message = f"{label}: {error['msg']}"

    return FieldError(field=field, message=message)


def _validate(schema, row: Mapping[str, Any]):
    try:
        return schema.model_validate(dict(row))
    except ValidationError as exc:
        raise RowValidationError([_describe(error) for error in exc.errors()]) from exc


def validate_invoice_row(row: Mapping[str, Any]) -> InvoiceImportRow:
    return _validate(InvoiceImportRow, row)


def validate_product_row(row: Mapping[str, Any]) -> ProductImportRow:
    return _validate(ProductImportRow, row)
