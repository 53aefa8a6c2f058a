# schemas/imports.py

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Spreadsheet cells arrive loosely typed: invoice numbers typed as 1001
# must still validate as text.
_ROW_CONFIG = ConfigDict(
    coerce_numbers_to_str=True,
    str_strip_whitespace=True,
)


class InvoiceImportRow(BaseModel):
    model_config = _ROW_CONFIG

    invoice_no: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=2)
    salesperson: str = Field(..., min_length=2)
    notes: Optional[str] = Field(None, min_length=5)


class ProductImportRow(BaseModel):
    model_config = _ROW_CONFIG

    invoice_no: str = Field(..., min_length=1)
    item: str = Field(..., min_length=5)
    quantity: int = Field(..., gt=0)
    # Same precision as the Numeric(12, 2) money columns
    total_cogs: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    total_price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class InvoiceImportError(BaseModel):
    invoice_no: str
    errors: List[str]


class ImportResult(BaseModel):
    success: bool
    message: str
    errors: Optional[List[InvoiceImportError]] = None
    imported_count: int = 0
