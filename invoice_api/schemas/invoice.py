# schemas/invoice.py

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from invoice_api.models.invoices import PaymentType
from invoice_api.schemas.product import ProductResponse


class InvoiceProductRef(BaseModel):
    product_id: int = Field(..., gt=0)


class InvoiceCreate(BaseModel):
    invoice_no: str = Field(..., min_length=3)
    customer_name: str = Field(..., min_length=2)
    salesperson: str = Field(..., min_length=2)
    payment_type: PaymentType
    notes: Optional[str] = Field(None, min_length=5)
    invoice_date: Optional[datetime] = None
    products: List[InvoiceProductRef] = Field(..., min_length=1)


class InvoiceUpdate(BaseModel):
    invoice_no: str = Field(..., min_length=3)
    customer_name: str = Field(..., min_length=2)
    salesperson: str = Field(..., min_length=2)
    payment_type: PaymentType
    notes: Optional[str] = Field(None, min_length=5)
    invoice_date: Optional[datetime] = None
    products: Optional[List[InvoiceProductRef]] = None


class InvoiceResponse(BaseModel):
    id: int
    invoice_no: str
    invoice_date: datetime
    customer_name: str
    salesperson: str
    payment_type: PaymentType
    notes: Optional[str]
    products: List[ProductResponse]

    class Config:
        from_attributes = True


class InvoiceSummary(BaseModel):
    total_profit: Decimal
    total_cash_transactions: int


class InvoiceDetailSummary(BaseModel):
    total_profit: Decimal
    is_cash_transaction: bool


class InvoiceDetailResponse(InvoiceResponse):
    summary: InvoiceDetailSummary


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class PaginatedInvoicesResponse(BaseModel):
    data: List[InvoiceResponse]
    meta: PaginationMeta
    summary: InvoiceSummary
