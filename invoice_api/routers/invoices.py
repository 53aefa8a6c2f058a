# =========================================================
# INVOICES ROUTER
#
# CRUD over invoices plus the spreadsheet import.
#
# Reads always carry a freshly computed profit summary:
# - list: summary over every invoice matching the filter
# - detail: summary for that single invoice
# =========================================================

import math
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from invoice_api.core.config import settings
from invoice_api.core.rate_limiter import limiter
from invoice_api.database import get_db
from invoice_api.models.invoices import Invoice
from invoice_api.models.invoice_products import InvoiceHasProduct
from invoice_api.models.products import Product
from invoice_api.schemas.imports import ImportResult
from invoice_api.schemas.invoice import (
    InvoiceCreate,
    InvoiceDetailResponse,
    InvoiceResponse,
    InvoiceUpdate,
    PaginatedInvoicesResponse,
    PaginationMeta,
)
from invoice_api.services.importer import InvoiceImporter, is_system_failure, system_failure
from invoice_api.services.spreadsheet import SpreadsheetError, build_import_template, read_import_workbook
from invoice_api.services.storage import InvoiceRepository
from invoice_api.services.summary import summarize_batch, summarize_one

router = APIRouter(prefix="/invoices", tags=["Invoices"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# =========================================================
# HELPERS
# =========================================================
def _with_products(query):
    return query.options(
        joinedload(Invoice.product_links).joinedload(InvoiceHasProduct.product)
    )


def _get_invoice_or_404(db: Session, invoice_id: int) -> Invoice:
    invoice = (
        _with_products(db.query(Invoice))
        .filter(Invoice.id == invoice_id)
        .first()
    )

    if not invoice:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found",
        )

    return invoice


def _ensure_invoice_no_available(db: Session, invoice_no: str, exclude_id: Optional[int] = None):
    existing = InvoiceRepository(db).find_invoice_by_number(invoice_no)

    if existing and existing.id != exclude_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invoice number must be unique",
        )


def _load_products(db: Session, product_ids: list[int]) -> list[Product]:
    found = {
        product.id: product
        for product in db.query(Product).filter(Product.id.in_(set(product_ids))).all()
    }

    missing = sorted(set(product_ids) - found.keys())
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product(s) not found: {', '.join(str(i) for i in missing)}",
        )

    return [found[product_id] for product_id in product_ids]


def _save(db: Session):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invoice number must be unique",
        )
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(status_code=500, detail="Unable to save invoice")


# =========================================================
# LIST INVOICES (PAGINATED + SUMMARY)
# =========================================================
@router.get("", response_model=PaginatedInvoicesResponse)
def list_invoices(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    invoice_date: Optional[date] = Query(None, alias="date"),
):
    query = db.query(Invoice)

    if invoice_date:
        day_start = datetime.combine(invoice_date, datetime.min.time())
        query = query.filter(
            Invoice.invoice_date >= day_start,
            Invoice.invoice_date < day_start + timedelta(days=1),
        )

    total = query.count()

    invoices = (
        _with_products(query)
        .order_by(Invoice.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    summary = summarize_batch(_with_products(query).all())

    total_pages = math.ceil(total / limit)

    return PaginatedInvoicesResponse(
        data=[InvoiceResponse.model_validate(invoice) for invoice in invoices],
        meta=PaginationMeta(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
        summary=summary,
    )


# =========================================================
# IMPORT (must be declared before /{invoice_id})
# =========================================================
@router.get("/import/template")
def download_import_template():
    return StreamingResponse(
        build_import_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="invoice_import_template.xlsx"'},
    )


@router.post("/import", response_model=ImportResult)
@limiter.limit(settings.IMPORT_RATE_LIMIT)
def import_invoices(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    content = file.file.read(settings.IMPORT_MAX_FILE_BYTES + 1)

    if len(content) > settings.IMPORT_MAX_FILE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Import file is too large",
        )

    try:
        invoice_rows, product_rows = read_import_workbook(content)
    except SpreadsheetError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=system_failure(str(exc)).model_dump(),
        )

    result = InvoiceImporter(InvoiceRepository(db)).import_rows(invoice_rows, product_rows)

    if is_system_failure(result):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.model_dump(),
        )

    return result


# =========================================================
# SINGLE INVOICE
# =========================================================
@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    invoice = _get_invoice_or_404(db, invoice_id)

    return InvoiceDetailResponse(
        **InvoiceResponse.model_validate(invoice).model_dump(),
        summary=summarize_one(invoice),
    )


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(invoice_data: InvoiceCreate, db: Session = Depends(get_db)):
    # Field rules already ran in the schema; uniqueness is a separate storage check
    _ensure_invoice_no_available(db, invoice_data.invoice_no)

    products = _load_products(db, [ref.product_id for ref in invoice_data.products])

    fields = invoice_data.model_dump(exclude={"products", "invoice_date"})
    if invoice_data.invoice_date is not None:
        fields["invoice_date"] = invoice_data.invoice_date

    invoice = Invoice(**fields)
    for product in products:
        invoice.product_links.append(InvoiceHasProduct(product=product))

    db.add(invoice)
    _save(db)
    db.refresh(invoice)

    return invoice


@router.put("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    invoice_id: int,
    invoice_data: InvoiceUpdate,
    db: Session = Depends(get_db),
):
    invoice = _get_invoice_or_404(db, invoice_id)

    _ensure_invoice_no_available(db, invoice_data.invoice_no, exclude_id=invoice.id)

    if invoice_data.products is not None:
        product_ids = [ref.product_id for ref in invoice_data.products]
    else:
        product_ids = [link.product_id for link in invoice.product_links]

    products = _load_products(db, product_ids)

    # Links are never diffed: drop them all, then recreate
    invoice.product_links.clear()
    db.flush()

    invoice.invoice_no = invoice_data.invoice_no
    invoice.customer_name = invoice_data.customer_name
    invoice.salesperson = invoice_data.salesperson
    invoice.payment_type = invoice_data.payment_type
    invoice.notes = invoice_data.notes
    if invoice_data.invoice_date is not None:
        invoice.invoice_date = invoice_data.invoice_date

    for product in products:
        invoice.product_links.append(InvoiceHasProduct(product=product))

    _save(db)
    db.refresh(invoice)

    return invoice


@router.delete("/{invoice_id}", response_model=InvoiceResponse)
def delete_invoice(invoice_id: int, db: Session = Depends(get_db)):
    invoice = _get_invoice_or_404(db, invoice_id)
    deleted = InvoiceResponse.model_validate(invoice)

    # Links go first, then the invoice itself
    invoice.product_links.clear()
    db.flush()

    db.delete(invoice)
    _save(db)

    return deleted
