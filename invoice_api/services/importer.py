# =========================================================
# INVOICE IMPORT PIPELINE
#
# clean -> validate -> group -> dedupe -> persist -> result
#
# Row level problems are returned as data in ImportResult.errors.
# Only storage failures end the whole call, and then nothing
# is committed.
# =========================================================

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from invoice_api.models.invoices import PaymentType
from invoice_api.schemas.imports import (
    ImportResult,
    InvoiceImportError,
    InvoiceImportRow,
    ProductImportRow,
)
from invoice_api.services.validation import (
    RowValidationError,
    validate_invoice_row,
    validate_product_row,
)

logger = logging.getLogger(__name__)


# Imported invoices are always recorded as cash sales, whatever the sheet says
IMPORTED_PAYMENT_TYPE = PaymentType.CASH

SYSTEM_INVOICE_NO = "System"

ALREADY_EXISTS = "Invoice number already exists"
DUPLICATE_IN_FILE = "Duplicate invoice number in import file"
INVALID_PRODUCTS = "Invoice skipped because one or more products are invalid"
NO_PRODUCTS = "Invoice has no valid products"


def clean_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Drop blank cells so optional fields read as absent rather than empty.

    Whitespace-only text counts as blank.
    """
    return {
        field: value
        for field, value in row.items()
        if value is not None and not (isinstance(value, str) and not value.strip())
    }


def group_products_by_invoice(rows: Iterable) -> dict[str, list]:
    groups: dict[str, list] = {}

    for row in rows:
        invoice_no = row["invoice_no"] if isinstance(row, Mapping) else row.invoice_no
        groups.setdefault(invoice_no, []).append(row)

    return groups


def find_existing_invoice_numbers(repository, invoice_numbers: Iterable[str]) -> set[str]:
    numbers = set(invoice_numbers)
    if not numbers:
        return set()
    return repository.find_invoice_numbers_in(numbers)


def system_failure(message: str) -> ImportResult:
    return ImportResult(
        success=False,
        message="Import failed",
        errors=[InvoiceImportError(invoice_no=SYSTEM_INVOICE_NO, errors=[message])],
        imported_count=0,
    )


def is_system_failure(result: ImportResult) -> bool:
    return bool(result.errors) and result.errors[0].invoice_no == SYSTEM_INVOICE_NO


class _ErrorLog:
    """Errors grouped per invoice number, in the order they were first seen."""

    def __init__(self):
        self._errors: dict[str, list[str]] = {}

    def add(self, invoice_no: str, *messages: str):
        self._errors.setdefault(invoice_no, []).extend(messages)

    def __bool__(self):
        return bool(self._errors)

    def __len__(self):
        return len(self._errors)

    def as_list(self) -> list[InvoiceImportError]:
        return [
            InvoiceImportError(invoice_no=invoice_no, errors=messages)
            for invoice_no, messages in self._errors.items()
        ]


class InvoiceImporter:
    def __init__(self, repository):
        self.repository = repository

    def import_rows(
        self,
        invoice_rows: Sequence[Mapping[str, Any]],
        product_rows: Sequence[Mapping[str, Any]],
    ) -> ImportResult:
        logger.info(
            f"Import started: {len(invoice_rows)} invoice rows, "
            f"{len(product_rows)} product rows"
        )

        errors = _ErrorLog()

        try:
            invoices = self._validate_invoices(invoice_rows, errors)
            products, failed_invoice_nos = self._validate_products(product_rows, errors)

            groups = group_products_by_invoice(products)
            self._discard_orphans(groups, invoices, errors)

            # One transaction per call: nothing is committed unless every
            # storage step below succeeds.
            with self.repository.transaction():
                existing = find_existing_invoice_numbers(self.repository, invoices.keys())

                candidates = []
                for invoice_no, invoice in invoices.items():
                    if invoice_no in existing:
                        errors.add(invoice_no, ALREADY_EXISTS)
                    elif invoice_no in failed_invoice_nos:
                        errors.add(invoice_no, INVALID_PRODUCTS)
                    elif not groups.get(invoice_no):
                        errors.add(invoice_no, NO_PRODUCTS)
                    else:
                        candidates.append((invoice, groups[invoice_no]))

                imported_count = self._persist(candidates, errors)

        except SQLAlchemyError as exc:
            logger.exception("Import aborted by a storage failure")
            # The exception text carries SQL and bound values; it stays in the log
            return system_failure(f"Storage error: {exc.__class__.__name__}")

        logger.info(
            f"Import finished: {imported_count} imported, "
            f"{len(errors)} invoice(s) with errors"
        )

        if errors:
            message = f"Imported {imported_count} invoice(s); {len(errors)} invoice(s) failed"
        else:
            message = f"Imported {imported_count} invoice(s)"

        return ImportResult(
            success=not errors,
            message=message,
            errors=errors.as_list() or None,
            imported_count=imported_count,
        )

    # =========================================================
    # STEPS
    # =========================================================
    def _validate_invoices(self, rows, errors: _ErrorLog) -> dict[str, InvoiceImportRow]:
        invoices: dict[str, InvoiceImportRow] = {}

        for index, raw_row in enumerate(rows, start=1):
            row = clean_row(raw_row)

            try:
                invoice = validate_invoice_row(row)
            except RowValidationError as exc:
                key = str(row.get("invoice_no", "")).strip() or f"Invoices row {index}"
                errors.add(key, *exc.messages)
                continue

            if invoice.invoice_no in invoices:
                errors.add(invoice.invoice_no, f"Invoices row {index}: {DUPLICATE_IN_FILE}")
                continue

            invoices[invoice.invoice_no] = invoice

        return invoices

    def _validate_products(self, rows, errors: _ErrorLog):
        products: list[ProductImportRow] = []
        failed_invoice_nos: set[str] = set()

        for index, raw_row in enumerate(rows, start=1):
            row = clean_row(raw_row)

            try:
                products.append(validate_product_row(row))
            except RowValidationError as exc:
                key = str(row.get("invoice_no", "")).strip() or f"Products row {index}"
                errors.add(key, *(f"Product row {index}: {message}" for message in exc.messages))
                failed_invoice_nos.add(key)

        return products, failed_invoice_nos

    def _discard_orphans(self, groups: dict, invoices: dict, errors: _ErrorLog):
        for invoice_no in [no for no in groups if no not in invoices]:
            orphaned = groups.pop(invoice_no)
            errors.add(
                invoice_no,
                f"Invoice row missing or invalid; discarded {len(orphaned)} product row(s)",
            )

    def _persist(self, candidates, errors: _ErrorLog) -> int:
        created = 0

        for invoice, products in candidates:
            # Another writer may have claimed the number since the bulk check
            if self.repository.find_invoice_by_number(invoice.invoice_no) is not None:
                logger.warning(f"Invoice {invoice.invoice_no} was created concurrently; skipped")
                errors.add(invoice.invoice_no, ALREADY_EXISTS)
                continue

            invoice_fields = {
                "invoice_no": invoice.invoice_no,
                "customer_name": invoice.customer_name,
                "salesperson": invoice.salesperson,
                "payment_type": IMPORTED_PAYMENT_TYPE,
                "notes": invoice.notes,
            }
            product_fields = [
                {
                    "name": product.item,
                    "qty": product.quantity,
                    "total_cogs": product.total_cogs,
                    "total_price": product.total_price,
                }
                for product in products
            ]

            try:
                with self.repository.savepoint():
                    self.repository.create_invoice_with_products(invoice_fields, product_fields)
            except IntegrityError:
                # uq_invoice_no fired after the re-check; only this invoice is rolled back
                logger.warning(f"Invoice {invoice.invoice_no} hit the unique constraint; skipped")
                errors.add(invoice.invoice_no, ALREADY_EXISTS)
                continue

            created += 1

        return created
