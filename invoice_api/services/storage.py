# invoice_api/services/storage.py

from contextlib import contextmanager
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from invoice_api.models.invoices import Invoice
from invoice_api.models.invoice_products import InvoiceHasProduct
from invoice_api.models.products import Product


# Keeps IN (...) lists below SQLite's bound parameter limit
LOOKUP_CHUNK_SIZE = 500


class InvoiceRepository:
    """Storage operations the import pipeline and invoice routes rely on."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self):
        try:
            yield self
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    @contextmanager
    def savepoint(self):
        """Nested transaction; a failure inside rolls back only this block."""
        with self.db.begin_nested():
            yield self

    def find_invoice_by_number(self, invoice_no: str) -> Optional[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(Invoice.invoice_no == invoice_no)
            .first()
        )

    def find_invoice_numbers_in(self, invoice_numbers: Iterable[str]) -> set[str]:
        numbers = list(dict.fromkeys(invoice_numbers))
        existing = set()

        for start in range(0, len(numbers), LOOKUP_CHUNK_SIZE):
            chunk = numbers[start:start + LOOKUP_CHUNK_SIZE]
            rows = (
                self.db.query(Invoice.invoice_no)
                .filter(Invoice.invoice_no.in_(chunk))
                .all()
            )
            existing.update(row.invoice_no for row in rows)

        return existing

    def create_invoice_with_products(self, invoice_fields: dict, products: list[dict]) -> Invoice:
        invoice = Invoice(**invoice_fields)

        for product_fields in products:
            invoice.product_links.append(
                InvoiceHasProduct(product=Product(**product_fields))
            )

        self.db.add(invoice)
        self.db.flush()

        return invoice
