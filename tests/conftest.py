"""
Pytest fixtures for the invoice API tests.

Provides an in-memory SQLite database, a session per test and a test client
wired to that session.
"""

import os

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

from invoice_api.database import Base, enable_sqlite_savepoints, get_db
from invoice_api.main import app
from invoice_api.models.invoices import Invoice, PaymentType
from invoice_api.models.invoice_products import InvoiceHasProduct
from invoice_api.models.products import Product


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.create_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Fresh session; every table is emptied afterwards."""
    session = TestingSessionLocal()

    yield session

    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db_session):
    def _make(name="Widget Large", qty=1, total_cogs="100.00", total_price="150.00"):
        product = Product(
            name=name,
            qty=qty,
            total_cogs=Decimal(total_cogs),
            total_price=Decimal(total_price),
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def make_invoice(db_session, make_product):
    def _make(invoice_no="INV-001", payment_type=PaymentType.CASH, products=None, **fields):
        invoice = Invoice(
            invoice_no=invoice_no,
            customer_name=fields.pop("customer_name", "John Doe"),
            salesperson=fields.pop("salesperson", "Jane Smith"),
            payment_type=payment_type,
            **fields,
        )
        for product in products if products is not None else [make_product()]:
            invoice.product_links.append(InvoiceHasProduct(product=product))
        db_session.add(invoice)
        db_session.commit()
        return invoice

    return _make


def build_workbook(invoice_rows, product_rows, invoice_sheet="Invoices", product_sheet="Products") -> bytes:
    """Serialise row dicts into a two sheet .xlsx, headers taken from the first row."""
    workbook = Workbook()

    sheets = [
        (workbook.active, invoice_sheet, invoice_rows),
        (workbook.create_sheet(), product_sheet, product_rows),
    ]

    for sheet, title, rows in sheets:
        sheet.title = title
        headers = list(rows[0].keys()) if rows else ["invoice_no"]
        sheet.append(headers)
        for row in rows:
            sheet.append([row.get(header) for header in headers])

    output = BytesIO()
    workbook.save(output)
    return output.getvalue()
