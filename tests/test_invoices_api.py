from datetime import datetime
from decimal import Decimal

from invoice_api.models.invoices import Invoice, PaymentType
from invoice_api.models.invoice_products import InvoiceHasProduct
from invoice_api.models.products import Product

from conftest import build_workbook


XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def invoice_payload(product_ids, **overrides):
    payload = {
        "invoice_no": "INV-100",
        "customer_name": "John Doe",
        "salesperson": "Jane Smith",
        "payment_type": "CREDIT",
        "notes": "Net 30 terms",
        "products": [{"product_id": product_id} for product_id in product_ids],
    }
    payload.update(overrides)
    return payload


def upload(client, content):
    return client.post("/invoices/import", files={"file": ("invoices.xlsx", content, XLSX)})


# ---------------- CREATE ----------------

def test_create_invoice_links_existing_products(client, db_session, make_product):
    chair = make_product(name="Office chair")
    lamp = make_product(name="Desk lamp")
    chair_id, lamp_id = chair.id, lamp.id

    response = client.post("/invoices", json=invoice_payload([chair_id, lamp_id]))

    assert response.status_code == 201
    body = response.json()
    assert body["invoice_no"] == "INV-100"
    assert body["payment_type"] == "CREDIT"
    assert [product["id"] for product in body["products"]] == [chair_id, lamp_id]

    # linked, not copied
    assert db_session.query(Product).count() == 2
    assert db_session.query(InvoiceHasProduct).count() == 2


def test_create_invoice_rejects_duplicate_number(client, make_product, make_invoice):
    make_invoice("INV-100")
    product_id = make_product().id

    response = client.post("/invoices", json=invoice_payload([product_id]))

    assert response.status_code == 409
    assert response.json()["detail"] == "Invoice number must be unique"


def test_create_invoice_with_unknown_product(client, make_product):
    product_id = make_product().id

    response = client.post("/invoices", json=invoice_payload([product_id, 999]))

    assert response.status_code == 404
    assert "999" in response.json()["detail"]


def test_create_invoice_field_rules(client, make_product):
    product_id = make_product().id

    response = client.post(
        "/invoices",
        json=invoice_payload([product_id], invoice_no="I1", payment_type="BARTER", notes="hi"),
    )

    assert response.status_code == 422
    failed = {tuple(error["loc"])[-1] for error in response.json()["detail"]}
    assert failed == {"invoice_no", "payment_type", "notes"}


def test_create_invoice_requires_products(client):
    response = client.post("/invoices", json=invoice_payload([]))

    assert response.status_code == 422


# ---------------- READ ----------------

def test_get_invoice_includes_summary(client, make_product, make_invoice):
    invoice = make_invoice(
        "INV-200",
        payment_type=PaymentType.CASH,
        products=[
            make_product(total_cogs="100", total_price="150", qty=7),
            make_product(total_cogs="20", total_price="25"),
        ],
    )

    response = client.get(f"/invoices/{invoice.id}")

    assert response.status_code == 200
    body = response.json()
    assert len(body["products"]) == 2
    assert Decimal(str(body["summary"]["total_profit"])) == Decimal("55")
    assert body["summary"]["is_cash_transaction"] is True


def test_get_unknown_invoice(client):
    assert client.get("/invoices/12345").status_code == 404


def test_list_invoices_paginates_and_summarises_all_matches(client, make_product, make_invoice):
    make_invoice("INV-1", payment_type=PaymentType.CASH, products=[make_product(total_cogs="10", total_price="15")])
    make_invoice("INV-2", payment_type=PaymentType.CREDIT, products=[make_product(total_cogs="10", total_price="30")])
    make_invoice("INV-3", payment_type=PaymentType.CASH, products=[make_product(total_cogs="10", total_price="40")])

    response = client.get("/invoices", params={"page": 1, "limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert [invoice["invoice_no"] for invoice in body["data"]] == ["INV-3", "INV-2"]
    assert body["meta"] == {
        "total": 3,
        "page": 1,
        "limit": 2,
        "total_pages": 2,
        "has_next_page": True,
        "has_prev_page": False,
    }
    assert Decimal(str(body["summary"]["total_profit"])) == Decimal("55")
    assert body["summary"]["total_cash_transactions"] == 2

    second_page = client.get("/invoices", params={"page": 2, "limit": 2}).json()
    assert [invoice["invoice_no"] for invoice in second_page["data"]] == ["INV-1"]
    assert second_page["meta"]["has_prev_page"] is True
    assert second_page["meta"]["has_next_page"] is False


def test_list_invoices_filters_by_day(client, make_product, make_invoice):
    make_invoice("INV-MAY", invoice_date=datetime(2024, 5, 1, 10, 30))
    make_invoice("INV-JUNE", invoice_date=datetime(2024, 6, 1, 9, 0))

    body = client.get("/invoices", params={"date": "2024-05-01"}).json()

    assert [invoice["invoice_no"] for invoice in body["data"]] == ["INV-MAY"]
    assert body["meta"]["total"] == 1
    assert Decimal(str(body["summary"]["total_profit"])) == Decimal("50")


def test_list_invoices_when_empty(client):
    body = client.get("/invoices").json()

    assert body["data"] == []
    assert body["meta"]["total_pages"] == 0
    assert body["summary"]["total_cash_transactions"] == 0


# ---------------- UPDATE ----------------

def test_update_recreates_product_links(client, db_session, make_product, make_invoice):
    old_product = make_product(name="Old product")
    new_product = make_product(name="New product")
    invoice = make_invoice("INV-300", products=[old_product])
    invoice_id, old_id, new_id = invoice.id, old_product.id, new_product.id

    response = client.put(
        f"/invoices/{invoice_id}",
        json=invoice_payload([new_id], invoice_no="INV-300", customer_name="Mary Major"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["customer_name"] == "Mary Major"
    assert [product["id"] for product in body["products"]] == [new_id]

    links = db_session.query(InvoiceHasProduct).all()
    assert [(link.invoice_id, link.product_id) for link in links] == [(invoice_id, new_id)]
    assert db_session.get(Product, old_id) is not None


def test_update_without_products_keeps_current_products(client, make_product, make_invoice):
    product = make_product()
    invoice = make_invoice("INV-301", products=[product])
    invoice_id, product_id = invoice.id, product.id

    payload = invoice_payload([], invoice_no="INV-301")
    del payload["products"]

    response = client.put(f"/invoices/{invoice_id}", json=payload)

    assert response.status_code == 200
    assert [p["id"] for p in response.json()["products"]] == [product_id]


def test_update_cannot_take_another_invoices_number(client, make_invoice):
    make_invoice("INV-400")
    invoice_id = make_invoice("INV-401").id

    payload = invoice_payload([], invoice_no="INV-400")
    del payload["products"]

    response = client.put(f"/invoices/{invoice_id}", json=payload)

    assert response.status_code == 409


# ---------------- DELETE ----------------

def test_delete_removes_links_then_invoice(client, db_session, make_product, make_invoice):
    product = make_product()
    invoice = make_invoice("INV-500", products=[product])
    invoice_id = invoice.id

    response = client.delete(f"/invoices/{invoice_id}")

    assert response.status_code == 200
    assert response.json()["invoice_no"] == "INV-500"
    assert db_session.query(Invoice).count() == 0
    assert db_session.query(InvoiceHasProduct).count() == 0
    assert db_session.query(Product).count() == 1


def test_delete_unknown_invoice(client):
    assert client.delete("/invoices/777").status_code == 404


# ---------------- IMPORT ----------------

def test_import_spreadsheet(client, db_session):
    content = build_workbook(
        [
            {"invoice_no": "INV-1", "customer_name": "John Doe", "salesperson": "Jane Smith", "payment_type": "CREDIT"},
            {"invoice_no": "INV-2", "customer_name": "J", "salesperson": "Jane Smith", "payment_type": "CASH"},
        ],
        [
            {"invoice_no": "INV-1", "item": "Office chair", "quantity": 2, "total_cogs": 100, "total_price": 150},
            {"invoice_no": "INV-2", "item": "Desk lamp", "quantity": 1, "total_cogs": 10, "total_price": 20},
        ],
    )

    response = upload(client, content)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["imported_count"] == 1
    assert [error["invoice_no"] for error in body["errors"]] == ["INV-2"]

    imported = db_session.query(Invoice).one()
    assert imported.invoice_no == "INV-1"
    assert imported.payment_type == PaymentType.CASH


def test_reimporting_same_file_imports_nothing(client):
    content = build_workbook(
        [{"invoice_no": "INV-1", "customer_name": "John Doe", "salesperson": "Jane Smith"}],
        [{"invoice_no": "INV-1", "item": "Office chair", "quantity": 2, "total_cogs": 100, "total_price": 150}],
    )

    first = upload(client, content).json()
    second = upload(client, content).json()

    assert first["success"] is True
    assert first["imported_count"] == 1
    assert second["imported_count"] == 0
    assert second["errors"] == [{"invoice_no": "INV-1", "errors": ["Invoice number already exists"]}]


def test_unreadable_upload_returns_system_error(client):
    response = upload(client, b"not a spreadsheet")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["errors"][0]["invoice_no"] == "System"


def test_download_import_template(client):
    response = client.get("/invoices/import/template")

    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX
    assert response.content[:2] == b"PK"
