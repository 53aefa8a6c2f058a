# =========================================================
# INVOICE SUMMARIES
#
# Profit per product row is total_price - total_cogs. Quantity
# is NOT a multiplier: totals on a product row already cover
# every unit on that row.
#
# Always recomputed on read, never stored.
# =========================================================

from decimal import Decimal
from typing import Iterable

from invoice_api.models.invoices import PaymentType
from invoice_api.schemas.invoice import InvoiceDetailSummary, InvoiceSummary


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def invoice_profit(invoice) -> Decimal:
    profit = Decimal("0.00")

    for product in invoice.products:
        profit += _to_decimal(product.total_price) - _to_decimal(product.total_cogs)

    return profit


def is_cash_transaction(invoice) -> bool:
    return invoice.payment_type == PaymentType.CASH


def summarize_batch(invoices: Iterable) -> InvoiceSummary:
    total_profit = Decimal("0.00")
    total_cash_transactions = 0

    for invoice in invoices:
        total_profit += invoice_profit(invoice)

        if is_cash_transaction(invoice):
            total_cash_transactions += 1

    return InvoiceSummary(
        total_profit=total_profit,
        total_cash_transactions=total_cash_transactions,
    )


def summarize_one(invoice) -> InvoiceDetailSummary:
    return InvoiceDetailSummary(
        total_profit=invoice_profit(invoice),
        is_cash_transaction=is_cash_transaction(invoice),
    )
