from invoice_api.models.products import Product
from invoice_api.models.invoices import Invoice, PaymentType
from invoice_api.models.invoice_products import InvoiceHasProduct

__all__ = ["Product", "Invoice", "PaymentType", "InvoiceHasProduct"]
