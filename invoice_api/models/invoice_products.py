# invoice_api/models/invoice_products.py

from sqlalchemy import Column, ForeignKey, Integer
from sqlalchemy.orm import relationship

from invoice_api.database import Base


class InvoiceHasProduct(Base):
    __tablename__ = "invoice_has_products"

    id = Column(Integer, primary_key=True, index=True)

    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    invoice = relationship("Invoice", back_populates="product_links")
    product = relationship("Product", back_populates="invoice_links")
