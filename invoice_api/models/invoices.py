# invoice_api/models/invoices.py

import enum

from sqlalchemy import Column, DateTime, Enum, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from invoice_api.database import Base


class PaymentType(str, enum.Enum):
    CASH = "CASH"
    CREDIT = "CREDIT"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)

    invoice_no = Column(String, nullable=False)
    invoice_date = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    customer_name = Column(String, nullable=False)
    salesperson = Column(String, nullable=False)
    payment_type = Column(Enum(PaymentType, name="payment_type"), nullable=False)
    notes = Column(String, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Invoice owns its link rows; products are only referenced
    product_links = relationship(
        "InvoiceHasProduct",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceHasProduct.id",
    )

    __table_args__ = (
        UniqueConstraint("invoice_no", name="uq_invoice_no"),
    )

    @property
    def products(self):
        return [link.product for link in self.product_links]
