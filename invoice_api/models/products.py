# invoice_api/models/products.py

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from invoice_api.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    qty = Column(Integer, nullable=False)
    total_cogs = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

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

    invoice_links = relationship("InvoiceHasProduct", back_populates="product")

    __table_args__ = (
        CheckConstraint("qty >= 1", name="ck_product_qty_positive"),
        CheckConstraint("total_cogs > 0", name="ck_product_total_cogs_positive"),
        CheckConstraint("total_price > 0", name="ck_product_total_price_positive"),
    )
