from decimal import Decimal
from pydantic import BaseModel, Field
from datetime import datetime


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=5)

    qty: int = Field(..., ge=1)

    total_cogs: Decimal = Field(
        ...,
        gt=0,
        lt=10_000_000_000,
        max_digits=12,
        decimal_places=2,
        description="Total cost of goods sold for this line"
    )

    total_price: Decimal = Field(
        ...,
        gt=0,
        lt=10_000_000_000,
        max_digits=12,
        decimal_places=2,
        description="Total selling price for this line"
    )


# Products are only ever replaced as a whole
class ProductUpdate(ProductCreate):
    pass


class ProductResponse(BaseModel):
    id: int
    name: str
    qty: int
    total_cogs: Decimal
    total_price: Decimal
    created_at: datetime

    class Config:
        from_attributes = True
