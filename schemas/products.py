"""Product catalog schemas."""

from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, field_serializer


class ProductCategory(str, Enum):
    """Fixed catalog categories."""
    LAPTOP = "laptop"
    PHONE = "phone"
    AUDIO = "audio"
    ACCESSORY = "accessory"


# Columns projected from the catalog for every product the assistant returns
PRODUCT_COLUMNS = ["id", "name", "price", "category", "brand", "image_url"]


class ProductSummary(BaseModel):
    """Read-only projection of a catalog product."""
    id: str
    name: str
    price: Decimal
    category: ProductCategory
    brand: Optional[str] = None
    image_url: Optional[str] = None

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)

    @classmethod
    def from_row(cls, row: dict) -> "ProductSummary":
        """Build a summary from a raw catalog row (extra columns ignored)."""
        return cls(
            id=str(row["id"]),
            name=row["name"],
            price=Decimal(str(row["price"])),
            category=row["category"],
            brand=row.get("brand"),
            image_url=row.get("image_url"),
        )
