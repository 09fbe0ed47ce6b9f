"""Catalog data read when pricing orders."""

from decimal import Decimal

from pydantic import BaseModel, Field


class MenuItem(BaseModel):
    """Current catalog entry for a menu item."""

    item_id: str
    name: str
    category: str = "other"
    price: Decimal = Field(ge=0)
    is_available: bool = True
    preparation_minutes: int = Field(default=10, ge=0)
