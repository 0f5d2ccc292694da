# pos/models.py
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# Money amounts are whole rupiah; the shop never prices below one unit.


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Category(BaseModel):
    id: int
    name: str
    is_active: bool = True


class Supplier(BaseModel):
    id: int
    name: str
    is_active: bool = True


def _embedded_name(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("name")
    return None


class Product(BaseModel):
    id: int
    name: str
    sku: str
    barcode: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    buy_price: int = 0
    sell_price: int = 0
    stock: int = 0
    min_stock: int = 0
    is_active: bool = True
    image_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_embeds(cls, data: Any) -> Any:
        # rows selected with categories(name) / suppliers(name) carry nested objects
        if isinstance(data, dict) and ("categories" in data or "suppliers" in data):
            data = dict(data)
            if "categories" in data:
                data.setdefault("category_name", _embedded_name(data.pop("categories")))
            if "suppliers" in data:
                data.setdefault("supplier_name", _embedded_name(data.pop("suppliers")))
        return data

    @field_validator("buy_price", "sell_price", "stock", "min_stock", mode="before")
    @classmethod
    def _whole_amounts(cls, value: Any) -> Any:
        # rows written by other clients may carry null or fractional amounts
        if value is None:
            return 0
        if isinstance(value, float):
            return int(round(value))
        return value

    @property
    def status(self) -> ProductStatus:
        return ProductStatus.ACTIVE if self.is_active else ProductStatus.INACTIVE

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock


class ProductIn(BaseModel):
    name: str = Field(min_length=1)
    sku: str = Field(min_length=1)
    barcode: Optional[str] = None
    category_id: int
    supplier_id: Optional[int] = None
    buy_price: int = Field(default=0, ge=0)
    sell_price: int = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)
    min_stock: int = Field(default=0, ge=0)
    is_active: bool = True
    image_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data: Any) -> Any:
        # empty form inputs mean "not set"
        if isinstance(data, dict):
            data = dict(data)
            for key in ("barcode", "supplier_id", "image_url", "category_id"):
                if isinstance(data.get(key), str) and not data[key].strip():
                    data[key] = None
            for key in ("name", "sku"):
                if isinstance(data.get(key), str):
                    data[key] = data[key].strip()
        return data


class CartLine(BaseModel):
    product_id: int
    name: str
    sku: str
    sell_price: int
    stock: int  # ceiling when the line was added
    quantity: int = Field(default=1, ge=1)

    @classmethod
    def from_product(cls, product: Product) -> "CartLine":
        return cls(
            product_id=product.id,
            name=product.name,
            sku=product.sku,
            sell_price=product.sell_price,
            stock=product.stock,
            quantity=1,
        )

    @property
    def subtotal(self) -> int:
        return self.sell_price * self.quantity


class Notice(BaseModel):
    """User-facing message for a request the cart refused or adjusted."""
    product_id: Optional[int] = None
    message: str

    def __str__(self):
        return self.message


class PaymentInfo(BaseModel):
    method: str = "Tunai"
    amount: Optional[int] = Field(default=None, ge=0)
    change: Optional[int] = None
    customer_name: Optional[str] = None


class TransactionItem(BaseModel):
    id: Optional[int] = None
    transaction_id: int
    product_id: int
    quantity: int
    price: int
    subtotal: int


class Transaction(BaseModel):
    id: int
    transaction_code: str
    customer_name: str
    total_amount: int
    payment_method: str
    payment_amount: int
    change_amount: int
    discount_amount: int = 0
    status: str = "completed"
    created_at: Optional[str] = None
    items: List[TransactionItem] = Field(default_factory=list)


class DashboardStats(BaseModel):
    total_products: int = 0
    total_categories: int = 0
    low_stock: int = 0
    cart_items: int = 0
    low_stock_products: List[Product] = Field(default_factory=list)
