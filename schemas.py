"""
Database Schemas for the Storefront

Each Pydantic model represents a MongoDB collection or an embedded document.
Collection name is the lowercase of the class name (OptionType is stored in
"optiontype").
"""
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

OrderStatus = Literal["Pending", "Processed", "Shipped", "Delivered", "Canceled"]
ShippingZone = Literal["inside", "outside"]
UserRole = Literal["admin", "user"]
NotificationType = Literal["new-order", "new-user", "low-stock"]


def new_variant_id() -> str:
    return str(uuid.uuid4())


class OptionValue(BaseModel):
    name: str
    color_code: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        # stored values are either bare names or {name, colorCode} objects
        if isinstance(data, str):
            return {"name": data}
        if isinstance(data, dict) and "colorCode" in data and "color_code" not in data:
            data = dict(data)
            data["color_code"] = data.pop("colorCode")
        return data


class OptionType(BaseModel):
    id: Optional[str] = None
    name: str
    values: List[OptionValue] = []


class Variant(BaseModel):
    id: str = Field(default_factory=new_variant_id)
    name: str = ""
    options: Dict[str, str] = {}
    price: float = 0
    original_price: Optional[float] = None
    stock: int = 0
    image_url: Optional[str] = None


class Product(BaseModel):
    id: Optional[str] = None
    name: str
    category: str = ""
    brand_id: Optional[str] = None
    description: str = ""
    image_urls: List[str] = []
    variants: List[Variant] = []
    rating: float = 0
    reviews: int = 0
    delivery_timescale: Optional[str] = None


class Brand(BaseModel):
    name: str
    logo_url: Optional[str] = None
    is_featured: bool = False


class CheckoutConfig(BaseModel):
    shipping_charge_inside_zone: float = Field(60, ge=0)
    shipping_charge_outside_zone: float = Field(120, ge=0)
    tax_amount: float = Field(4, ge=0)


class CartLine(BaseModel):
    product_id: str
    product_name: str
    product_image: str = ""
    variant: Variant
    quantity: int = Field(1, ge=1)


class OrderTotals(BaseModel):
    subtotal: float = 0
    shipping: float = 0
    tax: float = 0
    total: float = 0


class OrderItem(BaseModel):
    product_id: str
    product_name: str
    product_image: str = ""
    variant_name: str
    variant_price: float
    quantity: int


class Order(BaseModel):
    id: Optional[str] = None
    user_id: str
    customer_name: str
    date: str
    shipping_zone: ShippingZone = "inside"
    subtotal: float = 0
    shipping: float = 0
    tax: float = 0
    total: float
    status: OrderStatus = "Pending"
    items: List[OrderItem]


class Notification(BaseModel):
    id: str
    type: NotificationType
    message: str
    timestamp: float
    read: bool = False
