from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from models.orders import OrderStatus, PaymentMethod, PaymentStatus


class ShippingAddress(BaseModel):
    # older clients send the street line as "address"
    street: Optional[str] = Field(default=None, validation_alias=AliasChoices("street", "address"))
    city: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("postal_code", "postalCode"))
    country: Optional[str] = None


class CartItem(BaseModel):
    product_id: int = Field(validation_alias=AliasChoices("product_id", "productId"))
    quantity: int = Field(validation_alias=AliasChoices("quantity", "qty"))
    price: Decimal
    # Accepted for compatibility, never trusted: line totals are recomputed.
    total: Optional[Decimal] = None


class CreateOrderRequest(BaseModel):
    order_items: list[CartItem] = Field(default_factory=list, validation_alias=AliasChoices("order_items", "orderItems"))
    shipping_address: ShippingAddress = Field(validation_alias=AliasChoices("shipping_address", "shippingAddress"))
    shipping_phone: str = Field(validation_alias=AliasChoices("shipping_phone", "shippingPhone"))
    payment_method: PaymentMethod = Field(validation_alias=AliasChoices("payment_method", "paymentMethod"))
    # Client-side total, compared with the recomputed one for logging only.
    total_amount: Optional[Decimal] = Field(default=None, validation_alias=AliasChoices("total_amount", "totalAmount"))
    notes: Optional[str] = None


class MarkPaidRequest(BaseModel):
    payment_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("payment_id", "paymentId"))
    payer_email: Optional[str] = Field(default=None, validation_alias=AliasChoices("payer_email", "payerEmail"))


class OrderItemResponse(BaseModel):
    id: int
    order_id: int
    product_id: int
    quantity: int
    price: Decimal
    total: Decimal
    product_name: Optional[str] = None
    product_image: Optional[str] = None
    product_description: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: int
    order_number: str
    user_id: int
    total_amount: Decimal
    shipping_address: Union[dict[str, Any], str, None]
    phone: str
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    payment_details: Union[dict[str, Any], str, None] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    order_items: list[OrderItemResponse] = []


class AdminOrderResponse(OrderResponse):
    user_email: Optional[str] = None
    user_first_name: Optional[str] = None
    user_last_name: Optional[str] = None
