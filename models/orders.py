import enum

from core.database import Base
from sqlalchemy.orm import relationship
from sqlalchemy import (Column, Integer, String, Text, ForeignKey, Numeric, Enum)
from .mixins import CreatedAtMixin, UpdatedAtMixin


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"


class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    PAYPAL = "paypal"
    STRIPE = "stripe"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


def _values(enum_cls):
    return [member.value for member in enum_cls]


class Order(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "orders"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order")

    order_number = Column(String(32), unique=True, nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    # JSON text: {"street", "city", "postal_code", "country"}
    shipping_address = Column(Text, nullable=False)
    phone = Column(String(32), nullable=False)
    status = Column(Enum(*_values(OrderStatus), name="order_status"),
                    default=OrderStatus.PENDING.value, nullable=False)
    payment_method = Column(Enum(*_values(PaymentMethod), name="payment_method"), nullable=False)
    payment_status = Column(Enum(*_values(PaymentStatus), name="payment_status"),
                            default=PaymentStatus.PENDING.value, nullable=False)
    # JSON text, set when the order is paid
    payment_details = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
