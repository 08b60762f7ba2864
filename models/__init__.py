from models.users import User
from models.products import Product
from models.orders import Order, OrderStatus, PaymentMethod, PaymentStatus
from models.order_items import OrderItem

__all__ = ["User", "Product", "Order", "OrderItem", "OrderStatus", "PaymentMethod", "PaymentStatus"]
