import json
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import case, func, insert, or_, select, update
from sqlalchemy.engine import Connection

from core.database import ConnectionPool
from core.exceptions import (AppError, ForbiddenError, InvalidTransitionError, NotFoundError,
                             PartialSuccessError, ValidationError)
from core.executor import execute
from core.transaction import TransactionCoordinator
from models.order_items import OrderItem
from models.orders import Order, OrderStatus, PaymentMethod, PaymentStatus
from models.products import Product
from models.users import User
from schemas.auth_schemas import Principal
from schemas.order_schemas import CartItem, ShippingAddress
from utils.logger import get_logger
from utils.order_number import generate_order_number

logger = get_logger(__name__)

orders = Order.__table__
order_items = OrderItem.__table__
products = Product.__table__
users = User.__table__

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _load_json(value, order_id, field):
    if not value or not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.warning(f"Could not parse {field} as JSON", extra={"order_id": order_id})
        return value


def _rehydrate(row: Dict[str, Any]) -> Dict[str, Any]:
    order = dict(row)
    order["shipping_address"] = _load_json(order.get("shipping_address"), order["id"], "shipping_address")
    order["payment_details"] = _load_json(order.get("payment_details"), order["id"], "payment_details")
    return order


class OrderService:
    """
    Order placement and lifecycle.

    Every write that touches more than one row goes through the transaction
    coordinator. Results are always re-read from the store after the write,
    on a fresh connection, never built from in-memory values.
    """

    def __init__(self, pool: ConnectionPool,
                 coordinator: Optional[TransactionCoordinator] = None,
                 order_number_factory: Callable[[], str] = generate_order_number):
        self.pool = pool
        self.coordinator = coordinator or TransactionCoordinator(pool)
        self.order_number_factory = order_number_factory

    # ------------------------------------------------------------------ #
    # placement
    # ------------------------------------------------------------------ #

    def place_order(self, user_id: int, cart_items: List[CartItem],
                    shipping_address: ShippingAddress, shipping_phone: str,
                    payment_method, notes: Optional[str] = None,
                    client_total: Optional[Decimal] = None) -> Dict[str, Any]:
        """
        Creates an order and its items as one unit of work.

        Flow:
        1. Validate the cart (no store contact)
        2. Recompute line totals and the order total server-side
        3. Insert the order row, then one row per item, in one transaction
        4. Read the committed order back on a fresh connection

        Raises:
            ValidationError: Bad cart, address, phone or payment method
            PersistenceError: A statement failed; nothing was written
            PartialSuccessError: The order was committed but could not be read back
        """
        if user_id is None:
            raise ValidationError("Order requires an authenticated user")

        lines = self._price_lines(cart_items)
        total_amount = sum((line["total"] for line in lines), Decimal("0.00"))
        method = self._validate_order(shipping_address, shipping_phone, payment_method, total_amount)

        if client_total is not None and _money(client_total) != total_amount:
            logger.warning(
                "Client total does not match recomputed total",
                extra={"user_id": user_id, "client_total": str(client_total),
                       "total_amount": str(total_amount)}
            )

        order_number = self.order_number_factory()
        order_values = {
            "order_number": order_number,
            "user_id": user_id,
            "total_amount": total_amount,
            "shipping_address": shipping_address.model_dump_json(),
            "phone": shipping_phone.strip(),
            "status": OrderStatus.PENDING.value,
            "payment_method": method.value,
            "payment_status": PaymentStatus.PENDING.value,
            "notes": notes or None,
        }

        def insert_order_and_items(conn: Connection) -> int:
            order_id = execute(self.pool, insert(orders).values(**order_values), connection=conn).inserted_id
            for line in lines:
                execute(self.pool, insert(order_items).values(order_id=order_id, **line), connection=conn)
            return order_id

        order_id = self.coordinator.run(insert_order_and_items)

        logger.info(
            "Order created",
            extra={"order_id": order_id, "order_number": order_number, "user_id": user_id,
                   "total_amount": str(total_amount), "items": len(lines)}
        )

        try:
            order = self._load_order(order_id)
        except AppError as exc:
            logger.error("Order committed but read-back failed",
                         extra={"order_id": order_id, "error": exc.message})
            raise PartialSuccessError(order_id, order_number) from exc

        if order is None:
            raise PartialSuccessError(order_id, order_number)
        return order

    def _price_lines(self, cart_items: List[CartItem]) -> List[Dict[str, Any]]:
        if not cart_items:
            raise ValidationError("No order items provided")

        lines = []
        for item in cart_items:
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError("Item quantity must be a positive integer")
            if item.price is None or item.price < 0:
                raise ValidationError("Item price must not be negative")

            price = _money(item.price)
            lines.append({
                "product_id": item.product_id,
                "quantity": item.quantity,
                "price": price,
                "total": _money(price * item.quantity),
            })
        return lines

    def _validate_order(self, shipping_address: Optional[ShippingAddress], shipping_phone: Optional[str],
                        payment_method, total_amount: Decimal) -> PaymentMethod:
        if shipping_address is None or not (shipping_address.street or "").strip():
            raise ValidationError("Shipping address must include a street line")
        if not (shipping_phone or "").strip():
            raise ValidationError("Shipping phone is required")
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"Unsupported payment method: {payment_method}")
        if total_amount <= 0:
            raise ValidationError("Order total must be positive")
        return method

    # ------------------------------------------------------------------ #
    # reads
    # ------------------------------------------------------------------ #

    def _fetch_order_row(self, order_id: int) -> Optional[Dict[str, Any]]:
        return execute(self.pool, select(orders).where(orders.c.id == order_id)).first()

    def _load_items(self, order_id: int) -> List[Dict[str, Any]]:
        return execute(
            self.pool,
            select(
                order_items,
                products.c.name.label("product_name"),
                products.c.image_url.label("product_image"),
                products.c.description.label("product_description"),
            )
            .select_from(order_items.outerjoin(products, order_items.c.product_id == products.c.id))
            .where(order_items.c.order_id == order_id)
            .order_by(order_items.c.id)
        ).rows

    def _load_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        row = self._fetch_order_row(order_id)
        if row is None:
            return None

        order = _rehydrate(row)
        order["order_items"] = self._load_items(order_id)
        return order

    def get_order_by_id(self, order_id: int, principal: Principal) -> Dict[str, Any]:
        """Owner or admin only."""
        row = self._fetch_order_row(order_id)
        if row is None:
            raise NotFoundError("Order not found")

        if row["user_id"] != principal.user_id and not principal.is_admin:
            logger.warning("Order access denied",
                           extra={"order_id": order_id, "user_id": principal.user_id})
            raise ForbiddenError("Not authorized to view this order")

        order = _rehydrate(row)
        order["order_items"] = self._load_items(order_id)
        return order

    def list_user_orders(self, user_id: int) -> List[Dict[str, Any]]:
        rows = execute(
            self.pool,
            select(orders).where(orders.c.user_id == user_id).order_by(orders.c.created_at.desc(), orders.c.id.desc())
        ).rows
        return [_rehydrate(row) for row in rows]

    def list_orders(self, principal: Principal) -> List[Dict[str, Any]]:
        """All orders with owner fields. Admin only."""
        if not principal.is_admin:
            raise ForbiddenError("Not authorized as an admin")

        rows = execute(
            self.pool,
            select(
                orders,
                users.c.email.label("user_email"),
                users.c.first_name.label("user_first_name"),
                users.c.last_name.label("user_last_name"),
            )
            .select_from(orders.join(users, orders.c.user_id == users.c.id))
            .order_by(orders.c.created_at.desc(), orders.c.id.desc())
        ).rows
        return [_rehydrate(row) for row in rows]

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    def mark_paid(self, order_id: int, user_id: int, payment_details: Dict[str, Any]) -> Dict[str, Any]:
        """
        pending -> paid. Owner only, not idempotent. Status becomes processing,
        unless a cash-on-delivery order was already delivered.

        The write is conditional on the order not being paid yet, so a
        concurrent duplicate call fails instead of overwriting the details.
        """
        row = self._fetch_order_row(order_id)
        if row is None:
            raise NotFoundError("Order not found")

        if row["user_id"] != user_id:
            logger.warning("Payment attempt on another user's order",
                           extra={"order_id": order_id, "user_id": user_id})
            raise ForbiddenError("Not authorized to update this order")

        if row["payment_status"] == PaymentStatus.PAID.value:
            logger.warning("Order already paid", extra={"order_id": order_id})
            raise InvalidTransitionError("Order already paid")

        details = {
            "payment_id": payment_details.get("payment_id"),
            "payer_email": payment_details.get("payer_email"),
            "paid_at": datetime.now(timezone.utc).isoformat(),
        }

        result = execute(
            self.pool,
            update(orders)
            .where(orders.c.id == order_id, orders.c.payment_status != PaymentStatus.PAID.value)
            .values(
                payment_status=PaymentStatus.PAID.value,
                # a delivered cash-on-delivery order stays delivered
                status=case(
                    (orders.c.status == OrderStatus.DELIVERED.value, orders.c.status),
                    else_=OrderStatus.PROCESSING.value
                ),
                payment_details=json.dumps(details),
                updated_at=func.now(),
            )
        )
        if result.rowcount == 0:
            raise InvalidTransitionError("Order already paid")

        logger.info("Order paid", extra={"order_id": order_id, "user_id": user_id})
        return _rehydrate(self._fetch_order_row(order_id))

    def mark_delivered(self, order_id: int, principal: Principal) -> Dict[str, Any]:
        """
        -> delivered. Admin only. The order must be paid, unless it is
        cash on delivery.
        """
        if not principal.is_admin:
            raise ForbiddenError("Not authorized as an admin")

        row = self._fetch_order_row(order_id)
        if row is None:
            raise NotFoundError("Order not found")

        if row["status"] == OrderStatus.DELIVERED.value:
            raise InvalidTransitionError("Order already delivered")

        if (row["payment_status"] != PaymentStatus.PAID.value
                and row["payment_method"] != PaymentMethod.CASH_ON_DELIVERY.value):
            raise InvalidTransitionError(
                "Order must be paid or cash on delivery before setting to delivered"
            )

        result = execute(
            self.pool,
            update(orders)
            .where(
                orders.c.id == order_id,
                orders.c.status != OrderStatus.DELIVERED.value,
                or_(
                    orders.c.payment_status == PaymentStatus.PAID.value,
                    orders.c.payment_method == PaymentMethod.CASH_ON_DELIVERY.value,
                ),
            )
            .values(status=OrderStatus.DELIVERED.value, updated_at=func.now())
        )
        if result.rowcount == 0:
            raise InvalidTransitionError("Order already delivered")

        logger.info("Order delivered", extra={"order_id": order_id, "admin_id": principal.user_id})
        return _rehydrate(self._fetch_order_row(order_id))
