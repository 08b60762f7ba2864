from fastapi import APIRouter, Request
from starlette import status
from schemas.order_schemas import (AdminOrderResponse, CreateOrderRequest, MarkPaidRequest,
                                   OrderResponse)
from utils.deps import order_service_dependency, user_dependency
from middleware.rate_limiter import limiter


router = APIRouter(
    prefix="/orders",
    tags=["orders"]
)

# Handlers are plain `def` and run on the threadpool. A client disconnect
# never interrupts a unit of work that is already open.


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=OrderResponse)
@limiter.limit("10/minute")
def create_order(request: Request, body: CreateOrderRequest, user: user_dependency,
                 service: order_service_dependency):
    """
    Place an order from the submitted cart.
    """
    return service.place_order(
        user_id=user.user_id,
        cart_items=body.order_items,
        shipping_address=body.shipping_address,
        shipping_phone=body.shipping_phone,
        payment_method=body.payment_method,
        notes=body.notes,
        client_total=body.total_amount,
    )


@router.get("/", status_code=status.HTTP_200_OK, response_model=list[AdminOrderResponse])
@limiter.limit("30/minute")
def get_orders(request: Request, user: user_dependency, service: order_service_dependency):
    """
    All orders, newest first (admin only).
    """
    return service.list_orders(user)


@router.get("/myorders", status_code=status.HTTP_200_OK, response_model=list[OrderResponse])
@limiter.limit("30/minute")
def get_my_orders(request: Request, user: user_dependency, service: order_service_dependency):
    return service.list_user_orders(user.user_id)


@router.get("/{order_id}", status_code=status.HTTP_200_OK, response_model=OrderResponse)
@limiter.limit("60/minute")
def get_order_by_id(request: Request, order_id: int, user: user_dependency,
                    service: order_service_dependency):
    """
    Order with its items (owner or admin).
    """
    return service.get_order_by_id(order_id, user)


@router.put("/{order_id}/pay", status_code=status.HTTP_200_OK, response_model=OrderResponse)
@limiter.limit("10/minute")
def update_order_to_paid(request: Request, order_id: int, body: MarkPaidRequest,
                         user: user_dependency, service: order_service_dependency):
    return service.mark_paid(order_id, user.user_id, body.model_dump())


@router.put("/{order_id}/deliver", status_code=status.HTTP_200_OK, response_model=OrderResponse)
@limiter.limit("30/minute")
def update_order_to_delivered(request: Request, order_id: int, user: user_dependency,
                              service: order_service_dependency):
    """
    Mark an order delivered (admin only).
    """
    return service.mark_delivered(order_id, user)
