import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from storefront_orders.presentation.schemas import (
    CreateOrderRequest, OrderResponse, PaymentResultSchema, UpdateStatusRequest,
    TrackingEventRequest, RefundRequest, PaymentCallbackRequest, TrackingResponse,
    MessageResponse, ErrorResponse
)
from storefront_orders.presentation.dependencies import (
    get_caller,
    verify_gateway_key,
    get_create_order_use_case,
    get_get_order_use_case,
    get_list_orders_use_case,
    get_list_user_orders_use_case,
    get_track_order_use_case,
    get_confirm_payment_use_case,
    get_process_payment_use_case,
    get_confirm_delivery_use_case,
    get_update_status_use_case,
    get_add_tracking_event_use_case,
    get_record_refund_use_case,
    get_mark_refund_processed_use_case,
    get_delete_order_use_case,
)
from storefront_orders.application.create_order import CreateOrderDTO
from storefront_orders.application.process_payment import PaymentCallbackDTO
from storefront_orders.domain.models import (
    Caller, OrderFilter, OrderItem, OrderStatus, PaymentResult, PriceBreakdown, ShippingAddress
)
from storefront_orders.domain.exceptions import (
    DomainException, ValidationError, NotFoundError, AuthorizationError,
    DuplicateKeyError, ConcurrentModificationError
)

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def to_http_exception(error: DomainException) -> HTTPException:
    if isinstance(error, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, AuthorizationError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(error))
    if isinstance(error, (DuplicateKeyError, ConcurrentModificationError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    logger.error(f"Необработанная ошибка домена: {error}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


@router.post(
    "/orders",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_create_order_use_case)
):
    """Создать новый заказ"""
    try:
        dto = CreateOrderDTO(
            user_id=caller.user_id,
            items=[OrderItem(**item.model_dump()) for item in request.items],
            shipping_address=ShippingAddress(**request.shipping_address.model_dump()),
            payment_method=request.payment_method,
            prices=PriceBreakdown(
                items_price=request.items_price,
                tax_price=request.tax_price,
                shipping_price=request.shipping_price,
                total_price=request.total_price,
            ),
        )
        order = await use_case(dto)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.get("/orders", response_model=List[OrderResponse], responses=ERROR_RESPONSES)
async def list_orders(
    order_status: Optional[OrderStatus] = Query(default=None, alias="status"),
    user_ref: Optional[str] = Query(default=None, alias="userRef"),
    is_paid: Optional[bool] = Query(default=None, alias="isPaid"),
    is_delivered: Optional[bool] = Query(default=None, alias="isDelivered"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_list_orders_use_case)
):
    """Все заказы (администратор)"""
    order_filter = OrderFilter(
        status=order_status,
        user_id=user_ref,
        is_paid=is_paid,
        is_delivered=is_delivered,
        limit=limit,
        offset=offset,
    )
    try:
        orders = await use_case(caller, order_filter)
        return [OrderResponse.from_domain(order) for order in orders]
    except DomainException as e:
        raise to_http_exception(e)


@router.get("/orders/mine", response_model=List[OrderResponse], responses=ERROR_RESPONSES)
async def list_my_orders(
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_list_user_orders_use_case)
):
    """Заказы текущего пользователя"""
    orders = await use_case(caller)
    return [OrderResponse.from_domain(order) for order in orders]


@router.post(
    "/orders/payment-callback",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(verify_gateway_key)]
)
async def payment_callback(
    callback: PaymentCallbackRequest,
    use_case=Depends(get_process_payment_use_case)
):
    """Обработка callback от платежного шлюза"""
    try:
        order = await use_case(PaymentCallbackDTO(**callback.model_dump()))
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.get("/orders/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def get_order(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_get_order_use_case)
):
    """Получить заказ по ID"""
    try:
        order = await use_case(order_id, caller)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.put("/orders/{order_id}/pay", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def mark_paid(
    order_id: str,
    payment: PaymentResultSchema,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_confirm_payment_use_case)
):
    """Отметить заказ оплаченным"""
    try:
        order = await use_case(order_id, PaymentResult(**payment.model_dump()), caller)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.put("/orders/{order_id}/deliver", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def mark_delivered(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_confirm_delivery_use_case)
):
    """Отметить заказ доставленным (администратор)"""
    try:
        order = await use_case(order_id, caller)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.put("/orders/{order_id}/status", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def update_status(
    order_id: str,
    request: UpdateStatusRequest,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_update_status_use_case)
):
    """Сменить статус заказа по таблице переходов (администратор)"""
    try:
        order = await use_case(
            order_id,
            request.status,
            caller,
            carrier=request.carrier,
            estimated_delivery=request.estimated_delivery,
        )
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.post("/orders/{order_id}/tracking", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def add_tracking_event(
    order_id: str,
    request: TrackingEventRequest,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_add_tracking_event_use_case)
):
    """Добавить запись в журнал доставки (администратор)"""
    try:
        order = await use_case(
            order_id,
            request.status,
            caller=caller,
            location=request.location,
            description=request.description,
        )
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.post("/orders/{order_id}/refund", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def record_refund(
    order_id: str,
    request: RefundRequest,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_record_refund_use_case)
):
    """Оформить возврат (администратор)"""
    try:
        order = await use_case(
            order_id,
            request.amount,
            request.external_id,
            request.status,
            caller,
            notes=request.notes,
        )
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.put("/orders/{order_id}/refund/processed", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def mark_refund_processed(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_mark_refund_processed_use_case)
):
    """Отметить возврат выполненным (администратор)"""
    try:
        order = await use_case(order_id, caller)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)


@router.delete("/orders/{order_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_order(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_case=Depends(get_delete_order_use_case)
):
    """Удалить заказ (администратор)"""
    try:
        await use_case(order_id, caller)
        return MessageResponse(message="Заказ удален")
    except DomainException as e:
        raise to_http_exception(e)


@router.get("/tracking/{tracking_number}", response_model=TrackingResponse, responses=ERROR_RESPONSES)
async def track_order(
    tracking_number: str,
    use_case=Depends(get_track_order_use_case)
):
    """Публичное отслеживание по трек-номеру"""
    try:
        order = await use_case(tracking_number)
        return TrackingResponse.from_domain(order)
    except DomainException as e:
        raise to_http_exception(e)
