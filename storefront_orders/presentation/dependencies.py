import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from storefront_orders.config import settings
from storefront_orders.database import AsyncSessionLocal
from storefront_orders.domain.models import Caller, Role
from storefront_orders.application.create_order import CreateOrderUseCase
from storefront_orders.application.get_order import (
    GetOrderUseCase, ListOrdersUseCase, ListUserOrdersUseCase, TrackOrderUseCase
)
from storefront_orders.application.process_payment import ConfirmPaymentUseCase, ProcessPaymentCallbackUseCase
from storefront_orders.application.confirm_delivery import ConfirmDeliveryUseCase
from storefront_orders.application.update_status import UpdateOrderStatusUseCase
from storefront_orders.application.add_tracking_event import AddTrackingEventUseCase
from storefront_orders.application.refunds import RecordRefundUseCase, MarkRefundProcessedUseCase
from storefront_orders.application.delete_order import DeleteOrderUseCase
from storefront_orders.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from storefront_orders.infrastructure.system import SystemClock, SystemRandomSource


def get_unit_of_work():
    return SQLAlchemyUnitOfWork(AsyncSessionLocal)


def get_clock():
    return SystemClock()


def get_random_source():
    return SystemRandomSource()


def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: str = Header(default=Role.USER.value),
) -> Caller:
    """Личность пользователя уже проверена шлюзом и передана в заголовках"""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Требуется авторизация")
    try:
        role = Role(x_user_role)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Неизвестная роль")
    return Caller(user_id=x_user_id, role=role)


def verify_gateway_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    """Callback платежного шлюза принимается только с общим секретом API_TOKEN"""
    expected = settings.API_TOKEN
    if not expected or not x_api_key or not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Неверный ключ платежного шлюза")


# Фабрики для создания use cases
def get_create_order_use_case(uow=Depends(get_unit_of_work), clock=Depends(get_clock), random_source=Depends(get_random_source)):
    return CreateOrderUseCase(
        uow,
        clock,
        random_source,
        tracking_number_attempts=settings.TRACKING_NUMBER_ATTEMPTS,
        carrier=settings.DEFAULT_CARRIER,
    )


def get_get_order_use_case(uow=Depends(get_unit_of_work)):
    return GetOrderUseCase(uow)


def get_list_orders_use_case(uow=Depends(get_unit_of_work)):
    return ListOrdersUseCase(uow)


def get_list_user_orders_use_case(uow=Depends(get_unit_of_work)):
    return ListUserOrdersUseCase(uow)


def get_track_order_use_case(uow=Depends(get_unit_of_work)):
    return TrackOrderUseCase(uow)


def get_confirm_payment_use_case(uow=Depends(get_unit_of_work), clock=Depends(get_clock)):
    return ConfirmPaymentUseCase(uow, clock)


def get_process_payment_use_case(uow=Depends(get_unit_of_work), clock=Depends(get_clock)):
    return ProcessPaymentCallbackUseCase(uow, clock)


def get_confirm_delivery_use_case(uow=Depends(get_unit_of_work), clock=Depends(get_clock)):
    return ConfirmDeliveryUseCase(uow, clock)


def get_update_status_use_case(uow=Depends(get_unit_of_work), clock=Depends(get_clock)):
    return UpdateOrderStatusUseCase(uow, clock)


def get_add_tracking_event_use_case(uow=Depends(get_unit_of_work), clock=Depends(get_clock)):
    return AddTrackingEventUseCase(uow, clock)


def get_record_refund_use_case(uow=Depends(get_unit_of_work), clock=Depends(get_clock)):
    return RecordRefundUseCase(uow, clock)


def get_mark_refund_processed_use_case(uow=Depends(get_unit_of_work), clock=Depends(get_clock)):
    return MarkRefundProcessedUseCase(uow, clock)


def get_delete_order_use_case(uow=Depends(get_unit_of_work)):
    return DeleteOrderUseCase(uow)
