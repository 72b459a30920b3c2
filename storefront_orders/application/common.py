from typing import Any, Optional

from storefront_orders.domain.exceptions import AuthorizationError, OrderNotFoundError
from storefront_orders.domain.models import Caller, Order


def ensure_admin(caller: Caller) -> None:
    if not caller.is_admin:
        raise AuthorizationError("Требуются права администратора")


def ensure_can_access(order: Order, caller: Caller) -> None:
    if not order.can_be_viewed_by(caller):
        raise AuthorizationError("Нет доступа к заказу")


async def load_order(uow, order_id: str) -> Order:
    order = await uow.orders.get_by_id(order_id)
    if not order:
        raise OrderNotFoundError(f"Заказ {order_id} не найден")
    return order


def order_event(order: Order, message: Optional[str] = None, **extra: Any) -> dict:
    """Данные события для outbox"""
    event_data: dict[str, Any] = {
        "order_id": order.id,
        "user_id": order.user_id,
        "status": order.status.value,
        "tracking_number": order.tracking_number,
        "version": order.version,
    }
    if message:
        event_data["message"] = message
    event_data.update(extra)
    return event_data
