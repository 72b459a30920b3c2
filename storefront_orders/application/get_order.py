from typing import List

from storefront_orders.domain.models import Caller, Order, OrderFilter
from storefront_orders.domain.exceptions import OrderNotFoundError, ValidationError
from storefront_orders.domain.tracking import is_valid_tracking_number
from storefront_orders.application.common import ensure_admin, ensure_can_access, load_order


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, caller: Caller) -> Order:
        async with self._uow() as uow:
            order = await load_order(uow, order_id)
        ensure_can_access(order, caller)
        return order


class ListOrdersUseCase:
    """Все заказы с фильтром, только для администратора"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, caller: Caller, order_filter: OrderFilter) -> List[Order]:
        ensure_admin(caller)
        async with self._uow() as uow:
            return await uow.orders.list_all(order_filter)


class ListUserOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, caller: Caller) -> List[Order]:
        async with self._uow() as uow:
            return await uow.orders.list_by_user(caller.user_id)


class TrackOrderUseCase:
    """Публичный поиск заказа по трек-номеру"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, tracking_number: str) -> Order:
        if not is_valid_tracking_number(tracking_number):
            raise ValidationError("Неверный формат трек-номера")
        async with self._uow() as uow:
            order = await uow.orders.get_by_tracking_number(tracking_number)
            if not order:
                raise OrderNotFoundError(f"Заказ с трек-номером {tracking_number} не найден")
            return order
