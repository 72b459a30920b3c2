import logging

from storefront_orders.domain.models import Caller
from storefront_orders.domain.exceptions import OrderNotFoundError
from storefront_orders.application.common import ensure_admin

logger = logging.getLogger(__name__)


class DeleteOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, caller: Caller) -> None:
        ensure_admin(caller)
        async with self._uow() as uow:
            if not await uow.orders.delete(order_id):
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            await uow.commit()
        logger.info(f"Заказ {order_id} удален")
