import logging

from storefront_orders.domain.models import Caller, Order
from storefront_orders.application.common import ensure_admin, load_order, order_event
from storefront_orders.application.interfaces import Clock

logger = logging.getLogger(__name__)


class ConfirmDeliveryUseCase:
    def __init__(self, unit_of_work, clock: Clock):
        self._uow = unit_of_work
        self._clock = clock

    async def __call__(self, order_id: str, caller: Caller) -> Order:
        ensure_admin(caller)

        async with self._uow() as uow:
            order = await load_order(uow, order_id)
            saved = await uow.orders.update(order.confirm_delivery(self._clock.now()))
            await uow.outbox.create(
                event_type="order.delivered",
                event_data=order_event(saved, message="Ваш заказ доставлен"),
                order_id=saved.id,
            )
            await uow.commit()

        logger.info(f"Заказ {order_id} отмечен доставленным (статус {saved.status.value})")
        return saved
