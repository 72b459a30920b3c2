import logging
from datetime import datetime
from typing import Optional

from storefront_orders.domain.models import Caller, Order, OrderStatus
from storefront_orders.application.common import ensure_admin, load_order, order_event
from storefront_orders.application.interfaces import Clock

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    OrderStatus.PROCESSING: "Ваш заказ принят в обработку",
    OrderStatus.SHIPPED: "Ваш заказ отправлен в доставку",
    OrderStatus.DELIVERED: "Ваш заказ доставлен",
    OrderStatus.COMPLETED: "Ваш заказ завершен",
    OrderStatus.CANCELLED: "Ваш заказ отменен",
    OrderStatus.REFUNDED: "По вашему заказу оформлен возврат",
}


class UpdateOrderStatusUseCase:
    def __init__(self, unit_of_work, clock: Clock):
        self._uow = unit_of_work
        self._clock = clock

    async def __call__(
        self,
        order_id: str,
        new_status: OrderStatus,
        caller: Caller,
        carrier: Optional[str] = None,
        estimated_delivery: Optional[datetime] = None,
    ) -> Order:
        ensure_admin(caller)

        async with self._uow() as uow:
            order = await load_order(uow, order_id)
            previous_status = order.status
            updated = order.change_status(
                new_status,
                self._clock.now(),
                carrier=carrier,
                estimated_delivery=estimated_delivery,
            )
            saved = await uow.orders.update(updated)

            # Возврат товара на склад делает сервис склада по этому событию
            await uow.outbox.create(
                event_type="order.status_changed",
                event_data=order_event(
                    saved,
                    message=STATUS_MESSAGES.get(new_status),
                    previous_status=previous_status.value,
                    carrier=saved.carrier,
                    estimated_delivery=saved.estimated_delivery.isoformat() if saved.estimated_delivery else None,
                ),
                order_id=saved.id,
            )
            await uow.commit()

        logger.info(f"Заказ {order_id}: статус {previous_status.value} -> {new_status.value}")
        return saved
