import logging
from typing import Optional

from storefront_orders.domain.models import Caller, Order
from storefront_orders.application.common import ensure_admin, load_order, order_event
from storefront_orders.application.interfaces import Clock

logger = logging.getLogger(__name__)


class AddTrackingEventUseCase:
    """Добавление записи в журнал доставки (администратор или перевозчик)"""

    def __init__(self, unit_of_work, clock: Clock):
        self._uow = unit_of_work
        self._clock = clock

    async def __call__(
        self,
        order_id: str,
        status: str,
        caller: Optional[Caller] = None,
        location: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Order:
        # caller=None: событие пришло от интеграции с перевозчиком
        if caller is not None:
            ensure_admin(caller)

        async with self._uow() as uow:
            order = await load_order(uow, order_id)
            updated = order.add_tracking_event(
                status, self._clock.now(), location=location, description=description
            )
            saved = await uow.orders.update(updated)
            event = saved.tracking_history[-1]
            await uow.outbox.create(
                event_type="order.tracking_updated",
                event_data=order_event(
                    saved,
                    tracking_status=event.status,
                    location=event.location,
                    timestamp=event.timestamp.isoformat(),
                    description=event.description,
                ),
                order_id=saved.id,
            )
            await uow.commit()

        logger.info(f"Заказ {order_id}: запись отслеживания '{status}' ({location or '-'})")
        return saved
