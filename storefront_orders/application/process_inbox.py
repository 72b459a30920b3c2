import logging
from typing import Optional

from storefront_orders.domain.models import Order, OrderStatus
from storefront_orders.domain.exceptions import ConcurrentModificationError
from storefront_orders.application.common import order_event
from storefront_orders.application.interfaces import Clock

logger = logging.getLogger(__name__)

SHIPMENT_CHECKPOINT = "shipment.checkpoint"
SHIPMENT_DELIVERED = "shipment.delivered"


class ProcessInboxEventsUseCase:
    """Применяет события перевозчика из inbox к журналу доставки заказа"""

    def __init__(self, unit_of_work, clock: Clock, max_retries: int = 3):
        self._uow = unit_of_work
        self._clock = clock
        self._max_retries = max_retries

    async def __call__(self, limit: int = 10) -> int:
        """Обрабатывает pending события из inbox. Возвращает количество обработанных."""
        processed = 0

        async with self._uow() as uow:
            pending = await uow.inbox.get_pending(limit=limit)
            if not pending:
                return 0

            logger.info(f"Обработка {len(pending)} inbox events")

            for event in pending:
                try:
                    if event["event_type"] not in (SHIPMENT_CHECKPOINT, SHIPMENT_DELIVERED):
                        logger.warning(f"Неизвестный тип события {event['event_type']} ({event['id']})")
                        await uow.inbox.mark_as_failed(event["id"])
                        continue

                    applied = await self._apply_with_retry(uow, event)
                    if applied:
                        await uow.inbox.mark_as_processed(event["id"])
                        processed += 1
                    else:
                        await uow.inbox.mark_as_failed(event["id"])
                except Exception as e:
                    logger.error(f"Ошибка обработки inbox event {event['id']}: {e}")
                    await uow.inbox.mark_as_failed(event["id"])

            await uow.commit()

        return processed

    async def _apply_with_retry(self, uow, event: dict) -> bool:
        for attempt in range(1, self._max_retries + 1):
            order = await self._find_order(uow, event)
            if not order:
                logger.error(f"Заказ {event['order_id']} не найден для inbox event {event['id']}")
                return False
            try:
                await self._apply(uow, order, event)
                return True
            except ConcurrentModificationError:
                logger.warning(
                    f"Конфликт версий заказа {order.id} (попытка {attempt}/{self._max_retries})"
                )
        return False

    async def _find_order(self, uow, event: dict) -> Optional[Order]:
        order = await uow.orders.get_by_id(event["order_id"])
        if order:
            return order
        tracking_number = event["event_data"].get("tracking_number")
        if tracking_number:
            return await uow.orders.get_by_tracking_number(tracking_number)
        return None

    async def _apply(self, uow, order: Order, event: dict) -> None:
        data = event["event_data"]
        now = self._clock.now()
        status = data.get("status") or ("Delivered" if event["event_type"] == SHIPMENT_DELIVERED else "In transit")

        updated = order.add_tracking_event(
            status, now, location=data.get("location"), description=data.get("description")
        )
        delivered = event["event_type"] == SHIPMENT_DELIVERED
        if delivered and order.status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            # Отмененный заказ не помечается доставленным, запись остается только в журнале
            logger.warning(
                f"Заказ {order.id} в статусе {order.status.value}: доставка перевозчика не применена"
            )
            delivered = False
        if delivered:
            updated = updated.confirm_delivery(now)

        saved = await uow.orders.update(updated)
        await uow.outbox.create(
            event_type="order.delivered" if delivered else "order.tracking_updated",
            event_data=order_event(
                saved,
                message="Ваш заказ доставлен" if delivered else None,
                tracking_status=status,
                location=data.get("location"),
            ),
            order_id=saved.id,
        )
        logger.info(f"Заказ {saved.id}: применено {event['event_type']} ({status})")
