import logging
import json

from storefront_orders.application.interfaces import EventPublisher, NotificationsService

logger = logging.getLogger(__name__)


class ProcessOutboxEventsUseCase:
    def __init__(self, unit_of_work, event_publisher: EventPublisher, notifications_client: NotificationsService):
        self._uow = unit_of_work
        self._publisher = event_publisher
        self._notifications = notifications_client

    async def __call__(self, limit: int = 5) -> int:
        """Публикует pending события из outbox. Возвращает количество опубликованных."""
        published = 0

        async with self._uow() as uow:
            pending = await uow.outbox.get_pending(limit=limit)

            for event in pending:
                try:
                    event_data = event["event_data"]
                    if isinstance(event_data, str):
                        event_data = json.loads(event_data)

                    success = await self._publisher.publish(
                        event_type=event["event_type"],
                        order_id=event["order_id"],
                        payload=event_data,
                    )
                    if not success:
                        logger.warning(f"Неуспешная отправка в Кафка события {event['id']}")
                        continue

                    message = event_data.get("message")
                    if message:
                        notified = await self._notifications.send(
                            message=message,
                            reference_id=event["order_id"],
                            idempotency_key=f"notification_{event['id']}",
                            user_id=event_data["user_id"],
                        )
                        if not notified:
                            logger.warning(f"Не отправлено уведомление '{message}' для {event['order_id']}")
                            continue

                    await uow.outbox.mark_as_published(event["id"])
                    published += 1
                    logger.info(f"Опубликовано {event['event_type']} event {event['id']}")
                except Exception as e:
                    logger.error(f"Ошибка обработки outbox event {event['id']}: {e}")

            await uow.commit()

        return published
