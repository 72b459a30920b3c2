import asyncio
import logging

from storefront_orders.database import AsyncSessionLocal
from storefront_orders.infrastructure.kafka_consumer import ShipmentEventConsumer
from storefront_orders.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from storefront_orders.config import settings, configure_logging

logger = logging.getLogger(__name__)


def inbox_key(event_data: dict) -> str:
    """Ключ идемпотентности события перевозчика"""
    if event_data.get("event_id"):
        return str(event_data["event_id"])
    return "_".join(
        str(event_data.get(field) or "")
        for field in ("event_type", "order_id", "tracking_number", "status", "location", "occurred_at")
    )


async def handle_shipment_event(event_data: dict, unit_of_work) -> bool:
    """Сохраняет событие от перевозчика в inbox. False, если событие пропущено."""
    event_type = event_data.get("event_type")
    order_ref = event_data.get("order_id") or event_data.get("tracking_number")
    if not event_type or not order_ref:
        logger.warning(f"Событие без типа или ссылки на заказ пропущено: {event_data}")
        return False

    idempotency_key = inbox_key(event_data)
    logger.info(f"Получено {event_type} для заказа {order_ref}")

    async with unit_of_work() as uow:
        if await uow.inbox.exists(idempotency_key):
            logger.info(f"Событие {idempotency_key} уже получено")
            return False

        await uow.inbox.create(
            event_type=event_type,
            event_data=event_data,
            order_id=order_ref,
            idempotency_key=idempotency_key
        )
        await uow.commit()

    logger.info(f"Сохранено {event_type} inbox для заказа {order_ref}")
    return True


async def shipping_consumer():
    """Consumer для событий перевозчика"""
    logger.info("Shipping consumer started")

    unit_of_work = SQLAlchemyUnitOfWork(AsyncSessionLocal)
    consumer = ShipmentEventConsumer(settings.KAFKA_BOOTSTRAP_SERVERS, settings.SHIPMENT_EVENTS_TOPIC)
    await consumer.start()

    try:
        await consumer.consume(lambda event: handle_shipment_event(event, unit_of_work))
    finally:
        await consumer.stop()


def main():
    configure_logging()
    asyncio.run(shipping_consumer())


if __name__ == "__main__":
    main()
