import asyncio
import logging

from storefront_orders.database import AsyncSessionLocal
from storefront_orders.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from storefront_orders.infrastructure.http_clients import HTTPNotificationsClient
from storefront_orders.infrastructure.kafka_producer import KafkaEventPublisher
from storefront_orders.application.process_outbox import ProcessOutboxEventsUseCase
from storefront_orders.config import settings, configure_logging

logger = logging.getLogger(__name__)


async def outbox_worker(poll_interval: float = 3.0):
    """Worker для публикации outbox событий заказов"""
    logger.info("Outbox worker запущен")

    publisher = KafkaEventPublisher(settings.KAFKA_BOOTSTRAP_SERVERS, settings.ORDER_EVENTS_TOPIC)
    notifications_client = HTTPNotificationsClient(settings.NOTIFICATIONS_BASE_URL, settings.API_TOKEN)
    await publisher.start()

    use_case = ProcessOutboxEventsUseCase(
        unit_of_work=SQLAlchemyUnitOfWork(AsyncSessionLocal),
        event_publisher=publisher,
        notifications_client=notifications_client
    )

    try:
        while True:
            try:
                published = await use_case(limit=5)
                if published:
                    logger.info(f"Опубликовано {published} outbox events")
                await asyncio.sleep(poll_interval)
            except Exception as e:
                logger.error(f"Ошибка в outbox worker: {e}", exc_info=True)
                await asyncio.sleep(10)
    finally:
        await publisher.stop()


def main():
    configure_logging()
    asyncio.run(outbox_worker())


if __name__ == "__main__":
    main()
