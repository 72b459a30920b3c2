import asyncio
import logging

from storefront_orders.database import AsyncSessionLocal
from storefront_orders.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from storefront_orders.infrastructure.system import SystemClock
from storefront_orders.application.process_inbox import ProcessInboxEventsUseCase
from storefront_orders.config import settings, configure_logging

logger = logging.getLogger(__name__)


async def inbox_worker(poll_interval: float = 2.0):
    """Worker для применения событий перевозчика из inbox"""
    logger.info("Inbox worker запущен")

    use_case = ProcessInboxEventsUseCase(
        unit_of_work=SQLAlchemyUnitOfWork(AsyncSessionLocal),
        clock=SystemClock(),
        max_retries=settings.ORDER_UPDATE_RETRIES
    )

    while True:
        try:
            processed = await use_case(limit=10)
            if processed:
                logger.info(f"Обработано {processed} inbox events")
            await asyncio.sleep(poll_interval)
        except Exception as e:
            logger.error(f"Ошибка в inbox worker: {e}", exc_info=True)
            await asyncio.sleep(10)


def main():
    configure_logging()
    asyncio.run(inbox_worker())


if __name__ == "__main__":
    main()
