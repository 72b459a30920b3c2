import json
import logging
import asyncio
from typing import Awaitable, Callable, Optional
from aiokafka import AIOKafkaConsumer

logger = logging.getLogger(__name__)


def decode_shipment_event(raw: bytes) -> Optional[dict]:
    """JSON-объект события перевозчика или None для битого сообщения"""
    try:
        event = json.loads(raw.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Не удалось разобрать событие перевозчика: {e}")
        return None
    if not isinstance(event, dict):
        logger.warning(f"Событие перевозчика не является объектом: {event!r}")
        return None
    return event


class ShipmentEventConsumer:
    """Читает события перевозчика; offset фиксируется только после записи в inbox"""

    def __init__(self, bootstrap_servers: str, topic: str, group_id: str = "storefront-orders-shipments"):
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._group_id = group_id
        self._consumer: AIOKafkaConsumer | None = None

    async def start(self):
        self._consumer = AIOKafkaConsumer(
            self._topic,
            bootstrap_servers=self._bootstrap_servers,
            group_id=self._group_id,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
        )
        await self._consumer.start()
        logger.info(f"Shipment consumer подписан на {self._topic}")

    async def stop(self):
        if self._consumer:
            await self._consumer.stop()
            self._consumer = None
            logger.info("Shipment consumer остановлен")

    async def consume(self, handler: Callable[[dict], Awaitable]):
        async for msg in self._consumer:
            event = decode_shipment_event(msg.value)
            if event is None:
                # Битое сообщение не повторится, пропускаем его offset
                await self._consumer.commit()
                continue

            try:
                await handler(event)
                await self._consumer.commit()
            except Exception as e:
                logger.error(f"Ошибка обработки события {event.get('event_type')} "
                             f"(partition {msg.partition}, offset {msg.offset}): {e}", exc_info=True)
                await asyncio.sleep(1)
