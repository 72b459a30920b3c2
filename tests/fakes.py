"""
In-memory зависимости для тестов use cases и API.

Хранилище пишет сразу, а без commit() изменения откатываются по журналу
отмены, так что конфликт версий проявляется так же, как в PostgreSQL.
"""
import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from storefront_orders.application.interfaces import (
    Clock, EventPublisher, NotificationsService, RandomSource
)
from storefront_orders.domain.exceptions import (
    ConcurrentModificationError, DuplicateKeyError, OrderNotFoundError
)
from storefront_orders.domain.models import (
    Order, OrderFilter, OrderItem, PriceBreakdown, ShippingAddress
)


class FakeClock(Clock):
    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(0)):
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def now(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeRandomSource(RandomSource):
    """Возвращает заданные строки по очереди"""

    def __init__(self, values: Optional[List[str]] = None):
        self._values = list(values or ["ABC123"])
        self._index = 0

    def base36(self, length: int) -> str:
        value = self._values[min(self._index, len(self._values) - 1)]
        self._index += 1
        return value[:length].ljust(length, "0")


class InMemoryStore:
    def __init__(self):
        self.orders: Dict[str, Order] = {}
        self.outbox: List[dict] = []
        self.inbox: List[dict] = []


class InMemoryOrderRepository:
    def __init__(self, store: InMemoryStore, undo: list, read_delay: bool = False):
        self._store = store
        self._undo = undo
        self._read_delay = read_delay

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        order = self._store.orders.get(order_id)
        if self._read_delay:
            # Отдаем управление после чтения, чтобы параллельные вызовы прочитали один снимок
            await asyncio.sleep(0)
        return order

    async def get_by_tracking_number(self, tracking_number: str) -> Optional[Order]:
        for order in self._store.orders.values():
            if order.tracking_number == tracking_number:
                return order
        return None

    async def list_by_user(self, user_id: str) -> List[Order]:
        orders = [o for o in self._store.orders.values() if o.user_id == user_id]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def list_all(self, order_filter: OrderFilter) -> List[Order]:
        orders = list(self._store.orders.values())
        if order_filter.status is not None:
            orders = [o for o in orders if o.status == order_filter.status]
        if order_filter.user_id is not None:
            orders = [o for o in orders if o.user_id == order_filter.user_id]
        if order_filter.is_paid is not None:
            orders = [o for o in orders if o.is_paid == order_filter.is_paid]
        if order_filter.is_delivered is not None:
            orders = [o for o in orders if o.is_delivered == order_filter.is_delivered]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[order_filter.offset:order_filter.offset + order_filter.limit]

    async def create(self, order: Order) -> None:
        if order.id in self._store.orders:
            raise DuplicateKeyError(f"Заказ {order.id} уже существует")
        if order.tracking_number and await self.get_by_tracking_number(order.tracking_number):
            raise DuplicateKeyError(f"Трек-номер {order.tracking_number} уже используется")
        self._store.orders[order.id] = order
        self._undo.append(lambda: self._store.orders.pop(order.id, None))

    async def update(self, order: Order) -> Order:
        current = self._store.orders.get(order.id)
        if current is None:
            raise OrderNotFoundError(f"Заказ {order.id} не найден")
        if current.version != order.version:
            raise ConcurrentModificationError(order.id, order.version)
        saved = order.model_copy(update={"version": order.version + 1})
        self._store.orders[order.id] = saved
        self._undo.append(lambda: self._store.orders.__setitem__(order.id, current))
        return saved

    async def delete(self, order_id: str) -> bool:
        current = self._store.orders.pop(order_id, None)
        if current is None:
            return False
        self._undo.append(lambda: self._store.orders.__setitem__(order_id, current))
        return True


class InMemoryOutboxRepository:
    def __init__(self, store: InMemoryStore, undo: list):
        self._store = store
        self._undo = undo

    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        event = {
            "id": str(uuid.uuid4()),
            "event_type": event_type,
            "event_data": event_data,
            "order_id": order_id,
            "status": "pending",
        }
        self._store.outbox.append(event)
        self._undo.append(lambda: self._store.outbox.remove(event))
        return event["id"]

    async def get_pending(self, limit: int = 10) -> List[dict]:
        return [e for e in self._store.outbox if e["status"] == "pending"][:limit]

    async def mark_as_published(self, event_id: str) -> None:
        for event in self._store.outbox:
            if event["id"] == event_id:
                event["status"] = "published"


class InMemoryInboxRepository:
    def __init__(self, store: InMemoryStore, undo: list):
        self._store = store
        self._undo = undo

    async def create(self, event_type: str, event_data: dict, order_id: str, idempotency_key: str) -> str:
        if await self.exists(idempotency_key):
            raise DuplicateKeyError(f"Событие {idempotency_key} уже сохранено")
        event = {
            "id": str(uuid.uuid4()),
            "event_type": event_type,
            "event_data": event_data,
            "order_id": order_id,
            "idempotency_key": idempotency_key,
            "status": "pending",
        }
        self._store.inbox.append(event)
        self._undo.append(lambda: self._store.inbox.remove(event))
        return event["id"]

    async def get_pending(self, limit: int = 10) -> List[dict]:
        return [e for e in self._store.inbox if e["status"] == "pending"][:limit]

    async def mark_as_processed(self, event_id: str) -> None:
        self._set_status(event_id, "processed")

    async def mark_as_failed(self, event_id: str) -> None:
        self._set_status(event_id, "failed")

    async def exists(self, idempotency_key: str) -> bool:
        return any(e["idempotency_key"] == idempotency_key for e in self._store.inbox)

    def _set_status(self, event_id: str, status: str) -> None:
        for event in self._store.inbox:
            if event["id"] == event_id:
                event["status"] = status


class FakeTransaction:
    def __init__(self, store: InMemoryStore, read_delay: bool = False):
        self._undo: list = []
        self.committed = False
        self.orders = InMemoryOrderRepository(store, self._undo, read_delay=read_delay)
        self.outbox = InMemoryOutboxRepository(store, self._undo)
        self.inbox = InMemoryInboxRepository(store, self._undo)

    async def commit(self):
        self._undo.clear()
        self.committed = True

    async def rollback(self):
        while self._undo:
            self._undo.pop()()


class FakeUnitOfWork:
    def __init__(self, store: Optional[InMemoryStore] = None, read_delay: bool = False):
        self.store = store or InMemoryStore()
        self.read_delay = read_delay
        self.commits = 0

    @asynccontextmanager
    async def __call__(self):
        tx = FakeTransaction(self.store, read_delay=self.read_delay)
        try:
            yield tx
        finally:
            if tx.committed:
                self.commits += 1
            else:
                await tx.rollback()


class FakeEventPublisher(EventPublisher):
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.published: List[dict] = []

    async def publish(self, event_type: str, order_id: str, payload: dict) -> bool:
        if self.succeed:
            self.published.append({"event_type": event_type, "order_id": order_id, "payload": payload})
        return self.succeed


class FakeNotifications(NotificationsService):
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: List[dict] = []

    async def send(self, message: str, reference_id: str, idempotency_key: str, user_id: str) -> bool:
        if self.succeed:
            self.sent.append({
                "message": message,
                "reference_id": reference_id,
                "idempotency_key": idempotency_key,
                "user_id": user_id,
            })
        return self.succeed


# =============================================================================
# Фабрики данных
# =============================================================================

def make_item(quantity: int = 2, unit_price: str = "500", **overrides) -> OrderItem:
    data = {
        "product_ref": "prod_1",
        "variant_id": "var_1",
        "quantity": quantity,
        "unit_price": Decimal(unit_price),
        "size": "M",
        "color": "black",
    }
    data.update(overrides)
    return OrderItem(**data)


def make_address(**overrides) -> ShippingAddress:
    data = {
        "full_name": "Asha Rao",
        "address": "12 MG Road",
        "city": "Mumbai",
        "postal_code": "400001",
        "country": "India",
        "phone": "+91 98200 00000",
    }
    data.update(overrides)
    return ShippingAddress(**data)


def make_prices(items: str = "1000", tax: str = "180", shipping: str = "0", total: str = "1180") -> PriceBreakdown:
    return PriceBreakdown(
        items_price=Decimal(items),
        tax_price=Decimal(tax),
        shipping_price=Decimal(shipping),
        total_price=Decimal(total),
    )


def make_order(clock: Optional[FakeClock] = None, order_id: str = "ord_1", user_id: str = "usr_1", **overrides) -> Order:
    clock = clock or FakeClock()
    params = {
        "order_id": order_id,
        "user_id": user_id,
        "items": [make_item()],
        "shipping_address": make_address(),
        "payment_method": "Razorpay",
        "prices": make_prices(),
        "now": clock.now(),
        "tracking_number": f"ZYNLVN4ZK00{order_id[-1].upper()}ABC12",
    }
    params.update(overrides)
    return Order.create(**params)
