from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from storefront_orders.domain.models import Order, OrderFilter


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_tracking_number(self, tracking_number: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def list_all(self, order_filter: OrderFilter) -> List[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        """DuplicateKeyError при повторе трек-номера"""
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """Сравнение версии и запись, возвращает снимок с новой версией.

        ConcurrentModificationError, если версия в хранилище уже другая.
        """
        pass

    @abstractmethod
    async def delete(self, order_id: str) -> bool:
        pass


class OutboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_published(self, event_id: str) -> None:
        pass


class InboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, order_id: str, idempotency_key: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_processed(self, event_id: str) -> None:
        pass

    @abstractmethod
    async def mark_as_failed(self, event_id: str) -> None:
        pass

    @abstractmethod
    async def exists(self, idempotency_key: str) -> bool:
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @property
    @abstractmethod
    def outbox(self) -> OutboxRepository:
        pass

    @property
    @abstractmethod
    def inbox(self) -> InboxRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Текущее время в UTC"""
        pass


class RandomSource(ABC):
    @abstractmethod
    def base36(self, length: int) -> str:
        """Случайная строка из [0-9A-Z] заданной длины"""
        pass


class NotificationsService(ABC):
    @abstractmethod
    async def send(self, message: str, reference_id: str, idempotency_key: str, user_id: str) -> bool:
        pass


class EventPublisher(ABC):
    @abstractmethod
    async def publish(self, event_type: str, order_id: str, payload: dict) -> bool:
        pass
