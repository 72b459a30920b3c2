import uuid
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_orders.domain.models import Order, OrderFilter
from storefront_orders.domain.exceptions import (
    ConcurrentModificationError, DuplicateKeyError, OrderNotFoundError
)
from storefront_orders.infrastructure.db_schema import orders_tbl, outbox_events_tbl, inbox_events_tbl
from storefront_orders.application.interfaces import OrderRepository, OutboxRepository, InboxRepository

_JSON_FIELDS = ("items", "shipping_address", "payment_result", "refund", "tracking_history")


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_by_tracking_number(self, tracking_number: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.tracking_number == tracking_number)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_by_user(self, user_id: str) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.user_id == user_id)
            .order_by(orders_tbl.c.created_at.desc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def list_all(self, order_filter: OrderFilter) -> List[Order]:
        stmt = select(orders_tbl)
        if order_filter.status is not None:
            stmt = stmt.where(orders_tbl.c.status == order_filter.status.value)
        if order_filter.user_id is not None:
            stmt = stmt.where(orders_tbl.c.user_id == order_filter.user_id)
        if order_filter.is_paid is not None:
            stmt = stmt.where(orders_tbl.c.is_paid == order_filter.is_paid)
        if order_filter.is_delivered is not None:
            stmt = stmt.where(orders_tbl.c.is_delivered == order_filter.is_delivered)

        result = await self._session.execute(
            stmt.order_by(orders_tbl.c.created_at.desc())
            .limit(order_filter.limit)
            .offset(order_filter.offset)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(**self._to_row(order))
        try:
            await self._session.execute(stmt)
        except IntegrityError as e:
            raise DuplicateKeyError(f"Трек-номер {order.tracking_number} уже используется") from e

    async def update(self, order: Order) -> Order:
        """Запись с проверкой версии (compare-and-swap)"""
        values = self._to_row(order)
        del values["id"], values["created_at"]
        values["version"] = order.version + 1

        stmt = (
            update(orders_tbl)
            .where(
                orders_tbl.c.id == order.id,
                orders_tbl.c.version == order.version,
            )
            .values(**values)
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            exists = await self._session.execute(
                select(orders_tbl.c.id).where(orders_tbl.c.id == order.id)
            )
            if exists.fetchone() is None:
                raise OrderNotFoundError(f"Заказ {order.id} не найден")
            raise ConcurrentModificationError(order.id, order.version)

        return order.model_copy(update={"version": order.version + 1})

    async def delete(self, order_id: str) -> bool:
        result = await self._session.execute(
            delete(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        return result.rowcount > 0

    def _to_row(self, order: Order) -> dict:
        """Трансформация Domain → DB"""
        row = order.model_dump(exclude=set(_JSON_FIELDS))
        row["status"] = order.status.value
        for field in _JSON_FIELDS:
            row[field] = order.model_dump(mode="json", include={field})[field]
        return row

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order.model_validate(dict(row._mapping))


class SQLAlchemyOutboxRepository(OutboxRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        event_id = str(uuid.uuid4())
        stmt = insert(outbox_events_tbl).values(
            id=event_id,
            event_type=event_type,
            event_data=event_data,  # SQLAlchemy JSON column сериализует автоматически
            order_id=order_id,
            status="pending"
        )
        await self._session.execute(stmt)
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        result = await self._session.execute(
            select(outbox_events_tbl)
            .where(outbox_events_tbl.c.status == "pending")
            .order_by(outbox_events_tbl.c.created_at.asc())
            .limit(limit)
        )
        rows = result.fetchall()

        return [
            {
                "id": row.id,
                "event_type": row.event_type,
                "event_data": row.event_data,
                "order_id": row.order_id
            }
            for row in rows
        ]

    async def mark_as_published(self, event_id: str) -> None:
        stmt = (
            update(outbox_events_tbl)
            .where(outbox_events_tbl.c.id == event_id)
            .values(status="published")
        )
        await self._session.execute(stmt)


class SQLAlchemyInboxRepository(InboxRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, event_type: str, event_data: dict, order_id: str, idempotency_key: str) -> str:
        event_id = str(uuid.uuid4())
        stmt = insert(inbox_events_tbl).values(
            id=event_id,
            event_type=event_type,
            event_data=event_data,
            order_id=order_id,
            idempotency_key=idempotency_key,
            status="pending"
        )
        await self._session.execute(stmt)
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        result = await self._session.execute(
            select(inbox_events_tbl)
            .where(inbox_events_tbl.c.status == "pending")
            .order_by(inbox_events_tbl.c.created_at.asc())
            .limit(limit)
        )
        rows = result.fetchall()

        return [
            {
                "id": row.id,
                "event_type": row.event_type,
                "event_data": row.event_data,
                "order_id": row.order_id,
                "idempotency_key": row.idempotency_key
            }
            for row in rows
        ]

    async def mark_as_processed(self, event_id: str) -> None:
        stmt = (
            update(inbox_events_tbl)
            .where(inbox_events_tbl.c.id == event_id)
            .values(
                status="processed",
                processed_at=datetime.now(timezone.utc)
            )
        )
        await self._session.execute(stmt)

    async def mark_as_failed(self, event_id: str) -> None:
        stmt = (
            update(inbox_events_tbl)
            .where(inbox_events_tbl.c.id == event_id)
            .values(status="failed")
        )
        await self._session.execute(stmt)

    async def exists(self, idempotency_key: str) -> bool:
        result = await self._session.execute(
            select(inbox_events_tbl.c.id)
            .where(inbox_events_tbl.c.idempotency_key == idempotency_key)
        )
        return result.fetchone() is not None
