from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_orders.infrastructure.repositories import (
    SQLAlchemyOrderRepository,
    SQLAlchemyOutboxRepository,
    SQLAlchemyInboxRepository
)


class SQLAlchemyUnitOfWork:
    """Одна транзакция БД на блок ``async with uow() as tx``.

    Заказ и события outbox пишутся в одной транзакции; без commit() все
    изменения откатываются при выходе из блока.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator["_Transaction"]:
        async with self._session_factory() as session:
            tx = _Transaction(session)
            try:
                yield tx
            finally:
                if not tx.committed:
                    await session.rollback()


class _Transaction:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.committed = False
        self.orders = SQLAlchemyOrderRepository(session)
        self.outbox = SQLAlchemyOutboxRepository(session)
        self.inbox = SQLAlchemyInboxRepository(session)

    async def commit(self):
        await self._session.commit()
        self.committed = True

    async def rollback(self):
        await self._session.rollback()
        self.committed = False
