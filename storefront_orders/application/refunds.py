import logging
from decimal import Decimal
from typing import Any, Optional

from storefront_orders.domain.models import Caller, Order
from storefront_orders.application.common import ensure_admin, load_order, order_event
from storefront_orders.application.interfaces import Clock

logger = logging.getLogger(__name__)


class RecordRefundUseCase:
    def __init__(self, unit_of_work, clock: Clock):
        self._uow = unit_of_work
        self._clock = clock

    async def __call__(
        self,
        order_id: str,
        amount: Decimal,
        external_id: str,
        status: str,
        caller: Caller,
        notes: Optional[dict[str, Any]] = None,
    ) -> Order:
        ensure_admin(caller)

        async with self._uow() as uow:
            order = await load_order(uow, order_id)
            if order.refund is not None:
                logger.warning(
                    f"Заказ {order_id}: возврат {order.refund.external_id} заменяется на {external_id}"
                )
            updated = order.record_refund(amount, external_id, status, self._clock.now(), notes=notes)
            saved = await uow.orders.update(updated)
            await uow.outbox.create(
                event_type="order.refund_recorded",
                event_data=order_event(
                    saved,
                    message=f"Оформлен возврат на сумму {amount}",
                    refund_id=external_id,
                    amount=str(amount),
                ),
                order_id=saved.id,
            )
            await uow.commit()

        logger.info(f"Заказ {order_id}: возврат {external_id} на сумму {amount}")
        return saved


class MarkRefundProcessedUseCase:
    def __init__(self, unit_of_work, clock: Clock):
        self._uow = unit_of_work
        self._clock = clock

    async def __call__(self, order_id: str, caller: Caller) -> Order:
        ensure_admin(caller)

        async with self._uow() as uow:
            order = await load_order(uow, order_id)
            saved = await uow.orders.update(order.mark_refund_processed(self._clock.now()))
            await uow.outbox.create(
                event_type="order.refund_processed",
                event_data=order_event(
                    saved,
                    message="Возврат средств выполнен",
                    refund_id=saved.refund.external_id,
                    amount=str(saved.refund.amount),
                ),
                order_id=saved.id,
            )
            await uow.commit()

        logger.info(f"Заказ {order_id}: возврат обработан")
        return saved
