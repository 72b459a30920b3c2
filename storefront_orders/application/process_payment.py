import logging
from pydantic import BaseModel
from typing import Optional

from storefront_orders.domain.models import Caller, Order, PaymentResult
from storefront_orders.application.common import ensure_can_access, load_order, order_event
from storefront_orders.application.interfaces import Clock

logger = logging.getLogger(__name__)


class ConfirmPaymentUseCase:
    """Отметка об оплате от владельца заказа или администратора"""

    def __init__(self, unit_of_work, clock: Clock):
        self._uow = unit_of_work
        self._clock = clock

    async def __call__(self, order_id: str, payment_result: PaymentResult, caller: Caller) -> Order:
        async with self._uow() as uow:
            order = await load_order(uow, order_id)
            ensure_can_access(order, caller)

            was_paid = order.is_paid
            paid = order.confirm_payment(payment_result, self._clock.now())
            saved = await uow.orders.update(paid)

            await uow.outbox.create(
                event_type="order.paid",
                event_data=order_event(
                    saved,
                    message=None if was_paid else "Ваш заказ успешно оплачен",
                    payment_id=payment_result.external_id,
                    payment_attempts=saved.payment_attempts,
                ),
                order_id=saved.id,
            )
            await uow.commit()

        logger.info(f"Заказ {order_id} отмечен оплаченным (попытка {saved.payment_attempts})")
        return saved


class PaymentCallbackDTO(BaseModel):
    payment_id: str
    order_id: str
    status: str
    update_time: str
    payer_email: str = ""
    error_message: Optional[str] = None


class ProcessPaymentCallbackUseCase:
    """Callback платежного шлюза: успешная оплата или неудачная попытка"""

    def __init__(self, unit_of_work, clock: Clock):
        self._uow = unit_of_work
        self._clock = clock

    async def __call__(self, dto: PaymentCallbackDTO) -> Order:
        logger.info(f"Обработка payment callback: {dto}")

        async with self._uow() as uow:
            order = await load_order(uow, dto.order_id)
            now = self._clock.now()

            if dto.status == "succeeded":
                # Повторный callback по тому же платежу ничего не меняет
                if order.is_paid and order.payment_result and order.payment_result.external_id == dto.payment_id:
                    logger.info(f"Заказ {order.id} уже обработан")
                    return order

                updated = order.confirm_payment(
                    PaymentResult(
                        external_id=dto.payment_id,
                        status=dto.status,
                        update_time=dto.update_time,
                        payer_email=dto.payer_email,
                    ),
                    now,
                )
                saved = await uow.orders.update(updated)
                await uow.outbox.create(
                    event_type="order.paid",
                    event_data=order_event(
                        saved,
                        message=None if order.is_paid else "Ваш заказ успешно оплачен",
                        payment_id=dto.payment_id,
                        payment_attempts=saved.payment_attempts,
                    ),
                    order_id=saved.id,
                )
                logger.info(f"Заказ {dto.order_id} отмечен оплаченным")
            else:
                saved = await uow.orders.update(order.register_failed_payment(now))
                error_msg = dto.error_message or "платеж не прошел"
                await uow.outbox.create(
                    event_type="order.payment_failed",
                    event_data=order_event(
                        saved,
                        message=f"Оплата заказа не прошла. Причина: {error_msg}",
                        payment_id=dto.payment_id,
                        payment_attempts=saved.payment_attempts,
                    ),
                    order_id=saved.id,
                )
                logger.info(f"Неудачная попытка оплаты заказа {dto.order_id}: {error_msg}")

            await uow.commit()

        return saved
