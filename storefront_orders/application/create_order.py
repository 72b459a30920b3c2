import logging
import uuid
from typing import List

from pydantic import BaseModel

from storefront_orders.domain.models import (
    DEFAULT_CARRIER, Order, OrderItem, PriceBreakdown, ShippingAddress
)
from storefront_orders.domain.exceptions import DuplicateKeyError
from storefront_orders.domain.tracking import RANDOM_SUFFIX_LENGTH, generate_tracking_number
from storefront_orders.application.common import order_event
from storefront_orders.application.interfaces import Clock, RandomSource


logger = logging.getLogger(__name__)


class CreateOrderDTO(BaseModel):
    user_id: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: str
    prices: PriceBreakdown


def new_tracking_number(clock: Clock, random_source: RandomSource) -> str:
    return generate_tracking_number(clock.now(), random_source.base36(RANDOM_SUFFIX_LENGTH))


class CreateOrderUseCase:
    def __init__(
        self,
        unit_of_work,
        clock: Clock,
        random_source: RandomSource,
        tracking_number_attempts: int = 3,
        carrier: str = DEFAULT_CARRIER,
    ):
        self._uow = unit_of_work
        self._clock = clock
        self._random = random_source
        self._attempts = tracking_number_attempts
        self._carrier = carrier

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        logger.info(f"Создание заказа для пользователя {order_data.user_id}, позиций: {len(order_data.items)}")
        order_id = str(uuid.uuid4())

        for attempt in range(1, self._attempts + 1):
            order = Order.create(
                order_id=order_id,
                user_id=order_data.user_id,
                items=order_data.items,
                shipping_address=order_data.shipping_address,
                payment_method=order_data.payment_method,
                prices=order_data.prices,
                now=self._clock.now(),
                tracking_number=new_tracking_number(self._clock, self._random),
                carrier=self._carrier,
            )
            try:
                async with self._uow() as uow:
                    await uow.orders.create(order)
                    await uow.outbox.create(
                        event_type="order.created",
                        event_data=order_event(
                            order,
                            message="Ваш заказ создан (Pending) и ожидает оплаты",
                            payment_method=order.payment_method,
                            total_price=str(order.total_price),
                        ),
                        order_id=order.id,
                    )
                    await uow.commit()
            except DuplicateKeyError:
                logger.warning(
                    f"Коллизия трек-номера {order.tracking_number} (попытка {attempt}/{self._attempts})"
                )
                continue

            logger.info(f"Заказ создан: {order.id}, трек-номер {order.tracking_number}")
            return order

        raise DuplicateKeyError(
            f"Не удалось сгенерировать уникальный трек-номер за {self._attempts} попыток"
        )
