"""Явные проверки инвариантов заказа.

Выполняются перед каждой записью агрегата и не зависят от хранилища.
"""
from decimal import Decimal
from typing import TYPE_CHECKING, Sequence

from storefront_orders.domain.exceptions import ValidationError

if TYPE_CHECKING:
    from storefront_orders.domain.models import Order, OrderItem, PriceBreakdown

ZERO = Decimal("0")
# Денежные колонки хранят 2 знака после запятой
MONEY_EXPONENT = -2


def validate_money_scale(amount: Decimal, name: str) -> None:
    if not amount.is_finite() or amount.as_tuple().exponent < MONEY_EXPONENT:
        raise ValidationError(f"{name}: допускается не больше двух знаков после запятой")


def validate_items(items: Sequence["OrderItem"]) -> None:
    if not items:
        raise ValidationError("Нет позиций в заказе")
    for index, item in enumerate(items):
        if item.quantity < 1:
            raise ValidationError(f"Позиция {index}: количество должно быть не меньше 1")
        validate_money_scale(item.unit_price, f"Позиция {index}")
        if item.unit_price < ZERO:
            raise ValidationError(f"Позиция {index}: цена не может быть отрицательной")


def validate_price_breakdown(prices: "PriceBreakdown") -> None:
    for name in ("items_price", "tax_price", "shipping_price", "total_price"):
        validate_money_scale(getattr(prices, name), name)
        if getattr(prices, name) < ZERO:
            raise ValidationError(f"{name} не может быть отрицательной")

    expected = prices.items_price + prices.tax_price + prices.shipping_price
    if prices.total_price != expected:
        raise ValidationError(
            f"Итоговая сумма {prices.total_price} не равна сумме составляющих {expected}"
        )


def validate_refund_amount(amount: Decimal, total_price: Decimal) -> None:
    validate_money_scale(amount, "Сумма возврата")
    if amount < ZERO:
        raise ValidationError("Сумма возврата не может быть отрицательной")
    if amount > total_price:
        raise ValidationError(
            f"Сумма возврата {amount} превышает сумму заказа {total_price}"
        )


def validate_order(order: "Order") -> None:
    """Проверяет все инварианты агрегата, бросает ValidationError"""
    validate_items(order.items)
    validate_price_breakdown(order.prices)

    if order.payment_attempts < 0:
        raise ValidationError("payment_attempts не может быть отрицательным")
    if order.is_paid and (order.paid_at is None or order.payment_result is None):
        raise ValidationError("Оплаченный заказ должен иметь paid_at и payment_result")
    if order.is_delivered and order.delivered_at is None:
        raise ValidationError("Доставленный заказ должен иметь delivered_at")
    if order.refund is not None:
        validate_refund_amount(order.refund.amount, order.total_price)
    if order.version < 1:
        raise ValidationError("Версия заказа должна быть положительной")
