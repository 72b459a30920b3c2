from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from storefront_orders.domain.exceptions import ValidationError
from storefront_orders.domain.state_machine import OrderStatus, ensure_transition, can_transition
from storefront_orders.domain.tracking import TrackingEvent, append_tracking_event
from storefront_orders.domain.validators import (
    validate_items,
    validate_order,
    validate_price_breakdown,
    validate_refund_amount,
)

DEFAULT_CARRIER = "Standard Shipping"

__all__ = [
    "Caller",
    "DEFAULT_CARRIER",
    "Order",
    "OrderFilter",
    "OrderItem",
    "OrderStatus",
    "PaymentResult",
    "PriceBreakdown",
    "RefundRecord",
    "Role",
    "ShippingAddress",
    "TrackingEvent",
]


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Caller(BaseModel):
    """Пользователь, от имени которого выполняется запрос"""
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class OrderItem(BaseModel):
    """Value Object — позиция заказа, не меняется после создания"""
    model_config = ConfigDict(frozen=True)

    product_ref: str
    variant_id: str
    quantity: int
    unit_price: Decimal
    size: Optional[str] = None
    color: Optional[str] = None


class ShippingAddress(BaseModel):
    """Value Object — копия адреса на момент оформления"""
    model_config = ConfigDict(frozen=True)

    full_name: str
    address: str
    city: str
    postal_code: str
    country: str
    phone: str


class PaymentResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    external_id: str
    status: str
    update_time: str
    payer_email: str = ""


class RefundRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    external_id: str
    amount: Decimal
    status: str
    created_at: datetime
    processed_at: Optional[datetime] = None
    notes: Optional[dict[str, Any]] = None


class PriceBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal


class OrderFilter(BaseModel):
    status: Optional[OrderStatus] = None
    user_id: Optional[str] = None
    is_paid: Optional[bool] = None
    is_delivered: Optional[bool] = None
    limit: int = 100
    offset: int = 0


class Order(BaseModel):
    """Domain Entity — заказ, граница согласованности.

    Снимок неизменяем: каждая операция возвращает новый проверенный снимок,
    который затем целиком записывается в хранилище.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    items: tuple[OrderItem, ...]
    shipping_address: ShippingAddress
    payment_method: str
    payment_result: Optional[PaymentResult] = None
    refund: Optional[RefundRecord] = None
    payment_attempts: int = 0
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    status: OrderStatus = OrderStatus.PENDING
    tracking_number: Optional[str] = None
    tracking_history: tuple[TrackingEvent, ...] = ()
    carrier: str = DEFAULT_CARRIER
    estimated_delivery: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @classmethod
    def create(
        cls,
        order_id: str,
        user_id: str,
        items: Sequence[OrderItem],
        shipping_address: ShippingAddress,
        payment_method: str,
        prices: PriceBreakdown,
        now: datetime,
        tracking_number: Optional[str] = None,
        carrier: str = DEFAULT_CARRIER,
    ) -> "Order":
        validate_items(items)
        validate_price_breakdown(prices)
        if not payment_method:
            raise ValidationError("Не указан способ оплаты")

        order = cls(
            id=order_id,
            user_id=user_id,
            items=tuple(items),
            shipping_address=shipping_address,
            payment_method=payment_method,
            items_price=prices.items_price,
            tax_price=prices.tax_price,
            shipping_price=prices.shipping_price,
            total_price=prices.total_price,
            status=OrderStatus.PENDING,
            tracking_number=tracking_number,
            carrier=carrier,
            created_at=now,
            updated_at=now,
        )
        validate_order(order)
        return order

    @property
    def prices(self) -> PriceBreakdown:
        return PriceBreakdown(
            items_price=self.items_price,
            tax_price=self.tax_price,
            shipping_price=self.shipping_price,
            total_price=self.total_price,
        )

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id

    def can_be_viewed_by(self, caller: Caller) -> bool:
        """Бизнес-правило: заказ доступен владельцу и администратору"""
        return caller.is_admin or self.is_owned_by(caller.user_id)

    def confirm_payment(self, payment_result: PaymentResult, now: datetime) -> "Order":
        """Каждый вызов считается попыткой оплаты и перезаписывает результат"""
        return self._evolve(
            now,
            is_paid=True,
            paid_at=now,
            payment_result=payment_result,
            payment_attempts=self.payment_attempts + 1,
        )

    def register_failed_payment(self, now: datetime) -> "Order":
        return self._evolve(now, payment_attempts=self.payment_attempts + 1)

    def confirm_delivery(self, now: datetime) -> "Order":
        """Оплата не требуется: возможна оплата при получении"""
        changes: dict[str, Any] = {"is_delivered": True, "delivered_at": now}
        if can_transition(self.status, OrderStatus.DELIVERED):
            changes["status"] = OrderStatus.DELIVERED
        return self._evolve(now, **changes)

    def change_status(
        self,
        new_status: OrderStatus,
        now: datetime,
        carrier: Optional[str] = None,
        estimated_delivery: Optional[datetime] = None,
    ) -> "Order":
        ensure_transition(self.status, new_status)

        changes: dict[str, Any] = {"status": new_status}
        if new_status in (OrderStatus.DELIVERED, OrderStatus.COMPLETED):
            changes["is_delivered"] = True
            changes["delivered_at"] = self.delivered_at or now
        if new_status == OrderStatus.COMPLETED and not self.is_paid:
            raise ValidationError("Нельзя завершить неоплаченный заказ")
        if new_status == OrderStatus.SHIPPED:
            if carrier:
                changes["carrier"] = carrier
            if estimated_delivery is not None:
                changes["estimated_delivery"] = estimated_delivery
        return self._evolve(now, **changes)

    def add_tracking_event(
        self,
        status: str,
        now: datetime,
        location: Optional[str] = None,
        description: Optional[str] = None,
    ) -> "Order":
        """Запись добавляется независимо от текущего статуса заказа"""
        history = append_tracking_event(
            self.tracking_history, status, now, location=location, description=description
        )
        return self._evolve(now, tracking_history=history)

    def record_refund(
        self,
        amount: Decimal,
        external_id: str,
        status: str,
        now: datetime,
        notes: Optional[dict[str, Any]] = None,
    ) -> "Order":
        """Новый возврат заменяет предыдущий"""
        validate_refund_amount(amount, self.total_price)
        refund = RefundRecord(
            external_id=external_id,
            amount=amount,
            status=status,
            created_at=now,
            notes=notes,
        )
        return self._evolve(now, refund=refund)

    def mark_refund_processed(self, now: datetime) -> "Order":
        if self.refund is None:
            raise ValidationError("У заказа нет возврата")
        refund = self.refund.model_copy(update={"processed_at": now})
        return self._evolve(now, refund=refund)

    def _evolve(self, now: datetime, **changes: Any) -> "Order":
        changes["updated_at"] = now
        updated = self.model_copy(update=changes)
        validate_order(updated)
        return updated
