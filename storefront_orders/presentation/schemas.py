from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from storefront_orders.domain.models import Order, OrderStatus

# Деньги считаются в Decimal и отдаются строкой без потери точности
Money = Annotated[Decimal, PlainSerializer(str, return_type=str, when_used="json")]


class CamelModel(BaseModel):
    """Поля на проводе в camelCase, в коде snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItemSchema(CamelModel):
    product_ref: str
    variant_id: str
    quantity: int
    unit_price: Money
    size: Optional[str] = None
    color: Optional[str] = None


class ShippingAddressSchema(CamelModel):
    full_name: str
    address: str
    city: str
    postal_code: str
    country: str
    phone: str


class PaymentResultSchema(CamelModel):
    external_id: str
    status: str
    update_time: str
    payer_email: str = ""


class RefundSchema(CamelModel):
    external_id: str
    amount: Money
    status: str
    created_at: datetime
    processed_at: Optional[datetime] = None
    notes: Optional[dict[str, Any]] = None


class TrackingEventSchema(CamelModel):
    status: str
    location: Optional[str] = None
    timestamp: datetime
    description: Optional[str] = None


class CreateOrderRequest(CamelModel):
    items: List[OrderItemSchema]
    shipping_address: ShippingAddressSchema
    payment_method: str
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal


class UpdateStatusRequest(CamelModel):
    status: OrderStatus
    carrier: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class TrackingEventRequest(CamelModel):
    status: str
    location: Optional[str] = None
    description: Optional[str] = None


class RefundRequest(CamelModel):
    amount: Decimal
    external_id: str
    status: str = "pending"
    notes: Optional[dict[str, Any]] = None


class PaymentCallbackRequest(CamelModel):
    payment_id: str
    order_id: str
    status: str
    update_time: str
    payer_email: str = ""
    error_message: Optional[str] = None


class OrderResponse(CamelModel):
    id: str
    user_ref: str
    items: List[OrderItemSchema]
    shipping_address: ShippingAddressSchema
    payment_method: str
    payment_result: Optional[PaymentResultSchema] = None
    refund: Optional[RefundSchema] = None
    payment_attempts: int
    items_price: Money
    tax_price: Money
    shipping_price: Money
    total_price: Money
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    status: OrderStatus
    tracking_number: Optional[str] = None
    tracking_history: List[TrackingEventSchema]
    carrier: str
    estimated_delivery: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_domain(cls, order: Order):
        data = order.model_dump()
        data["user_ref"] = data.pop("user_id")
        return cls.model_validate(data)


class TrackedItemSchema(CamelModel):
    product_ref: str
    quantity: int
    unit_price: Money


class TrackingLocationSchema(CamelModel):
    city: str
    country: str


class TrackingResponse(CamelModel):
    """Публичное представление заказа по трек-номеру, без персональных данных"""
    tracking_number: str
    status: OrderStatus
    tracking_history: List[TrackingEventSchema]
    carrier: str
    estimated_delivery: Optional[datetime] = None
    shipping_address: TrackingLocationSchema
    items: List[TrackedItemSchema]
    total_price: Money
    created_at: datetime
    is_paid: bool
    is_delivered: bool

    @classmethod
    def from_domain(cls, order: Order):
        return cls(
            tracking_number=order.tracking_number,
            status=order.status,
            tracking_history=[TrackingEventSchema.model_validate(e.model_dump()) for e in order.tracking_history],
            carrier=order.carrier,
            estimated_delivery=order.estimated_delivery,
            shipping_address=TrackingLocationSchema(
                city=order.shipping_address.city,
                country=order.shipping_address.country,
            ),
            items=[
                TrackedItemSchema(product_ref=i.product_ref, quantity=i.quantity, unit_price=i.unit_price)
                for i in order.items
            ],
            total_price=order.total_price,
            created_at=order.created_at,
            is_paid=order.is_paid,
            is_delivered=order.is_delivered,
        )


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    detail: str
