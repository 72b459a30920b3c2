from sqlalchemy import (
    Table, Column, String, Integer, Boolean, Numeric, DateTime, JSON, MetaData, Index
)
from sqlalchemy.sql import func

metadata = MetaData()

MONEY = Numeric(12, 2)

# Позиции, адрес, оплата, возврат и журнал доставки хранятся в строке заказа:
# запись одной строки является атомарной единицей изменения агрегата
orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("items", JSON, nullable=False),
    Column("shipping_address", JSON, nullable=False),
    Column("payment_method", String, nullable=False),
    Column("payment_result", JSON, nullable=True),
    Column("refund", JSON, nullable=True),
    Column("payment_attempts", Integer, nullable=False, default=0),
    Column("items_price", MONEY, nullable=False),
    Column("tax_price", MONEY, nullable=False),
    Column("shipping_price", MONEY, nullable=False),
    Column("total_price", MONEY, nullable=False),
    Column("is_paid", Boolean, nullable=False, default=False),
    Column("paid_at", DateTime(timezone=True), nullable=True),
    Column("is_delivered", Boolean, nullable=False, default=False),
    Column("delivered_at", DateTime(timezone=True), nullable=True),
    Column("status", String(20), nullable=False, default="Pending"),
    Column("tracking_number", String, nullable=True, unique=True),
    Column("tracking_history", JSON, nullable=False),
    Column("carrier", String, nullable=False),
    Column("estimated_delivery", DateTime(timezone=True), nullable=True),
    Column("version", Integer, nullable=False, default=1),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
)

Index("ix_orders_user_created", orders_tbl.c.user_id, orders_tbl.c.created_at)
Index("ix_orders_status_created", orders_tbl.c.status, orders_tbl.c.created_at)
Index("ix_orders_paid_delivered", orders_tbl.c.is_paid, orders_tbl.c.is_delivered)


outbox_events_tbl = Table(
    "outbox_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("order_id", String, nullable=False),
    Column("status", String, default="pending"),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


inbox_events_tbl = Table(
    "inbox_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("order_id", String, nullable=False),
    Column("idempotency_key", String, unique=True, nullable=False),
    Column("status", String, default="pending"),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("processed_at", DateTime(timezone=True), nullable=True)
)
