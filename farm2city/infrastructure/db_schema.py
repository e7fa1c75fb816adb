from sqlalchemy import (
    Table, Column, String, Integer, Numeric, Boolean, Enum, Date, DateTime, JSON, Text, MetaData, ForeignKey,
    UniqueConstraint
)
from sqlalchemy.sql import func

from farm2city.domain.models import (
    UserRole, OrderStatus, PaymentStatus, ReorderFrequency, NotificationType
)

metadata = MetaData()


users_tbl = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False, unique=True),
    Column("role", Enum(UserRole), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("farmer_id", String, ForeignKey("users.id"), nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
    Column("quantity", Integer, nullable=False, default=0),
    Column("unit", String, nullable=True),
    Column("availability", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("buyer_id", String, ForeignKey("users.id"), nullable=False, index=True),
    Column("farmer_id", String, ForeignKey("users.id"), nullable=False, index=True),
    Column("product_id", String, ForeignKey("products.id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(12, 2), nullable=False),
    Column("total_amount", Numeric(14, 2), nullable=False),
    Column("status", Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False),
    Column("payment_status", Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False),
    Column("delivery_date", Date, nullable=True),
    Column("notes", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


inventory_tbl = Table(
    "inventory",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("shopkeeper_id", String, ForeignKey("users.id"), nullable=False),
    Column("product_id", String, ForeignKey("products.id"), nullable=False),
    Column("quantity_in", Integer, nullable=False, default=0),
    Column("quantity_out", Integer, nullable=False, default=0),
    Column("current_stock", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    UniqueConstraint("shopkeeper_id", "product_id", name="uq_inventory_shopkeeper_product")
)


auto_reorder_rules_tbl = Table(
    "auto_reorder_settings",
    metadata,
    Column("id", String, primary_key=True),
    Column("shopkeeper_id", String, ForeignKey("users.id"), nullable=False),
    Column("product_id", String, ForeignKey("products.id"), nullable=False),
    Column("min_stock", Integer, nullable=False),
    Column("reorder_quantity", Integer, nullable=False),
    Column("frequency", Enum(ReorderFrequency), nullable=False),
    Column("enabled", Boolean, nullable=False, default=True),
    Column("last_triggered_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("shopkeeper_id", "product_id", name="uq_reorder_shopkeeper_product")
)


notifications_tbl = Table(
    "notifications",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("title", String, nullable=False),
    Column("message", String, nullable=False),
    Column("type", Enum(NotificationType), nullable=False),
    Column("read", Boolean, nullable=False, default=False),
    Column("data", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


outbox_events_tbl = Table(
    "outbox_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("aggregate_id", String, nullable=False),
    Column("status", String, default="pending"),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)
