from pydantic import BaseModel
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from farm2city.config import settings
from farm2city.domain.models import (
    OrderStatus, PaymentStatus, PaymentMethod, ReorderFrequency, StockStatus, TransactionStatus, get_stock_status
)


class CreateOrderRequest(BaseModel):
    buyer_id: str
    product_id: str
    quantity: int
    delivery_date: Optional[date] = None
    notes: Optional[str] = None


class OrderResponse(BaseModel):
    id: str
    buyer_id: str
    farmer_id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    status: OrderStatus
    payment_status: PaymentStatus
    delivery_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            buyer_id=order.buyer_id,
            farmer_id=order.farmer_id,
            product_id=order.product_id,
            quantity=order.quantity,
            unit_price=order.unit_price,
            total_amount=order.total_amount,
            status=order.status,
            payment_status=order.payment_status,
            delivery_date=order.delivery_date,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at
        )


class StatusChangeRequest(BaseModel):
    actor_id: str


class PayOrderRequest(BaseModel):
    buyer_id: str
    method: PaymentMethod


class PayOrderResponse(BaseModel):
    order: OrderResponse
    transaction_id: Optional[str] = None
    success: bool
    error: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    transaction_id: str
    order_id: str
    status: TransactionStatus
    amount: Decimal
    currency: str
    timestamp: datetime


class AdjustStockRequest(BaseModel):
    shopkeeper_id: str
    product_id: str
    delta: int


class InventoryResponse(BaseModel):
    shopkeeper_id: str
    product_id: str
    quantity_in: int
    quantity_out: int
    current_stock: int
    stock_status: StockStatus
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, record):
        return cls(
            shopkeeper_id=record.shopkeeper_id,
            product_id=record.product_id,
            quantity_in=record.quantity_in,
            quantity_out=record.quantity_out,
            current_stock=record.current_stock,
            stock_status=get_stock_status(
                record.current_stock, settings.LOW_STOCK_THRESHOLD, settings.MEDIUM_STOCK_THRESHOLD
            ),
            updated_at=record.updated_at
        )


class CreateRuleRequest(BaseModel):
    shopkeeper_id: str
    product_id: str
    min_stock: int = 10
    reorder_quantity: int = 50
    frequency: str = ReorderFrequency.WEEKLY.value
    enabled: bool = True


class UpdateRuleRequest(BaseModel):
    min_stock: Optional[int] = None
    reorder_quantity: Optional[int] = None
    frequency: Optional[str] = None
    enabled: Optional[bool] = None


class RuleResponse(BaseModel):
    id: str
    shopkeeper_id: str
    product_id: str
    min_stock: int
    reorder_quantity: int
    frequency: ReorderFrequency
    enabled: bool
    last_triggered_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, rule):
        return cls(**rule.model_dump(exclude={"created_at"}))


class ScanResponse(BaseModel):
    triggered: int


class ErrorResponse(BaseModel):
    detail: str


class CreateProductRequest(BaseModel):
    farmer_id: str
    name: str
    price: Decimal
    quantity: int
    unit: str = "kg"


class UpdateProductRequest(BaseModel):
    farmer_id: str
    name: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[int] = None
    unit: Optional[str] = None
    availability: Optional[bool] = None


class ProductResponse(BaseModel):
    id: str
    farmer_id: str
    name: str
    price: Decimal
    quantity: int
    unit: Optional[str] = None
    availability: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, product):
        return cls(**product.model_dump())
