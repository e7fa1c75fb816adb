import logging
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from farm2city.config import settings
from farm2city.database import AsyncSessionLocal
from farm2city.presentation.schemas import (
    CreateOrderRequest, OrderResponse, StatusChangeRequest, PayOrderRequest, PayOrderResponse,
    PaymentStatusResponse, AdjustStockRequest, InventoryResponse, CreateRuleRequest, UpdateRuleRequest,
    RuleResponse, ScanResponse, ErrorResponse, CreateProductRequest, UpdateProductRequest, ProductResponse
)
from farm2city.application.create_order import CreateOrderUseCase, CreateOrderDTO
from farm2city.application.get_order import GetOrderUseCase, ListOrdersUseCase
from farm2city.application.change_order_status import ChangeOrderStatusUseCase, ChangeOrderStatusDTO
from farm2city.application.pay_order import PayOrderUseCase, PayOrderDTO
from farm2city.application.adjust_stock import (
    AdjustStockUseCase, AdjustStockDTO, GetInventoryUseCase, GetInventoryRecordUseCase
)
from farm2city.application.reorder_rules import (
    CreateReorderRuleUseCase, CreateRuleDTO, UpdateReorderRuleUseCase, UpdateRuleDTO, DeleteReorderRuleUseCase,
    ListReorderRulesUseCase
)
from farm2city.application.run_reorder_check import RunReorderCheckUseCase, ScanReorderRulesUseCase
from farm2city.application.manage_products import (
    CreateProductUseCase, CreateProductDTO, UpdateProductUseCase, UpdateProductDTO, DeleteProductUseCase,
    ListProductsUseCase, GetProductUseCase
)
from farm2city.application.interfaces import NotificationsService, PaymentGateway
from farm2city.domain.models import OrderStatus
from farm2city.domain.exceptions import (
    DomainException, NotFoundError, PermissionDeniedError, InvalidTransitionError, ConcurrentUpdateError,
    InsufficientStockError, ProductUnavailableError, PaymentError, StoreUnavailableError
)
from farm2city.infrastructure.unit_of_work import UnitOfWork
from farm2city.infrastructure.notifications import build_notifications_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(e: DomainException) -> HTTPException:
    if isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, PermissionDeniedError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, (InvalidTransitionError, ConcurrentUpdateError, InsufficientStockError,
                        ProductUnavailableError, PaymentError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, StoreUnavailableError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(e))


# Фабрики для создания use cases
def get_session_factory():
    return AsyncSessionLocal


def get_uow(session_factory=Depends(get_session_factory)) -> UnitOfWork:
    return UnitOfWork(session_factory)


def get_notifications(session_factory=Depends(get_session_factory)) -> NotificationsService:
    return build_notifications_service(session_factory, settings.NOTIFICATIONS_BASE_URL, settings.API_TOKEN)


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_reorder_check(uow=Depends(get_uow), notifications=Depends(get_notifications)):
    return RunReorderCheckUseCase(uow, notifications)


def get_change_status_use_case(
    uow=Depends(get_uow),
    notifications=Depends(get_notifications),
    reorder_check=Depends(get_reorder_check)
):
    return ChangeOrderStatusUseCase(uow, notifications, reorder_check)


def get_adjust_stock_use_case(uow=Depends(get_uow), reorder_check=Depends(get_reorder_check)):
    return AdjustStockUseCase(uow, reorder_check)


@router.post(
    "/orders",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    uow=Depends(get_uow),
    notifications=Depends(get_notifications)
):
    """Создать новый заказ"""
    try:
        order = await CreateOrderUseCase(uow, notifications)(CreateOrderDTO(**request.model_dump()))
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise _http_error(e)


@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    buyer_id: Optional[str] = None,
    farmer_id: Optional[str] = None,
    product_id: Optional[str] = None,
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    uow=Depends(get_uow)
):
    """Список заказов с фильтрами"""
    try:
        orders = await ListOrdersUseCase(uow)(
            buyer_id=buyer_id, farmer_id=farmer_id, status=order_status, product_id=product_id
        )
        return [OrderResponse.from_domain(order) for order in orders]
    except DomainException as e:
        raise _http_error(e)


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_order(order_id: str, uow=Depends(get_uow)):
    """Получить заказ по ID"""
    try:
        order = await GetOrderUseCase(uow)(order_id)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise _http_error(e)


async def _change_status(use_case: ChangeOrderStatusUseCase, order_id: str, actor_id: str, new_status: OrderStatus):
    try:
        order = await use_case(ChangeOrderStatusDTO(order_id=order_id, actor_id=actor_id, status=new_status))
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise _http_error(e)


@router.post("/orders/{order_id}/confirm", response_model=OrderResponse, responses={409: {"model": ErrorResponse}})
async def confirm_order(order_id: str, request: StatusChangeRequest, use_case=Depends(get_change_status_use_case)):
    return await _change_status(use_case, order_id, request.actor_id, OrderStatus.CONFIRMED)


@router.post("/orders/{order_id}/reject", response_model=OrderResponse, responses={409: {"model": ErrorResponse}})
async def reject_order(order_id: str, request: StatusChangeRequest, use_case=Depends(get_change_status_use_case)):
    return await _change_status(use_case, order_id, request.actor_id, OrderStatus.REJECTED)


@router.post("/orders/{order_id}/deliver", response_model=OrderResponse, responses={409: {"model": ErrorResponse}})
async def deliver_order(order_id: str, request: StatusChangeRequest, use_case=Depends(get_change_status_use_case)):
    return await _change_status(use_case, order_id, request.actor_id, OrderStatus.DELIVERED)


@router.post("/orders/{order_id}/pay", response_model=PayOrderResponse, responses={409: {"model": ErrorResponse}})
async def pay_order(
    order_id: str,
    request: PayOrderRequest,
    uow=Depends(get_uow),
    gateway=Depends(get_payment_gateway),
    notifications=Depends(get_notifications)
):
    """Оплатить заказ через платежный шлюз"""
    try:
        result = await PayOrderUseCase(uow, gateway, notifications)(
            PayOrderDTO(order_id=order_id, buyer_id=request.buyer_id, method=request.method)
        )
        return PayOrderResponse(
            order=OrderResponse.from_domain(result.order),
            transaction_id=result.transaction_id,
            success=result.success,
            error=result.error
        )
    except DomainException as e:
        raise _http_error(e)


@router.get("/payments/{transaction_id}", response_model=PaymentStatusResponse, responses={404: {"model": ErrorResponse}})
async def get_payment(transaction_id: str, gateway=Depends(get_payment_gateway)):
    transaction = await gateway.get_payment_status(transaction_id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Транзакция не найдена")
    return PaymentStatusResponse(**transaction.model_dump())


@router.post("/inventory/adjust", response_model=InventoryResponse, responses={409: {"model": ErrorResponse}})
async def adjust_stock(request: AdjustStockRequest, use_case=Depends(get_adjust_stock_use_case)):
    """Ручная корректировка остатка магазина"""
    try:
        record = await use_case(AdjustStockDTO(**request.model_dump()))
        return InventoryResponse.from_domain(record)
    except DomainException as e:
        raise _http_error(e)


@router.get("/inventory/{shopkeeper_id}", response_model=List[InventoryResponse])
async def list_inventory(shopkeeper_id: str, uow=Depends(get_uow)):
    try:
        records = await GetInventoryUseCase(uow)(shopkeeper_id)
        return [InventoryResponse.from_domain(record) for record in records]
    except DomainException as e:
        raise _http_error(e)


@router.get(
    "/inventory/{shopkeeper_id}/{product_id}",
    response_model=InventoryResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_inventory_record(shopkeeper_id: str, product_id: str, uow=Depends(get_uow)):
    try:
        record = await GetInventoryRecordUseCase(uow)(shopkeeper_id, product_id)
        return InventoryResponse.from_domain(record)
    except DomainException as e:
        raise _http_error(e)


@router.post(
    "/reorder-rules",
    response_model=RuleResponse,
    responses={400: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_rule(request: CreateRuleRequest, uow=Depends(get_uow)):
    """Создать правило автозаказа"""
    try:
        rule = await CreateReorderRuleUseCase(uow)(CreateRuleDTO(**request.model_dump()))
        return RuleResponse.from_domain(rule)
    except DomainException as e:
        raise _http_error(e)


@router.get("/reorder-rules", response_model=List[RuleResponse])
async def list_rules(shopkeeper_id: str, uow=Depends(get_uow)):
    try:
        rules = await ListReorderRulesUseCase(uow)(shopkeeper_id)
        return [RuleResponse.from_domain(rule) for rule in rules]
    except DomainException as e:
        raise _http_error(e)


@router.patch("/reorder-rules/{rule_id}", response_model=RuleResponse, responses={404: {"model": ErrorResponse}})
async def update_rule(rule_id: str, request: UpdateRuleRequest, uow=Depends(get_uow)):
    try:
        rule = await UpdateReorderRuleUseCase(uow)(rule_id, UpdateRuleDTO(**request.model_dump()))
        return RuleResponse.from_domain(rule)
    except DomainException as e:
        raise _http_error(e)


@router.delete(
    "/reorder-rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}}
)
async def delete_rule(rule_id: str, uow=Depends(get_uow)):
    try:
        await DeleteReorderRuleUseCase(uow)(rule_id)
    except DomainException as e:
        raise _http_error(e)


@router.post("/reorder-rules/scan", response_model=ScanResponse)
async def scan_rules(uow=Depends(get_uow), reorder_check=Depends(get_reorder_check)):
    """Проверить все включенные правила автозаказа"""
    try:
        triggered = await ScanReorderRulesUseCase(uow, reorder_check)()
        return ScanResponse(triggered=triggered)
    except DomainException as e:
        raise _http_error(e)


@router.post(
    "/products",
    response_model=ProductResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_product(request: CreateProductRequest, uow=Depends(get_uow)):
    """Добавить товар фермера"""
    try:
        product = await CreateProductUseCase(uow)(CreateProductDTO(**request.model_dump()))
        return ProductResponse.from_domain(product)
    except DomainException as e:
        raise _http_error(e)


@router.get("/products", response_model=List[ProductResponse])
async def list_products(farmer_id: str, uow=Depends(get_uow)):
    try:
        products = await ListProductsUseCase(uow)(farmer_id)
        return [ProductResponse.from_domain(product) for product in products]
    except DomainException as e:
        raise _http_error(e)


@router.get("/products/{product_id}", response_model=ProductResponse, responses={404: {"model": ErrorResponse}})
async def get_product(product_id: str, uow=Depends(get_uow)):
    try:
        product = await GetProductUseCase(uow)(product_id)
        return ProductResponse.from_domain(product)
    except DomainException as e:
        raise _http_error(e)


@router.patch("/products/{product_id}", response_model=ProductResponse, responses={403: {"model": ErrorResponse}})
async def update_product(product_id: str, request: UpdateProductRequest, uow=Depends(get_uow)):
    """Изменить товар или снять его с продажи"""
    try:
        product = await UpdateProductUseCase(uow)(product_id, UpdateProductDTO(**request.model_dump()))
        return ProductResponse.from_domain(product)
    except DomainException as e:
        raise _http_error(e)


@router.delete(
    "/products/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def delete_product(product_id: str, farmer_id: str, uow=Depends(get_uow)):
    try:
        await DeleteProductUseCase(uow)(product_id, farmer_id)
    except DomainException as e:
        raise _http_error(e)


@router.get("/health")
async def health(session_factory=Depends(get_session_factory)):
    """Проверка доступности базы"""
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error(f"База недоступна: {e}")
        database = "disconnected"
    return {
        "status": "ok" if database == "connected" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {"database": database}
    }
