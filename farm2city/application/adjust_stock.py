import logging
from datetime import datetime, timezone
from typing import List
from pydantic import BaseModel

from farm2city.domain.models import InventoryRecord, UserRole
from farm2city.domain.exceptions import (
    ConcurrentUpdateError, InventoryNotFoundError, PermissionDeniedError, ProductNotFoundError,
    UserNotFoundError
)

logger = logging.getLogger(__name__)


async def apply_stock_delta(uow, shopkeeper_id: str, product_id: str, delta: int, now: datetime) -> InventoryRecord:
    """Изменяет остаток в рамках открытой транзакции uow.

    Если записи для пары (магазин, товар) еще нет, она создается с нулевыми
    счетчиками и только потом к ней применяется delta. Запись обновляется
    условно по прочитанным счетчикам; при ошибке транзакция откатывается
    целиком, включая созданную запись.
    """
    record = await uow.inventory.get(shopkeeper_id, product_id)
    if record is None:
        record = InventoryRecord(shopkeeper_id=shopkeeper_id, product_id=product_id, updated_at=now)
        await uow.inventory.create(record)

    updated = record.apply(delta, now)
    if not await uow.inventory.update(record, updated):
        raise ConcurrentUpdateError(f"Остаток {shopkeeper_id}/{product_id} изменен параллельно")
    return updated


class AdjustStockDTO(BaseModel):
    shopkeeper_id: str
    product_id: str
    delta: int


class AdjustStockUseCase:
    def __init__(self, unit_of_work, reorder_check=None, clock=None):
        self._uow = unit_of_work
        self._reorder_check = reorder_check
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __call__(self, dto: AdjustStockDTO) -> InventoryRecord:
        logger.info(f"Изменение остатка {dto.shopkeeper_id}/{dto.product_id} на {dto.delta}")

        async with self._uow() as uow:
            shopkeeper = await uow.users.get_by_id(dto.shopkeeper_id)
            if not shopkeeper:
                raise UserNotFoundError(f"Пользователь {dto.shopkeeper_id} не найден")
            if shopkeeper.role != UserRole.SHOPKEEPER:
                raise PermissionDeniedError(f"Пользователь {dto.shopkeeper_id} не ведет склад")
            if not await uow.products.get_by_id(dto.product_id):
                raise ProductNotFoundError(f"Товар {dto.product_id} не найден")

            record = await apply_stock_delta(uow, dto.shopkeeper_id, dto.product_id, dto.delta, self._clock())
            await uow.commit()

        logger.info(
            f"Остаток {dto.shopkeeper_id}/{dto.product_id}: {record.current_stock} "
            f"(приход {record.quantity_in}, расход {record.quantity_out})"
        )

        if dto.delta < 0 and self._reorder_check:
            try:
                await self._reorder_check(dto.shopkeeper_id, dto.product_id)
            except Exception as e:
                logger.warning(f"Проверка автозаказа {dto.shopkeeper_id}/{dto.product_id} не выполнена: {e}")

        return record


class GetInventoryUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, shopkeeper_id: str) -> List[InventoryRecord]:
        async with self._uow() as uow:
            return await uow.inventory.list_by_shopkeeper(shopkeeper_id)


class GetInventoryRecordUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, shopkeeper_id: str, product_id: str) -> InventoryRecord:
        async with self._uow() as uow:
            record = await uow.inventory.get(shopkeeper_id, product_id)
            if not record:
                raise InventoryNotFoundError(f"Складская запись {shopkeeper_id}/{product_id} не найдена")
            return record
