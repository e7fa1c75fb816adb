import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel

from farm2city.domain.models import AutoReorderRule, ReorderFrequency, UserRole
from farm2city.domain.reorder import validate_rule_settings
from farm2city.domain.exceptions import (
    InvalidRuleError, PermissionDeniedError, ProductNotFoundError, RuleNotFoundError, UserNotFoundError
)

logger = logging.getLogger(__name__)


class CreateRuleDTO(BaseModel):
    shopkeeper_id: str
    product_id: str
    min_stock: int = 10
    reorder_quantity: int = 50
    frequency: str = ReorderFrequency.WEEKLY.value
    enabled: bool = True


class UpdateRuleDTO(BaseModel):
    min_stock: Optional[int] = None
    reorder_quantity: Optional[int] = None
    frequency: Optional[str] = None
    enabled: Optional[bool] = None


class CreateReorderRuleUseCase:
    def __init__(self, unit_of_work, clock=None):
        self._uow = unit_of_work
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __call__(self, dto: CreateRuleDTO) -> AutoReorderRule:
        frequency = validate_rule_settings(dto.min_stock, dto.reorder_quantity, dto.frequency)

        async with self._uow() as uow:
            shopkeeper = await uow.users.get_by_id(dto.shopkeeper_id)
            if not shopkeeper:
                raise UserNotFoundError(f"Пользователь {dto.shopkeeper_id} не найден")
            if shopkeeper.role != UserRole.SHOPKEEPER:
                raise PermissionDeniedError("Автозаказ доступен только магазинам")
            if not await uow.products.get_by_id(dto.product_id):
                raise ProductNotFoundError(f"Товар {dto.product_id} не найден")
            if await uow.reorder_rules.get(dto.shopkeeper_id, dto.product_id):
                raise InvalidRuleError(f"Правило для {dto.shopkeeper_id}/{dto.product_id} уже существует")

            rule = AutoReorderRule(
                id=str(uuid.uuid4()),
                shopkeeper_id=dto.shopkeeper_id,
                product_id=dto.product_id,
                min_stock=dto.min_stock,
                reorder_quantity=dto.reorder_quantity,
                frequency=frequency,
                enabled=dto.enabled,
                created_at=self._clock()
            )
            await uow.reorder_rules.create(rule)
            await uow.commit()

        logger.info(f"Правило автозаказа {rule.id} создано для {rule.shopkeeper_id}/{rule.product_id}")
        return rule


class UpdateReorderRuleUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, rule_id: str, dto: UpdateRuleDTO) -> AutoReorderRule:
        async with self._uow() as uow:
            rule = await uow.reorder_rules.get_by_id(rule_id)
            if not rule:
                raise RuleNotFoundError(f"Правило {rule_id} не найдено")

            changes = dto.model_dump(exclude_none=True)
            merged = rule.model_dump() | changes
            merged["frequency"] = validate_rule_settings(
                merged["min_stock"], merged["reorder_quantity"], merged["frequency"]
            )
            updated = AutoReorderRule(**merged)
            await uow.reorder_rules.update(updated)
            await uow.commit()

        logger.info(f"Правило автозаказа {rule_id} обновлено: {changes}")
        return updated


class DeleteReorderRuleUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, rule_id: str) -> None:
        async with self._uow() as uow:
            if not await uow.reorder_rules.delete(rule_id):
                raise RuleNotFoundError(f"Правило {rule_id} не найдено")
            await uow.commit()
        logger.info(f"Правило автозаказа {rule_id} удалено")


class ListReorderRulesUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, shopkeeper_id: str) -> List[AutoReorderRule]:
        async with self._uow() as uow:
            return await uow.reorder_rules.list_by_shopkeeper(shopkeeper_id)
