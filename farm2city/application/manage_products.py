import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel

from farm2city.domain.models import Product, UserRole
from farm2city.domain.exceptions import (
    InvalidProductError, PermissionDeniedError, ProductNotFoundError, UserNotFoundError
)

logger = logging.getLogger(__name__)


class CreateProductDTO(BaseModel):
    farmer_id: str
    name: str
    price: Decimal
    quantity: int
    unit: str = "kg"


class UpdateProductDTO(BaseModel):
    farmer_id: str
    name: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[int] = None
    unit: Optional[str] = None
    availability: Optional[bool] = None


def _validate(product: Product) -> None:
    if not product.name.strip():
        raise InvalidProductError("Название товара обязательно")
    if product.price <= 0:
        raise InvalidProductError(f"Цена должна быть больше нуля: {product.price}")
    if product.quantity < 0:
        raise InvalidProductError(f"Количество не может быть отрицательным: {product.quantity}")


async def _get_own_product(uow, product_id: str, farmer_id: str) -> Product:
    product = await uow.products.get_by_id(product_id)
    if not product:
        raise ProductNotFoundError(f"Товар {product_id} не найден")
    if product.farmer_id != farmer_id:
        raise PermissionDeniedError(f"Товар {product_id} принадлежит другому фермеру")
    return product


class CreateProductUseCase:
    def __init__(self, unit_of_work, clock=None):
        self._uow = unit_of_work
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __call__(self, dto: CreateProductDTO) -> Product:
        product = Product(
            id=str(uuid.uuid4()),
            farmer_id=dto.farmer_id,
            name=dto.name,
            price=dto.price,
            quantity=dto.quantity,
            unit=dto.unit,
            availability=True,
            created_at=self._clock()
        )
        _validate(product)
        if product.quantity < 1:
            raise InvalidProductError("При добавлении товара количество должно быть не меньше 1")

        async with self._uow() as uow:
            farmer = await uow.users.get_by_id(dto.farmer_id)
            if not farmer:
                raise UserNotFoundError(f"Пользователь {dto.farmer_id} не найден")
            if farmer.role != UserRole.FARMER:
                raise PermissionDeniedError("Товары добавляют только фермеры")

            await uow.products.create(product)
            await uow.commit()

        logger.info(f"Товар {product.id} ({product.name}) добавлен фермером {product.farmer_id}")
        return product


class UpdateProductUseCase:
    """Изменение товара владельцем, включая снятие с продажи через availability"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str, dto: UpdateProductDTO) -> Product:
        async with self._uow() as uow:
            product = await _get_own_product(uow, product_id, dto.farmer_id)

            changes = dto.model_dump(exclude_none=True, exclude={"farmer_id"})
            updated = product.model_copy(update=changes)
            _validate(updated)

            await uow.products.update(updated)
            await uow.commit()

        logger.info(f"Товар {product_id} обновлен: {changes}")
        return updated


class DeleteProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str, farmer_id: str) -> None:
        async with self._uow() as uow:
            await _get_own_product(uow, product_id, farmer_id)
            # Заказы ссылаются на товар, такой товар можно только снять с продажи
            if await uow.orders.search(product_id=product_id):
                raise InvalidProductError(f"По товару {product_id} есть заказы, удаление невозможно")

            await uow.products.delete(product_id)
            await uow.commit()

        logger.info(f"Товар {product_id} удален")


class ListProductsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, farmer_id: str) -> List[Product]:
        async with self._uow() as uow:
            return await uow.products.list_by_farmer(farmer_id)


class GetProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str) -> Product:
        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
            if not product:
                raise ProductNotFoundError(f"Товар {product_id} не найден")
            return product
