from typing import List, Optional

from farm2city.domain.models import Order, OrderStatus
from farm2city.domain.exceptions import OrderNotFoundError


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            return order


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(
        self,
        buyer_id: Optional[str] = None,
        farmer_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        product_id: Optional[str] = None,
    ) -> List[Order]:
        async with self._uow() as uow:
            return await uow.orders.search(
                buyer_id=buyer_id, farmer_id=farmer_id, status=status, product_id=product_id
            )
