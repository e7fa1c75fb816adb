class DomainException(Exception):
    pass


class InvalidTransitionError(DomainException):
    def __init__(self, order_id: str, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Заказ {order_id}: переход {current} -> {target} недопустим")


class InsufficientStockError(DomainException):
    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Недостаточно товара. Доступно: {available}, требуется: {required}")


class InvalidRuleError(DomainException):
    pass


class InvalidOrderError(DomainException):
    pass


class InvalidProductError(DomainException):
    pass


class InvalidAdjustmentError(DomainException):
    pass


class PermissionDeniedError(DomainException):
    pass


class ConcurrentUpdateError(DomainException):
    """Запись изменена параллельно, операцию можно повторить"""
    pass


class StoreUnavailableError(DomainException):
    """Хранилище недоступно, вызывающий может повторить с задержкой"""
    pass


class ProductUnavailableError(DomainException):
    pass


class PaymentError(DomainException):
    pass


class NotFoundError(DomainException):
    pass


class OrderNotFoundError(NotFoundError):
    pass


class ProductNotFoundError(NotFoundError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class InventoryNotFoundError(NotFoundError):
    pass


class RuleNotFoundError(NotFoundError):
    pass
