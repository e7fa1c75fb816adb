from datetime import datetime
from typing import Optional

from farm2city.domain.models import AutoReorderRule, ReorderEvent, ReorderFrequency
from farm2city.domain.exceptions import InvalidRuleError


def validate_rule_settings(min_stock: int, reorder_quantity: int, frequency) -> ReorderFrequency:
    """Проверка настроек автозаказа при создании/изменении правила"""
    if min_stock < 0:
        raise InvalidRuleError(f"Минимальный остаток не может быть отрицательным: {min_stock}")
    if reorder_quantity <= 0:
        raise InvalidRuleError(f"Количество дозаказа должно быть больше нуля: {reorder_quantity}")
    try:
        return ReorderFrequency(frequency)
    except ValueError:
        raise InvalidRuleError(f"Неизвестная периодичность: {frequency}")


def evaluate(
    rule: AutoReorderRule,
    current_stock: int,
    last_triggered_at: Optional[datetime],
    now: datetime,
) -> Optional[ReorderEvent]:
    """Решает, нужен ли дозаказ. Правило считается уже провалидированным.

    Повторный вызов с теми же входными данными дает тот же результат;
    сохранять last_triggered_at после срабатывания должен вызывающий.
    """
    if not rule.enabled:
        return None
    if current_stock >= rule.min_stock:
        return None
    if last_triggered_at is not None and now - last_triggered_at < rule.frequency.window:
        return None

    return ReorderEvent(
        rule_id=rule.id,
        shopkeeper_id=rule.shopkeeper_id,
        product_id=rule.product_id,
        recommended_quantity=rule.reorder_quantity,
        current_stock=current_stock,
        triggered_at=now,
    )
