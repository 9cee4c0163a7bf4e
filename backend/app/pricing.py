"""
Price aggregation for the customer simulator.

Prices are integer yen. Tax is applied through Decimal and floored so that
the result never depends on binary float rounding.
"""

import math
from collections.abc import Iterable
from decimal import Decimal

from .form_schema import Item

TAX_RATE = Decimal("0.10")


def apply_tax(amount: int, tax_rate: Decimal = TAX_RATE) -> int:
    """floor(amount * (1 + tax_rate)); 999 -> 1098."""
    return math.floor(Decimal(amount) * (1 + tax_rate))


def resolve_selection(selected_item_ids: Iterable[int], all_items: Iterable[Item]) -> list[Item]:
    """
    Map selected ids to items, once per id, in selection order.
    Ids without a matching item are skipped.
    """
    by_id: dict[int, Item] = {}
    for item in all_items:
        by_id.setdefault(item.id, item)

    selected: list[Item] = []
    for item_id in dict.fromkeys(selected_item_ids):
        item = by_id.get(item_id)
        if item is not None:
            selected.append(item)
    return selected


def subtotal_of(items: Iterable[Item]) -> int:
    # Negative prices are discount line items and are summed as-is.
    return sum(item.price for item in items)


def calculate_total_price(
    selected_item_ids: Iterable[int],
    all_items: Iterable[Item],
    tax_rate: Decimal = TAX_RATE,
) -> int:
    subtotal = subtotal_of(resolve_selection(selected_item_ids, all_items))
    return apply_tax(subtotal, tax_rate)


def with_auto_selected(
    selected_item_ids: Iterable[int],
    visible_category_ids: Iterable[int],
    all_items: Iterable[Item],
) -> list[int]:
    """Add active auto-select items of the visible categories to a selection."""
    selection = list(selected_item_ids)
    visible = set(visible_category_ids)
    for item in all_items:
        if (
            item.auto_select
            and item.is_active
            and item.product_category_id in visible
            and item.id not in selection
        ):
            selection.append(item.id)
    return selection
