"""
Customer-facing simulator: loads a published form and turns answers and
selections into visible sections and a price.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from .campaigns import PriceBreakdown, calculate_campaign_price
from .db import Database
from .form_builder import condition_field_name
from .form_schema import Campaign, FormSection, Item, ProductCategory
from .pricing import TAX_RATE, resolve_selection, with_auto_selected
from .section_filter import VisibleSections, group_visible_sections

logger = logging.getLogger(__name__)


class SimulatorData(BaseModel):
    categories: list[ProductCategory] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)
    campaigns: list[Campaign] = Field(default_factory=list)


class Quote(BaseModel):
    sections: VisibleSections
    selected_item_ids: list[int]
    price: PriceBreakdown


def answers_from_selection(
    categories: Iterable[ProductCategory],
    selected_items: Iterable[Item],
    values: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Record the chosen item of each trigger category under its form field,
    the key conditional rules are written against. Explicit answers win.
    """
    trigger_ids = {
        c.id for c in categories if c.form_section == FormSection.trigger
    }
    answers: dict[str, Any] = {}
    for item in selected_items:
        if item.product_category_id in trigger_ids:
            answers.setdefault(condition_field_name(item.product_category_id), item.id)
    answers.update(values or {})
    return answers


def build_quote(
    data: SimulatorData,
    values: Mapping[str, Any],
    selected_item_ids: Iterable[int],
    shooting_category_id: int | None = None,
    today: date | None = None,
    tax_rate: Decimal = TAX_RATE,
) -> Quote:
    selected_item_ids = list(selected_item_ids)
    answers = answers_from_selection(
        data.categories, resolve_selection(selected_item_ids, data.items), values
    )
    sections = group_visible_sections(data.categories, answers)

    # Selections in hidden sections do not count towards the price.
    visible_ids = {
        c.id for c in sections.trigger + sections.conditional + sections.common_final
    }
    priced_ids = [
        item.id
        for item in resolve_selection(selected_item_ids, data.items)
        if item.product_category_id in visible_ids
    ]
    priced_ids = with_auto_selected(priced_ids, visible_ids, data.items)

    price = calculate_campaign_price(
        resolve_selection(priced_ids, data.items),
        data.campaigns,
        shooting_category_id=shooting_category_id,
        today=today,
        tax_rate=tax_rate,
    )
    return Quote(sections=sections, selected_item_ids=priced_ids, price=price)


class SimulatorService:
    def __init__(self, db: Database, tax_rate: Decimal = TAX_RATE) -> None:
        self.db = db
        self.tax_rate = tax_rate

    async def load(self, shop_id: int, shooting_category_id: int) -> SimulatorData:
        categories = await self.db.list_product_categories(shop_id, shooting_category_id)
        category_ids = {c.id for c in categories}
        items = [
            item
            for item in await self.db.list_items(shop_id)
            if item.product_category_id in category_ids
        ]
        campaigns = [c for c in await self.db.list_campaigns(shop_id) if c.is_active]
        return SimulatorData(categories=categories, items=items, campaigns=campaigns)

    async def quote(
        self,
        shop_id: int,
        shooting_category_id: int,
        values: Mapping[str, Any],
        selected_item_ids: Iterable[int],
        today: date | None = None,
    ) -> Quote:
        data = await self.load(shop_id, shooting_category_id)
        quote = build_quote(
            data,
            values,
            selected_item_ids,
            shooting_category_id=shooting_category_id,
            today=today,
            tax_rate=self.tax_rate,
        )
        logger.info(
            "Quote for shop %s, shooting category %s: %d items, total %d",
            shop_id,
            shooting_category_id,
            len(quote.selected_item_ids),
            quote.price.total,
        )
        return quote
