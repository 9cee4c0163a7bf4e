"""
Campaign discount resolution.

Only one campaign ever applies: the first eligible one in the order given.
The discount is taken off the pre-tax subtotal and tax is applied to what
remains, the same order for every price shown to a customer.
"""

import logging
import math
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from .form_schema import Campaign, DiscountType, Item
from .pricing import TAX_RATE, apply_tax, subtotal_of

logger = logging.getLogger(__name__)


class PriceBreakdown(BaseModel):
    subtotal: int
    discount: int
    tax: int
    total: int
    applied_campaign: Campaign | None = None


def is_campaign_running(campaign: Campaign, today: date) -> bool:
    """Active and today within [start_date, end_date], both ends inclusive."""
    return campaign.is_active and campaign.start_date <= today <= campaign.end_date


def campaign_matches_selection(
    campaign: Campaign,
    selected_items: Sequence[Item],
    shooting_category_id: int | None = None,
) -> bool:
    associations = campaign.associations
    item_ids = set(associations.item_ids)
    product_category_ids = set(associations.product_category_ids)
    shooting_match = (
        shooting_category_id is not None
        and shooting_category_id in associations.shooting_category_ids
    )
    return any(
        item.id in item_ids
        or item.product_category_id in product_category_ids
        or shooting_match
        for item in selected_items
    )


def find_applicable_campaign(
    selected_items: Sequence[Item],
    campaigns: Iterable[Campaign],
    shooting_category_id: int | None = None,
    today: date | None = None,
) -> Campaign | None:
    today = today or date.today()
    for campaign in campaigns:
        if not is_campaign_running(campaign, today):
            continue
        if campaign_matches_selection(campaign, selected_items, shooting_category_id):
            return campaign
    return None


def calculate_discount(subtotal: int, campaign: Campaign | None) -> int:
    """
    Percentage discounts are floored. Fixed discounts are not capped, so a
    fixed amount above the subtotal drives the total negative.
    """
    if campaign is None:
        return 0
    if campaign.discount_type == DiscountType.percentage:
        return math.floor(Decimal(subtotal) * campaign.discount_value / 100)
    return int(campaign.discount_value)


def calculate_campaign_price(
    selected_items: Sequence[Item],
    campaigns: Iterable[Campaign],
    shooting_category_id: int | None = None,
    today: date | None = None,
    tax_rate: Decimal = TAX_RATE,
) -> PriceBreakdown:
    subtotal = subtotal_of(selected_items)
    campaign = find_applicable_campaign(selected_items, campaigns, shooting_category_id, today)
    discount = calculate_discount(subtotal, campaign)
    discounted = subtotal - discount
    total = apply_tax(discounted, tax_rate)

    if campaign is not None:
        logger.debug("Applied campaign %s (%s): -%s", campaign.id, campaign.name, discount)

    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        tax=total - discounted,
        total=total,
        applied_campaign=campaign,
    )
