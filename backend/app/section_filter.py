"""
Decides which product-category sections a customer currently sees.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from .condition_evaluator import evaluate_rule
from .form_schema import FormSection, ProductCategory


class VisibleSections(BaseModel):
    has_trigger: bool
    trigger: list[ProductCategory] = Field(default_factory=list)
    conditional: list[ProductCategory] = Field(default_factory=list)
    common_final: list[ProductCategory] = Field(default_factory=list)


def should_show_category(category: ProductCategory, values: Mapping[str, Any]) -> bool:
    if not category.is_active:
        return False

    if category.form_section in (None, FormSection.trigger, FormSection.common_final):
        return True

    if category.form_section == FormSection.conditional:
        # No gate configured
        if category.conditional_rule is None:
            return True
        return evaluate_rule(category.conditional_rule, values)

    return False


def filter_visible_categories(
    categories: Iterable[ProductCategory], values: Mapping[str, Any]
) -> list[ProductCategory]:
    """Keep visible categories in their original order."""
    return [category for category in categories if should_show_category(category, values)]


def has_trigger_sections(categories: Iterable[ProductCategory]) -> bool:
    return any(
        category.is_active and category.form_section == FormSection.trigger
        for category in categories
    )


def should_show_common_final(
    categories: Iterable[ProductCategory], values: Mapping[str, Any]
) -> bool:
    """
    Common-final sections wait until gating is resolved: either the form has
    no conditional sections at all, or at least one of them is visible.
    """
    conditional = [
        c for c in categories if c.is_active and c.form_section == FormSection.conditional
    ]
    if not conditional:
        return True
    return any(should_show_category(c, values) for c in conditional)


def group_visible_sections(
    categories: Iterable[ProductCategory], values: Mapping[str, Any]
) -> VisibleSections:
    categories = list(categories)
    visible = filter_visible_categories(categories, values)
    grouped = VisibleSections(has_trigger=has_trigger_sections(categories))

    for category in visible:
        if category.form_section == FormSection.conditional:
            grouped.conditional.append(category)
        elif category.form_section == FormSection.common_final:
            grouped.common_final.append(category)
        else:
            grouped.trigger.append(category)

    if not should_show_common_final(categories, values):
        grouped.common_final = []
    return grouped
