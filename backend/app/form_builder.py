"""
Form-builder step model.

A draft is an ordered list of steps: trigger steps are asked first,
conditional steps are gated on an answer to an earlier trigger, and
common-final steps are offered at the end. Every operation returns a new
FormBuilderData and leaves its input untouched.
"""

import logging

from pydantic import BaseModel, Field

from .exceptions import ConfigurationError
from .form_schema import (
    FormBuilderCategory,
    FormBuilderCondition,
    FormBuilderData,
    FormBuilderStep,
    FormSection,
    Item,
    ProductCategory,
    single_match_rule,
)

logger = logging.getLogger(__name__)

MISSING_TRIGGER_STEP = "At least one trigger step is required before adding a conditional step"


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class ConvertResult(BaseModel):
    categories: list[ProductCategory] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)


def condition_field_name(trigger_category_id: int) -> str:
    """Form-value key under which a trigger category's answer is stored."""
    return f"category_{trigger_category_id}"


def init_form_builder(
    shooting_category_id: int, shooting_category_name: str, shop_id: int | None = None
) -> FormBuilderData:
    return FormBuilderData(
        shop_id=shop_id,
        shooting_category_id=shooting_category_id,
        shooting_category_name=shooting_category_name,
        steps=[],
    )


def _with_steps(data: FormBuilderData, steps: list[FormBuilderStep]) -> FormBuilderData:
    return data.model_copy(update={"steps": steps})


def has_trigger_step(data: FormBuilderData) -> bool:
    return any(step.type == FormSection.trigger for step in data.steps)


def add_trigger_step(data: FormBuilderData, category: FormBuilderCategory) -> FormBuilderData:
    step = FormBuilderStep(type=FormSection.trigger, category=category)
    return _with_steps(data, [*data.steps, step])


def add_conditional_step(
    data: FormBuilderData,
    category: FormBuilderCategory,
    condition: FormBuilderCondition,
) -> FormBuilderData:
    if not has_trigger_step(data):
        raise ConfigurationError(MISSING_TRIGGER_STEP)
    trigger_ids = {s.category.id for s in data.steps if s.type == FormSection.trigger}
    if condition.field_id not in trigger_ids:
        raise ConfigurationError(
            f"Condition references category {condition.field_id}, "
            "which is not an earlier trigger step"
        )
    step = FormBuilderStep(type=FormSection.conditional, category=category, condition=condition)
    return _with_steps(data, [*data.steps, step])


def add_common_final_step(data: FormBuilderData, category: FormBuilderCategory) -> FormBuilderData:
    step = FormBuilderStep(type=FormSection.common_final, category=category)
    return _with_steps(data, [*data.steps, step])


def remove_step(data: FormBuilderData, index: int) -> FormBuilderData:
    # Out-of-range indexes (negative ones included) remove nothing.
    return _with_steps(data, [step for i, step in enumerate(data.steps) if i != index])


def validate_form_builder(data: FormBuilderData) -> ValidationResult:
    """Collect every problem with the draft instead of stopping at the first."""
    errors: list[str] = []

    if not has_trigger_step(data):
        errors.append("Add a trigger step: at least one trigger step is required")

    for index, step in enumerate(data.steps):
        if not step.category.items:
            errors.append(
                f"Step {index + 1} ({step.category.display_name}) has no items; add at least one choice"
            )

    return ValidationResult(is_valid=not errors, errors=errors)


def _category_record(
    data: FormBuilderData, step: FormBuilderStep, position: int
) -> ProductCategory:
    return ProductCategory(
        id=step.category.id,
        shop_id=data.shop_id,
        name=step.category.name,
        display_name=step.category.display_name,
        description=step.category.description or None,
        sort_order=position,
        is_active=True,
        form_section=step.type.value,
        product_type=step.category.product_type,
    )


def _item_records(data: FormBuilderData, step: FormBuilderStep) -> list[Item]:
    return [
        Item(
            id=item.id,
            product_category_id=step.category.id,
            shop_id=data.shop_id,
            name=item.name,
            price=item.price,
            description=item.description or None,
            sort_order=position,
            is_active=True,
            is_required=False,
            auto_select=False,
        )
        for position, item in enumerate(step.category.items)
    ]


def convert_to_product_categories(data: FormBuilderData) -> ConvertResult:
    """
    Flatten a draft into category and item records.

    Conditional steps get a rule matching the condition value verbatim on
    the trigger category's form field.
    """
    result = ConvertResult()
    for position, step in enumerate(data.steps):
        category = _category_record(data, step, position)
        if step.type == FormSection.conditional and step.condition is not None:
            category.conditional_rule = single_match_rule(
                condition_field_name(step.condition.field_id), step.condition.value
            )
        result.categories.append(category)
        result.items.extend(_item_records(data, step))
    return result


def convert_to_customer_form(data: FormBuilderData) -> ConvertResult:
    """
    Flatten a draft into the records the customer form renders.

    The customer form stores the selected item id as the trigger answer, so
    a conditional step's expected value (an item name of the trigger
    category) is resolved to that item's id. An unresolvable name leaves the
    category ungated.
    """
    item_ids_by_category: dict[int, dict[str, int]] = {
        step.category.id: {item.name: item.id for item in step.category.items}
        for step in data.steps
    }

    result = ConvertResult()
    for position, step in enumerate(data.steps):
        category = _category_record(data, step, position)
        if step.type == FormSection.conditional and step.condition is not None:
            trigger_items = item_ids_by_category.get(step.condition.field_id, {})
            item_id = trigger_items.get(step.condition.value)
            if item_id is not None:
                category.conditional_rule = single_match_rule(
                    condition_field_name(step.condition.field_id), item_id
                )
            else:
                logger.warning(
                    "Cannot build rule for category %s: no item %r in category %s",
                    step.category.id,
                    step.condition.value,
                    step.condition.field_id,
                )
        result.categories.append(category)
        result.items.extend(_item_records(data, step))
    return result
