"""
Pydantic models for rules, product categories, items, campaigns and
form-builder drafts.
"""

import logging
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class FormSection(str, Enum):
    trigger = "trigger"
    conditional = "conditional"
    common_final = "common_final"


class ProductType(str, Enum):
    plan = "plan"
    option_single = "option_single"
    option_multi = "option_multi"


class FieldType(str, Enum):
    radio = "radio"
    select = "select"
    checkbox = "checkbox"


class Operator(str, Enum):
    eq = "="
    ne = "!="
    in_ = "IN"
    not_in = "NOT_IN"
    gt = ">"
    gte = ">="
    lt = "<"
    lte = "<="


class DiscountType(str, Enum):
    percentage = "percentage"
    fixed = "fixed"


Scalar = Union[bool, int, float, str]
FormValues = dict[str, Any]


# Rule tree: a rule holds clauses, a clause is an item or one AND group of items.

class ConditionItem(BaseModel):
    field: str
    # Kept as a plain string so an unknown operator evaluates to False
    # instead of failing to load.
    operator: str
    value: Scalar | list[Scalar]


class NestedAndCondition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    all_of: list[ConditionItem] = Field(alias="AND")


Clause = Union[ConditionItem, NestedAndCondition]


class ConditionalRule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    all_of: list[Clause] | None = Field(default=None, alias="AND")
    any_of: list[Clause] | None = Field(default=None, alias="OR")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def single_match_rule(field: str, value: Scalar) -> ConditionalRule:
    """Rule satisfied when ``field`` equals ``value``."""
    return ConditionalRule(
        all_of=[ConditionItem(field=field, operator=Operator.eq.value, value=value)]
    )


_clause_adapter: TypeAdapter[Clause] = TypeAdapter(Clause)

# Stands in for a clause that does not parse. No operator is named "", so it
# never matches.
UNMATCHABLE_CLAUSE = ConditionItem(field="", operator="", value="")


def _load_clauses(raw: Any) -> list[Clause]:
    if not isinstance(raw, list):
        logger.debug("Rule group %r is not a list; treated as unmatchable", raw)
        return [UNMATCHABLE_CLAUSE]

    clauses: list[Clause] = []
    for entry in raw:
        try:
            clauses.append(_clause_adapter.validate_python(entry))
        except ValidationError as exc:
            logger.debug("Malformed clause %r treated as unmatchable: %s", entry, exc)
            clauses.append(UNMATCHABLE_CLAUSE)
    return clauses


def load_rule(raw: Any) -> ConditionalRule:
    """
    Build a rule from stored JSON one clause at a time.

    Only the group that will be evaluated is read: when ``AND`` is present the
    ``OR`` key is ignored, whatever it holds. A clause that does not parse
    becomes ``UNMATCHABLE_CLAUSE`` and the clauses next to it keep working.
    Anything that is not a mapping gives a rule with no groups, which never
    matches.
    """
    if isinstance(raw, ConditionalRule):
        return raw
    if not isinstance(raw, Mapping):
        return ConditionalRule()

    all_of = raw.get("AND", raw.get("all_of"))
    if all_of is not None:
        return ConditionalRule(all_of=_load_clauses(all_of))
    any_of = raw.get("OR", raw.get("any_of"))
    if any_of is not None:
        return ConditionalRule(any_of=_load_clauses(any_of))
    return ConditionalRule()


class ShootingCategory(BaseModel):
    id: int | None = None
    shop_id: int | None = None
    name: str
    display_name: str
    sort_order: int = 0
    is_active: bool = True


class ProductCategory(BaseModel):
    id: int
    shop_id: int | None = None
    name: str = ""
    display_name: str = ""
    description: str | None = None
    sort_order: int = 0
    is_active: bool = True
    # Plain string: values outside FormSection are loaded and then hidden.
    form_section: str | None = None
    product_type: ProductType | None = None
    conditional_rule: ConditionalRule | None = None

    @field_validator("conditional_rule", mode="before")
    @classmethod
    def load_conditional_rule(cls, v: Any) -> ConditionalRule | None:
        if v is None:
            return None
        return load_rule(v)


class Item(BaseModel):
    id: int
    product_category_id: int
    shop_id: int | None = None
    name: str = ""
    price: int
    description: str | None = None
    sort_order: int = 0
    is_active: bool = True
    is_required: bool = False
    auto_select: bool = False


class CampaignAssociations(BaseModel):
    shooting_category_ids: list[int] = Field(default_factory=list)
    product_category_ids: list[int] = Field(default_factory=list)
    item_ids: list[int] = Field(default_factory=list)


class Campaign(BaseModel):
    id: int | None = None
    shop_id: int | None = None
    name: str = ""
    discount_type: DiscountType
    discount_value: Decimal
    start_date: date
    end_date: date
    is_active: bool = True
    associations: CampaignAssociations = Field(default_factory=CampaignAssociations)


# Form-builder draft. Persisted as camelCase JSON in the form_data column.

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FormBuilderItem(_CamelModel):
    id: int
    name: str
    price: int
    description: str | None = None


class FormBuilderCategory(_CamelModel):
    id: int
    name: str
    display_name: str
    description: str | None = None
    product_type: ProductType
    items: list[FormBuilderItem] = Field(default_factory=list)


class FormBuilderCondition(_CamelModel):
    # id of the trigger category whose answer gates the step
    field_id: int
    field_name: str
    value: str


class FormBuilderStep(_CamelModel):
    type: FormSection
    category: FormBuilderCategory
    condition: FormBuilderCondition | None = None


class FormBuilderData(_CamelModel):
    shop_id: int | None = None
    shooting_category_id: int
    shooting_category_name: str
    steps: list[FormBuilderStep] = Field(default_factory=list)
