from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from .form_schema import (
    Campaign,
    FormBuilderCategory,
    FormBuilderCondition,
    FormSection,
    Item,
    ProductCategory,
)


class EvaluateRuleRequest(BaseModel):
    # Raw JSON so a malformed rule evaluates to False instead of a 422.
    rule: dict[str, Any] | None = Field(..., description="Conditional rule with AND/OR groups")
    values: dict[str, Any] = Field(default_factory=dict)


class EvaluateRuleResponse(BaseModel):
    result: bool


class VisibleSectionsRequest(BaseModel):
    categories: list[ProductCategory]
    values: dict[str, Any] = Field(default_factory=dict)


class PriceRequest(BaseModel):
    selected_item_ids: list[int] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)
    campaigns: list[Campaign] = Field(default_factory=list)
    shooting_category_id: int | None = None
    today: date | None = Field(
        default=None, description="Pricing date for campaign windows; defaults to today"
    )


class QuoteRequest(BaseModel):
    values: dict[str, Any] = Field(default_factory=dict)
    selected_item_ids: list[int] = Field(default_factory=list)


class AddStepRequest(BaseModel):
    type: FormSection
    category: FormBuilderCategory
    condition: FormBuilderCondition | None = None


class ValidationErrorResponse(BaseModel):
    detail: str
    errors: list[str] = Field(default_factory=list)
