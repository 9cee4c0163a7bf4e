"""
Admin-side draft editing and publishing for the form builder.
"""

from .db import Database
from .exceptions import ConfigurationError, FormBuilderValidationError, NotFoundError
from .form_builder import (
    ConvertResult,
    ValidationResult,
    add_common_final_step,
    add_conditional_step,
    add_trigger_step,
    convert_to_customer_form,
    init_form_builder,
    remove_step,
    validate_form_builder,
)
from .form_schema import (
    FormBuilderCategory,
    FormBuilderCondition,
    FormBuilderData,
    FormSection,
)


class FormBuilderService:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def load(self, shop_id: int, shooting_category_id: int) -> FormBuilderData:
        data = await self.db.get_form_builder_data(shop_id, shooting_category_id)
        if data is None:
            raise NotFoundError(
                f"No form builder draft for shop {shop_id}, shooting category {shooting_category_id}"
            )
        return data

    async def load_or_init(
        self, shop_id: int, shooting_category_id: int, shooting_category_name: str = ""
    ) -> FormBuilderData:
        data = await self.db.get_form_builder_data(shop_id, shooting_category_id)
        if data is not None:
            return data

        if not shooting_category_name:
            shooting_category = await self.db.get_shooting_category(shop_id, shooting_category_id)
            if shooting_category is not None:
                shooting_category_name = shooting_category.display_name
        return init_form_builder(shooting_category_id, shooting_category_name, shop_id=shop_id)

    async def save(self, data: FormBuilderData) -> FormBuilderData:
        await self.db.save_form_builder_data(data)
        return data

    async def add_step(
        self,
        shop_id: int,
        shooting_category_id: int,
        step_type: FormSection,
        category: FormBuilderCategory,
        condition: FormBuilderCondition | None = None,
    ) -> FormBuilderData:
        data = await self.load_or_init(shop_id, shooting_category_id)
        if step_type == FormSection.trigger:
            data = add_trigger_step(data, category)
        elif step_type == FormSection.conditional:
            if condition is None:
                raise ConfigurationError("A conditional step needs a condition")
            data = add_conditional_step(data, category, condition)
        else:
            data = add_common_final_step(data, category)
        return await self.save(data)

    async def remove_step(
        self, shop_id: int, shooting_category_id: int, index: int
    ) -> FormBuilderData:
        data = await self.load(shop_id, shooting_category_id)
        return await self.save(remove_step(data, index))

    async def validate(self, shop_id: int, shooting_category_id: int) -> ValidationResult:
        return validate_form_builder(await self.load(shop_id, shooting_category_id))

    async def publish(self, shop_id: int, shooting_category_id: int) -> ConvertResult:
        data = await self.load(shop_id, shooting_category_id)
        result = validate_form_builder(data)
        if not result.is_valid:
            raise FormBuilderValidationError(result.errors)

        converted = convert_to_customer_form(data)
        await self.db.replace_published_form(
            shop_id, shooting_category_id, converted.categories, converted.items
        )
        return converted
