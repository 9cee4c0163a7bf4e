"""
Human-readable names for section kinds and product types, and the UI control
each product type is rendered with.
"""

from .form_schema import FieldType, FormSection, ProductType

FORM_SECTION_LABELS: dict[FormSection, str] = {
    FormSection.trigger: "Asked first",
    FormSection.conditional: "Shown when a condition matches",
    FormSection.common_final: "Always offered",
}

FORM_SECTION_DESCRIPTIONS: dict[FormSection, str] = {
    FormSection.trigger: "Choices the customer makes first, such as the shooting course or location",
    FormSection.conditional: "Choices offered only for some answers, such as hair and makeup for studio shoots",
    FormSection.common_final: "Add-ons available for every course, such as data delivery or extra albums",
}

PRODUCT_TYPE_LABELS: dict[ProductType, str] = {
    ProductType.plan: "Pick one (radio buttons)",
    ProductType.option_single: "Pick one (dropdown)",
    ProductType.option_multi: "Pick any (checkboxes)",
}

_FIELD_TYPES: dict[ProductType, FieldType] = {
    ProductType.plan: FieldType.radio,
    ProductType.option_single: FieldType.select,
    ProductType.option_multi: FieldType.checkbox,
}


def field_type_for_product_type(product_type: ProductType) -> FieldType:
    return _FIELD_TYPES[ProductType(product_type)]


def label_catalogue() -> dict[str, dict[str, dict[str, str]]]:
    """Labels keyed by enum value, for admin screens."""
    return {
        "form_sections": {
            section.value: {
                "label": FORM_SECTION_LABELS[section],
                "description": FORM_SECTION_DESCRIPTIONS[section],
            }
            for section in FormSection
        },
        "product_types": {
            product_type.value: {
                "label": PRODUCT_TYPE_LABELS[product_type],
                "field_type": field_type_for_product_type(product_type).value,
            }
            for product_type in ProductType
        },
    }
