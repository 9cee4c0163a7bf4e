"""
SQLite access for categories, items, campaigns and form-builder drafts.
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import aiosqlite

from .config import get_settings
from .exceptions import DatabaseOperationError, PublishConflictError
from .form_schema import (
    Campaign,
    CampaignAssociations,
    FormBuilderData,
    Item,
    ProductCategory,
    ShootingCategory,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS shooting_categories (
    id INTEGER PRIMARY KEY,
    shop_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    display_name TEXT NOT NULL,
    sort_order INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS product_categories (
    id INTEGER PRIMARY KEY,
    shop_id INTEGER NOT NULL,
    shooting_category_id INTEGER,
    name TEXT NOT NULL DEFAULT '',
    display_name TEXT NOT NULL DEFAULT '',
    description TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    form_section TEXT,
    product_type TEXT,
    conditional_rule TEXT
);
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY,
    shop_id INTEGER NOT NULL,
    product_category_id INTEGER NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    price INTEGER NOT NULL,
    description TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    is_required INTEGER NOT NULL DEFAULT 0,
    auto_select INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS campaigns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    shop_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    discount_type TEXT NOT NULL,
    discount_value TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS campaign_shooting_associations (
    campaign_id INTEGER NOT NULL,
    shooting_category_id INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS campaign_product_associations (
    campaign_id INTEGER NOT NULL,
    product_category_id INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS campaign_item_associations (
    campaign_id INTEGER NOT NULL,
    item_id INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS form_builder_data (
    shop_id INTEGER NOT NULL,
    shooting_category_id INTEGER NOT NULL,
    form_data TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (shop_id, shooting_category_id)
);
"""


def _category_from_row(row: dict[str, Any]) -> ProductCategory:
    row = dict(row)
    rule = row.pop("conditional_rule", None)
    row.pop("shooting_category_id", None)
    if rule:
        try:
            row["conditional_rule"] = json.loads(rule)
        except json.JSONDecodeError:
            logger.warning("Category %s has an unreadable conditional_rule", row.get("id"))
            # No AND or OR: never matches.
            row["conditional_rule"] = {}
    else:
        row["conditional_rule"] = None
    return ProductCategory.model_validate(row)


class Database:
    def __init__(self, path: Path | None = None) -> None:
        settings = get_settings()
        self.path = path or settings.sqlite_path

    async def init_schema(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.executescript(SCHEMA)
                await db.commit()
        except aiosqlite.Error as exc:
            raise DatabaseOperationError(f"Schema setup failed: {exc}") from exc

    async def fetch_one(
        self, query: str, params: Iterable[Any] | None = None
    ) -> dict[str, Any] | None:
        try:
            async with aiosqlite.connect(self.path) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(query, tuple(params or []))
                row = await cursor.fetchone()
                if row is None:
                    return None
                return dict(row)
        except aiosqlite.Error as exc:
            raise DatabaseOperationError(str(exc)) from exc

    async def fetch_all(
        self, query: str, params: Iterable[Any] | None = None
    ) -> list[dict[str, Any]]:
        try:
            async with aiosqlite.connect(self.path) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(query, tuple(params or []))
                rows = await cursor.fetchall()
                return [dict(row) for row in rows]
        except aiosqlite.Error as exc:
            raise DatabaseOperationError(str(exc)) from exc

    async def execute(self, query: str, params: Iterable[Any] | None = None) -> int | None:
        """Run a single write and return the last inserted row id."""
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(query, tuple(params or []))
                await db.commit()
                return cursor.lastrowid
        except aiosqlite.Error as exc:
            raise DatabaseOperationError(str(exc)) from exc

    # Catalogue

    async def list_shooting_categories(self, shop_id: int) -> list[ShootingCategory]:
        query = (
            "SELECT * FROM shooting_categories "
            "WHERE shop_id = ? AND is_active = 1 ORDER BY sort_order"
        )
        rows = await self.fetch_all(query, [shop_id])
        return [ShootingCategory.model_validate(row) for row in rows]

    async def get_shooting_category(
        self, shop_id: int, shooting_category_id: int
    ) -> ShootingCategory | None:
        row = await self.fetch_one(
            "SELECT * FROM shooting_categories WHERE shop_id = ? AND id = ?",
            [shop_id, shooting_category_id],
        )
        if row is None:
            return None
        return ShootingCategory.model_validate(row)

    async def create_shooting_category(self, category: ShootingCategory) -> ShootingCategory:
        query = (
            "INSERT INTO shooting_categories (id, shop_id, name, display_name, sort_order, is_active) "
            "VALUES (?, ?, ?, ?, ?, ?)"
        )
        category_id = await self.execute(
            query,
            [
                category.id,
                category.shop_id,
                category.name,
                category.display_name,
                category.sort_order,
                int(category.is_active),
            ],
        )
        return category.model_copy(update={"id": category_id})

    async def list_product_categories(
        self, shop_id: int, shooting_category_id: int | None = None
    ) -> list[ProductCategory]:
        query = "SELECT * FROM product_categories WHERE shop_id = ?"
        params: list[Any] = [shop_id]
        if shooting_category_id is not None:
            query += " AND shooting_category_id = ?"
            params.append(shooting_category_id)
        query += " ORDER BY sort_order"
        rows = await self.fetch_all(query, params)
        return [_category_from_row(row) for row in rows]

    async def list_items(self, shop_id: int, category_id: int | None = None) -> list[Item]:
        query = "SELECT * FROM items WHERE shop_id = ?"
        params: list[Any] = [shop_id]
        if category_id is not None:
            query += " AND product_category_id = ?"
            params.append(category_id)
        query += " ORDER BY product_category_id, sort_order"
        rows = await self.fetch_all(query, params)
        return [Item.model_validate(row) for row in rows]

    # Campaigns

    async def list_campaigns(self, shop_id: int) -> list[Campaign]:
        rows = await self.fetch_all(
            "SELECT * FROM campaigns WHERE shop_id = ? ORDER BY id", [shop_id]
        )
        campaigns: list[Campaign] = []
        for row in rows:
            row["associations"] = await self._get_campaign_associations(row["id"])
            campaigns.append(Campaign.model_validate(row))
        return campaigns

    async def _get_campaign_associations(self, campaign_id: int) -> CampaignAssociations:
        shooting = await self.fetch_all(
            "SELECT shooting_category_id FROM campaign_shooting_associations WHERE campaign_id = ?",
            [campaign_id],
        )
        product = await self.fetch_all(
            "SELECT product_category_id FROM campaign_product_associations WHERE campaign_id = ?",
            [campaign_id],
        )
        items = await self.fetch_all(
            "SELECT item_id FROM campaign_item_associations WHERE campaign_id = ?",
            [campaign_id],
        )
        return CampaignAssociations(
            shooting_category_ids=[r["shooting_category_id"] for r in shooting],
            product_category_ids=[r["product_category_id"] for r in product],
            item_ids=[r["item_id"] for r in items],
        )

    async def create_campaign(self, campaign: Campaign) -> Campaign:
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "INSERT INTO campaigns "
                    "(shop_id, name, start_date, end_date, discount_type, discount_value, is_active) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [
                        campaign.shop_id,
                        campaign.name,
                        campaign.start_date.isoformat(),
                        campaign.end_date.isoformat(),
                        campaign.discount_type.value,
                        str(campaign.discount_value),
                        int(campaign.is_active),
                    ],
                )
                campaign_id = cursor.lastrowid
                associations = campaign.associations
                await db.executemany(
                    "INSERT INTO campaign_shooting_associations VALUES (?, ?)",
                    [(campaign_id, i) for i in associations.shooting_category_ids],
                )
                await db.executemany(
                    "INSERT INTO campaign_product_associations VALUES (?, ?)",
                    [(campaign_id, i) for i in associations.product_category_ids],
                )
                await db.executemany(
                    "INSERT INTO campaign_item_associations VALUES (?, ?)",
                    [(campaign_id, i) for i in associations.item_ids],
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise DatabaseOperationError(f"Failed to create campaign: {exc}") from exc
        return campaign.model_copy(update={"id": campaign_id})

    # Form-builder drafts

    async def get_form_builder_data(
        self, shop_id: int, shooting_category_id: int
    ) -> FormBuilderData | None:
        row = await self.fetch_one(
            "SELECT form_data FROM form_builder_data WHERE shop_id = ? AND shooting_category_id = ?",
            [shop_id, shooting_category_id],
        )
        if row is None:
            return None
        return FormBuilderData.model_validate_json(row["form_data"])

    async def save_form_builder_data(self, data: FormBuilderData) -> None:
        if data.shop_id is None:
            raise ValueError("shop_id is required to save form builder data")
        await self.execute(
            "INSERT INTO form_builder_data (shop_id, shooting_category_id, form_data, updated_at) "
            "VALUES (?, ?, ?, CURRENT_TIMESTAMP) "
            "ON CONFLICT (shop_id, shooting_category_id) DO UPDATE SET "
            "form_data = excluded.form_data, updated_at = excluded.updated_at",
            [data.shop_id, data.shooting_category_id, data.model_dump_json(by_alias=True)],
        )

    async def delete_form_builder_data(self, shop_id: int, shooting_category_id: int) -> None:
        await self.execute(
            "DELETE FROM form_builder_data WHERE shop_id = ? AND shooting_category_id = ?",
            [shop_id, shooting_category_id],
        )

    async def replace_published_form(
        self,
        shop_id: int,
        shooting_category_id: int,
        categories: list[ProductCategory],
        items: list[Item],
    ) -> None:
        """Swap the published categories and items of one shooting category."""
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute(
                    "DELETE FROM items WHERE product_category_id IN ("
                    "SELECT id FROM product_categories WHERE shop_id = ? AND shooting_category_id = ?)",
                    [shop_id, shooting_category_id],
                )
                await db.execute(
                    "DELETE FROM product_categories WHERE shop_id = ? AND shooting_category_id = ?",
                    [shop_id, shooting_category_id],
                )
                await db.executemany(
                    "INSERT INTO product_categories "
                    "(id, shop_id, shooting_category_id, name, display_name, description, "
                    "sort_order, is_active, form_section, product_type, conditional_rule) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            c.id,
                            shop_id,
                            shooting_category_id,
                            c.name,
                            c.display_name,
                            c.description,
                            c.sort_order,
                            int(c.is_active),
                            c.form_section,
                            c.product_type.value if c.product_type else None,
                            json.dumps(c.conditional_rule.to_json()) if c.conditional_rule else None,
                        )
                        for c in categories
                    ],
                )
                await db.executemany(
                    "INSERT INTO items "
                    "(id, shop_id, product_category_id, name, price, description, "
                    "sort_order, is_active, is_required, auto_select) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            i.id,
                            shop_id,
                            i.product_category_id,
                            i.name,
                            i.price,
                            i.description,
                            i.sort_order,
                            int(i.is_active),
                            int(i.is_required),
                            int(i.auto_select),
                        )
                        for i in items
                    ],
                )
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            # This form's rows were deleted above; the clash is with another form
            # or an id repeated within the draft.
            raise PublishConflictError(
                f"Shooting category {shooting_category_id} uses a category or item id "
                f"that is already taken: {exc}"
            ) from exc
        except aiosqlite.Error as exc:
            raise DatabaseOperationError(f"Failed to publish form: {exc}") from exc
        logger.info(
            "Published %d categories and %d items for shop %s, shooting category %s",
            len(categories),
            len(items),
            shop_id,
            shooting_category_id,
        )
