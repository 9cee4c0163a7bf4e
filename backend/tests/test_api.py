import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

here = Path(__file__).resolve()
root = here.parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from app.config import Settings
from app.db import Database
from app.main import create_app


BASE = "/api/admin/shops/1/form-builder/5"

COURSE = {
    "id": 11,
    "name": "course",
    "displayName": "Course",
    "productType": "plan",
    "items": [
        {"id": 101, "name": "Studio", "price": 30000},
        {"id": 102, "name": "On location", "price": 50000},
    ],
}

DRESS = {
    "id": 12,
    "name": "dress",
    "displayName": "Dress",
    "productType": "option_multi",
    "items": [{"id": 201, "name": "Kimono", "price": 8000, "description": "Rental"}],
}

STUDIO_CONDITION = {"fieldId": 11, "fieldName": "Course", "value": "Studio"}


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    path = tmp_path / "api.sqlite"
    settings = Settings(SQLITE_PATH=str(path))
    app = create_app(settings=settings, db=Database(path))
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_evaluate_rule(client: TestClient) -> None:
    rule = {
        "OR": [
            {
                "AND": [
                    {"field": "plan_type", "operator": "=", "value": "studio"},
                    {"field": "basic_option", "operator": "=", "value": "weekday"},
                ]
            },
            {"field": "plan_type", "operator": "=", "value": "on_location"},
        ]
    }
    response = client.post(
        "/api/rules/evaluate",
        json={"rule": rule, "values": {"plan_type": "studio", "basic_option": "weekend"}},
    )
    assert response.status_code == 200
    assert response.json() == {"result": False}

    response = client.post(
        "/api/rules/evaluate",
        json={"rule": rule, "values": {"plan_type": "on_location"}},
    )
    assert response.json() == {"result": True}


def test_evaluate_malformed_rule_is_false(client: TestClient) -> None:
    response = client.post(
        "/api/rules/evaluate",
        json={"rule": {"AND": [{"field": "plan_type"}]}, "values": {"plan_type": "studio"}},
    )
    assert response.status_code == 200
    assert response.json() == {"result": False}


def test_visible_sections(client: TestClient) -> None:
    categories = [
        {"id": 1, "form_section": "trigger", "product_type": "plan"},
        {
            "id": 2,
            "form_section": "conditional",
            "product_type": "option_multi",
            "conditional_rule": {"AND": [{"field": "category_1", "operator": "=", "value": 101}]},
        },
        {"id": 3, "form_section": "common_final", "product_type": "option_multi"},
    ]
    response = client.post(
        "/api/sections/visible", json={"categories": categories, "values": {"category_1": 101}}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["has_trigger"] is True
    assert [c["id"] for c in body["trigger"]] == [1]
    assert [c["id"] for c in body["conditional"]] == [2]
    assert [c["id"] for c in body["common_final"]] == [3]
    assert body["conditional"][0]["conditional_rule"]["AND"][0]["field"] == "category_1"


def test_price(client: TestClient) -> None:
    items = [
        {"id": 1, "product_category_id": 10, "price": 333},
        {"id": 2, "product_category_id": 10, "price": 333},
        {"id": 3, "product_category_id": 10, "price": 333},
    ]
    response = client.post("/api/price", json={"selected_item_ids": [1, 2, 3, 3], "items": items})
    assert response.status_code == 200
    assert response.json() == {
        "subtotal": 999,
        "discount": 0,
        "tax": 99,
        "total": 1098,
        "applied_campaign": None,
    }


def test_price_with_campaign(client: TestClient) -> None:
    items = [{"id": 1, "product_category_id": 10, "price": 10000}]
    campaign = {
        "name": "Opening",
        "discount_type": "fixed",
        "discount_value": 1000,
        "start_date": "2024-01-01",
        "end_date": "2024-01-31",
        "associations": {"product_category_ids": [10]},
    }
    response = client.post(
        "/api/price",
        json={
            "selected_item_ids": [1],
            "items": items,
            "campaigns": [campaign],
            "today": "2024-01-31",
        },
    )
    body = response.json()
    assert body["discount"] == 1000
    assert body["total"] == 9900
    assert body["applied_campaign"]["name"] == "Opening"


def test_conditional_step_without_trigger_is_rejected(client: TestClient) -> None:
    response = client.post(
        BASE + "/steps",
        json={"type": "conditional", "category": DRESS, "condition": STUDIO_CONDITION},
    )
    assert response.status_code == 422
    assert "trigger step is required" in response.json()["detail"]


def test_missing_draft_is_404(client: TestClient) -> None:
    response = client.get(BASE)
    assert response.status_code == 404


def test_form_builder_flow(client: TestClient) -> None:
    response = client.post(BASE + "/steps", json={"type": "trigger", "category": COURSE})
    assert response.status_code == 200
    assert response.json()["shootingCategoryId"] == 5

    response = client.post(
        BASE + "/steps",
        json={"type": "conditional", "category": DRESS, "condition": STUDIO_CONDITION},
    )
    assert response.status_code == 200
    steps = response.json()["steps"]
    assert [s["type"] for s in steps] == ["trigger", "conditional"]
    assert steps[1]["condition"] == STUDIO_CONDITION

    response = client.get(BASE + "/validate")
    assert response.json() == {"is_valid": True, "errors": []}

    response = client.get(BASE + "/preview")
    preview = response.json()
    assert preview["categories"][1]["conditional_rule"]["AND"] == [
        {"field": "category_11", "operator": "=", "value": "Studio"}
    ]

    response = client.post(BASE + "/publish")
    assert response.status_code == 200
    published = response.json()
    assert published["categories"][1]["conditional_rule"]["AND"][0]["value"] == 101
    assert [i["id"] for i in published["items"]] == [101, 102, 201]

    response = client.get("/api/shops/1/simulator/5")
    data = response.json()
    assert [c["id"] for c in data["categories"]] == [11, 12]
    assert data["campaigns"] == []

    response = client.post(
        "/api/shops/1/simulator/5/quote", json={"selected_item_ids": [101, 201]}
    )
    quote = response.json()
    assert [c["id"] for c in quote["sections"]["conditional"]] == [12]
    assert quote["price"]["total"] == 41800

    response = client.post(
        "/api/shops/1/simulator/5/quote", json={"selected_item_ids": [102, 201]}
    )
    quote = response.json()
    assert quote["sections"]["conditional"] == []
    assert quote["selected_item_ids"] == [102]
    assert quote["price"]["total"] == 55000


def test_remove_step_and_publish_invalid(client: TestClient) -> None:
    client.post(BASE + "/steps", json={"type": "trigger", "category": COURSE})
    client.post(BASE + "/steps", json={"type": "common_final", "category": {**DRESS, "items": []}})

    response = client.get(BASE + "/validate")
    body = response.json()
    assert body["is_valid"] is False
    assert len(body["errors"]) == 1

    response = client.post(BASE + "/publish")
    assert response.status_code == 422
    assert response.json()["errors"] == body["errors"]

    response = client.delete(BASE + "/steps/1")
    assert [s["category"]["id"] for s in response.json()["steps"]] == [11]

    response = client.delete(BASE + "/steps/7")
    assert len(response.json()["steps"]) == 1


def test_put_draft(client: TestClient) -> None:
    draft = {
        "shootingCategoryId": 5,
        "shootingCategoryName": "Newborn",
        "steps": [{"type": "trigger", "category": COURSE}],
    }
    response = client.put(BASE, json=draft)
    assert response.status_code == 200
    assert response.json()["shopId"] == 1

    response = client.get(BASE)
    assert response.json()["shootingCategoryName"] == "Newborn"

    response = client.put("/api/admin/shops/1/form-builder/6", json=draft)
    assert response.status_code == 400


def test_labels(client: TestClient) -> None:
    body = client.get("/api/labels").json()
    assert set(body["form_sections"]) == {"trigger", "conditional", "common_final"}
    assert body["product_types"]["option_multi"]["field_type"] == "checkbox"


def test_shooting_categories(client: TestClient) -> None:
    response = client.post(
        "/api/admin/shops/1/shooting-categories",
        json={"name": "newborn", "display_name": "Newborn", "sort_order": 2},
    )
    assert response.status_code == 200
    created = response.json()
    assert created["id"] is not None
    assert created["shop_id"] == 1

    client.post(
        "/api/admin/shops/1/shooting-categories",
        json={"name": "wedding", "display_name": "Wedding", "sort_order": 1},
    )
    client.post(
        "/api/admin/shops/1/shooting-categories",
        json={"name": "archived", "display_name": "Archived", "is_active": False},
    )

    response = client.get("/api/shops/1/shooting-categories")
    assert [c["name"] for c in response.json()] == ["wedding", "newborn"]
    assert client.get("/api/shops/2/shooting-categories").json() == []


def test_campaign_applies_to_quote(client: TestClient) -> None:
    client.post(BASE + "/steps", json={"type": "trigger", "category": COURSE})
    client.post(BASE + "/publish")

    response = client.post(
        "/api/admin/shops/1/campaigns",
        json={
            "name": "Always on",
            "discount_type": "fixed",
            "discount_value": 5000,
            "start_date": "2000-01-01",
            "end_date": "2999-12-31",
            "associations": {"shooting_category_ids": [5]},
        },
    )
    assert response.status_code == 200
    assert response.json()["id"] is not None

    campaigns = client.get("/api/admin/shops/1/campaigns").json()
    assert [c["name"] for c in campaigns] == ["Always on"]
    assert campaigns[0]["associations"]["shooting_category_ids"] == [5]

    quote = client.post(
        "/api/shops/1/simulator/5/quote", json={"selected_item_ids": [101]}
    ).json()
    assert quote["price"]["discount"] == 5000
    assert quote["price"]["total"] == 27500


def test_publish_conflicting_ids_is_409(client: TestClient) -> None:
    client.post(BASE + "/steps", json={"type": "trigger", "category": COURSE})
    assert client.post(BASE + "/publish").status_code == 200

    other = "/api/admin/shops/1/form-builder/6"
    reused = {**DRESS, "id": 11, "productType": "plan"}
    client.post(other + "/steps", json={"type": "trigger", "category": reused})
    response = client.post(other + "/publish")
    assert response.status_code == 409
    assert "already taken" in response.json()["detail"]

    data = client.get("/api/shops/1/simulator/5").json()
    assert [c["id"] for c in data["categories"]] == [11]
