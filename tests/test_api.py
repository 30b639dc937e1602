"""API tests running the routers against in-memory stores."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from weekplanner.dependencies import (
    get_clock,
    get_plan_store,
    get_recipe_catalog,
    get_template_store,
    get_write_queue,
)
from weekplanner.main import app
from weekplanner.services.assignment import PlanWriteQueue
from weekplanner.store.memory import InMemoryMealPlanStore, InMemoryTemplateStore

PLANS = "/api/v1/meal-plans"
TEMPLATES = "/api/v1/templates"


@pytest.fixture
def client(recipe_catalog, clock):
    """Test client with fresh stores and a clock pinned to 2025-W28."""
    plans = InMemoryMealPlanStore()
    templates = InMemoryTemplateStore()
    queue = PlanWriteQueue()

    app.dependency_overrides[get_plan_store] = lambda: plans
    app.dependency_overrides[get_template_store] = lambda: templates
    app.dependency_overrides[get_write_queue] = lambda: queue
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_recipe_catalog] = lambda: recipe_catalog

    yield TestClient(app)

    app.dependency_overrides.clear()


def create_plan(client, week="2025-W28", user="alice") -> dict:
    response = client.post(f"{PLANS}/week", params={"user_id": user}, json={"week": week})
    assert response.status_code == 201
    return response.json()


def assign(client, plan_id, recipe_id, day="2025-07-07", meal_type="dinner", user="alice") -> dict:
    response = client.post(
        f"{PLANS}/{plan_id}/slots",
        params={"user_id": user},
        json={"date": day, "meal_type": meal_type, "recipe_id": recipe_id},
    )
    assert response.status_code == 200
    return response.json()


def publish(client, week="2025-W28", user="alice", **overrides) -> dict:
    body = {"week": week, "title": "Summer week", "description": "Light meals", "tags": "vegan,quick"}
    body.update(overrides)
    response = client.post(f"{TEMPLATES}/", params={"user_id": user}, json=body)
    assert response.status_code == 201
    return response.json()


class TestWeekNavigation:
    """Tests for the navigation endpoint."""

    def test_window(self, client):
        data = client.get("/api/v1/weeks/navigation").json()

        assert data["current_week"] == "2025-W28"
        assert data["earliest_week"] == "2025-W26"
        assert data["latest_week"] == "2025-W30"
        assert data["dates"][0] == "2025-07-07"
        assert len(data["dates"]) == 7


class TestWeekPlans:
    """Tests for loading and creating week plans."""

    def test_empty_week(self, client):
        data = client.get(f"{PLANS}/week", params={"user_id": "alice"}).json()

        assert data["week"] == "2025-W28"
        assert data["status"] == "empty"
        assert data["plan"] is None

    def test_create_then_load(self, client):
        plan = create_plan(client)
        assert len(plan["dates"]) == 7
        assert plan["slots"] == []

        data = client.get(f"{PLANS}/week", params={"user_id": "alice", "week": "2025-W28"}).json()
        assert data["status"] == "valid"
        assert data["plan"]["id"] == plan["id"]

    def test_second_plan_for_week_conflicts(self, client):
        create_plan(client)
        response = client.post(f"{PLANS}/week", params={"user_id": "alice"}, json={"week": "2025-W28"})

        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"

    def test_week_outside_window_rejected(self, client):
        response = client.post(f"{PLANS}/week", params={"user_id": "alice"}, json={"week": "2025-W40"})
        assert response.status_code == 422

    def test_plans_are_per_user(self, client):
        create_plan(client, user="alice")
        data = client.get(f"{PLANS}/week", params={"user_id": "bob"}).json()
        assert data["status"] == "empty"

    def test_delete_plan(self, client):
        plan = create_plan(client)
        response = client.delete(f"{PLANS}/{plan['id']}", params={"user_id": "alice"})

        assert response.status_code == 204
        assert client.get(f"{PLANS}/week", params={"user_id": "alice"}).json()["status"] == "empty"


class TestSlotEditing:
    """Tests for assign, clear, servings and drop endpoints."""

    def test_assign(self, client):
        plan = create_plan(client)
        data = assign(client, plan["id"], "lasagne")

        assert data["slots"] == [
            {
                "date": "2025-07-07",
                "meal_type": "dinner",
                "recipe_id": "lasagne",
                "servings": 1,
                "target_id": "slot-2025-07-07-dinner",
            }
        ]
        assert data["version"] == plan["version"] + 1

    def test_assign_to_missing_plan(self, client):
        response = client.post(
            f"{PLANS}/does-not-exist/slots",
            params={"user_id": "alice"},
            json={"date": "2025-07-07", "meal_type": "dinner", "recipe_id": "lasagne"},
        )
        assert response.status_code == 404

    def test_unknown_meal_type(self, client):
        plan = create_plan(client)
        response = client.post(
            f"{PLANS}/{plan['id']}/slots",
            params={"user_id": "alice"},
            json={"date": "2025-07-07", "meal_type": "brunch", "recipe_id": "lasagne"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_clear_slot(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")

        response = client.delete(
            f"{PLANS}/{plan['id']}/slots",
            params={"user_id": "alice", "date": "2025-07-07", "meal_type": "dinner"},
        )
        assert response.status_code == 200
        assert response.json()["slots"] == []

    def test_servings_step_and_set(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")
        url = f"{PLANS}/{plan['id']}/slots/servings"
        key = {"date": "2025-07-07", "meal_type": "dinner"}

        data = client.post(url, params={"user_id": "alice"}, json={**key, "delta": -1}).json()
        assert data["slots"][0]["servings"] == 1

        data = client.post(url, params={"user_id": "alice"}, json={**key, "delta": 1}).json()
        assert data["slots"][0]["servings"] == 2

        data = client.post(url, params={"user_id": "alice"}, json={**key, "servings": 5}).json()
        assert data["slots"][0]["servings"] == 5

    def test_servings_require_a_change(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")

        response = client.post(
            f"{PLANS}/{plan['id']}/slots/servings",
            params={"user_id": "alice"},
            json={"date": "2025-07-07", "meal_type": "dinner"},
        )
        assert response.status_code == 422

    def test_drop(self, client):
        plan = create_plan(client)
        response = client.post(
            f"{PLANS}/{plan['id']}/drop",
            params={"user_id": "alice"},
            json={"recipe_id": "salad", "target_id": "slot-2025-07-08-lunch"},
        )

        assert response.status_code == 200
        slot = response.json()["slots"][0]
        assert (slot["date"], slot["meal_type"], slot["recipe_id"]) == ("2025-07-08", "lunch", "salad")

    def test_malformed_drop_target(self, client):
        plan = create_plan(client)
        response = client.post(
            f"{PLANS}/{plan['id']}/drop",
            params={"user_id": "alice"},
            json={"recipe_id": "salad", "target_id": "cell-7"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_replace_with_stale_version(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")

        response = client.put(
            f"{PLANS}/{plan['id']}",
            params={"user_id": "alice"},
            json={"slots": [], "shopping_list_state": [], "expected_version": plan["version"]},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "StaleWriteError"

    def test_replace_keeps_shopping_list_state(self, client):
        plan = create_plan(client)
        response = client.put(
            f"{PLANS}/{plan['id']}",
            params={"user_id": "alice"},
            json={
                "slots": [{"date": "2025-07-09", "meal_type": "snacks", "recipe_id": "salad", "servings": 2}],
                "shopping_list_state": {"checked": ["tomatoes"]},
            },
        )

        data = response.json()
        assert response.status_code == 200
        assert data["shopping_list_state"] == {"checked": ["tomatoes"]}
        assert data["slots"][0]["servings"] == 2


class TestNutrition:
    """Tests for the weekly nutrition endpoint."""

    def test_nutrition_for_plan(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")
        client.post(
            f"{PLANS}/{plan['id']}/slots/servings",
            params={"user_id": "alice"},
            json={"date": "2025-07-07", "meal_type": "dinner", "servings": 2},
        )

        data = client.get(f"{PLANS}/nutrition", params={"user_id": "alice"}).json()

        assert data["days"]["2025-07-07"] == {"calories": 400, "protein": 24, "carbs": 40, "fat": 16}
        assert data["days"]["2025-07-08"]["calories"] == 0
        assert data["average"]["calories"] == 57
        assert data["unresolved_recipes"] == []

    def test_nutrition_without_plan(self, client):
        data = client.get(f"{PLANS}/nutrition", params={"user_id": "alice"}).json()

        assert len(data["days"]) == 7
        assert data["average"] == {"calories": 0, "protein": 0, "carbs": 0, "fat": 0}

    def test_unknown_recipe_reported(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "mystery-stew")

        data = client.get(f"{PLANS}/nutrition", params={"user_id": "alice"}).json()
        assert data["unresolved_recipes"] == ["mystery-stew"]
        assert data["average"]["calories"] == 0

    def test_week_outside_window_rejected(self, client):
        response = client.get(f"{PLANS}/nutrition", params={"user_id": "alice", "week": "2025-W40"})
        assert response.status_code == 422

    def test_plan_with_vanished_template_is_cleared(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")
        tid = publish(client)["id"]
        client.post(f"{TEMPLATES}/{tid}/copy", params={"user_id": "bob"}, json={"week": "2025-W29"})
        # Template row gone without the cascade running
        templates = app.dependency_overrides[get_template_store]()
        asyncio.run(templates.delete(tid))

        data = client.get(f"{PLANS}/nutrition", params={"user_id": "bob", "week": "2025-W29"}).json()

        assert data["week"] == "2025-W29"
        assert data["average"] == {"calories": 0, "protein": 0, "carbs": 0, "fat": 0}
        week = client.get(f"{PLANS}/week", params={"user_id": "bob", "week": "2025-W29"}).json()
        assert week["status"] == "empty"

    def test_current_plan_with_vanished_template_still_counted(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")
        tid = publish(client)["id"]
        client.post(f"{TEMPLATES}/{tid}/copy", params={"user_id": "bob"}, json={"week": "2025-W28"})
        templates = app.dependency_overrides[get_template_store]()
        asyncio.run(templates.delete(tid))

        data = client.get(f"{PLANS}/nutrition", params={"user_id": "bob"}).json()

        assert data["days"]["2025-07-07"]["calories"] > 0
        week = client.get(f"{PLANS}/week", params={"user_id": "bob"}).json()
        assert week["status"] == "awaiting_user_choice"


class TestTemplates:
    """Tests for publishing, listing, copying and rating templates."""

    def test_publish(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")

        template = publish(client)

        assert template["author_id"] == "alice"
        assert template["tags"] == ["vegan", "quick"]
        assert template["slots"] == [{"day_of_week": "Monday", "meal_type": "dinner", "recipe_id": "lasagne"}]
        assert template["total_ratings"] == 0

    def test_publish_requires_title(self, client):
        create_plan(client)
        response = client.post(
            f"{TEMPLATES}/",
            params={"user_id": "alice"},
            json={"week": "2025-W28", "title": "", "description": "d"},
        )
        assert response.status_code == 422

    def test_publish_without_plan(self, client):
        response = client.post(
            f"{TEMPLATES}/",
            params={"user_id": "alice"},
            json={"week": "2025-W28", "title": "t", "description": "d"},
        )
        assert response.status_code == 404

    def test_list_and_search(self, client):
        create_plan(client)
        publish(client, title="Summer week")
        publish(client, title="Winter comfort", tags=["hearty"])

        data = client.get(f"{TEMPLATES}/", params={"search": "winter"}).json()
        assert [t["title"] for t in data["templates"]] == ["Winter comfort"]

        data = client.get(f"{TEMPLATES}/", params={"tags": "vegan"}).json()
        assert data["total"] == 1
        assert data["templates"][0]["title"] == "Summer week"

    def test_copy_resets_servings(self, client):
        plan = create_plan(client)
        assign(client, plan["id"], "lasagne")
        client.post(
            f"{PLANS}/{plan['id']}/slots/servings",
            params={"user_id": "alice"},
            json={"date": "2025-07-07", "meal_type": "dinner", "servings": 4},
        )
        template = publish(client)

        response = client.post(
            f"{TEMPLATES}/{template['id']}/copy", params={"user_id": "bob"}, json={"week": "2025-W29"}
        )

        assert response.status_code == 201
        copied = response.json()
        assert copied["template_id"] == template["id"]
        assert copied["slots"][0]["date"] == "2025-07-14"
        assert copied["slots"][0]["servings"] == 1

    def test_copy_into_occupied_week(self, client):
        create_plan(client)
        template = publish(client)

        response = client.post(
            f"{TEMPLATES}/{template['id']}/copy", params={"user_id": "alice"}, json={"week": "2025-W28"}
        )
        assert response.status_code == 409

    def test_copy_missing_template(self, client):
        response = client.post(f"{TEMPLATES}/nope/copy", params={"user_id": "bob"}, json={"week": "2025-W29"})
        assert response.status_code == 404

    def test_rate(self, client):
        create_plan(client)
        template = publish(client)
        url = f"{TEMPLATES}/{template['id']}/rate"

        client.post(url, params={"user_id": "bob"}, json={"value": 4})
        client.post(url, params={"user_id": "carol"}, json={"value": 5})
        data = client.post(url, params={"user_id": "bob"}, json={"value": 2}).json()

        assert data["total_ratings"] == 2
        assert data["average_rating"] == 3.5

    def test_rate_out_of_range(self, client):
        create_plan(client)
        template = publish(client)
        response = client.post(
            f"{TEMPLATES}/{template['id']}/rate", params={"user_id": "bob"}, json={"value": 6}
        )
        assert response.status_code == 422


class TestFavorites:
    """Tests for bookmarking templates."""

    def test_add_list_remove(self, client):
        create_plan(client)
        template = publish(client)
        url = f"{TEMPLATES}/favorites/{template['id']}"

        assert client.post(url, params={"user_id": "bob"}).status_code == 201
        assert client.post(url, params={"user_id": "bob"}).status_code == 409

        data = client.get(f"{TEMPLATES}/favorites", params={"user_id": "bob"}).json()
        assert [t["id"] for t in data["templates"]] == [template["id"]]

        assert client.delete(url, params={"user_id": "bob"}).json() == {
            "template_id": template["id"],
            "favorited": False,
        }
        assert client.get(f"{TEMPLATES}/favorites", params={"user_id": "bob"}).json()["total"] == 0

    def test_favorite_missing_template(self, client):
        response = client.post(f"{TEMPLATES}/favorites/nope", params={"user_id": "bob"})
        assert response.status_code == 404


class TestTemplateDeletion:
    """Tests for the deletion cascade seen through the API."""

    def test_cascade(self, client):
        create_plan(client)
        template = publish(client)
        tid = template["id"]
        client.post(f"{TEMPLATES}/{tid}/copy", params={"user_id": "bob"}, json={"week": "2025-W28"})
        client.post(f"{TEMPLATES}/{tid}/copy", params={"user_id": "bob"}, json={"week": "2025-W29"})
        client.post(f"{TEMPLATES}/favorites/{tid}", params={"user_id": "bob"})

        response = client.delete(f"{TEMPLATES}/{tid}", params={"user_id": "alice"})

        assert response.status_code == 200
        run = response.json()
        assert run["status"] == "completed"
        assert run["plans_deleted"] == 1
        assert run["plans_orphaned"] == 1
        assert run["favorites_removed"] == 1
        assert client.get(f"{TEMPLATES}/{tid}").status_code == 404

        current = client.get(f"{PLANS}/week", params={"user_id": "bob"}).json()
        assert current["status"] == "awaiting_user_choice"
        assert current["template_id"] == tid
        assert current["plan"]["template_orphaned"] is True

        future = client.get(f"{PLANS}/week", params={"user_id": "bob", "week": "2025-W29"}).json()
        assert future["status"] == "empty"

    def test_only_author_may_delete(self, client):
        create_plan(client)
        template = publish(client)

        response = client.delete(f"{TEMPLATES}/{template['id']}", params={"user_id": "bob"})
        assert response.status_code == 404
        assert client.get(f"{TEMPLATES}/{template['id']}").status_code == 200

    def test_orphaned_plan_resolved_by_deleting_it(self, client):
        create_plan(client)
        template = publish(client)
        tid = template["id"]
        client.post(f"{TEMPLATES}/{tid}/copy", params={"user_id": "bob"}, json={"week": "2025-W28"})
        client.delete(f"{TEMPLATES}/{tid}", params={"user_id": "alice"})

        orphan = client.get(f"{PLANS}/week", params={"user_id": "bob"}).json()["plan"]
        client.delete(f"{PLANS}/{orphan['id']}", params={"user_id": "bob"})

        assert create_plan(client, user="bob")["template_id"] is None
