"""Tests for ledger API: entries, meals, saved meals, standalone exercises, anonymous access."""

import pytest
from httpx import AsyncClient

DAY = "2026-03-10"

EGG = {"id": "egg", "name": "Egg", "nutrition": {"calories": 70, "protein": 6, "carbs": 0.5, "fats": 5}}


def _entry(entry_id: str, category: str, calories: float) -> dict:
    return {
        "id": entry_id,
        "food_id": "f",
        "food_name": f"food-{entry_id}",
        "nutrition": {"calories": calories},
        "meal_category": category,
    }


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_get_empty_ledger(client: AsyncClient, auth_headers: dict):
    resp = await client.get(f"/api/v1/ledger/{DAY}", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["date"] == DAY
    assert data["entries"] == []
    assert data["totals"]["calories"] == 0


@pytest.mark.asyncio
async def test_invalid_date_rejected(client: AsyncClient, auth_headers: dict):
    resp = await client.get("/api/v1/ledger/10-03-2026", headers=auth_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient):
    resp = await client.get(f"/api/v1/ledger/{DAY}", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_add_food_and_remove_entry(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        f"/api/v1/ledger/{DAY}/food",
        json={"food": EGG, "servings": 2, "meal_category": "Meal 1"},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    entry = resp.json()
    assert entry["nutrition"]["calories"] == 140

    resp = await client.get(f"/api/v1/ledger/{DAY}", headers=auth_headers)
    assert resp.json()["totals"]["protein"] == 12

    resp = await client.delete(f"/api/v1/ledger/{DAY}/entries/{entry['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["entries"] == []


@pytest.mark.asyncio
async def test_bulk_entries_keep_client_ids(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        f"/api/v1/ledger/{DAY}/entries",
        json={"entries": [_entry("local-1", "Meal 2", 300), _entry("local-2", "Meal 2", 200)]},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    assert [e["id"] for e in resp.json()["entries"]] == ["local-1", "local-2"]

    resp = await client.delete(f"/api/v1/ledger/{DAY}/meals/Meal 2", headers=auth_headers)
    assert resp.json()["totals"]["calories"] == 0


@pytest.mark.asyncio
async def test_repeat_last_meal(client: AsyncClient, auth_headers: dict):
    await client.post(
        "/api/v1/ledger/2026-03-09/entries",
        json={"entries": [_entry("a", "Meal 1", 450)]},
        headers=auth_headers,
    )
    resp = await client.get(f"/api/v1/ledger/{DAY}/meals/Meal 1/last", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["date"] == "2026-03-09"

    resp = await client.post(f"/api/v1/ledger/{DAY}/meals/Meal 1/repeat", headers=auth_headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["totals"]["calories"] == 450
    assert data["entries"][0]["id"] != "a"

    resp = await client.post(f"/api/v1/ledger/{DAY}/meals/Meal 3/repeat", headers=auth_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_free_plan_history_window(client: AsyncClient, free_headers: dict):
    await client.post(
        "/api/v1/ledger/2026-03-05/entries",
        json={"entries": [_entry("a", "Meal 1", 450)]},
        headers=free_headers,
    )
    # Requested window larger than the plan allows is clamped to one day
    resp = await client.get(f"/api/v1/ledger/{DAY}/meals/Meal 1/last?max_days_back=30", headers=free_headers)
    assert resp.status_code == 200
    assert resp.json() is None


@pytest.mark.asyncio
async def test_saved_meals(client: AsyncClient, auth_headers: dict):
    await client.post(
        f"/api/v1/ledger/{DAY}/entries",
        json={"entries": [_entry("a", "Meal 1", 300), _entry("b", "Meal 1", 100)]},
        headers=auth_headers,
    )
    resp = await client.post(
        f"/api/v1/ledger/{DAY}/saved-meals",
        json={"name": "Breakfast", "meal_category": "Meal 1"},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    meal_id = resp.json()["id"]
    assert resp.json()["total_nutrition"]["calories"] == 400

    resp = await client.get("/api/v1/saved-meals", headers=auth_headers)
    assert [m["id"] for m in resp.json()] == [meal_id]

    resp = await client.post(
        f"/api/v1/ledger/2026-03-11/saved-meals/{meal_id}/log?meal_category=Meal 2",
        headers=auth_headers,
    )
    assert resp.status_code == 201
    assert len(resp.json()) == 2

    resp = await client.delete(f"/api/v1/saved-meals/{meal_id}", headers=auth_headers)
    assert resp.status_code == 204
    resp = await client.post(
        f"/api/v1/ledger/2026-03-11/saved-meals/{meal_id}/log?meal_category=Meal 2",
        headers=auth_headers,
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_standalone_exercise_and_mirror_conflict(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        f"/api/v1/ledger/{DAY}/exercises",
        json={"name": "Swim", "calories_burned": 250, "duration_minutes": 30},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    entry_id = resp.json()["id"]
    assert resp.json()["kind"] == "authored"

    resp = await client.post(f"/api/v1/workouts/{DAY}", json={"name": "Legs"}, headers=auth_headers)
    wid = resp.json()["id"]
    await client.post(f"/api/v1/workouts/{DAY}/{wid}/finish", json={"calories_burned": 300}, headers=auth_headers)

    resp = await client.delete(f"/api/v1/ledger/{DAY}/exercises/sync-{wid}", headers=auth_headers)
    assert resp.status_code == 409

    resp = await client.delete(f"/api/v1/ledger/{DAY}/exercises/{entry_id}", headers=auth_headers)
    assert resp.status_code == 200
    assert [e["id"] for e in resp.json()["exercises"]] == [f"sync-{wid}"]


@pytest.mark.asyncio
async def test_anonymous_reads_empty_and_writes_skipped(client: AsyncClient, auth_headers: dict):
    await client.post(f"/api/v1/ledger/{DAY}/entries", json={"entries": [_entry("a", "Meal 1", 300)]}, headers=auth_headers)

    resp = await client.post(f"/api/v1/ledger/{DAY}/entries", json={"entries": [_entry("b", "Meal 1", 300)]})
    assert resp.status_code == 201
    resp = await client.get(f"/api/v1/ledger/{DAY}")
    assert resp.json()["entries"] == []

    resp = await client.get(f"/api/v1/ledger/{DAY}", headers=auth_headers)
    assert [e["id"] for e in resp.json()["entries"]] == ["a"]


@pytest.mark.asyncio
async def test_repair_endpoint(client: AsyncClient, auth_headers: dict):
    resp = await client.post(f"/api/v1/ledger/{DAY}/repair", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {"removed": 0}
