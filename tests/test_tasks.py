"""Tests for task CRUD, filtering and search."""

from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from conftest import parse_timestamp
from taskflow.services.samples import COLOR_PALETTE


def test_create_task_applies_defaults(client: TestClient):
    response = client.post("/api/items", json={"name": "Buy milk"})
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Task created successfully"

    item = data["item"]
    assert item["name"] == "Buy milk"
    assert item["description"] == ""
    assert item["category"] == "work"
    assert item["priority"] == "medium"
    assert item["status"] == "not-started"
    assert item["color"] in COLOR_PALETTE
    assert "completedAt" not in item
    assert item["createdAt"] == item["updatedAt"]
    assert len(item["id"]) == 32


def test_create_task_keeps_given_fields(client: TestClient):
    response = client.post(
        "/api/items",
        json={
            "name": "  Book dentist  ",
            "description": "Annual check-up",
            "category": "health",
            "priority": "high",
            "status": "in-progress",
            "color": "#ef4444",
        },
    )
    assert response.status_code == 201
    item = response.json()["item"]
    assert item["name"] == "Book dentist"
    assert item["description"] == "Annual check-up"
    assert item["category"] == "health"
    assert item["priority"] == "high"
    assert item["status"] == "in-progress"
    assert item["color"] == "#ef4444"


def test_create_task_accepts_any_category(client: TestClient):
    item = client.post(
        "/api/items", json={"name": "Water plants", "category": "garden"}
    ).json()["item"]
    assert item["category"] == "garden"


def test_create_task_empty_optional_fields_get_defaults(client: TestClient):
    item = client.post(
        "/api/items",
        json={"name": "Task", "category": "", "priority": "", "color": ""},
    ).json()["item"]
    assert item["category"] == "work"
    assert item["priority"] == "medium"
    assert item["color"] in COLOR_PALETTE


def test_create_completed_task_stamps_completed_at(client: TestClient):
    item = client.post(
        "/api/items", json={"name": "Done already", "status": "completed"}
    ).json()["item"]
    assert item["status"] == "completed"
    assert item["completedAt"] is not None


def test_create_task_rejects_blank_name(client: TestClient):
    for body in ({}, {"name": ""}, {"name": "   "}, {"name": None}):
        response = client.post("/api/items", json=body)
        assert response.status_code == 400, body
        assert response.json()["error"] == "Task title is required"

    assert client.get("/api/items").json()["total"] == 0


def test_create_task_rejects_unknown_priority(client: TestClient):
    response = client.post("/api/items", json={"name": "Task", "priority": "urgent"})
    assert response.status_code == 400
    assert "details" in response.json()
    assert client.get("/api/items").json()["total"] == 0


def test_get_task_returns_created_task(client: TestClient, create_task):
    created = create_task(name="Read a book", category="personal")

    response = client.get(f"/api/items/{created['id']}")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["item"]["id"] == created["id"]
    assert data["item"] == created


def test_get_task_accepts_hyphenated_id(client: TestClient, create_task):
    created = create_task(name="Hyphens")
    hyphenated = str(UUID(created["id"]))

    response = client.get(f"/api/items/{hyphenated}")
    assert response.status_code == 200
    assert response.json()["item"]["id"] == created["id"]


def test_get_task_invalid_id(client: TestClient):
    response = client.get("/api/items/not-a-valid-id")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid task ID"}


def test_get_task_not_found(client: TestClient):
    response = client.get(f"/api/items/{uuid4().hex}")
    assert response.status_code == 404
    assert response.json() == {"error": "Task not found"}


def test_update_task_changes_given_fields_only(client: TestClient, create_task):
    created = create_task(name="Draft report", description="Q3 numbers")

    response = client.put(
        f"/api/items/{created['id']}", json={"priority": "high", "category": "finance"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Task updated successfully"
    item = data["item"]
    assert item["priority"] == "high"
    assert item["category"] == "finance"
    assert item["name"] == "Draft report"
    assert item["description"] == "Q3 numbers"


def test_update_task_ignores_immutable_fields(client: TestClient, create_task):
    created = create_task(name="Original")
    other_id = uuid4().hex

    response = client.put(
        f"/api/items/{created['id']}",
        json={
            "name": "Renamed",
            "id": other_id,
            "_id": other_id,
            "createdAt": "2000-01-01T00:00:00Z",
        },
    )
    assert response.status_code == 200
    item = response.json()["item"]
    assert item["name"] == "Renamed"
    assert item["id"] == created["id"]
    assert item["createdAt"] == created["createdAt"]
    assert parse_timestamp(item["updatedAt"]) >= parse_timestamp(created["updatedAt"])

    fetched = client.get(f"/api/items/{created['id']}").json()["item"]
    assert fetched["name"] == "Renamed"
    assert fetched["createdAt"] == created["createdAt"]


def test_update_task_always_refreshes_updated_at(client: TestClient, create_task):
    created = create_task(name="Touch me")
    previous = parse_timestamp(created["updatedAt"])

    for _ in range(3):
        item = client.put(f"/api/items/{created['id']}", json={}).json()["item"]
        current = parse_timestamp(item["updatedAt"])
        assert current >= previous
        previous = current


def test_update_task_rejects_blank_name(client: TestClient, create_task):
    created = create_task(name="Keep my name")

    for body in ({"name": ""}, {"name": "  "}, {"name": None}):
        response = client.put(f"/api/items/{created['id']}", json=body)
        assert response.status_code == 400, body
        assert response.json()["error"] == "Task title is required"

    fetched = client.get(f"/api/items/{created['id']}").json()["item"]
    assert fetched["name"] == "Keep my name"


def test_update_task_completion_timestamp(client: TestClient, create_task):
    created = create_task(name="Finish course")
    url = f"/api/items/{created['id']}"

    completed = client.put(url, json={"status": "completed"}).json()["item"]
    assert completed["status"] == "completed"
    assert completed["completedAt"] is not None

    # completing again keeps the original completion time
    again = client.put(url, json={"status": "completed"}).json()["item"]
    assert again["completedAt"] == completed["completedAt"]

    # unrelated edits leave completion alone
    renamed = client.put(url, json={"name": "Finish the course"}).json()["item"]
    assert renamed["completedAt"] == completed["completedAt"]

    reopened = client.put(url, json={"status": "in-progress"}).json()["item"]
    assert reopened["status"] == "in-progress"
    assert "completedAt" not in reopened


def test_update_task_not_found(client: TestClient):
    response = client.put(f"/api/items/{uuid4().hex}", json={"name": "Ghost"})
    assert response.status_code == 404
    assert response.json() == {"error": "Task not found"}


def test_update_task_invalid_id(client: TestClient):
    response = client.put("/api/items/12345", json={"name": "Ghost"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid task ID"}


def test_delete_task(client: TestClient, create_task):
    created = create_task(name="Throw away")
    create_task(name="Keep")

    response = client.delete(f"/api/items/{created['id']}")
    assert response.status_code == 200
    assert response.json() == {"message": "Task deleted successfully", "success": True}

    assert client.get(f"/api/items/{created['id']}").status_code == 404
    assert client.get("/api/items").json()["total"] == 1


def test_delete_missing_task_leaves_collection_unchanged(client: TestClient, create_task):
    created = create_task(name="Survivor")
    assert client.delete(f"/api/items/{created['id']}").status_code == 200

    response = client.delete(f"/api/items/{created['id']}")
    assert response.status_code == 404
    assert response.json() == {"error": "Task not found"}

    response = client.delete(f"/api/items/{uuid4().hex}")
    assert response.status_code == 404
    assert client.get("/api/items").json()["total"] == 0


def test_delete_task_invalid_id(client: TestClient):
    response = client.delete("/api/items/abc")
    assert response.status_code == 400


def test_list_tasks_newest_first(client: TestClient, create_task):
    for name in ("First", "Second", "Third"):
        create_task(name=name)

    data = client.get("/api/items").json()
    assert data["success"] is True
    assert data["count"] == 3
    assert data["total"] == 3
    created = [parse_timestamp(item["createdAt"]) for item in data["items"]]
    assert created == sorted(created, reverse=True)
    assert data["items"][0]["name"] == "Third"


def test_list_tasks_filter_by_category(client: TestClient, create_task):
    create_task(name="Buy shoes", category="shopping")
    create_task(name="Buy bread", category="shopping")
    create_task(name="Write tests")

    data = client.get("/api/items", params={"category": "shopping"}).json()
    assert data["count"] == 2
    assert data["total"] == 3
    assert {item["category"] for item in data["items"]} == {"shopping"}

    data = client.get("/api/items", params={"category": "all"}).json()
    assert data["count"] == 3


def test_list_tasks_filter_by_status(client: TestClient, create_task):
    create_task(name="Todo")
    create_task(name="Doing", status="in-progress")
    create_task(name="Done", status="completed")

    data = client.get("/api/items", params={"status": "completed"}).json()
    assert [item["name"] for item in data["items"]] == ["Done"]

    data = client.get("/api/items", params={"status": "all"}).json()
    assert data["count"] == 3


def test_list_tasks_search_name_or_description(client: TestClient, create_task):
    create_task(name="Grocery run")
    create_task(name="Weekend", description="Visit the GROCERY market")
    create_task(name="Walk the dog")

    data = client.get("/api/items", params={"search": "grocery"}).json()
    assert data["count"] == 2
    assert data["total"] == 3
    for item in data["items"]:
        haystack = f"{item['name']} {item['description']}".lower()
        assert "grocery" in haystack


def test_list_tasks_search_is_literal(client: TestClient, create_task):
    create_task(name="100% done")
    create_task(name="Something else")

    data = client.get("/api/items", params={"search": "%"}).json()
    assert [item["name"] for item in data["items"]] == ["100% done"]

    data = client.get("/api/items", params={"search": "_"}).json()
    assert data["count"] == 0


def test_list_tasks_combined_filters(client: TestClient, create_task):
    create_task(name="Buy milk", category="shopping")
    create_task(name="Buy milk for work")
    create_task(name="Buy stamps", category="shopping", status="completed")

    data = client.get(
        "/api/items",
        params={"category": "shopping", "status": "not-started", "search": "MILK"},
    ).json()
    assert [item["name"] for item in data["items"]] == ["Buy milk"]


def test_buy_milk_scenario(client: TestClient):
    created = client.post("/api/items", json={"name": "Buy milk"}).json()["item"]
    assert created["category"] == "work"
    assert created["priority"] == "medium"

    found = client.get("/api/items", params={"search": "milk"}).json()["items"]
    assert created["id"] in [item["id"] for item in found]

    assert client.delete(f"/api/items/{created['id']}").status_code == 200
    assert client.get(f"/api/items/{created['id']}").status_code == 404
