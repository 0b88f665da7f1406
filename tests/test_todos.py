"""
Tests for the todo API endpoints (/api/todos).

These tests cover:
- Authentication on every route
- CRUD operations and validation
- Ownership: other users' todos behave as missing
"""

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from oidctodo.todos import MemoryTodoRepository, Todo
from tests.conftest import auth_headers


async def create(client: httpx.AsyncClient, token: str, **payload) -> dict:
    response = await client.post(
        "/api/todos", json=payload, headers=auth_headers(token)
    )
    assert response.status_code == 201
    return response.json()


# -------------------- Repository --------------------


class TestMemoryRepository:
    def test_find_all_newest_first(self):
        repo = MemoryTodoRepository()
        now = datetime.now(UTC)
        older = repo.create(Todo.create("older", "u1", created_at=now - timedelta(1)))
        newer = repo.create(Todo.create("newer", "u1", created_at=now))
        repo.create(Todo.create("foreign", "u2"))
        assert [t.id for t in repo.find_all("u1")] == [newer.id, older.id]

    def test_update_and_delete(self):
        repo = MemoryTodoRepository()
        todo = repo.create(Todo.create("title", "u1"))
        updated = repo.update(todo.id, is_completed=True)
        assert updated.is_completed
        assert updated.title == "title"
        assert repo.find_by_id(todo.id).is_completed
        assert repo.delete(todo.id)
        assert not repo.delete(todo.id)
        assert repo.update(todo.id, title="x") is None

    def test_update_rejects_unknown_fields(self):
        repo = MemoryTodoRepository()
        todo = repo.create(Todo.create("title", "u1"))
        with pytest.raises(ValueError):
            repo.update(todo.id, user_id="u2")


# -------------------- API --------------------


class TestTodoApi:
    @pytest.mark.asyncio
    async def test_requires_auth(self, client: httpx.AsyncClient):
        response = await client.get("/api/todos")
        assert response.status_code == 401
        response = await client.post("/api/todos", json={"title": "x"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_collection_served_without_redirect(self, client, session_token):
        headers = auth_headers(session_token)
        response = await client.post(
            "/api/todos", json={"title": "no slash"}, headers=headers
        )
        assert response.status_code == 201
        response = await client.get("/api/todos", headers=headers)
        assert response.status_code == 200
        assert "location" not in response.headers
        assert [t["title"] for t in response.json()] == ["no slash"]

    @pytest.mark.asyncio
    async def test_create(self, client, session_token):
        todo = await create(
            client, session_token, title="  Buy milk ", description="2 liters"
        )
        assert todo["title"] == "Buy milk"
        assert todo["description"] == "2 liters"
        assert todo["isCompleted"] is False
        assert todo["userId"] == "alice"
        assert todo["id"]
        assert todo["createdAt"]

    @pytest.mark.asyncio
    async def test_create_requires_title(self, client, session_token):
        for payload in ({}, {"title": "   "}, {"description": "no title"}):
            response = await client.post(
                "/api/todos", json=payload, headers=auth_headers(session_token)
            )
            assert response.status_code == 400
            assert response.json()["detail"] == "Title is required"

    @pytest.mark.asyncio
    async def test_list_only_own(self, client, session_token, other_session_token):
        first = await create(client, session_token, title="first")
        second = await create(client, session_token, title="second")
        await create(client, other_session_token, title="bob's")

        response = await client.get("/api/todos", headers=auth_headers(session_token))
        assert response.status_code == 200
        ids = [t["id"] for t in response.json()]
        assert set(ids) == {first["id"], second["id"]}

    @pytest.mark.asyncio
    async def test_get(self, client, session_token):
        todo = await create(client, session_token, title="read me")
        response = await client.get(
            f"/api/todos/{todo['id']}", headers=auth_headers(session_token)
        )
        assert response.status_code == 200
        assert response.json() == todo

    @pytest.mark.asyncio
    async def test_get_missing(self, client, session_token):
        response = await client.get(
            "/api/todos/does-not-exist", headers=auth_headers(session_token)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_toggle_completion(self, client, session_token):
        todo = await create(client, session_token, title="toggle")
        response = await client.put(
            f"/api/todos/{todo['id']}",
            json={"isCompleted": True, "title": "ignored"},
            headers=auth_headers(session_token),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["isCompleted"] is True
        assert data["title"] == "toggle"

    @pytest.mark.asyncio
    async def test_toggle_requires_boolean(self, client, session_token):
        todo = await create(client, session_token, title="toggle")
        response = await client.put(
            f"/api/todos/{todo['id']}",
            json={"isCompleted": "yes"},
            headers=auth_headers(session_token),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_edit_title_and_description(self, client, session_token):
        todo = await create(client, session_token, title="old", description="d")
        response = await client.put(
            f"/api/todos/{todo['id']}",
            json={"title": "new", "description": None},
            headers=auth_headers(session_token),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "new"
        assert data["description"] is None
        assert data["isCompleted"] is False

    @pytest.mark.asyncio
    async def test_delete(self, client, session_token):
        todo = await create(client, session_token, title="gone")
        response = await client.delete(
            f"/api/todos/{todo['id']}", headers=auth_headers(session_token)
        )
        assert response.status_code == 204
        response = await client.get(
            f"/api/todos/{todo['id']}", headers=auth_headers(session_token)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_foreign_todo_is_not_found(
        self, client, session_token, other_session_token
    ):
        todo = await create(client, other_session_token, title="bob's")
        headers = auth_headers(session_token)
        url = f"/api/todos/{todo['id']}"

        assert (await client.get(url, headers=headers)).status_code == 404
        response = await client.put(url, json={"isCompleted": True}, headers=headers)
        assert response.status_code == 404
        assert (await client.delete(url, headers=headers)).status_code == 404

        # Still intact for its owner
        response = await client.get(url, headers=auth_headers(other_session_token))
        assert response.json()["isCompleted"] is False
