"""Todo CRUD endpoints under /api/todos. Every route requires login."""

from fastapi import APIRouter, Body, Depends, HTTPException, Response

from oidctodo import globals
from oidctodo.fastapi import authz
from oidctodo.fastapi.response import MsgspecResponse
from oidctodo.oidc.identity import UserIdentity
from oidctodo.todos import Todo

# Included by the main app, so its error handlers apply
router = APIRouter(prefix="/api/todos")


def _owned(todo_id: str, user: UserIdentity) -> Todo:
    todo = globals.todos.instance.find_by_id(todo_id)
    # Other users' todos are indistinguishable from missing ones
    if todo is None or todo.user_id != user.sub:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


def _text(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{key} must be a string")
    return value


@router.post("", status_code=201)
async def create_todo(
    payload: dict = Body(...), user: UserIdentity = Depends(authz.verify)
):
    title = (_text(payload, "title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    todo = Todo.create(
        title=title, user_id=user.sub, description=_text(payload, "description")
    )
    return MsgspecResponse(globals.todos.instance.create(todo), status_code=201)


@router.get("")
async def list_todos(user: UserIdentity = Depends(authz.verify)):
    return MsgspecResponse(globals.todos.instance.find_all(user.sub))


@router.get("/{todo_id}")
async def get_todo(todo_id: str, user: UserIdentity = Depends(authz.verify)):
    return MsgspecResponse(_owned(todo_id, user))


@router.put("/{todo_id}")
async def update_todo(
    todo_id: str,
    payload: dict = Body(...),
    user: UserIdentity = Depends(authz.verify),
):
    """Toggle completion when isCompleted is given, else edit title/description."""
    _owned(todo_id, user)
    if "isCompleted" in payload:
        if not isinstance(payload["isCompleted"], bool):
            raise HTTPException(status_code=400, detail="isCompleted must be a boolean")
        changes = {"is_completed": payload["isCompleted"]}
    else:
        changes = {}
        if "title" in payload:
            title = (_text(payload, "title") or "").strip()
            if not title:
                raise HTTPException(status_code=400, detail="Title is required")
            changes["title"] = title
        if "description" in payload:
            changes["description"] = _text(payload, "description")
    todo = globals.todos.instance.update(todo_id, **changes)
    if todo is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    return MsgspecResponse(todo)


@router.delete("/{todo_id}", status_code=204)
async def delete_todo(todo_id: str, user: UserIdentity = Depends(authz.verify)):
    _owned(todo_id, user)
    globals.todos.instance.delete(todo_id)
    return Response(status_code=204)
