"""HTTP routes for the conversation store."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from relaychat.conversations.models import ConversationUpsert, ImportRequest, MessageCreate
from relaychat.conversations.store import ConversationNotFoundError, ConversationStore

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def get_store(request: Request) -> ConversationStore:
    return request.app.state.conversations


def _not_found() -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": "Conversation not found"}, status_code=404,
    )


@router.get("")
async def list_conversations(
    search: str | None = None,
    limit: int = Query(default=50, ge=0),
    offset: int = Query(default=0, ge=0),
    store: ConversationStore = Depends(get_store),
) -> dict[str, Any]:
    page, total = store.list_conversations(search=search, limit=limit, offset=offset)
    return {
        "success": True,
        "conversations": [c.to_response() for c in page],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + limit < total,
        },
    }


@router.get("/stats/summary")
async def conversation_stats(store: ConversationStore = Depends(get_store)) -> dict[str, Any]:
    return {"success": True, "stats": store.stats()}


@router.get("/export/all")
async def export_conversations(store: ConversationStore = Depends(get_store)) -> JSONResponse:
    return JSONResponse(
        store.export(),
        headers={"Content-Disposition": 'attachment; filename="conversations-export.json"'},
    )


@router.post("/import")
async def import_conversations(
    data: ImportRequest, store: ConversationStore = Depends(get_store),
) -> dict[str, Any]:
    result = store.import_snapshot(data.conversations, overwrite=data.overwrite)
    return {"success": True, **result}


@router.get("/{conversation_id}", response_model=None)
async def get_conversation(
    conversation_id: str, store: ConversationStore = Depends(get_store),
) -> dict[str, Any] | JSONResponse:
    try:
        conversation = store.get(conversation_id)
    except ConversationNotFoundError:
        return _not_found()
    return {"success": True, "conversation": conversation.to_response()}


@router.post("")
async def save_conversation(
    data: ConversationUpsert, store: ConversationStore = Depends(get_store),
) -> dict[str, Any]:
    conversation, is_new = store.upsert(data)
    return {"success": True, "conversation": conversation.to_response(), "isNew": is_new}


@router.post("/{conversation_id}/messages")
async def add_message(
    conversation_id: str,
    data: MessageCreate,
    store: ConversationStore = Depends(get_store),
) -> dict[str, Any]:
    message, conversation = store.append_message(conversation_id, data)
    return {
        "success": True,
        "message": message.model_dump(mode="json"),
        "conversation": conversation.to_response(),
    }


@router.delete("/{conversation_id}", response_model=None)
async def delete_conversation(
    conversation_id: str, store: ConversationStore = Depends(get_store),
) -> dict[str, Any] | JSONResponse:
    try:
        store.delete(conversation_id)
    except ConversationNotFoundError:
        return _not_found()
    return {"success": True, "message": "Conversation deleted"}
