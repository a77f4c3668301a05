"""Conversation and message models for the in-memory conversation store."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from relaychat.models import validate_http_url

Role = Literal["user", "assistant", "system"]

MAX_TITLE_LENGTH = 200
MAX_MESSAGE_LENGTH = 10_000


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class Message(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(default_factory=new_id)
    role: str
    content: str
    timestamp: str = Field(default_factory=now_iso)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Conversation(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id: str
    title: str | None = None
    messages: list[Message] = Field(default_factory=list)
    webhook_url: str | None = Field(default=None, alias="webhookUrl")
    created_at: str = Field(default_factory=now_iso, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")
    message_count: int = Field(default=0, alias="messageCount")

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Request bodies ---


class MessageInput(BaseModel):
    """A message embedded in a create-or-update request."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    role: Role
    content: str = Field(min_length=1)
    timestamp: str = Field(default_factory=now_iso)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConversationUpsert(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: uuid.UUID | None = None
    title: str | None = Field(default=None, max_length=MAX_TITLE_LENGTH)
    messages: list[MessageInput] = Field(default_factory=list)
    webhook_url: str | None = Field(default=None, alias="webhookUrl")

    @field_validator("webhook_url")
    @classmethod
    def _check_webhook_url(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return validate_http_url(value)


class MessageCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Role
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    timestamp: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _check_timestamp(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValueError("timestamp must be an ISO 8601 date") from exc
        return value


class ImportRequest(BaseModel):
    conversations: list[Any]
    overwrite: bool = False
