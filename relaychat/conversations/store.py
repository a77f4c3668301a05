"""In-memory conversation store.

Conversations live in a process-wide dict keyed by id. Writes replace whole
conversation objects (last write wins); the lock only keeps a single operation
from interleaving with another.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import ValidationError

from relaychat.conversations.models import (
    Conversation,
    ConversationUpsert,
    Message,
    MessageCreate,
    new_id,
    now_iso,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
TITLE_PREVIEW_LENGTH = 50
ROLES = ("user", "assistant", "system")


class ConversationNotFoundError(Exception):
    """Raised when a conversation id is unknown."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


def _parse_ts(value: str | None) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=UTC)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _last_touched(conversation: Conversation) -> datetime:
    return _parse_ts(conversation.updated_at or conversation.created_at)


def generate_title(messages: list[Message]) -> str:
    """Title from the first user message, truncated to 50 characters."""
    if not messages:
        return "New conversation"
    for message in messages:
        if message.role == "user" and message.content:
            preview = message.content[:TITLE_PREVIEW_LENGTH]
            if len(message.content) > TITLE_PREVIEW_LENGTH:
                preview += "..."
            return preview
    return f"Conversation of {datetime.now(UTC):%Y-%m-%d}"


class ConversationStore:
    """Keyed CRUD over conversations with substring search and snapshots."""

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._last_activity: str | None = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._conversations)

    def list_conversations(
        self, search: str | None = None, limit: int = 50, offset: int = 0,
    ) -> tuple[list[Conversation], int]:
        """Return a page of conversations, most recently updated first, and the total."""
        with self._lock:
            items = list(self._conversations.values())

        if search:
            term = search.lower()
            items = [
                c for c in items
                if (c.title and term in c.title.lower())
                or any(m.content and term in m.content.lower() for m in c.messages)
            ]

        items.sort(key=_last_touched, reverse=True)
        return items[offset:offset + limit], len(items)

    def get(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def upsert(self, data: ConversationUpsert) -> tuple[Conversation, bool]:
        """Create or replace a conversation. Returns ``(conversation, is_new)``."""
        conversation_id = str(data.id) if data.id else new_id()
        messages = [Message.model_validate(m.model_dump()) for m in data.messages]
        now = now_iso()

        with self._lock:
            existing = self._conversations.get(conversation_id)
            previous_title = existing.title if existing else None
            conversation = Conversation(
                id=conversation_id,
                title=data.title or previous_title or generate_title(messages),
                messages=messages,
                webhook_url=data.webhook_url,
                created_at=existing.created_at if existing else now,
                updated_at=now,
                message_count=len(messages),
            )
            self._conversations[conversation_id] = conversation
            self._last_activity = now

        logger.info("Conversation saved: %s (%d messages)", conversation_id, len(messages))
        return conversation, existing is None

    def append_message(
        self, conversation_id: str, data: MessageCreate,
    ) -> tuple[Message, Conversation]:
        """Append a message, creating the conversation if it does not exist yet."""
        now = now_iso()
        message = Message(
            role=data.role,
            content=data.content,
            timestamp=data.timestamp or now,
            metadata=data.metadata,
        )

        with self._lock:
            existing = self._conversations.get(conversation_id)
            if existing is None:
                existing = Conversation(id=conversation_id, created_at=now)
            messages = [*existing.messages, message]
            conversation = existing.model_copy(update={
                "messages": messages,
                "updated_at": now,
                "message_count": len(messages),
                "title": existing.title or generate_title(messages),
            })
            self._conversations[conversation_id] = conversation
            self._last_activity = now

        return message, conversation

    def delete(self, conversation_id: str) -> Conversation:
        with self._lock:
            conversation = self._conversations.pop(conversation_id, None)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        logger.info("Conversation deleted: %s", conversation_id)
        return conversation

    def counters(self) -> dict[str, Any]:
        conversations = list(self._conversations.values())
        return {
            "totalConversations": len(conversations),
            "totalMessages": sum(len(c.messages) for c in conversations),
            "lastActivity": self._last_activity,
        }

    def stats(self) -> dict[str, Any]:
        conversations = list(self._conversations.values())
        total_messages = sum(len(c.messages) for c in conversations)

        by_role = dict.fromkeys(ROLES, 0)
        for conversation in conversations:
            for message in conversation.messages:
                if message.role in by_role:
                    by_role[message.role] += 1

        day_ago = datetime.now(UTC) - timedelta(days=1)
        oldest = min(
            (c.created_at for c in conversations),
            key=_parse_ts,
            default=None,
        )
        return {
            "totalConversations": len(conversations),
            "totalMessages": total_messages,
            "averageMessagesPerConversation": (
                round(total_messages / len(conversations)) if conversations else 0
            ),
            "messagesByRole": by_role,
            "recentConversations": sum(1 for c in conversations if _last_touched(c) > day_ago),
            "lastActivity": self._last_activity,
            "oldestConversation": oldest,
        }

    def export(self) -> dict[str, Any]:
        """Full snapshot of the store, tagged with the export format version."""
        conversations = [c.to_response() for c in self._conversations.values()]
        return {
            "version": EXPORT_VERSION,
            "exportDate": now_iso(),
            "totalConversations": len(conversations),
            "conversations": conversations,
            "stats": self.counters(),
        }

    def import_snapshot(self, items: list[Any], overwrite: bool = False) -> dict[str, int]:
        """Load exported conversations; existing ids are skipped unless ``overwrite``."""
        imported = skipped = errors = 0
        now = now_iso()

        for item in items:
            if (
                not isinstance(item, dict)
                or not item.get("id")
                or not isinstance(item.get("messages"), list)
            ):
                errors += 1
                continue
            try:
                conversation = Conversation.model_validate({**item, "updatedAt": now})
            except ValidationError as exc:
                logger.warning("Skipping invalid conversation %s: %s", item.get("id"), exc)
                errors += 1
                continue

            with self._lock:
                if conversation.id in self._conversations and not overwrite:
                    skipped += 1
                    continue
                self._conversations[conversation.id] = conversation.model_copy(
                    update={"message_count": len(conversation.messages)},
                )
            imported += 1

        self._last_activity = now
        return {
            "imported": imported,
            "skipped": skipped,
            "errors": errors,
            "total": len(items),
        }
