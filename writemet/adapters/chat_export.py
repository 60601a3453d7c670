"""Extract user messages from an exported chat-log JSON document."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..models import Message

logger = logging.getLogger(__name__)

METADATA_SAMPLE_SIZE = 10


def parse_chat_export(
    data: Any,
    start_conversation: Optional[int] = None,
    end_conversation: Optional[int] = None,
    after_timestamp: Optional[int] = None,
) -> List[Message]:
    """
    Collect user-authored messages from a list of exported conversations.

    Args:
        data: Parsed export JSON (a list of conversations with a ``mapping`` of nodes)
        start_conversation: First conversation to include, 1-indexed
        end_conversation: Last conversation to include, 1-indexed and inclusive
        after_timestamp: Only keep messages created strictly after this unix time

    Returns:
        Messages with ids of the form ``conv_{conversationIndex}_msg_{n}``.
    """
    conversations = data if isinstance(data, list) else []
    start_index = start_conversation - 1 if start_conversation else 0
    end_index = end_conversation if end_conversation else len(conversations)
    selected = conversations[start_index:end_index]

    messages: List[Message] = []
    for offset, conversation in enumerate(selected):
        if not isinstance(conversation, dict):
            continue
        conversation_index = start_index + offset
        title = conversation.get("title") or "Untitled"
        for node in _nodes(conversation):
            message = node.get("message") if isinstance(node, dict) else None
            if not _is_user_message(message):
                continue

            created = int(message.get("create_time") or 0)
            if after_timestamp is not None and created <= after_timestamp:
                continue

            text = _message_text(message.get("content") or {})
            if not text:
                continue
            messages.append(
                Message(
                    id=f"conv_{conversation_index}_msg_{len(messages)}",
                    text=text,
                    timestamp=created,
                    conversation_id=conversation_index,
                    conversation_title=title,
                )
            )

    logger.info(
        "Extracted %d user messages from conversations %d to %d",
        len(messages),
        start_index + 1,
        start_index + len(selected),
    )
    return messages


def chat_export_metadata(data: Any) -> Dict:
    """Estimate message volume and date range from the first conversations."""
    conversations = data if isinstance(data, list) else []
    sample = [conv for conv in conversations[:METADATA_SAMPLE_SIZE] if isinstance(conv, dict)]

    timestamps = []
    message_count = 0
    for conversation in sample:
        for node in _nodes(conversation):
            message = node.get("message") if isinstance(node, dict) else None
            if _is_user_message(message) and message.get("create_time"):
                message_count += 1
                timestamps.append(float(message["create_time"]))

    average_per_conversation = message_count / len(sample) if sample else 0
    return {
        "total_conversations": len(conversations),
        "estimated_messages": round(average_per_conversation * len(conversations)),
        "date_range": {
            "earliest": _to_iso(min(timestamps)) if timestamps else None,
            "latest": _to_iso(max(timestamps)) if timestamps else None,
        },
    }


def messages_since(messages: Iterable[Message], timestamp: int) -> List[Message]:
    """Messages created strictly after ``timestamp`` (incremental re-evaluation)."""
    return [message for message in messages if message.timestamp > timestamp]


def _nodes(conversation: Dict) -> Iterable[Any]:
    mapping = conversation.get("mapping") or {}
    return mapping.values() if isinstance(mapping, dict) else []


def _is_user_message(message: Any) -> bool:
    if not isinstance(message, dict):
        return False
    author = message.get("author")
    return isinstance(author, dict) and author.get("role") == "user"


def _message_text(content: Dict) -> str:
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""

    text_parts = []
    for part in parts:
        if isinstance(part, str):
            text_parts.append(part)
        elif isinstance(part, dict):
            if part.get("text"):
                text_parts.append(str(part["text"]))
            elif part.get("content"):
                text_parts.append(str(part["content"]))
    return " ".join(text_parts).strip()


def _to_iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
