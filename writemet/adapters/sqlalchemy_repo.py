"""SQLAlchemy message source adapter for WriteMet."""

from datetime import datetime
from typing import Sequence

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..models import Message

_SELECT_USER_MESSAGES = """
    SELECT id, conversation_id, conversation_title, content, created_at
    FROM chat_messages
    WHERE role = 'user'
"""


class SQLAlchemyMessageSource:
    """Fetches user chat messages from a relational table and maps them to domain models."""

    def __init__(self, db: Session):
        self.db = db

    def fetch_messages(
        self,
        start_date: datetime,
        end_date: datetime,
    ) -> Sequence[Message]:
        rows = self.db.execute(
            text(
                _SELECT_USER_MESSAGES
                + """
                  AND created_at >= :start_ts
                  AND created_at <= :end_ts
                ORDER BY conversation_id, created_at, id
                """
            ),
            {"start_ts": int(start_date.timestamp()), "end_ts": int(end_date.timestamp())},
        ).fetchall()
        return _to_messages(rows)

    def fetch_messages_since(self, timestamp: int) -> Sequence[Message]:
        rows = self.db.execute(
            text(
                _SELECT_USER_MESSAGES
                + """
                  AND created_at > :after_ts
                ORDER BY conversation_id, created_at, id
                """
            ),
            {"after_ts": int(timestamp)},
        ).fetchall()
        return _to_messages(rows)


def _to_messages(rows) -> list[Message]:
    messages = []
    for row in rows:
        content = (row.content or "").strip()
        if not content:
            continue
        messages.append(
            Message(
                id=str(row.id),
                text=content,
                timestamp=int(row.created_at or 0),
                conversation_id=int(row.conversation_id or 0),
                conversation_title=row.conversation_title or "Untitled",
            )
        )
    return messages
