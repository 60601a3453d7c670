"""Port definitions for language models and message sources."""

from datetime import datetime
from typing import Callable, Optional, Protocol, Sequence

from .models import Message

StatusCallback = Optional[Callable[[str], None]]


class LanguageModel(Protocol):
    """Anything that turns a prompt into raw response text."""

    async def complete(self, prompt: str, max_tokens: int) -> str:
        """Return the model's raw text; raise ModelCallError on failure."""


class MessageSource(Protocol):
    """Repository interface that adapters can implement for any chat-log backend."""

    def fetch_messages(
        self,
        start_date: datetime,
        end_date: datetime,
    ) -> Sequence[Message]:
        """Return user messages created within a period."""

    def fetch_messages_since(self, timestamp: int) -> Sequence[Message]:
        """Return user messages created strictly after a unix timestamp."""


def notify(on_status: StatusCallback, status: str) -> None:
    if on_status is not None:
        on_status(status)
