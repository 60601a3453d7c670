"""Rate-limited client that routes every model call through one scheduler."""

import logging
from typing import Optional

from .ports import LanguageModel, StatusCallback, notify
from .scheduler import RequestScheduler

logger = logging.getLogger(__name__)


class ModelClient:
    """Owns a language model port and the request queue in front of it."""

    def __init__(
        self,
        model: LanguageModel,
        scheduler: Optional[RequestScheduler] = None,
        min_interval: float = 12.0,
    ):
        self.model = model
        self.scheduler = scheduler if scheduler is not None else RequestScheduler(min_interval)

    async def call(self, prompt: str, max_tokens: int, on_status: StatusCallback = None) -> str:
        async def task() -> str:
            notify(on_status, "Sending request to the language model...")
            response = await self.model.complete(prompt, max_tokens)
            notify(on_status, "Response received")
            logger.debug("Model returned %d characters", len(response or ""))
            return response or ""

        queued = self.scheduler.queue_length()
        if queued:
            notify(
                on_status,
                f"Waiting in queue ({queued} ahead, ~{self.scheduler.estimated_wait_seconds():.0f}s)",
            )
        return await self.scheduler.enqueue(task)

    def queue_length(self) -> int:
        return self.scheduler.queue_length()

    def estimated_wait_seconds(self) -> float:
        return self.scheduler.estimated_wait_seconds()
