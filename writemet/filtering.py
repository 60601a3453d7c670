"""Two-stage relevance filtering: a local heuristic pass, then model confirmation."""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence

from .batching import chunked, cooldown_if_due
from .client import ModelClient
from .config import PipelineConfig
from .models import Message
from .ports import StatusCallback, notify
from .prompts import relevance_prompt
from .sanitize import parse_json_response

logger = logging.getLogger(__name__)

MIN_WORDS = 10
PROSE_MIN_WORDS = 15

WRITING_KEYWORDS = (
    "grammar",
    "punctuation",
    "tone",
    "writing",
    "edit",
    "proofread",
    "essay",
    "paper",
    "report",
    "email",
    "letter",
    "document",
    "sentence",
    "paragraph",
    "draft",
    "revision",
    "feedback",
    "formal",
    "professional",
    "academic",
    "thesis",
    "dissertation",
)

EXCLUDE_KEYWORDS = (
    "debug this code",
    "syntax error",
    "stack trace",
    "solve for x",
    "calculate the",
    "derivative of",
    "workout routine",
    "reps and sets",
    "recipe for",
    "game walkthrough",
    "trivia question",
)

_PERIOD_RE = re.compile(r"\.")


def filter_messages_heuristic(messages: Iterable[Message]) -> List[Message]:
    """Drop messages that obviously carry no assessable prose. Pure and local."""
    return [message for message in messages if _passes_heuristic(message.text)]


def _passes_heuristic(text: str) -> bool:
    word_count = len(text.split())
    if word_count < MIN_WORDS:
        return False

    lowered = text.lower()
    if any(keyword in lowered for keyword in WRITING_KEYWORDS):
        return True
    if any(keyword in lowered for keyword in EXCLUDE_KEYWORDS):
        return False

    periods = len(_PERIOD_RE.findall(text))
    if periods >= 1 and word_count >= PROSE_MIN_WORDS:
        return True
    if periods >= 2:
        return True
    return "?" in text and word_count >= PROSE_MIN_WORDS


class RelevanceConfirmer:
    """Asks the model to confirm relevance per message, keeping whole batches on doubt."""

    def __init__(
        self,
        client: ModelClient,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.config = config or PipelineConfig()
        self._sleep = sleep

    async def confirm(
        self,
        messages: Sequence[Message],
        batch_size: Optional[int] = None,
        on_status: StatusCallback = None,
    ) -> List[Message]:
        batches = chunked(messages, batch_size or self.config.relevance_batch_size)
        kept: List[Message] = []

        for batch_number, batch in enumerate(batches, start=1):
            notify(on_status, f"Confirming relevance: batch {batch_number}/{len(batches)} ({len(batch)} messages)...")
            kept.extend(await self._confirm_batch(batch, batch_number, on_status))
            notify(on_status, f"Relevance batch {batch_number}/{len(batches)} done ({len(kept)} kept so far)")
            await cooldown_if_due(
                batch_number,
                len(batches),
                self.config.cooldown_every,
                self.config.cooldown_seconds,
                self._sleep,
                on_status,
            )

        logger.info("Relevance confirmation kept %d of %d messages", len(kept), len(messages))
        return kept

    async def _confirm_batch(
        self,
        batch: List[Message],
        batch_number: int,
        on_status: StatusCallback,
    ) -> List[Message]:
        try:
            response = await self.client.call(relevance_prompt(batch), self.config.relevance_max_tokens, on_status)
            flags = parse_json_response(response)
        except Exception as exc:
            logger.warning("Relevance batch %d failed, keeping all %d messages: %s", batch_number, len(batch), exc)
            return list(batch)

        if not _is_flag_list(flags, len(batch)):
            logger.warning(
                "Relevance batch %d returned an unusable shape, keeping all %d messages",
                batch_number,
                len(batch),
            )
            return list(batch)

        return [message for message, relevant in zip(batch, flags) if relevant]


def _is_flag_list(value: Any, expected_length: int) -> bool:
    return (
        isinstance(value, list)
        and len(value) == expected_length
        and all(isinstance(flag, bool) for flag in value)
    )
