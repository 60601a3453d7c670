"""Batched per-message quality scoring with identity re-attachment."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from .batching import chunked, cooldown_if_due
from .client import ModelClient
from .config import PipelineConfig
from .errors import EmptyResultError
from .models import DIMENSIONS, EvaluationRecord, Message
from .ports import StatusCallback, notify
from .prompts import evaluation_prompt
from .sanitize import parse_json_response

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 3
MIN_SCORE = 1
MAX_SCORE = 5
FAILED_BATCH_ISSUE = "Evaluation unavailable: the scoring request for this batch failed"


class QualityEvaluator:
    """Scores grammar, punctuation and tone for every message, never dropping one."""

    def __init__(
        self,
        client: ModelClient,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.config = config or PipelineConfig()
        self._sleep = sleep

    async def evaluate(
        self,
        messages: Sequence[Message],
        on_status: StatusCallback = None,
    ) -> List[EvaluationRecord]:
        if not messages:
            raise EmptyResultError("quality_evaluation", "no messages to evaluate")

        batches = chunked(messages, self.config.evaluation_batch_size)
        records: List[EvaluationRecord] = []

        for batch_number, batch in enumerate(batches, start=1):
            notify(on_status, f"Evaluating batch {batch_number}/{len(batches)} ({len(batch)} messages)...")
            records.extend(await self._evaluate_batch(batch, batch_number, on_status))
            notify(on_status, f"Evaluated {len(records)}/{len(messages)} messages")
            await cooldown_if_due(
                batch_number,
                len(batches),
                self.config.cooldown_every,
                self.config.cooldown_seconds,
                self._sleep,
                on_status,
            )

        logger.info("Evaluated %d messages in %d batches", len(records), len(batches))
        return records

    async def _evaluate_batch(
        self,
        batch: List[Message],
        batch_number: int,
        on_status: StatusCallback,
    ) -> List[EvaluationRecord]:
        try:
            response = await self.client.call(evaluation_prompt(batch), self.config.evaluation_max_tokens, on_status)
            results = parse_json_response(response)
            if not isinstance(results, list):
                raise ValueError(f"expected a JSON array, got {type(results).__name__}")
        except Exception as exc:
            logger.warning("Evaluation batch %d failed, using neutral placeholders: %s", batch_number, exc)
            return [placeholder_record(message) for message in batch]

        if len(results) != len(batch):
            logger.warning(
                "Evaluation batch %d returned %d results for %d messages",
                batch_number,
                len(results),
                len(batch),
            )

        return [
            build_record(message, results[position] if position < len(results) else None)
            for position, message in enumerate(batch)
        ]


def build_record(message: Message, result: Any) -> EvaluationRecord:
    """Combine a Message's identity with whatever scores the model produced for it."""
    if not isinstance(result, dict):
        result = {}

    scores = {dimension: coerce_score(result.get(f"{dimension}_score")) for dimension in DIMENSIONS}
    issues = {dimension: coerce_issues(result.get(f"{dimension}_issues")) for dimension in DIMENSIONS}
    return EvaluationRecord(
        message_id=message.id,
        text=message.text,
        grammar_score=scores["grammar"],
        punctuation_score=scores["punctuation"],
        tone_score=scores["tone"],
        grammar_issues=issues["grammar"],
        punctuation_issues=issues["punctuation"],
        tone_issues=issues["tone"],
    )


def placeholder_record(message: Message) -> EvaluationRecord:
    return EvaluationRecord(
        message_id=message.id,
        text=message.text,
        grammar_score=NEUTRAL_SCORE,
        punctuation_score=NEUTRAL_SCORE,
        tone_score=NEUTRAL_SCORE,
        grammar_issues=(FAILED_BATCH_ISSUE,),
    )


def coerce_score(raw_value: Any) -> int:
    if isinstance(raw_value, bool) or raw_value is None:
        return NEUTRAL_SCORE
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        return NEUTRAL_SCORE
    if value != value:  # NaN
        return NEUTRAL_SCORE
    return int(round(min(MAX_SCORE, max(MIN_SCORE, value))))


def coerce_issues(raw_value: Any) -> Tuple[str, ...]:
    if not isinstance(raw_value, list):
        return ()
    issues = []
    for item in raw_value:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            issues.append(text)
    return tuple(issues)
