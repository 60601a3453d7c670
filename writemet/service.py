"""Application service orchestrating message sources, the model client and pipeline stages."""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from .client import ModelClient
from .comparison import ComparisonEngine
from .config import PipelineConfig
from .errors import EmptyResultError
from .evaluation import QualityEvaluator
from .filtering import RelevanceConfirmer, filter_messages_heuristic
from .grading import SessionGrader
from .models import Analysis, ComparisonResult, EvaluationRun, Message, PracticeSession
from .patterns import PatternAnalyzer
from .ports import LanguageModel, MessageSource, StatusCallback, notify
from .practice import SESSION_SCHEDULE, PracticeGenerator, build_session, focus_issues_from_analysis
from .scheduler import RequestScheduler

logger = logging.getLogger(__name__)


class WritingCoachService:
    """Facade exposing the evaluate / practice / grade / compare workflow."""

    def __init__(
        self,
        model: LanguageModel,
        source: Optional[MessageSource] = None,
        config: Optional[PipelineConfig] = None,
        scheduler: Optional[RequestScheduler] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or PipelineConfig()
        self.source = source
        self.client = ModelClient(
            model,
            scheduler=scheduler or RequestScheduler(self.config.min_request_interval, sleep=sleep),
        )
        self.confirmer = RelevanceConfirmer(self.client, self.config, sleep=sleep)
        self.evaluator = QualityEvaluator(self.client, self.config, sleep=sleep)
        self.analyzer = PatternAnalyzer(self.client, self.config)
        self.generator = PracticeGenerator(self.client, self.config)
        self.grader = SessionGrader(self.client, self.config)
        self.comparison = ComparisonEngine(self.client, self.config)

    async def evaluate_messages(
        self,
        messages: Sequence[Message],
        on_status: StatusCallback = None,
    ) -> EvaluationRun:
        """Run filtering, confirmation, scoring and pattern analysis over ``messages``."""
        if not messages:
            raise EmptyResultError("message_source", "no messages were supplied")

        notify(on_status, f"Filtering {len(messages)} messages...")
        candidates = filter_messages_heuristic(messages)
        logger.info("Heuristic filter kept %d of %d messages", len(candidates), len(messages))
        if not candidates:
            raise EmptyResultError("heuristic_filter", "no writing-related messages found")

        notify(on_status, f"Confirming relevance of {len(candidates)} messages...")
        relevant = await self.confirmer.confirm(candidates, on_status=on_status)
        if not relevant:
            raise EmptyResultError("relevance_confirmation", "no messages were confirmed as writing samples")

        records = await self.evaluator.evaluate(relevant, on_status=on_status)
        analysis = await self.analyzer.analyze(records, messages=relevant, on_status=on_status)
        notify(on_status, "Evaluation complete!")
        return EvaluationRun(
            messages_considered=len(messages),
            heuristic_survivors=len(candidates),
            relevant_messages=tuple(relevant),
            records=tuple(records),
            analysis=analysis,
        )

    async def evaluate_period(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        on_status: StatusCallback = None,
    ) -> EvaluationRun:
        start, end = _normalize_period(start_date, end_date)
        messages = self._require_source().fetch_messages(start, end)
        return await self.evaluate_messages(messages, on_status)

    async def evaluate_since(self, timestamp: int, on_status: StatusCallback = None) -> EvaluationRun:
        """Incremental re-evaluation over messages newer than ``timestamp``."""
        messages = self._require_source().fetch_messages_since(timestamp)
        return await self.evaluate_messages(messages, on_status)

    async def create_practice_plan(
        self,
        analysis: Analysis,
        difficulty: Optional[str] = None,
        start_date: Optional[date] = None,
        include_writing_prompt: bool = False,
        on_status: StatusCallback = None,
    ) -> List[PracticeSession]:
        """One session per scheduled day, each generated from the top issues."""
        issues, issue_types = focus_issues_from_analysis(analysis)
        sessions: List[PracticeSession] = []
        seen_texts = set()
        for session_number, _, _ in SESSION_SCHEDULE:
            questions = await self.generator.generate(
                issues,
                session_number,
                difficulty,
                issue_types=issue_types,
                include_writing_prompt=include_writing_prompt,
                on_status=on_status,
            )
            repeats = [question.question_text for question in questions if question.question_text in seen_texts]
            if repeats:
                logger.warning("Session %d repeats %d question(s) from earlier sessions", session_number, len(repeats))
            seen_texts.update(question.question_text for question in questions)
            sessions.append(build_session(session_number, questions, start_date))
        return sessions

    async def grade_session(self, session: PracticeSession, on_status: StatusCallback = None) -> PracticeSession:
        return await self.grader.grade_session(session, on_status)

    async def compare(
        self,
        baseline: Analysis,
        followup: Analysis,
        narrate: bool = True,
        on_status: StatusCallback = None,
    ) -> ComparisonResult:
        return await self.comparison.compare(baseline, followup, narrate=narrate, on_status=on_status)

    def queue_length(self) -> int:
        return self.client.queue_length()

    def estimated_wait_seconds(self) -> float:
        return self.client.estimated_wait_seconds()

    def _require_source(self) -> MessageSource:
        if self.source is None:
            raise ValueError("WritingCoachService was created without a message source")
        return self.source


def _normalize_period(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> tuple[datetime, datetime]:
    if end_date is None:
        end_date = datetime.now(timezone.utc)
    if start_date is None:
        start_date = end_date - timedelta(days=30)
    return start_date, end_date
