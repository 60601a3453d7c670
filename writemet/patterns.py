"""Aggregate per-message issues into ranked recurring patterns."""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .client import ModelClient
from .config import PipelineConfig
from .errors import EmptyResultError
from .evaluation import FAILED_BATCH_ISSUE
from .models import (
    DIMENSIONS,
    SEVERITIES,
    Analysis,
    AnalysisMetadata,
    AnalysisSummary,
    EvaluationRecord,
    Issue,
    NO_ISSUES_TEMPLATE,
    Message,
)
from .ports import StatusCallback, notify
from .prompts import analysis_prompt
from .sanitize import parse_json_response

logger = logging.getLogger(__name__)

MAX_ISSUES_PER_DIMENSION = 5
FALLBACK_ASSESSMENT = (
    "Automated pattern analysis was unavailable; issues below are grouped by exact wording "
    "and ranked by how often they occurred."
)


class PatternAnalyzer:
    """Builds an Analysis from evaluation records.

    Averages are always computed locally. The model only groups issue wording;
    any dimension it leaves empty or malformed is grouped locally instead.
    """

    def __init__(self, client: ModelClient, config: Optional[PipelineConfig] = None):
        self.client = client
        self.config = config or PipelineConfig()

    async def analyze(
        self,
        records: Sequence[EvaluationRecord],
        messages: Optional[Sequence[Message]] = None,
        on_status: StatusCallback = None,
    ) -> Analysis:
        if not records:
            raise EmptyResultError("pattern_analysis", "no evaluation records to analyze")

        averages = compute_averages(records)
        all_issues = {dimension: flatten_issues(records, dimension) for dimension in DIMENSIONS}
        samples = {dimension: issues[: self.config.max_issue_samples] for dimension, issues in all_issues.items()}

        notify(on_status, f"Analyzing issue patterns across {len(records)} messages...")
        payload: Dict[str, Any] = {}
        assessment = FALLBACK_ASSESSMENT
        try:
            response = await self.client.call(
                analysis_prompt(len(records), averages, samples),
                self.config.analysis_max_tokens,
                on_status,
            )
            parsed = parse_json_response(response)
            if not isinstance(parsed, dict):
                raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
            payload = parsed
            assessment = _coerce_assessment(payload) or FALLBACK_ASSESSMENT
        except Exception as exc:
            logger.warning("Pattern analysis call failed, grouping all issues locally: %s", exc)

        top_issues = {}
        for dimension in DIMENSIONS:
            issues = validate_model_issues(payload.get(f"top_{dimension}_issues"))
            if not issues:
                if payload:
                    logger.warning("Model returned no usable %s issues, grouping locally", dimension)
                issues = group_issues_locally(all_issues[dimension], dimension)
            top_issues[dimension] = tuple(issues[:MAX_ISSUES_PER_DIMENSION])

        notify(on_status, "Pattern analysis complete")
        return Analysis(
            summary=AnalysisSummary(
                total_messages=len(records),
                avg_grammar_score=averages["grammar"],
                avg_punctuation_score=averages["punctuation"],
                avg_tone_score=averages["tone"],
                overall_assessment=assessment,
            ),
            top_grammar_issues=top_issues["grammar"],
            top_punctuation_issues=top_issues["punctuation"],
            top_tone_issues=top_issues["tone"],
            metadata=build_metadata(records, messages),
        )


def compute_averages(records: Sequence[EvaluationRecord]) -> Dict[str, float]:
    """Arithmetic mean per dimension, rounded to two decimals."""
    total = len(records)
    if total == 0:
        return {dimension: 0.0 for dimension in DIMENSIONS}
    return {
        dimension: round(sum(record.score(dimension) for record in records) / total, 2)
        for dimension in DIMENSIONS
    }


def flatten_issues(records: Sequence[EvaluationRecord], dimension: str) -> List[str]:
    """Issue strings of one dimension, without the failed-batch marker of placeholder records."""
    return [issue for record in records for issue in record.issues(dimension) if issue != FAILED_BATCH_ISSUE]


def severity_for_frequency(frequency: int) -> str:
    if frequency > 5:
        return "high"
    if frequency >= 3:
        return "medium"
    return "low"


def group_issues_locally(issue_texts: Sequence[str], dimension: str) -> List[Issue]:
    """
    Group issue strings by case-insensitive exact text and rank by frequency.

    Never returns an empty list: with no issue strings a single generic low-severity
    Issue is produced so every dimension stays structurally valid.
    """
    counts: Dict[str, int] = {}
    display: Dict[str, str] = {}
    for text in issue_texts:
        cleaned = text.strip()
        if not cleaned:
            continue
        key = cleaned.lower()
        if key not in counts:
            counts[key] = 0
            display[key] = cleaned
        counts[key] += 1

    if not counts:
        return [
            Issue(
                issue=NO_ISSUES_TEMPLATE.format(dimension=dimension),
                frequency=0,
                severity="low",
                recommendation=f"Keep applying your current {dimension} habits and re-check longer pieces of writing.",
            )
        ]

    # sorted() is stable, so ties keep first-appearance order
    ranked = sorted(counts, key=lambda key: counts[key], reverse=True)
    return [
        Issue(
            issue=display[key],
            frequency=counts[key],
            severity=severity_for_frequency(counts[key]),
            recommendation=f"Review examples of \"{display[key]}\" and practice the corrected form.",
        )
        for key in ranked
    ]


def validate_model_issues(raw_issues: Any) -> List[Issue]:
    if not isinstance(raw_issues, list):
        return []

    issues = []
    for item in raw_issues:
        if not isinstance(item, dict):
            continue
        text = item.get("issue")
        if not isinstance(text, str) or not text.strip():
            continue
        frequency = _coerce_frequency(item.get("frequency"))
        severity = item.get("severity")
        if not isinstance(severity, str) or severity.lower() not in SEVERITIES:
            severity = severity_for_frequency(frequency)
        recommendation = item.get("recommendation")
        issues.append(
            Issue(
                issue=text.strip(),
                frequency=frequency,
                severity=severity.lower(),
                recommendation=recommendation.strip() if isinstance(recommendation, str) else "",
            )
        )
    return issues


def build_metadata(
    records: Sequence[EvaluationRecord],
    messages: Optional[Sequence[Message]] = None,
) -> AnalysisMetadata:
    conversation_ids: Tuple[int, ...] = ()
    if messages:
        evaluated_ids = {record.message_id for record in records}
        conversation_ids = tuple(
            sorted({message.conversation_id for message in messages if message.id in evaluated_ids})
        )

    return AnalysisMetadata(
        evaluation_date=date.today().isoformat(),
        conversations_range_start=conversation_ids[0] if conversation_ids else None,
        conversations_range_end=conversation_ids[-1] if conversation_ids else None,
        total_conversations_evaluated=len(conversation_ids),
        messages_evaluated=len(records),
    )


def _coerce_frequency(raw_value: Any) -> int:
    if isinstance(raw_value, bool):
        return 0
    try:
        return max(0, int(raw_value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _coerce_assessment(payload: Dict[str, Any]) -> str:
    assessment = payload.get("overall_assessment")
    if not isinstance(assessment, str):
        summary = payload.get("summary")
        if isinstance(summary, dict):
            assessment = summary.get("overall_assessment")
    return assessment.strip() if isinstance(assessment, str) else ""
