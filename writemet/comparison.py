"""Baseline/followup comparison and practice performance summaries."""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .client import ModelClient
from .config import PipelineConfig
from .models import (
    DIMENSIONS,
    Analysis,
    ComparisonResult,
    DimensionChange,
    Issue,
    PracticePerformance,
    PracticeSession,
)
from .ports import StatusCallback, notify
from .prompts import narrative_prompt
from .sanitize import parse_json_response

logger = logging.getLogger(__name__)

GREAT_PROGRESS_PERCENT = 5.0


class ComparisonEngine:
    """Compares two Analyses; the narrative optionally comes from the model."""

    def __init__(self, client: Optional[ModelClient] = None, config: Optional[PipelineConfig] = None):
        self.client = client
        self.config = config or PipelineConfig()

    async def compare(
        self,
        baseline: Analysis,
        followup: Analysis,
        narrate: bool = True,
        on_status: StatusCallback = None,
    ) -> ComparisonResult:
        result = compare_analyses(baseline, followup)
        if self.client is None or not narrate:
            return result

        notify(on_status, "Summarizing improvement...")
        try:
            response = await self.client.call(
                narrative_prompt(
                    {name: result.dimension(name).to_dict() for name in DIMENSIONS},
                    [issue.issue for issue in result.resolved],
                    [issue.issue for issue in result.persistent],
                    [issue.issue for issue in result.new_issues],
                ),
                self.config.narrative_max_tokens,
                on_status,
            )
            narrative = _narrative_from_payload(parse_json_response(response))
        except Exception as exc:
            logger.warning("Narrative generation failed, using template: %s", exc)
            return result

        return ComparisonResult(
            grammar=result.grammar,
            punctuation=result.punctuation,
            tone=result.tone,
            resolved=result.resolved,
            persistent=result.persistent,
            new_issues=result.new_issues,
            narrative=narrative,
            average_change_percent=result.average_change_percent,
        )


def compare_analyses(baseline: Analysis, followup: Analysis) -> ComparisonResult:
    """Deterministic comparison with a templated narrative."""
    changes = {
        dimension: dimension_change(baseline.summary.average(dimension), followup.summary.average(dimension))
        for dimension in DIMENSIONS
    }
    resolved, persistent, new_issues = classify_issues(
        [issue for _, issue in baseline.all_issues()],
        [issue for _, issue in followup.all_issues()],
    )
    percents = [change.change_percent for change in changes.values() if change.change_percent is not None]
    average_percent = round(sum(percents) / len(percents), 1) if percents else None

    return ComparisonResult(
        grammar=changes["grammar"],
        punctuation=changes["punctuation"],
        tone=changes["tone"],
        resolved=resolved,
        persistent=persistent,
        new_issues=new_issues,
        narrative=template_narrative(average_percent, len(resolved), len(new_issues)),
        average_change_percent=average_percent,
    )


def dimension_change(baseline: float, followup: float) -> DimensionChange:
    """
    Absolute and relative change of one average score.

    ``change_percent`` is None when the baseline rounds to zero, instead of an
    infinite or NaN ratio.
    """
    change = round(followup - baseline, 2)
    if round(baseline, 2) == 0:
        change_percent = None
    else:
        change_percent = round((followup - baseline) / baseline * 100, 1)
    return DimensionChange(baseline=baseline, followup=followup, change=change, change_percent=change_percent)


def classify_issues(
    baseline_issues: Iterable[Issue],
    followup_issues: Iterable[Issue],
) -> Tuple[Tuple[Issue, ...], Tuple[Issue, ...], Tuple[Issue, ...]]:
    """Split issues into (resolved, persistent, new) by case-insensitive issue text."""
    baseline_by_key = _index_issues(baseline_issues)
    followup_by_key = _index_issues(followup_issues)

    resolved = tuple(issue for key, issue in baseline_by_key.items() if key not in followup_by_key)
    persistent = tuple(issue for key, issue in followup_by_key.items() if key in baseline_by_key)
    new_issues = tuple(issue for key, issue in followup_by_key.items() if key not in baseline_by_key)
    return resolved, persistent, new_issues


def template_narrative(average_percent: Optional[float], resolved_count: int = 0, new_count: int = 0) -> str:
    percent = average_percent or 0.0
    if percent > GREAT_PROGRESS_PERCENT:
        headline = f"Great progress! Your writing scores improved by {percent:.1f}% on average."
    elif percent > 0:
        headline = f"Steady progress: your writing scores improved by {percent:.1f}% on average."
    else:
        headline = "Your writing scores are stable compared to the baseline."
    return f"{headline} {resolved_count} issue(s) resolved, {new_count} new issue(s) to watch."


def summarize_practice(sessions: Sequence[PracticeSession]) -> PracticePerformance:
    """Practice statistics across completed sessions, weakest issues first."""
    completed = [session for session in sessions if session.completed]
    avg_score = sum(session.score or 0.0 for session in completed) / len(completed) if completed else 0.0

    total_questions = sum(len(session.questions) for session in completed)
    total_correct = 0
    per_issue: Dict[str, Dict[str, int]] = {}
    for session in completed:
        for result in session.grading_results or []:
            stats = per_issue.setdefault(result.issue, {"correct": 0, "total": 0})
            stats["total"] += 1
            if result.correct:
                stats["correct"] += 1
                total_correct += 1

    issue_accuracy: List[Dict] = [
        {
            "issue": issue,
            "correct": stats["correct"],
            "total": stats["total"],
            "accuracy": stats["correct"] / stats["total"] * 100,
        }
        for issue, stats in per_issue.items()
    ]
    issue_accuracy.sort(key=lambda entry: entry["accuracy"])

    return PracticePerformance(
        sessions_completed=len(completed),
        sessions_total=len(sessions),
        avg_practice_score=avg_score,
        total_questions=total_questions,
        total_correct=total_correct,
        completion_rate=len(completed) / len(sessions) if sessions else 0.0,
        issue_accuracy=tuple(issue_accuracy),
    )


def _index_issues(issues: Iterable[Issue]) -> Dict[str, Issue]:
    indexed: Dict[str, Issue] = {}
    for issue in issues:
        if issue.is_placeholder:
            continue
        key = issue.issue.strip().lower()
        if key and key not in indexed:
            indexed[key] = issue
    return indexed


def _narrative_from_payload(payload) -> str:
    if isinstance(payload, dict):
        narrative = payload.get("narrative")
        if isinstance(narrative, str) and narrative.strip():
            return narrative.strip()
    raise ValueError("narrative response has no 'narrative' text")
