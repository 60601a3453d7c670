"""Core domain models used by the writing evaluation pipeline."""

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple

SEVERITIES = ("low", "medium", "high")
QUESTION_FORMATS = ("correction", "multiple_choice", "writing_prompt")
GRADING_METHODS = ("programmatic", "similarity", "llm")
DIMENSIONS = ("grammar", "punctuation", "tone")

# Stand-in issue text for a dimension with nothing to report
NO_ISSUES_TEMPLATE = "No recurring {dimension} issues detected"
_PLACEHOLDER_ISSUES = frozenset(NO_ISSUES_TEMPLATE.format(dimension=dimension) for dimension in DIMENSIONS)


@dataclass(frozen=True)
class Message:
    """A single user-authored chat message."""

    id: str
    text: str
    timestamp: int
    conversation_id: int
    conversation_title: str = ""

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class EvaluationRecord:
    """Scores and issues for one message.

    ``message_id`` and ``text`` always come from the originating Message.
    """

    message_id: str
    text: str
    grammar_score: int
    punctuation_score: int
    tone_score: int
    grammar_issues: Tuple[str, ...] = ()
    punctuation_issues: Tuple[str, ...] = ()
    tone_issues: Tuple[str, ...] = ()

    def score(self, dimension: str) -> int:
        return getattr(self, f"{dimension}_score")

    def issues(self, dimension: str) -> Tuple[str, ...]:
        return getattr(self, f"{dimension}_issues")

    def to_dict(self) -> Dict:
        data = asdict(self)
        for dimension in DIMENSIONS:
            data[f"{dimension}_issues"] = list(data[f"{dimension}_issues"])
        return data


@dataclass(frozen=True)
class Issue:
    """A recurring writing issue grouped across many messages."""

    issue: str
    frequency: int
    severity: str
    recommendation: str = ""

    @property
    def is_placeholder(self) -> bool:
        """True for the generic stand-in of a dimension without real issues."""
        return self.issue in _PLACEHOLDER_ISSUES

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class AnalysisSummary:
    total_messages: int
    avg_grammar_score: float
    avg_punctuation_score: float
    avg_tone_score: float
    overall_assessment: str

    def average(self, dimension: str) -> float:
        return getattr(self, f"avg_{dimension}_score")


@dataclass(frozen=True)
class AnalysisMetadata:
    evaluation_date: str
    conversations_range_start: Optional[int]
    conversations_range_end: Optional[int]
    total_conversations_evaluated: int
    messages_evaluated: int

    def to_dict(self) -> Dict:
        return {
            "evaluation_date": self.evaluation_date,
            "conversations_range": {
                "start": self.conversations_range_start,
                "end": self.conversations_range_end,
            },
            "total_conversations_evaluated": self.total_conversations_evaluated,
            "messages_evaluated": self.messages_evaluated,
        }


@dataclass(frozen=True)
class Analysis:
    """Aggregated result of one evaluation run (baseline or followup)."""

    summary: AnalysisSummary
    top_grammar_issues: Tuple[Issue, ...]
    top_punctuation_issues: Tuple[Issue, ...]
    top_tone_issues: Tuple[Issue, ...]
    metadata: AnalysisMetadata

    def issues(self, dimension: str) -> Tuple[Issue, ...]:
        return getattr(self, f"top_{dimension}_issues")

    def all_issues(self) -> List[Tuple[str, Issue]]:
        return [(dimension, issue) for dimension in DIMENSIONS for issue in self.issues(dimension)]

    def to_dict(self) -> Dict:
        data = {"summary": asdict(self.summary)}
        for dimension in DIMENSIONS:
            data[f"top_{dimension}_issues"] = [issue.to_dict() for issue in self.issues(dimension)]
        data["metadata"] = self.metadata.to_dict()
        return data


@dataclass(frozen=True)
class PracticeQuestion:
    question_id: str
    issue_type: str
    specific_issue: str
    question_format: str
    question_text: str
    correct_answer: str
    explanation: str
    options: Tuple[str, ...] = ()

    def to_dict(self) -> Dict:
        data = asdict(self)
        if self.question_format == "multiple_choice":
            data["options"] = list(self.options)
        else:
            data.pop("options")
        return data


@dataclass(frozen=True)
class GradingResult:
    """Outcome for one answered question; ``grading_method`` records provenance."""

    question: int
    issue: str
    correct: bool
    feedback: str
    correct_answer: str
    explanation: str
    grading_method: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class PracticeSession:
    """One practice session; answers and grading are filled in over its lifetime."""

    session_id: str
    session_number: int
    date: str
    focus: str
    questions: List[PracticeQuestion]
    duration_minutes: int = 15
    user_answers: Dict[str, str] = field(default_factory=dict)
    grading_results: Optional[List[GradingResult]] = None
    score: Optional[float] = None
    completed: bool = False

    def to_dict(self) -> Dict:
        return {
            "session_id": self.session_id,
            "session_number": self.session_number,
            "date": self.date,
            "focus": self.focus,
            "duration_minutes": self.duration_minutes,
            "questions": [question.to_dict() for question in self.questions],
            "user_answers": dict(self.user_answers),
            "grading_results": (
                [result.to_dict() for result in self.grading_results]
                if self.grading_results is not None
                else None
            ),
            "score": self.score,
            "completed": self.completed,
        }


@dataclass(frozen=True)
class DimensionChange:
    baseline: float
    followup: float
    change: float
    change_percent: Optional[float]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class ComparisonResult:
    """Read-only comparison of a baseline and a followup Analysis."""

    grammar: DimensionChange
    punctuation: DimensionChange
    tone: DimensionChange
    resolved: Tuple[Issue, ...]
    persistent: Tuple[Issue, ...]
    new_issues: Tuple[Issue, ...]
    narrative: str
    average_change_percent: Optional[float]

    def dimension(self, name: str) -> DimensionChange:
        return getattr(self, name)

    def to_dict(self) -> Dict:
        return {
            "grammar": self.grammar.to_dict(),
            "punctuation": self.punctuation.to_dict(),
            "tone": self.tone.to_dict(),
            "resolved": [issue.to_dict() for issue in self.resolved],
            "persistent": [issue.to_dict() for issue in self.persistent],
            "new_issues": [issue.to_dict() for issue in self.new_issues],
            "narrative": self.narrative,
            "average_change_percent": self.average_change_percent,
        }


@dataclass(frozen=True)
class EvaluationRun:
    """Everything produced by one pass through the evaluation pipeline."""

    messages_considered: int
    heuristic_survivors: int
    relevant_messages: Tuple[Message, ...]
    records: Tuple[EvaluationRecord, ...]
    analysis: Analysis


@dataclass(frozen=True)
class PracticePerformance:
    sessions_completed: int
    sessions_total: int
    avg_practice_score: float
    total_questions: int
    total_correct: int
    completion_rate: float
    issue_accuracy: Tuple[Dict, ...]

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["issue_accuracy"] = [dict(entry) for entry in self.issue_accuracy]
        return data
