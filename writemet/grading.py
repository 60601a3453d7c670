"""Three-tier grading of practice answers: rules, similarity, then one model batch."""

import logging
import re
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .client import ModelClient
from .config import PipelineConfig
from .models import GradingResult, PracticeQuestion, PracticeSession
from .ports import StatusCallback, notify
from .prompts import grading_prompt
from .sanitize import parse_json_response

logger = logging.getLogger(__name__)

EXACT_SIMILARITY = 0.90
CORRECTION_SIMILARITY = 0.75

NO_ANSWER_FEEDBACK = "No answer provided"
CORRECT_FEEDBACK = "Correct! ✓"
MINOR_DIFFERENCES_FEEDBACK = "Correct! Minor wording differences are acceptable."
UNGRADED_FEEDBACK = "Unable to grade automatically"

_LETTER_RE = re.compile(r"\s*([A-D])(?:\)|\b)")
_PUNCTUATION_RE = re.compile(r"[.,!?;:]")


def extract_letter(text: str) -> str:
    """Leading A-D choice letter (``"b) ..."`` -> ``"B"``), else the first character."""
    upper = text.upper()
    match = _LETTER_RE.match(upper)
    if match:
        return match.group(1)
    stripped = upper.strip()
    return stripped[0] if stripped else ""


def jaccard_similarity(first: str, second: str) -> float:
    """Word-set Jaccard similarity after lowercasing and stripping punctuation."""
    words1 = set(_PUNCTUATION_RE.sub("", first.lower()).split())
    words2 = set(_PUNCTUATION_RE.sub("", second.lower()).split())
    union = words1 | words2
    if not union:
        return 1.0
    return len(words1 & words2) / len(union)


class SessionGrader:
    """Grades locally wherever possible; subjective leftovers share one model call."""

    def __init__(self, client: ModelClient, config: Optional[PipelineConfig] = None):
        self.client = client
        self.config = config or PipelineConfig()

    async def grade(
        self,
        questions: Sequence[PracticeQuestion],
        answers: Mapping[str, str],
        on_status: StatusCallback = None,
    ) -> List[GradingResult]:
        results: List[GradingResult] = []
        deferred: List[Tuple[int, PracticeQuestion, str]] = []

        for number, question in enumerate(questions, start=1):
            answer = answers.get(question.question_id) or ""
            result = grade_locally(number, question, answer)
            if result is None:
                deferred.append((number, question, answer))
            else:
                results.append(result)

        logger.info("Graded %d of %d answers locally", len(results), len(questions))
        if deferred:
            notify(on_status, f"LLM grading {len(deferred)} subjective questions...")
            results.extend(await self._grade_with_model(deferred, on_status))

        return sorted(results, key=lambda result: result.question)

    async def grade_session(self, session: PracticeSession, on_status: StatusCallback = None) -> PracticeSession:
        """Grade a session's stored answers and mark it completed."""
        results = await self.grade(session.questions, session.user_answers, on_status)
        session.grading_results = results
        session.score = sum(1 for result in results if result.correct) / len(results) if results else 0.0
        session.completed = True
        notify(on_status, "Grading complete!")
        return session

    async def _grade_with_model(
        self,
        deferred: List[Tuple[int, PracticeQuestion, str]],
        on_status: StatusCallback,
    ) -> List[GradingResult]:
        try:
            response = await self.client.call(grading_prompt(deferred), self.config.grading_max_tokens, on_status)
            grades = parse_json_response(response)
            if not isinstance(grades, list) or len(grades) != len(deferred):
                raise ValueError("grading response does not match the number of questions")
        except Exception as exc:
            logger.warning("Model grading failed for %d answers: %s", len(deferred), exc)
            grades = [None] * len(deferred)

        return [
            _model_result(number, question, grade)
            for (number, question, _), grade in zip(deferred, grades)
        ]


def grade_locally(number: int, question: PracticeQuestion, answer: str) -> Optional[GradingResult]:
    """Rule and similarity tiers; ``None`` means the answer needs the model."""
    if not answer.strip():
        return _result(number, question, False, NO_ANSWER_FEEDBACK, "programmatic")

    if question.question_format == "multiple_choice":
        user_letter = extract_letter(answer)
        correct_letter = extract_letter(question.correct_answer)
        correct = user_letter == correct_letter
        feedback = CORRECT_FEEDBACK if correct else f"Incorrect. Correct answer: {correct_letter}"
        return _result(number, question, correct, feedback, "programmatic")

    similarity = jaccard_similarity(answer, question.correct_answer)
    if similarity > EXACT_SIMILARITY:
        return _result(number, question, True, CORRECT_FEEDBACK, "similarity")
    if question.question_format == "correction" and similarity > CORRECTION_SIMILARITY:
        return _result(number, question, True, MINOR_DIFFERENCES_FEEDBACK, "similarity")
    return None


def _model_result(number: int, question: PracticeQuestion, grade: Any) -> GradingResult:
    if not isinstance(grade, dict) or not isinstance(grade.get("is_correct"), bool):
        return _result(number, question, False, UNGRADED_FEEDBACK, "llm")
    feedback = grade.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        feedback = CORRECT_FEEDBACK if grade["is_correct"] else "Review the correct answer."
    return _result(number, question, grade["is_correct"], feedback.strip(), "llm")


def _result(number: int, question: PracticeQuestion, correct: bool, feedback: str, method: str) -> GradingResult:
    return GradingResult(
        question=number,
        issue=question.specific_issue,
        correct=correct,
        feedback=feedback,
        correct_answer=question.correct_answer,
        explanation=question.explanation,
        grading_method=method,
    )
