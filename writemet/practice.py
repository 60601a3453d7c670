"""Practice question generation and the spaced-repetition session schedule."""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .client import ModelClient
from .config import PipelineConfig
from .models import Analysis, Issue, PracticeQuestion, PracticeSession
from .ports import StatusCallback, notify
from .prompts import practice_prompt
from .sanitize import parse_json_response

logger = logging.getLogger(__name__)

ISSUES_PER_SESSION = 3
OPTION_LETTERS = ("A", "B", "C", "D")

# (session number, days after plan start, focus)
SESSION_SCHEDULE = (
    (1, 1, "Initial learning"),
    (2, 3, "Consolidation"),
    (3, 7, "Retention test"),
)
SESSION_DURATION_MINUTES = 15

# Banks hold one plan's worth of distinct entries (3 sessions x ISSUES_PER_SESSION).
# (incorrect sentence, corrected sentence, explanation)
CORRECTION_BANK = (
    (
        "The data shows significant results in our study.",
        "The data show significant results in our study.",
        '"Data" is plural in formal writing, so the verb must agree with it.',
    ),
    (
        "Each of the reports were reviewed before the meeting.",
        "Each of the reports was reviewed before the meeting.",
        '"Each" is singular and takes a singular verb.',
    ),
    (
        "Its important to send the draft before friday.",
        "It's important to send the draft before Friday.",
        '"It\'s" means "it is", and days of the week are capitalized.',
    ),
    (
        "However we decided to postpone the launch, the team agreed.",
        "However, we decided to postpone the launch, and the team agreed.",
        "Introductory words take a comma, and two independent clauses need a conjunction.",
    ),
    (
        "Me and my manager has reviewed the proposal.",
        "My manager and I have reviewed the proposal.",
        'Use the subject pronoun "I" and a plural verb for a compound subject.',
    ),
    (
        "Their going to present the findings tomorrow.",
        "They're going to present the findings tomorrow.",
        '"They\'re" is the contraction of "they are".',
    ),
    (
        "The team have finished there review of the budget.",
        "The team has finished its review of the budget.",
        'A collective noun acting as one unit takes a singular verb, and "their" or "its" shows possession.',
    ),
    (
        "I could of sent the invoice earlier if I knew.",
        "I could have sent the invoice earlier if I had known.",
        '"Could have" is the correct form, and the past perfect "had known" fits the condition.',
    ),
    (
        "Please let me know if you have any questions thank you.",
        "Please let me know if you have any questions. Thank you.",
        "Two separate thoughts need their own sentences.",
    ),
)

# (question, options, correct letter, explanation)
MULTIPLE_CHOICE_BANK = (
    (
        "Which sentence is correct?",
        ("A) The criteria was met", "B) The criteria were met", "C) The criterion were met", "D) The criterias was met"),
        "B",
        '"Criteria" is plural, so it takes "were".',
    ),
    (
        "Which sentence uses the apostrophe correctly?",
        (
            "A) The company changed it's policy.",
            "B) The company changed its' policy.",
            "C) The company changed its policy.",
            "D) The company changed its's policy.",
        ),
        "C",
        '"Its" is the possessive form and never takes an apostrophe.',
    ),
    (
        "Which sentence avoids a comma splice?",
        (
            "A) The meeting ran long, we missed the train.",
            "B) The meeting ran long; we missed the train.",
            "C) The meeting ran long we missed the train.",
            "D) The meeting ran long, and, we missed the train.",
        ),
        "B",
        "A semicolon can join two related independent clauses.",
    ),
    (
        "Which sentence has the most professional tone?",
        (
            "A) Hey, just checking if you got my stuff?",
            "B) Did u see my email lol",
            "C) Could you confirm that you received my email?",
            "D) Why haven't you answered me yet???",
        ),
        "C",
        "A polite, complete question keeps a professional tone.",
    ),
    (
        "Which sentence is punctuated correctly?",
        (
            "A) After the review we will, publish the report.",
            "B) After the review, we will publish the report.",
            "C) After, the review we will publish the report.",
            "D) After the review we will publish, the report.",
        ),
        "B",
        "Place the comma after an introductory phrase.",
    ),
    (
        "Which sentence keeps the verb tense consistent?",
        (
            "A) She opened the file and starts editing.",
            "B) She opens the file and started editing.",
            "C) She opened the file and started editing.",
            "D) She has open the file and starting editing.",
        ),
        "C",
        "Both verbs describe finished actions, so both stay in the past tense.",
    ),
    (
        "Which sentence uses a colon correctly?",
        (
            "A) Please bring: a laptop, a charger and a notebook.",
            "B) Please bring the following: a laptop, a charger and a notebook.",
            "C) Please: bring a laptop, a charger and a notebook.",
            "D) Please bring a laptop: a charger and a notebook.",
        ),
        "B",
        "A colon follows a complete clause that introduces a list.",
    ),
    (
        "Which closing line is most appropriate for a client email?",
        (
            "A) Later!",
            "B) Whatever works, I guess.",
            "C) Thanks a bunch, talk soon!!!",
            "D) Thank you for your time, and I look forward to your reply.",
        ),
        "D",
        "A courteous, complete sentence suits professional correspondence.",
    ),
    (
        "Which sentence uses the correct word?",
        (
            "A) The new policy will effect every department.",
            "B) The new policy will affect every department.",
            "C) The new policy will affects every department.",
            "D) The new policy will effecting every department.",
        ),
        "B",
        '"Affect" is the verb; "effect" is usually the noun.',
    ),
)

WRITING_PROMPT_BANK = (
    (
        "Write a short email (4-5 sentences) asking a colleague to review your project proposal.",
        "Hi Sam, I have finished the first draft of the project proposal. Could you review it by Thursday? "
        "I would especially appreciate feedback on the budget section. Thank you for your help.",
    ),
    (
        "Write a short paragraph describing a recent challenge at work and how you handled it.",
        "Last month, our team missed an important deadline. I organized a short meeting to identify the cause, "
        "and we agreed on a clearer review process. Since then, every deliverable has shipped on time.",
    ),
    (
        "Write a short message declining a meeting invitation and proposing another time.",
        "Thank you for the invitation. Unfortunately, I have a conflict on Tuesday afternoon. "
        "Would Wednesday at 10 a.m. work for you instead?",
    ),
)


class PracticeGenerator:
    """Turns ranked issues into a fixed-shape question set for one session."""

    def __init__(self, client: ModelClient, config: Optional[PipelineConfig] = None):
        self.client = client
        self.config = config or PipelineConfig()

    async def generate(
        self,
        issues: Sequence[Issue],
        session_number: int,
        difficulty: Optional[str] = None,
        issue_types: Optional[Sequence[str]] = None,
        include_writing_prompt: bool = False,
        on_status: StatusCallback = None,
    ) -> List[PracticeQuestion]:
        focus = select_focus(issues, issue_types)
        if not focus:
            return []

        difficulty = difficulty or self.config.difficulty
        notify(on_status, f"Generating practice questions for session {session_number}...")
        try:
            response = await self.client.call(
                practice_prompt(focus, session_number, difficulty, include_writing_prompt),
                self.config.practice_max_tokens,
                on_status,
            )
            questions = questions_from_response(
                parse_json_response(response), focus, session_number, include_writing_prompt
            )
        except Exception as exc:
            logger.warning("Practice generation for session %d failed, using templates: %s", session_number, exc)
            questions = template_questions(focus, session_number, include_writing_prompt)

        notify(on_status, f"Session {session_number}: {len(questions)} questions ready")
        return questions


def select_focus(
    issues: Sequence[Issue],
    issue_types: Optional[Sequence[str]] = None,
) -> List[Tuple[str, Issue]]:
    """Top issues by frequency (stable), paired with their issue type."""
    types = list(issue_types) if issue_types is not None else []
    paired = [
        (types[idx] if idx < len(types) else "general", issue)
        for idx, issue in enumerate(issues)
        if not issue.is_placeholder
    ]
    ranked = sorted(paired, key=lambda item: item[1].frequency, reverse=True)
    return ranked[:ISSUES_PER_SESSION]


def focus_issues_from_analysis(analysis: Analysis) -> Tuple[List[Issue], List[str]]:
    """Flatten an Analysis into one frequency-ranked issue list plus matching types, skipping stand-ins."""
    real_issues = [(dimension, issue) for dimension, issue in analysis.all_issues() if not issue.is_placeholder]
    ranked = sorted(real_issues, key=lambda item: item[1].frequency, reverse=True)
    return [issue for _, issue in ranked], [dimension for dimension, _ in ranked]


def questions_from_response(
    payload: Any,
    focus: Sequence[Tuple[str, Issue]],
    session_number: int,
    include_writing_prompt: bool = False,
) -> List[PracticeQuestion]:
    """
    Map the model's question list onto the focus issues.

    Raises:
        ValueError: if any issue lacks a usable correction or multiple-choice item.
    """
    if not isinstance(payload, list):
        raise ValueError("practice response is not a JSON array")

    by_issue: Dict[int, Dict[str, Dict]] = {}
    writing_prompt: Optional[Dict] = None
    for position, item in enumerate(payload):
        if not isinstance(item, dict):
            continue
        kind = item.get("type")
        if kind == "writing_prompt":
            writing_prompt = writing_prompt or item
            continue
        issue_number = item.get("issue_number")
        if not isinstance(issue_number, int) or isinstance(issue_number, bool):
            issue_number = position // 2 + 1
        by_issue.setdefault(issue_number, {}).setdefault(kind, item)

    questions: List[PracticeQuestion] = []
    for index, (issue_type, issue) in enumerate(focus, start=1):
        items = by_issue.get(index, {})
        questions.append(
            _correction_from_item(items.get("correction"), issue_type, issue, session_number, len(questions) + 1)
        )
        questions.append(
            _multiple_choice_from_item(
                items.get("multiple_choice"), issue_type, issue, session_number, len(questions) + 1
            )
        )

    if include_writing_prompt:
        questions.append(_writing_prompt_from_item(writing_prompt, focus, session_number, len(questions) + 1))
    return questions


def template_questions(
    focus: Sequence[Tuple[str, Issue]],
    session_number: int,
    include_writing_prompt: bool = False,
) -> List[PracticeQuestion]:
    """Deterministic question set; the sentence bank rotates with ``session_number``."""
    questions: List[PracticeQuestion] = []
    offset = max(session_number - 1, 0) * len(focus)
    for index, (issue_type, issue) in enumerate(focus):
        incorrect, correct, explanation = CORRECTION_BANK[(offset + index) % len(CORRECTION_BANK)]
        questions.append(
            PracticeQuestion(
                question_id=_question_id(session_number, len(questions) + 1),
                issue_type=issue_type,
                specific_issue=issue.issue,
                question_format="correction",
                question_text=f"Correct this sentence:\n\n{incorrect}",
                correct_answer=correct,
                explanation=explanation,
            )
        )
        question, options, letter, mc_explanation = MULTIPLE_CHOICE_BANK[
            (offset + index) % len(MULTIPLE_CHOICE_BANK)
        ]
        questions.append(
            PracticeQuestion(
                question_id=_question_id(session_number, len(questions) + 1),
                issue_type=issue_type,
                specific_issue=issue.issue,
                question_format="multiple_choice",
                question_text=question,
                correct_answer=letter,
                explanation=mc_explanation,
                options=options,
            )
        )

    if include_writing_prompt:
        prompt, model_answer = WRITING_PROMPT_BANK[max(session_number - 1, 0) % len(WRITING_PROMPT_BANK)]
        questions.append(
            PracticeQuestion(
                question_id=_question_id(session_number, len(questions) + 1),
                issue_type="comprehensive",
                specific_issue=", ".join(issue.issue for _, issue in focus),
                question_format="writing_prompt",
                question_text=prompt,
                correct_answer=model_answer,
                explanation="Apply the corrections practiced in this session.",
            )
        )
    return questions


def build_session(
    session_number: int,
    questions: List[PracticeQuestion],
    start_date: Optional[date] = None,
) -> PracticeSession:
    schedule = {number: (days, focus) for number, days, focus in SESSION_SCHEDULE}
    days, focus = schedule.get(session_number, (session_number * 2, "Review"))
    start_date = start_date or date.today()
    return PracticeSession(
        session_id=f"session_{session_number}",
        session_number=session_number,
        date=(start_date + timedelta(days=days)).isoformat(),
        focus=focus,
        questions=questions,
        duration_minutes=SESSION_DURATION_MINUTES,
    )


def _question_id(session_number: int, question_number: int) -> str:
    return f"s{session_number}_q{question_number}"


def _text(item: Dict, *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _correction_from_item(
    item: Optional[Dict],
    issue_type: str,
    issue: Issue,
    session_number: int,
    question_number: int,
) -> PracticeQuestion:
    if item is None:
        raise ValueError(f"missing correction question for issue {issue.issue!r}")
    incorrect = _text(item, "incorrect_sentence", "question")
    correct = _text(item, "correct_sentence", "correct_answer")
    if not incorrect or not correct:
        raise ValueError(f"incomplete correction question for issue {issue.issue!r}")
    return PracticeQuestion(
        question_id=_question_id(session_number, question_number),
        issue_type=issue_type,
        specific_issue=issue.issue,
        question_format="correction",
        question_text=f"Correct this sentence:\n\n{incorrect}",
        correct_answer=correct,
        explanation=_text(item, "explanation"),
    )


def _multiple_choice_from_item(
    item: Optional[Dict],
    issue_type: str,
    issue: Issue,
    session_number: int,
    question_number: int,
) -> PracticeQuestion:
    if item is None:
        raise ValueError(f"missing multiple choice question for issue {issue.issue!r}")
    options = item.get("options")
    if not isinstance(options, list) or len(options) != len(OPTION_LETTERS):
        raise ValueError(f"multiple choice question for {issue.issue!r} needs four options")
    answer = _text(item, "correct_answer").upper()[:1]
    question = _text(item, "question")
    if answer not in OPTION_LETTERS or not question:
        raise ValueError(f"invalid multiple choice question for issue {issue.issue!r}")
    return PracticeQuestion(
        question_id=_question_id(session_number, question_number),
        issue_type=issue_type,
        specific_issue=issue.issue,
        question_format="multiple_choice",
        question_text=question,
        correct_answer=answer,
        explanation=_text(item, "explanation"),
        options=tuple(str(option) for option in options),
    )


def _writing_prompt_from_item(
    item: Optional[Dict],
    focus: Sequence[Tuple[str, Issue]],
    session_number: int,
    question_number: int,
) -> PracticeQuestion:
    prompt = _text(item, "prompt", "question") if item else ""
    if not prompt:
        raise ValueError("missing writing prompt")
    return PracticeQuestion(
        question_id=_question_id(session_number, question_number),
        issue_type="comprehensive",
        specific_issue=", ".join(issue.issue for _, issue in focus),
        question_format="writing_prompt",
        question_text=prompt,
        correct_answer=_text(item, "model_answer", "correct_answer"),
        explanation=_text(item, "explanation") or "Apply the corrections practiced in this session.",
    )
