"""Prompt builders for each model-backed stage.

Every prompt asks for a JSON payload whose shape matches what the calling stage
validates; wording can change freely as long as that contract holds.
"""

import json
from typing import Dict, Sequence, Tuple

from .models import Issue, Message, PracticeQuestion


def _numbered_messages(messages: Sequence[Message]) -> str:
    return "\n".join(f"---MESSAGE {idx}---\n{message.text}\n" for idx, message in enumerate(messages, start=1))


def relevance_prompt(messages: Sequence[Message]) -> str:
    return f"""You are screening chat messages for a writing-improvement review.

For each of the following {len(messages)} messages decide whether it is a piece of the
author's own prose that says something about their writing quality (emails, essays,
explanations, requests written in full sentences). Code, math, one-word commands and
pasted third-party text are NOT relevant.

{_numbered_messages(messages)}
Respond ONLY with a JSON array of exactly {len(messages)} booleans in the SAME ORDER,
for example: [true, false, true]
"""


def evaluation_prompt(messages: Sequence[Message]) -> str:
    return f"""You are a writing evaluation expert. Analyze each of the following {len(messages)} messages.

For EACH message, provide:
1. Grammar Score (1-5): 1=poor, 5=excellent
2. Punctuation Score (1-5): 1=poor, 5=excellent
3. Tone Score (1-5): 1=inappropriate/unprofessional, 5=excellent
4. Specific issues found in each category

Messages:
{_numbered_messages(messages)}
Respond with a JSON array of {len(messages)} evaluation objects in the SAME ORDER.
ONLY valid JSON, no markdown:

[
  {{
    "message_number": 1,
    "grammar_score": <1-5>,
    "punctuation_score": <1-5>,
    "tone_score": <1-5>,
    "grammar_issues": ["issue1", "issue2"],
    "punctuation_issues": ["issue1"],
    "tone_issues": ["issue1"]
  }}
]
"""


def analysis_prompt(
    total_messages: int,
    averages: Dict[str, float],
    issues: Dict[str, Sequence[str]],
) -> str:
    return f"""Analyze writing evaluation data and identify the TOP 5 recurring issues per category.
Group issues that describe the same problem and count how often each group occurs.

Data:
- Total Messages: {total_messages}
- Avg Grammar: {averages["grammar"]:.2f}/5
- Avg Punctuation: {averages["punctuation"]:.2f}/5
- Avg Tone: {averages["tone"]:.2f}/5

Grammar Issues: {json.dumps(list(issues["grammar"]))}
Punctuation Issues: {json.dumps(list(issues["punctuation"]))}
Tone Issues: {json.dumps(list(issues["tone"]))}

Respond ONLY with valid JSON:
{{
  "overall_assessment": "<one sentence>",
  "top_grammar_issues": [
    {{"issue": "<desc>", "frequency": <n>, "severity": "<low/medium/high>", "recommendation": "<fix>"}}
  ],
  "top_punctuation_issues": [...],
  "top_tone_issues": [...]
}}
"""


def practice_prompt(
    focus: Sequence[Tuple[str, Issue]],
    session_number: int,
    difficulty: str,
    include_writing_prompt: bool,
) -> str:
    issues_text = "\n\n".join(
        f"Issue {idx}:\n- Type: {issue_type}\n- Problem: {issue.issue}\n- Recommendation: {issue.recommendation}"
        for idx, (issue_type, issue) in enumerate(focus, start=1)
    )
    total = len(focus) * 2 + (1 if include_writing_prompt else 0)
    writing_prompt_text = (
        """
Also create 1 comprehensive writing prompt:
  {"type": "writing_prompt", "prompt": "<task>", "model_answer": "<example answer>", "focus_issues": ["issue1"]}
"""
        if include_writing_prompt
        else ""
    )
    return f"""Generate practice questions for writing improvement session {session_number}.

Difficulty: {difficulty}
Issues to cover:
{issues_text}

For EACH issue, create exactly:
1. One correction exercise
2. One multiple choice question with four options
{writing_prompt_text}
Total: {total} questions

Respond with a JSON array:
[
  {{
    "issue_number": 1,
    "type": "correction",
    "incorrect_sentence": "<bad>",
    "correct_sentence": "<good>",
    "explanation": "<why>"
  }},
  {{
    "issue_number": 1,
    "type": "multiple_choice",
    "question": "<question>",
    "options": ["A) ...", "B) ...", "C) ...", "D) ..."],
    "correct_answer": "A",
    "explanation": "<why>"
  }}
]

IMPORTANT: Session {session_number} - use example sentences that are UNIQUE to this session.
"""


def grading_prompt(items: Sequence[Tuple[int, PracticeQuestion, str]]) -> str:
    qa_text = "\n\n".join(
        f"---QUESTION {number}---\nIssue: {question.specific_issue}\n"
        f"Task: {question.question_text}\nCorrect: {question.correct_answer}\nUser: {answer}"
        for number, question, answer in items
    )
    return f"""Grade these {len(items)} writing practice answers. Be lenient: accept any answer
that fixes the targeted issue, even if the wording differs from the reference.

{qa_text}

Respond with a JSON array of {len(items)} results in the SAME ORDER:
[
  {{"question_number": <number>, "is_correct": true, "feedback": "<feedback>"}}
]
"""


def narrative_prompt(changes: Dict[str, Dict], resolved: Sequence[str], persistent: Sequence[str], new: Sequence[str]) -> str:
    return f"""Write a short, encouraging summary (2-3 sentences) of how a writer's skills changed
between two evaluations.

Score changes (out of 5): {json.dumps(changes)}
Resolved issues: {json.dumps(list(resolved))}
Persistent issues: {json.dumps(list(persistent))}
New issues: {json.dumps(list(new))}

Respond ONLY with JSON: {{"narrative": "<summary>"}}
"""
