"""Two-minute WriteMet demo: FastAPI backend over a deterministic offline model."""

import json
import logging
import re
from datetime import date, datetime, timezone
from random import Random
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from writemet import PipelineConfig, RequestScheduler, WritingCoachService
from writemet.errors import EmptyResultError
from writemet.models import Analysis, Message, PracticeSession

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

RNG = Random(42)

app = FastAPI(title="WriteMet Two-Minute Demo", version="0.1.0")

SAMPLE_TEXTS = [
    "Could you proofread this email to my manager, i think the tone is too casual and its a bit long.",
    "Here is the introduction of my essay, please check the grammar because me and my partner wrote it fast.",
    "I need feedback on this cover letter paragraph, the data shows I have led three projects, however I was never promoted.",
    "Please edit this report summary so it sounds more professional, we was late on two deliverables this quarter.",
    "What is the capital of Portugal?",
    "thanks!",
    "Can you review the punctuation in this sentence: However we decided to postpone the launch the team agreed.",
    "Help me rewrite this letter to my landlord, its important that the heating gets fixed before friday.",
]


class DemoModel:
    """Offline stand-in for a chat model that answers every stage's prompt shape."""

    async def complete(self, prompt: str, max_tokens: int) -> str:
        if "screening chat messages" in prompt:
            count = int(re.search(r"exactly (\d+) booleans", prompt).group(1))
            return json.dumps([True] * count)
        if "writing evaluation expert" in prompt:
            count = int(re.search(r"following (\d+) messages", prompt).group(1))
            return json.dumps([self._evaluation() for _ in range(count)])
        if "Generate practice questions" in prompt:
            # malformed on purpose: the template question bank takes over
            return "Sorry, I can't produce questions right now."
        if "encouraging summary" in prompt:
            return json.dumps({"narrative": "Your grammar is trending up and comma splices are less frequent."})
        # pattern analysis and grading fall back to local grouping and placeholders
        return "{}"

    def _evaluation(self) -> Dict:
        return {
            "grammar_score": RNG.randint(2, 4),
            "punctuation_score": RNG.randint(2, 5),
            "tone_score": RNG.randint(3, 5),
            "grammar_issues": RNG.sample(["Subject-verb agreement", "Pronoun case", "Its vs it's"], 2),
            "punctuation_issues": RNG.sample(["Comma splice", "Missing introductory comma"], 1),
            "tone_issues": RNG.sample(["Too casual", "Overly apologetic"], 1),
        }


class AnswersRequest(BaseModel):
    answers: Dict[str, str]


def _sample_messages() -> List[Message]:
    start = int(datetime(2026, 1, 5, tzinfo=timezone.utc).timestamp())
    return [
        Message(
            id=f"demo-{idx}",
            text=text,
            timestamp=start + idx * 3600,
            conversation_id=idx // 3,
            conversation_title=f"Demo conversation {idx // 3 + 1}",
        )
        for idx, text in enumerate(SAMPLE_TEXTS)
    ]


SERVICE = WritingCoachService(
    DemoModel(),
    config=PipelineConfig(min_request_interval=0.0),
    scheduler=RequestScheduler(min_interval=0.0),
)
STATE: Dict[str, Optional[object]] = {"baseline": None, "sessions": None}


async def _baseline() -> Analysis:
    if STATE["baseline"] is None:
        run = await SERVICE.evaluate_messages(_sample_messages(), on_status=logger.info)
        STATE["baseline"] = run.analysis
    return STATE["baseline"]


async def _sessions() -> List[PracticeSession]:
    if STATE["sessions"] is None:
        STATE["sessions"] = await SERVICE.create_practice_plan(await _baseline(), start_date=date.today())
    return STATE["sessions"]


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "demo": "writemet-two-minute", "queue_length": SERVICE.queue_length()}


@app.get("/api/analysis")
async def analysis() -> dict:
    try:
        return (await _baseline()).to_dict()
    except EmptyResultError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.get("/api/practice")
async def practice() -> dict:
    return {"sessions": [session.to_dict() for session in await _sessions()]}


@app.post("/api/practice/{session_number}/grade")
async def grade(session_number: int, request: AnswersRequest) -> dict:
    sessions = await _sessions()
    matching = [session for session in sessions if session.session_number == session_number]
    if not matching:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_number}")
    session = matching[0]
    session.user_answers = dict(request.answers)
    return (await SERVICE.grade_session(session, on_status=logger.info)).to_dict()


@app.get("/api/compare")
async def compare() -> dict:
    baseline = await _baseline()
    followup = await SERVICE.evaluate_messages(_sample_messages()[2:])
    return (await SERVICE.compare(baseline, followup.analysis)).to_dict()
