import asyncio
import json
import re
from datetime import date, datetime, timedelta, timezone

import pytest

from writemet.config import PipelineConfig
from writemet.errors import EmptyResultError
from writemet.scheduler import RequestScheduler
from writemet.service import WritingCoachService

from fakes import FakeClock, make_message


class RoutingModel:
    """Answers each stage's prompt with a well-formed payload of the right size."""

    def __init__(self, relevant=True):
        self.relevant = relevant
        self.prompts = []

    async def complete(self, prompt, max_tokens):
        self.prompts.append(prompt)
        if "screening chat messages" in prompt:
            count = int(re.search(r"exactly (\d+) booleans", prompt).group(1))
            return json.dumps([self.relevant] * count)
        if "writing evaluation expert" in prompt:
            count = int(re.search(r"following (\d+) messages", prompt).group(1))
            return json.dumps(
                [
                    {
                        "grammar_score": 3,
                        "punctuation_score": 4,
                        "tone_score": 5,
                        "grammar_issues": ["Comma splice"],
                        "punctuation_issues": ["Missing serial comma"],
                        "tone_issues": [],
                    }
                ]
                * count
            )
        if "recurring issues" in prompt:
            return json.dumps(
                {
                    "overall_assessment": "Clear writing with frequent comma splices.",
                    "top_grammar_issues": [{"issue": "Comma splices", "frequency": 6, "severity": "high"}],
                    "top_punctuation_issues": [{"issue": "Missing serial comma", "frequency": 4}],
                    "top_tone_issues": [],
                }
            )
        if "Generate practice questions" in prompt:
            session = re.search(r"session (\d+)", prompt).group(1)
            count = len(re.findall(r"^Issue \d+:", prompt, flags=re.MULTILINE))
            items = []
            for number in range(1, count + 1):
                items.append(
                    {
                        "issue_number": number,
                        "type": "correction",
                        "incorrect_sentence": f"Session {session} broken sentence {number}",
                        "correct_sentence": f"Session {session} fixed sentence {number}.",
                    }
                )
                items.append(
                    {
                        "issue_number": number,
                        "type": "multiple_choice",
                        "question": f"Session {session} choice {number}?",
                        "options": ["A) w", "B) x", "C) y", "D) z"],
                        "correct_answer": "A",
                    }
                )
            return json.dumps(items)
        if "encouraging summary" in prompt:
            return json.dumps({"narrative": "Scores held steady."})
        raise AssertionError(f"unexpected prompt: {prompt[:60]}")


class FakeSource:
    def __init__(self, messages):
        self.messages = messages
        self.last_range = None
        self.last_since = None

    def fetch_messages(self, start_date, end_date):
        self.last_range = (start_date, end_date)
        return self.messages

    def fetch_messages_since(self, timestamp):
        self.last_since = timestamp
        return [message for message in self.messages if message.timestamp > timestamp]


ESSAYS = [
    make_message(idx, f"Please review the grammar in this paragraph of my essay, version number {idx}.", idx % 2)
    for idx in range(4)
]


def _service(model, source=None):
    clock = FakeClock()
    scheduler = RequestScheduler(12.0, clock=clock, sleep=clock.sleep)
    return WritingCoachService(model, source, PipelineConfig(), scheduler=scheduler, sleep=clock.sleep), clock


def test_evaluate_messages_end_to_end():
    model = RoutingModel()
    service, clock = _service(model)
    statuses = []

    run = asyncio.run(service.evaluate_messages(ESSAYS + [make_message(9, "ok thanks")], on_status=statuses.append))

    assert run.messages_considered == 5
    assert run.heuristic_survivors == 4
    assert [m.id for m in run.relevant_messages] == ["m0", "m1", "m2", "m3"]
    assert [r.message_id for r in run.records] == ["m0", "m1", "m2", "m3"]
    assert run.analysis.summary.avg_grammar_score == 3.0
    assert run.analysis.top_grammar_issues[0].issue == "Comma splices"
    assert run.analysis.metadata.total_conversations_evaluated == 2
    assert len(model.prompts) == 3
    assert clock.sleeps == [12.0, 12.0]
    assert statuses[-1] == "Evaluation complete!"
    assert service.queue_length() == 0


def test_evaluate_period_passes_explicit_range_to_source():
    source = FakeSource(ESSAYS)
    service, _ = _service(RoutingModel(), source)
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    end = datetime(2026, 1, 31, tzinfo=timezone.utc)

    run = asyncio.run(service.evaluate_period(start, end))

    assert source.last_range == (start, end)
    assert len(run.records) == 4


def test_evaluate_period_defaults_to_last_thirty_days():
    source = FakeSource(ESSAYS)
    service, _ = _service(RoutingModel(), source)

    asyncio.run(service.evaluate_period())

    start, end = source.last_range
    assert end - start == timedelta(days=30)
    assert end.tzinfo is not None


def test_evaluate_since_only_uses_newer_messages():
    source = FakeSource(ESSAYS)
    service, _ = _service(RoutingModel(), source)

    run = asyncio.run(service.evaluate_since(ESSAYS[1].timestamp))

    assert source.last_since == ESSAYS[1].timestamp
    assert [m.id for m in run.relevant_messages] == ["m2", "m3"]


def test_evaluation_without_source_is_rejected():
    service, _ = _service(RoutingModel())

    with pytest.raises(ValueError):
        asyncio.run(service.evaluate_period())


@pytest.mark.parametrize(
    "messages, relevant, stage",
    [
        ([], True, "message_source"),
        ([make_message(1, "hi there"), make_message(2, "thanks!")], True, "heuristic_filter"),
        (ESSAYS, False, "relevance_confirmation"),
    ],
)
def test_empty_stages_raise_with_stage_name(messages, relevant, stage):
    service, _ = _service(RoutingModel(relevant=relevant))

    with pytest.raises(EmptyResultError) as excinfo:
        asyncio.run(service.evaluate_messages(messages))

    assert excinfo.value.stage == stage


def test_practice_plan_grading_and_comparison():
    model = RoutingModel()
    service, _ = _service(model)
    analysis = asyncio.run(service.evaluate_messages(ESSAYS)).analysis

    sessions = asyncio.run(service.create_practice_plan(analysis, start_date=date(2026, 3, 1)))

    assert [s.date for s in sessions] == ["2026-03-02", "2026-03-04", "2026-03-08"]
    first = sessions[0]
    assert len(first.questions) == 4
    assert all(not q.specific_issue.startswith("No recurring") for s in sessions for q in s.questions)
    assert first.questions[0].specific_issue == "Comma splices"
    assert {q.question_text for q in sessions[0].questions}.isdisjoint(q.question_text for q in sessions[1].questions)

    first.user_answers = {q.question_id: q.correct_answer for q in first.questions}
    graded = asyncio.run(service.grade_session(first))
    assert graded.completed
    assert graded.score == 1.0

    comparison = asyncio.run(service.compare(analysis, analysis))
    assert comparison.narrative == "Scores held steady."
    assert [i.issue for i in comparison.persistent][0] == "Comma splices"
    assert comparison.resolved == ()
