import asyncio
import json

import pytest

from writemet.config import PipelineConfig
from writemet.errors import EmptyResultError
from writemet.evaluation import FAILED_BATCH_ISSUE, QualityEvaluator, coerce_score

from fakes import FakeClock, ScriptedModel, make_client, make_message, transport_error


def _evaluator(model, **config):
    clock = FakeClock()
    return QualityEvaluator(make_client(model), PipelineConfig(**config), sleep=clock.sleep), clock


def _score(grammar, punctuation, tone, **extra):
    item = {
        "grammar_score": grammar,
        "punctuation_score": punctuation,
        "tone_score": tone,
        "grammar_issues": [],
        "punctuation_issues": [],
        "tone_issues": [],
    }
    item.update(extra)
    return item


def test_records_take_identity_from_messages_not_model_output():
    messages = [make_message(idx) for idx in range(3)]
    response = [
        _score(4, 3, 5, message_id="hallucinated", text="something else"),
        _score(2, 2, 2, grammar_issues=["Subject-verb agreement"]),
        _score(5, 5, 5),
    ]
    evaluator, _ = _evaluator(ScriptedModel([json.dumps(response)]))

    records = asyncio.run(evaluator.evaluate(messages))

    assert [r.message_id for r in records] == ["m0", "m1", "m2"]
    assert [r.text for r in records] == [m.text for m in messages]
    assert records[0].grammar_score == 4
    assert records[1].grammar_issues == ("Subject-verb agreement",)


@pytest.mark.parametrize(
    "response",
    [
        [_score(1, 1, 1), _score(5, 5, 5), _score(3, 3, 3)][::-1],
        [_score(2, 2, 2)],
        [None, {"grammar_score": None, "tone_issues": None}, "oops"],
        [],
    ],
)
def test_identity_is_preserved_for_shuffled_truncated_or_null_results(response):
    messages = [make_message(idx) for idx in range(3)]
    evaluator, _ = _evaluator(ScriptedModel([json.dumps(response)]))

    records = asyncio.run(evaluator.evaluate(messages))

    assert [(r.message_id, r.text) for r in records] == [(m.id, m.text) for m in messages]


def test_missing_fields_default_to_neutral_scores_and_empty_issues():
    messages = [make_message(idx) for idx in range(2)]
    response = [{"grammar_score": 2}]
    evaluator, _ = _evaluator(ScriptedModel([json.dumps(response)]))

    first, second = asyncio.run(evaluator.evaluate(messages))

    assert (first.grammar_score, first.punctuation_score, first.tone_score) == (2, 3, 3)
    assert first.tone_issues == ()
    assert (second.grammar_score, second.punctuation_score, second.tone_score) == (3, 3, 3)
    assert second.grammar_issues == ()


def test_failed_batch_produces_placeholders_and_other_batches_survive():
    messages = [make_message(idx) for idx in range(4)]
    model = ScriptedModel([transport_error(), json.dumps([_score(4, 4, 4), _score(5, 4, 3)])])
    evaluator, _ = _evaluator(model, evaluation_batch_size=2)

    records = asyncio.run(evaluator.evaluate(messages))

    assert [r.message_id for r in records] == ["m0", "m1", "m2", "m3"]
    for placeholder in records[:2]:
        assert (placeholder.grammar_score, placeholder.punctuation_score, placeholder.tone_score) == (3, 3, 3)
        assert placeholder.grammar_issues == (FAILED_BATCH_ISSUE,)
        assert placeholder.punctuation_issues == ()
        assert placeholder.tone_issues == ()
    assert records[3].tone_score == 3
    assert records[2].grammar_score == 4


def test_non_array_response_is_a_batch_failure():
    messages = [make_message(0)]
    evaluator, _ = _evaluator(ScriptedModel(['{"grammar_score": 5}']))

    (record,) = asyncio.run(evaluator.evaluate(messages))

    assert record.grammar_issues == (FAILED_BATCH_ISSUE,)


def test_empty_input_raises():
    evaluator, _ = _evaluator(ScriptedModel())

    with pytest.raises(EmptyResultError) as excinfo:
        asyncio.run(evaluator.evaluate([]))

    assert excinfo.value.stage == "quality_evaluation"


def test_cooldown_after_fourth_batch():
    messages = [make_message(idx) for idx in range(5)]
    evaluator, clock = _evaluator(ScriptedModel(default="[]"), evaluation_batch_size=1, cooldown_seconds=30.0)

    asyncio.run(evaluator.evaluate(messages))

    assert clock.sleeps == [30.0]


@pytest.mark.parametrize(
    "raw, expected",
    [(4, 4), (4.6, 5), ("2", 2), (0, 1), (9, 5), (None, 3), ("excellent", 3), (True, 3), (float("nan"), 3)],
)
def test_coerce_score(raw, expected):
    assert coerce_score(raw) == expected
