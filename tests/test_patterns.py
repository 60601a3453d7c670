import asyncio
import json

import pytest

from writemet.errors import EmptyResultError
from writemet.evaluation import FAILED_BATCH_ISSUE, placeholder_record
from writemet.models import EvaluationRecord
from writemet.patterns import (
    FALLBACK_ASSESSMENT,
    PatternAnalyzer,
    compute_averages,
    flatten_issues,
    group_issues_locally,
    severity_for_frequency,
)

from fakes import ScriptedModel, make_client, make_message, transport_error


def _record(idx, grammar, punctuation, tone, grammar_issues=(), punctuation_issues=(), tone_issues=()):
    return EvaluationRecord(
        message_id=f"m{idx}",
        text=f"text {idx}",
        grammar_score=grammar,
        punctuation_score=punctuation,
        tone_score=tone,
        grammar_issues=tuple(grammar_issues),
        punctuation_issues=tuple(punctuation_issues),
        tone_issues=tuple(tone_issues),
    )


RECORDS = [
    _record(0, 2, 3, 4, ["Comma splice", "Subject-verb agreement"], [], ["Too casual"]),
    _record(1, 3, 4, 4, ["comma splice"], [], ["Too casual"]),
    _record(2, 4, 5, 5, ["Comma Splice"], [], []),
]


def test_compute_averages():
    assert compute_averages(RECORDS) == {"grammar": 3.0, "punctuation": 4.0, "tone": 4.33}


@pytest.mark.parametrize("frequency, severity", [(0, "low"), (2, "low"), (3, "medium"), (5, "medium"), (6, "high")])
def test_severity_thresholds(frequency, severity):
    assert severity_for_frequency(frequency) == severity


def test_local_grouping_is_case_insensitive_and_ranked():
    issues = ["Comma splice", "Missing article", "comma splice", "COMMA SPLICE", "missing article", "Run-on"]

    grouped = group_issues_locally(issues, "grammar")

    assert [(i.issue, i.frequency, i.severity) for i in grouped] == [
        ("Comma splice", 3, "medium"),
        ("Missing article", 2, "low"),
        ("Run-on", 1, "low"),
    ]


def test_empty_issue_list_falls_back_to_one_generic_low_issue():
    grouped = group_issues_locally([], "punctuation")

    assert len(grouped) == 1
    assert grouped[0].severity == "low"
    assert grouped[0].frequency == 0


def test_model_grouping_is_used_and_empty_dimensions_fall_back():
    response = {
        "overall_assessment": "Solid writing with recurring comma splices.",
        "top_grammar_issues": [
            {"issue": "Comma splices", "frequency": 3, "severity": "HIGH", "recommendation": "Use a semicolon."},
            {"issue": "Agreement errors", "frequency": "1", "severity": "unknown"},
            {"frequency": 9},
        ],
        "top_punctuation_issues": [],
        "top_tone_issues": "none",
    }
    analyzer = PatternAnalyzer(make_client(ScriptedModel([json.dumps(response)])))

    analysis = asyncio.run(analyzer.analyze(RECORDS))

    assert analysis.summary.overall_assessment == "Solid writing with recurring comma splices."
    assert analysis.summary.avg_tone_score == 4.33
    assert [(i.issue, i.severity) for i in analysis.top_grammar_issues] == [
        ("Comma splices", "high"),
        ("Agreement errors", "low"),
    ]
    assert len(analysis.top_punctuation_issues) == 1
    assert analysis.top_punctuation_issues[0].severity == "low"
    assert [(i.issue, i.frequency) for i in analysis.top_tone_issues] == [("Too casual", 2)]


def test_total_model_failure_still_returns_valid_analysis():
    analyzer = PatternAnalyzer(make_client(ScriptedModel([transport_error()])))

    analysis = asyncio.run(analyzer.analyze(RECORDS))

    assert analysis.summary.overall_assessment == FALLBACK_ASSESSMENT
    assert analysis.top_grammar_issues[0].issue == "Comma splice"
    assert analysis.top_grammar_issues[0].frequency == 3
    assert len(analysis.top_punctuation_issues) == 1
    for dimension in ("grammar", "punctuation", "tone"):
        assert 1 <= len(analysis.issues(dimension)) <= 5


def test_issue_lists_are_capped_at_five():
    many = [{"issue": f"Issue {n}", "frequency": 10 - n} for n in range(8)]
    response = {"top_grammar_issues": many, "top_punctuation_issues": many, "top_tone_issues": many}
    analyzer = PatternAnalyzer(make_client(ScriptedModel([json.dumps(response)])))

    analysis = asyncio.run(analyzer.analyze(RECORDS))

    assert len(analysis.top_grammar_issues) == 5
    assert len(analysis.top_tone_issues) == 5
    assert analysis.summary.overall_assessment == FALLBACK_ASSESSMENT


def test_metadata_uses_conversations_of_evaluated_messages():
    messages = [
        make_message(0, conversation_id=4),
        make_message(1, conversation_id=2),
        make_message(2, conversation_id=4),
        make_message(9, conversation_id=7),
    ]
    analyzer = PatternAnalyzer(make_client(ScriptedModel(["not json"])))

    analysis = asyncio.run(analyzer.analyze(RECORDS, messages=messages))

    assert analysis.metadata.conversations_range_start == 2
    assert analysis.metadata.conversations_range_end == 4
    assert analysis.metadata.total_conversations_evaluated == 2
    assert analysis.metadata.messages_evaluated == 3
    assert analysis.to_dict()["metadata"]["conversations_range"] == {"start": 2, "end": 4}


def test_empty_records_raise():
    analyzer = PatternAnalyzer(make_client(ScriptedModel()))

    with pytest.raises(EmptyResultError):
        asyncio.run(analyzer.analyze([]))


def test_failed_batch_marker_is_not_counted_as_an_issue():
    messages = [make_message(idx) for idx in range(10)]
    records = [placeholder_record(message) for message in messages]
    records.append(_record(10, 3, 3, 3, ["Missing article"]))
    model = ScriptedModel([transport_error()])
    analyzer = PatternAnalyzer(make_client(model))

    analysis = asyncio.run(analyzer.analyze(records))

    assert [(i.issue, i.frequency) for i in analysis.top_grammar_issues] == [("Missing article", 1)]
    assert FAILED_BATCH_ISSUE not in model.prompts[0]
    assert flatten_issues(records, "grammar") == ["Missing article"]
