from writemet.adapters.chat_export import chat_export_metadata, messages_since, parse_chat_export


def _node(role, text, created, parts=None):
    return {
        "message": {
            "author": {"role": role},
            "content": {"parts": parts if parts is not None else [text]},
            "create_time": created,
        }
    }


EXPORT = [
    {
        "title": "Cover letter",
        "mapping": {
            "root": {"message": None},
            "a": _node("user", "Please proofread my cover letter.", 1_767_225_600),
            "b": _node("assistant", "Here you go.", 1_767_225_660),
            "c": _node("user", "", 1_767_225_700, parts=[{"text": "Second draft"}, " attached."]),
        },
    },
    {"title": None, "mapping": {"a": _node("user", "   ", 1_767_312_000)}},
    {
        "title": "Report",
        "mapping": {
            "a": _node("user", "Can you check the tone of this report?", 1_767_398_400),
            "b": _node("system", "ignored", 1_767_398_401),
        },
    },
]


def test_parse_collects_user_messages_with_positional_ids():
    messages = parse_chat_export(EXPORT)

    assert [m.id for m in messages] == ["conv_0_msg_0", "conv_0_msg_1", "conv_2_msg_2"]
    assert messages[1].text == "Second draft  attached."
    assert messages[2].conversation_title == "Report"
    assert messages[2].conversation_id == 2


def test_parse_respects_one_indexed_conversation_range():
    messages = parse_chat_export(EXPORT, start_conversation=2, end_conversation=3)

    assert [m.id for m in messages] == ["conv_2_msg_0"]


def test_parse_after_timestamp_is_exclusive():
    messages = parse_chat_export(EXPORT, after_timestamp=1_767_225_600)

    assert [m.timestamp for m in messages] == [1_767_225_700, 1_767_398_400]


def test_parse_ignores_non_list_documents():
    assert parse_chat_export({"conversations": []}) == []


def test_metadata_estimates_volume_and_dates():
    metadata = chat_export_metadata(EXPORT)

    assert metadata["total_conversations"] == 3
    assert metadata["estimated_messages"] == 4
    assert metadata["date_range"]["earliest"].startswith("2026-01-01")
    assert metadata["date_range"]["latest"].startswith("2026-01-03")


def test_messages_since():
    messages = parse_chat_export(EXPORT)

    assert messages_since(messages, 1_767_225_700) == messages[2:]
