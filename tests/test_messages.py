import json

from rayrelay.messages import (
    ConvertedMessages,
    StreamTranslator,
    build_chat_completion,
    build_raycast_request,
    build_stream_chunk,
    convert_messages,
    parse_sse_response,
)


def _events_payloads(events):
    payloads = []
    for event in events:
        assert event.startswith("data: ")
        assert event.endswith("\n\n")
        payloads.append(json.loads(event[len("data: "):]))
    return payloads


def test_convert_default_system_instruction():
    result = convert_messages([{"role": "user", "content": "hi"}])
    assert result.system_instruction == "markdown"
    assert result.messages == [{"author": "user", "content": {"text": "hi"}}]


def test_convert_first_system_message_becomes_instruction():
    result = convert_messages(
        [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
    )
    assert result.system_instruction == "be brief"
    assert [m["author"] for m in result.messages] == ["user", "assistant"]
    assert result.messages[1]["content"]["text"] == "hello"


def test_convert_later_system_and_other_roles_dropped():
    result = convert_messages(
        [
            {"role": "user", "content": "hi"},
            {"role": "system", "content": "ignored"},
            {"role": "tool", "content": "ignored too"},
        ]
    )
    assert result.system_instruction == "markdown"
    assert len(result.messages) == 1


def test_convert_empty_string_system_instruction_is_kept():
    result = convert_messages([{"role": "system", "content": ""}])
    assert result.system_instruction == ""
    assert result.messages == []


def test_convert_array_content_joins_text_parts():
    content = [
        {"type": "text", "text": "one "},
        {"type": "image_url", "image_url": {"url": "x"}},
        {"type": "text", "text": "two"},
        {"type": "text", "text": 5},
        "stray",
    ]
    result = convert_messages(
        [{"role": "system", "content": content}, {"role": "user", "content": content}]
    )
    assert result.system_instruction == "one two"
    assert result.messages[0]["content"]["text"] == "one two"


def test_convert_array_system_without_text_keeps_default():
    result = convert_messages(
        [{"role": "system", "content": [{"type": "image_url"}]}]
    )
    assert result.system_instruction == "markdown"


def test_convert_missing_content_gives_empty_text():
    result = convert_messages([{"role": "user"}])
    assert result.messages == [{"author": "user", "content": {"text": ""}}]


def test_parse_sse_response_joins_text():
    body = 'data: {"text":"Hel"}\n\nevent: ping\ndata: {"text":"lo"}\n\n'
    assert parse_sse_response(body) == "Hello"


def test_parse_sse_response_skips_invalid_data():
    body = 'data: not json\ndata:{"text":"ok"}\ndata: [1]\ndata: {"text": 3}\n'
    assert parse_sse_response(body) == "ok"


def test_parse_sse_response_empty():
    assert parse_sse_response("") == ""


def test_build_raycast_request():
    converted = ConvertedMessages(
        messages=[{"author": "user", "content": {"text": "hi"}}],
        system_instruction="be brief",
    )
    request = build_raycast_request(converted, "m", "p", 0.7, "thread")
    assert request["messages"] == converted.messages
    assert request["system_instruction"] == "be brief"
    assert request["model"] == "m"
    assert request["provider"] == "p"
    assert request["temperature"] == 0.7
    assert request["thread_id"] == "thread"
    assert request["source"] == "ai_chat"
    assert request["locale"] == "en-US"
    assert request["tools"] == []
    assert request["debug"] is False


def test_build_chat_completion():
    response = build_chat_completion("answer", "m")
    assert response["id"].startswith("chatcmpl-")
    assert response["object"] == "chat.completion"
    assert response["model"] == "m"
    choice = response["choices"][0]
    assert choice["message"]["content"] == "answer"
    assert choice["message"]["role"] == "assistant"
    assert choice["finish_reason"] == "length"
    usage = response["usage"]
    assert usage["total_tokens"] == usage["prompt_tokens"] + usage["completion_tokens"]
    assert response["system_fingerprint"] == "fp_b376dfbbd5"


def test_chat_completion_ids_are_unique():
    assert build_chat_completion("", "m")["id"] != build_chat_completion("", "m")["id"]
    assert build_chat_completion("", "m")["id"].startswith("chatcmpl-")


def test_build_stream_chunk():
    chunk = build_stream_chunk("piece", "stop", "m")
    assert chunk["object"] == "chat.completion.chunk"
    assert chunk["choices"] == [
        {"index": 0, "delta": {"content": "piece"}, "finish_reason": "stop"}
    ]


def test_translator_waits_for_blank_line():
    translator = StreamTranslator("m")
    assert translator.feed('data: {"text":"Hi"}\n') == []
    events = translator.feed("\n")
    payloads = _events_payloads(events)
    assert [p["choices"][0]["delta"]["content"] for p in payloads] == ["Hi"]
    assert payloads[0]["model"] == "m"


def test_translator_handles_arbitrary_pieces():
    translator = StreamTranslator("m")
    body = 'data: {"text":"a"}\ndata: {"text":"b","finish_reason":"stop"}\n\n'
    events = []
    for start in range(0, len(body), 5):
        events.extend(translator.feed(body[start:start + 5]))
    payloads = _events_payloads(events)
    assert [p["choices"][0]["delta"]["content"] for p in payloads] == ["a", "b"]
    assert payloads[1]["choices"][0]["finish_reason"] == "stop"
    assert payloads[0]["choices"][0]["finish_reason"] == ""


def test_translator_skips_invalid_lines():
    translator = StreamTranslator("m")
    events = translator.feed('data: nope\nid: 1\ndata: {"text":"x"}\n\n')
    payloads = _events_payloads(events)
    assert len(payloads) == 1
    assert payloads[0]["choices"][0]["delta"]["content"] == "x"


def test_translator_finish_drops_unterminated_block():
    translator = StreamTranslator("m")
    assert translator.feed('data: {"text":"lost"}\n') == []
    assert translator.finish() == ["data: [DONE]\n\n"]
    assert translator.feed("\n") == []