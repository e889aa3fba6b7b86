import pytest

from nim_proxy.gateway.config import GatewayConfig
from nim_proxy.gateway.errors import GatewayError
from nim_proxy.gateway.normalization import (
    clean_message_content,
    clean_messages,
    merge_chat_options,
    normalize_chat_request,
    resolve_api_key,
)


def test_clean_message_content_strips_tags_newlines_and_whitespace():
    raw = "  <p>Hello <b>there</b></p>\n\n\n\n<br/>General Kenobi  \n"
    assert clean_message_content(raw) == "Hello there\n\nGeneral Kenobi"


def test_clean_message_content_keeps_double_newlines():
    assert clean_message_content("a\n\nb") == "a\n\nb"
    assert clean_message_content("a\n\n\nb") == "a\n\nb"


def test_unclosed_angle_bracket_is_kept():
    assert clean_message_content("3 < 4 and 5 > 2") == "3  2"
    assert clean_message_content("x < y") == "x < y"


def test_trim_matches_ecmascript_whitespace():
    assert clean_message_content("\ufeff hi \u3000") == "hi"
    assert clean_message_content("\u2028<b></b>\xa0") == ""
    # Information separators are not whitespace to a JS client.
    assert clean_message_content("\x1cdata\x1f") == "\x1cdata\x1f"


def test_message_of_only_byte_order_mark_is_dropped():
    messages = [
        {"role": "user", "content": "\ufeff"},
        {"role": "user", "content": "kept"},
    ]
    assert clean_messages(messages) == [{"role": "user", "content": "kept"}]


def test_messages_of_only_tags_or_whitespace_are_all_dropped():
    messages = [
        {"role": "system", "content": "   "},
        {"role": "user", "content": "<div></div>"},
        {"role": "assistant", "content": "\n\n\n<br>\t"},
        {"role": "user", "content": None},
    ]
    assert clean_messages(messages) == []


@pytest.mark.parametrize(
    "content",
    [
        "<<x>>y",
        "a<b<c>d>e",
        "\n\n\n\n  <i>\n\n\n</i> text \n\n\n\n",
        "plain",
        "<<<>>>\n\n\n\n",
        " \n<a>\n\n\n<b>\n x",
    ],
)
def test_cleaning_is_idempotent(content):
    once = clean_message_content(content)
    assert clean_message_content(once) == once


def test_clean_messages_preserves_role_and_order():
    messages = [
        {"role": "system", "content": "<sys>Be brief</sys>"},
        {"role": "user", "content": "   "},
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "<br>"},
        {"role": "assistant", "content": "second"},
        {"role": "user", "content": "third", "name": "ignored"},
    ]
    cleaned = clean_messages(messages)
    assert cleaned == [
        {"role": "system", "content": "Be brief"},
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "second"},
        {"role": "user", "content": "third"},
    ]


def test_clean_messages_rejects_non_string_content():
    with pytest.raises(GatewayError) as excinfo:
        clean_messages([{"role": "user", "content": [{"type": "text"}]}])
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail["error"]["type"] == "invalid_request_error"


def test_clean_messages_rejects_non_object_message():
    with pytest.raises(GatewayError) as excinfo:
        clean_messages(["hello"])
    assert excinfo.value.status_code == 400


@pytest.mark.parametrize(
    "header,default,expected",
    [
        ("Bearer abc", "", "abc"),
        ("Bearer abc", "fallback", "abc"),
        (None, "fallback", "fallback"),
        ("", "fallback", "fallback"),
        ("Bearer ", "fallback", "fallback"),
        ("raw-token", "", "raw-token"),
    ],
)
def test_resolve_api_key(header, default, expected):
    assert resolve_api_key(header, default) == expected


def test_resolve_api_key_without_any_credential():
    with pytest.raises(GatewayError) as excinfo:
        resolve_api_key(None, "")
    err = excinfo.value
    assert err.status_code == 401
    assert err.detail == {
        "error": {
            "message": "No API key provided",
            "type": "invalid_request_error",
            "code": "invalid_api_key",
        }
    }


def test_merge_chat_options_applies_defaults():
    merged = merge_chat_options({}, "default/model")
    assert merged == {
        "model": "default/model",
        "temperature": 0.7,
        "max_tokens": 1024,
        "stream": False,
        "top_p": 1,
        "frequency_penalty": 0,
        "presence_penalty": 0,
    }


def test_merge_chat_options_keeps_falsy_caller_values():
    merged = merge_chat_options(
        {"temperature": 0, "top_p": 0.5, "model": None, "stream": False},
        "default/model",
    )
    assert merged["temperature"] == 0
    assert merged["top_p"] == 0.5
    assert merged["model"] == "default/model"
    assert merged["stream"] is False


def test_normalize_drops_penalties_from_upstream_payload():
    cfg = GatewayConfig()
    normalized = normalize_chat_request(
        {
            "model": "custom/model",
            "messages": [{"role": "user", "content": "<b>Hi</b>"}],
            "frequency_penalty": 1.5,
            "presence_penalty": -0.5,
            "temperature": 0.2,
            "user": "someone",
        },
        "key",
        cfg,
    )
    assert normalized.api_key == "key"
    assert normalized.payload == {
        "model": "custom/model",
        "messages": [{"role": "user", "content": "Hi"}],
        "temperature": 0.2,
        "max_tokens": 1024,
        "stream": False,
        "top_p": 1,
    }
    # Accepted and defaulted, but not forwarded.
    assert normalized.options["frequency_penalty"] == 1.5
    assert normalized.options["presence_penalty"] == -0.5


@pytest.mark.parametrize(
    "payload",
    [{}, {"messages": "hello"}, {"messages": {"role": "user"}}, [], None],
)
def test_normalize_requires_messages_array(payload):
    with pytest.raises(GatewayError) as excinfo:
        normalize_chat_request(payload, "key", GatewayConfig())
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == {
        "error": {
            "message": "Messages must be provided as an array",
            "type": "invalid_request_error",
        }
    }


def test_normalize_accepts_empty_messages_array():
    normalized = normalize_chat_request({"messages": []}, "key", GatewayConfig())
    assert normalized.payload["messages"] == []
    assert normalized.payload["model"] == "meta/llama-3.1-8b-instruct"
