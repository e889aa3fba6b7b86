"""Request normalization: credential resolution, option defaults, message cleaning."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from .config import GatewayConfig
from .errors import err_invalid_messages, err_missing_api_key

_TAG_RE = re.compile(r"<[^>]*>")
_NEWLINE_RUN_RE = re.compile(r"\n{3,}")

# ECMAScript whitespace and line terminators. Unlike str.isspace() this
# includes the byte order mark and excludes \x1c-\x1f and \x85.
_TRIM_CHARS = (
    "\t\n\v\f\r \xa0\u1680\u2000\u2001\u2002\u2003\u2004\u2005\u2006"
    "\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
)

# Every recognized chat option and its default. ``model`` is taken from the
# gateway configuration and is therefore not listed here.
CHAT_OPTION_DEFAULTS: dict[str, Any] = {
    "temperature": 0.7,
    "max_tokens": 1024,
    "stream": False,
    "top_p": 1,
    "frequency_penalty": 0,
    "presence_penalty": 0,
}

# Fields sent upstream. The penalty options are accepted and defaulted but
# never forwarded.
# TODO: forward frequency_penalty/presence_penalty once the upstream contract
# for them is confirmed.
FORWARDED_FIELDS = ("model", "messages", "temperature", "max_tokens", "stream", "top_p")


@dataclass
class NormalizedRequest:
    payload: dict[str, Any]
    api_key: str
    received_messages: int = 0
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def model(self) -> str:
        return self.payload["model"]

    @property
    def stream(self) -> bool:
        return bool(self.payload.get("stream"))


def bearer_token(authorization: str | None) -> str:
    return (authorization or "").replace("Bearer ", "", 1)


def resolve_api_key(authorization: str | None, default_api_key: str = "") -> str:
    api_key = bearer_token(authorization) or default_api_key
    if not api_key:
        raise err_missing_api_key()
    return api_key


def merge_chat_options(
    payload: Mapping[str, Any], default_model: str
) -> dict[str, Any]:
    """Return the recognized options of ``payload`` with defaults filled in.

    A key that is absent or ``null`` takes its default; any other value the
    caller supplied (including ``0`` and ``false``) is kept as-is.
    """
    defaults = {"model": default_model, **CHAT_OPTION_DEFAULTS}
    merged: dict[str, Any] = {}
    for key, default in defaults.items():
        value = payload.get(key)
        merged[key] = default if value is None else value
    return merged


def clean_message_content(text: str) -> str:
    text = _TAG_RE.sub("", text)
    text = _NEWLINE_RUN_RE.sub("\n\n", text)
    return text.strip(_TRIM_CHARS)


def clean_messages(messages: list[Any]) -> list[dict[str, Any]]:
    """Clean each message and drop the ones left without content.

    Role and relative order of the surviving messages are preserved.
    """
    cleaned: list[dict[str, Any]] = []
    for idx, msg in enumerate(messages):
        if not isinstance(msg, dict):
            raise err_invalid_messages(f"Message at index {idx} must be an object")
        content = msg.get("content")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise err_invalid_messages(
                f"Message content at index {idx} must be a string"
            )
        content = clean_message_content(content)
        if not content:
            continue
        cleaned.append({"role": msg.get("role"), "content": content})
    return cleaned


def normalize_chat_request(
    payload: Any, api_key: str, cfg: GatewayConfig
) -> NormalizedRequest:
    """Validate ``payload`` and build the upstream request.

    ``api_key`` comes from :func:`resolve_api_key`, which callers run first so
    that a missing credential is reported before anything about the body.
    """
    body: Mapping[str, Any] = payload if isinstance(payload, dict) else {}
    messages = body.get("messages")
    if not isinstance(messages, list):
        raise err_invalid_messages()

    options = merge_chat_options(body, cfg.default_model)
    options["messages"] = clean_messages(messages)
    upstream = {key: options[key] for key in FORWARDED_FIELDS}
    return NormalizedRequest(
        payload=upstream,
        api_key=api_key,
        received_messages=len(messages),
        options=options,
    )
