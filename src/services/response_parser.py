"""Lenient JSON extraction and fail-closed section decoding.

JSON-mode model output is not guaranteed to be well-formed: models wrap
it in markdown fences, prepend prose, or run out of tokens mid-object.
:func:`parse_json_lenient` tries a fixed, ordered list of strategies:

    1. direct        json.loads on the stripped text
    2. fenced        the body of a ```json ... ``` block
    3. balanced      the first balanced {...} or [...] substring,
                     skipping brackets inside string literals
    4. repaired      a truncated object closed off: trailing comma
                     dropped, open string closed, open brackets and braces
                     closed in nesting order

If none yields JSON, :class:`ResponseParseError` is raised.

:func:`decode_section` layers validation on top: the parsed value is
shaped into the tagged union from :mod:`src.models.sections` and
validated strictly.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from src.models.sections import (
    RefusalPayload,
    SectionPayload,
    SectionType,
    TextSection,
)
from src.utils.errors import ResponseParseError, SectionDecodeError

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_REFUSAL_PREFIX = "CONTENT_REFUSED:"

_PAYLOAD_ADAPTER: TypeAdapter[Any] = TypeAdapter(SectionPayload)


# ---------------------------------------------------------------------------
# Lenient JSON parsing
# ---------------------------------------------------------------------------


def _try_loads(candidate: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return False, None


def _from_fence(text: str) -> str | None:
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else None


def _balanced_substring(text: str) -> str | None:
    """Return the first balanced JSON object/array in *text*, if any."""
    start = -1
    for idx, ch in enumerate(text):
        if ch in "{[":
            start = idx
            break
    if start < 0:
        return None

    stack: list[str] = []
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]":
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return text[start : idx + 1]
    return None


def _repair_truncated(text: str) -> str | None:
    """Close off a JSON document that was cut short mid-stream."""
    start = -1
    for idx, ch in enumerate(text):
        if ch in "{[":
            start = idx
            break
    if start < 0:
        return None

    body = text[start:].rstrip()
    closers: list[str] = []
    in_string = False
    escaped = False
    for ch in body:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            closers.append("}" if ch == "{" else "]")
        elif ch in "}]" and closers:
            closers.pop()

    if in_string:
        body += '"'
    body = re.sub(r",\s*$", "", body)
    body += "".join(reversed(closers))
    return body


def parse_json_lenient(text: str) -> Any:
    """Parse model output as JSON using the strategies listed above.

    Raises
    ------
    ResponseParseError
        If no strategy yields valid JSON.
    """
    stripped = (text or "").strip()
    if not stripped:
        raise ResponseParseError(message="Empty response")

    ok, value = _try_loads(stripped)
    if ok:
        return value

    for extractor in (_from_fence, _balanced_substring, _repair_truncated):
        candidate = extractor(stripped)
        if candidate is None:
            continue
        ok, value = _try_loads(candidate)
        if ok:
            return value

    raise ResponseParseError(message="No JSON document could be extracted from the response")


# ---------------------------------------------------------------------------
# Section decoding
# ---------------------------------------------------------------------------


def _shape(section: SectionType, data: Any) -> dict[str, Any]:
    """Unwrap the shapes models commonly return into a tagged dict."""
    if section is SectionType.ACTION_ITEMS:
        if isinstance(data, dict):
            data = data.get("action_items", data.get("items", []))
        return {"kind": "action_items", "items": data}
    if section is SectionType.AUTO_TAGS:
        if isinstance(data, dict):
            data = data.get("tags", [])
        return {"kind": "auto_tags", "tags": data}
    if not isinstance(data, dict):
        raise SectionDecodeError(
            message=f"Expected a JSON object for {section.value}", section=section.value
        )
    return {**data, "kind": section.value}


def decode_section(section: SectionType, raw: str) -> Any:
    """Decode raw model output into the payload model for *section*.

    Text sections accept any non-empty string.  JSON sections go through
    :func:`parse_json_lenient`, then strict validation of the tagged
    union.  A ``{"refused": true}`` object or a ``CONTENT_REFUSED:``
    string becomes a :class:`RefusalPayload`.

    Raises
    ------
    SectionDecodeError
        If the output is empty, unparseable or fails validation.
    """
    text = (raw or "").strip()
    if not text:
        raise SectionDecodeError(message="Empty model output", section=section.value)

    if text.startswith(_REFUSAL_PREFIX):
        reason = text[len(_REFUSAL_PREFIX):].strip()
        return RefusalPayload(reason=reason) if reason else RefusalPayload()

    if not section.expects_json:
        return TextSection(text=text)

    try:
        data = parse_json_lenient(text)
    except ResponseParseError as exc:
        raise SectionDecodeError(message=exc.message, section=section.value) from exc

    if isinstance(data, dict) and data.get("refused") is True:
        reason = str(data.get("reason") or "")
        return RefusalPayload(reason=reason) if reason else RefusalPayload()

    try:
        return _PAYLOAD_ADAPTER.validate_python(_shape(section, data))
    except ValidationError as exc:
        raise SectionDecodeError(
            message=f"{section.value} payload failed validation ({exc.error_count()} errors)",
            section=section.value,
        ) from exc
