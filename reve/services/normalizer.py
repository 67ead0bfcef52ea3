"""
Response normalization for the upstream service.

The upstream API is unversioned and its response shapes have drifted over
time. Every known shape is described by a named extractor; extractors are
tried in order and the first one returning a value wins. Nothing is guessed:
if no extractor matches, ``UnexpectedResponse`` is raised with the raw body.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from ..utils.errors import UnexpectedResponse

logger = logging.getLogger("reve.normalizer")


@dataclass(frozen=True, slots=True)
class Extractor:
    name: str
    extract: Callable[[Any], Optional[str]]


def _dig(body: Any, *path: Any) -> Any:
    current = body
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
    return current


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _created_node_id(body: Any) -> Optional[str]:
    return _non_empty_str(_dig(body, "create", "node", "id"))


def _legacy_generation_id(body: Any) -> Optional[str]:
    return _non_empty_str(_dig(body, "generation_id"))


def _json_response_prompt(body: Any) -> Optional[str]:
    raw = _dig(body, "response")
    if not isinstance(raw, str):
        return None
    try:
        inner = json.loads(raw)
    except ValueError:
        logger.debug("'response' field is not JSON: %.200s", raw)
        return None
    return _str(_dig(inner, "prompt"))


GENERATION_ID_EXTRACTORS: Sequence[Extractor] = (
    Extractor("create.node.id", _created_node_id),
    Extractor("generation_id", _legacy_generation_id),
)

CHAT_PROMPT_EXTRACTORS: Sequence[Extractor] = (
    Extractor("response<json>.prompt", _json_response_prompt),
    Extractor("content", lambda body: _str(_dig(body, "content"))),
    Extractor("choices[0].message.content", lambda body: _str(_dig(body, "choices", 0, "message", "content"))),
    Extractor("multi_content[0].text", lambda body: _str(_dig(body, "multi_content", 0, "text"))),
    Extractor("<root string>", _str),
)


def _run(extractors: Sequence[Extractor], body: Any) -> Optional[tuple[str, str]]:
    for extractor in extractors:
        value = extractor.extract(body)
        if value is not None:
            return extractor.name, value
    return None


def _dump(body: Any) -> str:
    try:
        return json.dumps(body)
    except (TypeError, ValueError):
        return repr(body)


def extract_generation_id(body: Any) -> str:
    """Return the canonical job identifier from a submission response."""
    match = _run(GENERATION_ID_EXTRACTORS, body)
    if match is None:
        raise UnexpectedResponse(f"Failed to get generation ID from response: {_dump(body)}")
    name, value = match
    logger.debug("Generation id %s extracted via %s", value, name)
    return value


def extract_chat_prompt(body: Any) -> str:
    """Return the prompt text carried by a chat-style response."""
    match = _run(CHAT_PROMPT_EXTRACTORS, body)
    if match is None:
        # a shape we have never seen, as opposed to a transport failure
        logger.warning("Unrecognized chat response shape: %.2000s", _dump(body))
        raise UnexpectedResponse(
            f"Failed to extract enhanced edit prompt from chat response structure: {_dump(body)}"
        )
    name, value = match
    logger.debug("Chat prompt extracted via %s", name)
    return value


__all__ = [
    "CHAT_PROMPT_EXTRACTORS",
    "GENERATION_ID_EXTRACTORS",
    "Extractor",
    "extract_chat_prompt",
    "extract_generation_id",
]
