"""
Parsing of Responses API payloads into answer maps.
"""

import json
import re
from typing import Any, Dict, Iterable, Mapping, Optional

from ..exceptions import InvalidModelOutputError

NOT_FOUND = "NOT_FOUND"

_CODE_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)
_NOT_FOUND = re.compile(r"^NOT_FOUND$", re.IGNORECASE)


def extract_output_text(data: Any) -> str:
    """``output_text`` if present, else the first non-empty ``output[].content[].text``."""
    if not isinstance(data, Mapping):
        return ""
    text = data.get("output_text")
    if isinstance(text, str) and text.strip():
        return text.strip()

    outputs = data.get("output")
    if not isinstance(outputs, list):
        return ""
    for item in outputs:
        content = item.get("content") if isinstance(item, Mapping) else None
        if not isinstance(content, list):
            continue
        for chunk in content:
            chunk_text = chunk.get("text") if isinstance(chunk, Mapping) else None
            if isinstance(chunk_text, str) and chunk_text.strip():
                return chunk_text.strip()
    return ""


def strip_code_fences(text: str) -> str:
    stripped = (text or "").strip()
    match = _CODE_FENCE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_answer_object(text: str) -> Dict[str, Any]:
    """
    Decode the model output into a JSON object.

    Tries the whole (fence-stripped) text first, then the outermost
    ``{...}`` span. Anything that does not yield an object raises
    InvalidModelOutputError.
    """
    body = strip_code_fences(text)
    if not body:
        raise InvalidModelOutputError("Model returned an empty answer.")

    try:
        parsed = json.loads(body)
    except ValueError:
        start, end = body.find("{"), body.rfind("}")
        if start == -1 or end <= start:
            raise InvalidModelOutputError("Model answer is not valid JSON.")
        try:
            parsed = json.loads(body[start:end + 1])
        except ValueError as e:
            raise InvalidModelOutputError("Model answer is not valid JSON.") from e

    if not isinstance(parsed, dict):
        raise InvalidModelOutputError("Model answer is not a JSON object.")
    return parsed


def clean_answer(value: Any) -> Optional[str]:
    """Normalized answer text, or None when the value means "not found"."""
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)

    text = text.strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        text = text[1:-1].strip()
    if not text or _NOT_FOUND.match(text):
        return None
    return text


def answers_for(uids: Iterable[str], parsed: Mapping[str, Any]) -> Dict[str, str]:
    """Keep cleaned answers for the requested uids only."""
    answers = {}
    for uid in uids:
        answer = clean_answer(parsed.get(uid))
        if answer is not None:
            answers[uid] = answer
    return answers
