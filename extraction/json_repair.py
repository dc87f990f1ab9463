"""Locate and repair JSON objects embedded in LLM responses."""
import json
from typing import Any, Dict, Optional

from utils.errors import ExtractionError

HEX_DIGITS = "0123456789abcdefABCDEF"
SIMPLE_ESCAPES = '"\\/bfnrt'


def find_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` span in text.

    Braces inside string literals are ignored. Backslashes skip the next
    character while inside a string, valid escape or not.

    Args:
        text: Raw model response

    Returns:
        The JSON object text, or None if no balanced object exists
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    i = start
    while i < len(text):
        char = text[i]
        if in_string:
            if char == "\\":
                i += 2
                continue
            if char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
        i += 1

    return None


def _is_hex(value: str, length: int) -> bool:
    return len(value) == length and all(c in HEX_DIGITS for c in value)


def sanitize_json_escapes(text: str) -> str:
    """Rewrite escape sequences that ``json.loads`` would reject.

    ``\\xHH`` becomes ``\\u00HH``. A backslash that does not start a valid
    JSON escape is doubled so it survives as a literal backslash. Valid
    escapes are left untouched.
    """
    out = []
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        if char != "\\":
            out.append(char)
            i += 1
            continue

        nxt = text[i + 1] if i + 1 < n else ""
        if nxt and nxt in SIMPLE_ESCAPES:
            out.append(text[i:i + 2])
            i += 2
        elif nxt == "u" and _is_hex(text[i + 2:i + 6], 4):
            out.append(text[i:i + 6])
            i += 6
        elif nxt == "x" and _is_hex(text[i + 2:i + 4], 2):
            out.append("\\u00" + text[i + 2:i + 4])
            i += 4
        else:
            out.append("\\\\")
            i += 1

    return "".join(out)


def parse_llm_json(response: str) -> Dict[str, Any]:
    """Extract, repair and parse the JSON object in an LLM response.

    Args:
        response: Raw model response

    Returns:
        Parsed JSON object

    Raises:
        ExtractionError: If no object is found or it cannot be parsed
    """
    span = find_json_object(response)
    if span is None:
        raise ExtractionError("No JSON found in response")

    try:
        return json.loads(sanitize_json_escapes(span))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Could not parse JSON from response: {e}") from e
