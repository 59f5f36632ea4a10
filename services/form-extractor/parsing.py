"""Best-effort JSON recovery from free-text model output.

Handles: direct JSON, markdown fences, preamble/trailing prose,
<think>...</think> blocks and over-escaped quotes. Anything else is an
ExtractionParseError.
"""

import json
import logging
import re

from pydantic import ValidationError as PydanticValidationError

from errors import ExtractionParseError
from models import RawExtraction

logger = logging.getLogger(__name__)

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


def _loads_dict(text: str) -> dict | None:
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        return None
    return result if isinstance(result, dict) else None


def _unescape(text: str) -> str:
    return text.replace('\\"', '"').replace("\\'", "'").replace("\\\\", "\\")


def try_parse_json(raw: str) -> dict | None:
    """Try to extract a JSON object from the model output."""
    if not raw:
        return None

    cleaned = _THINK_RE.sub("", raw).strip()

    result = _loads_dict(cleaned)
    if result is not None:
        return result

    match = _FENCE_RE.search(cleaned)
    if match:
        cleaned = match.group(1).strip()
        result = _loads_dict(cleaned)
        if result is not None:
            return result

    # Outermost { ... } block
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        logger.warning("No JSON object in model response (%d chars)", len(raw))
        return None

    candidate = cleaned[start:end + 1]
    result = _loads_dict(candidate)
    if result is None:
        result = _loads_dict(_unescape(candidate))

    if result is None:
        logger.warning("Could not parse JSON from model response (%d chars)", len(raw))
    return result


def parse_extraction(raw: str) -> RawExtraction:
    """Parse model output into the normalized extraction payload."""
    parsed = try_parse_json(raw)
    if parsed is None:
        raise ExtractionParseError("Could not parse form data from AI response")

    try:
        return RawExtraction.model_validate(parsed)
    except PydanticValidationError as e:
        raise ExtractionParseError(f"AI response has an unexpected shape: {e.error_count()} error(s)") from e
