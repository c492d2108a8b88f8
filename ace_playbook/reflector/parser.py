# ace_playbook/reflector/parser.py
import json
import logging
from typing import Any

from ace_playbook.core.merge import parse_operations
from ace_playbook.core.schema import CuratorOutput, ReflectorOutput
from ace_playbook.core.usage import parse_bullet_tags

logger = logging.getLogger(__name__)


class ModelOutputParseError(Exception):
    """Raised when model output contains no usable JSON object."""

    pass


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        end_idx = len(lines)
        for i in range(len(lines) - 1, 0, -1):
            if lines[i].strip() == "```":
                end_idx = i
                break
        cleaned = "\n".join(lines[1:end_idx])
    return cleaned.strip()


def load_json_object(text: str) -> dict[str, Any]:
    """Extract a JSON object from raw model output.

    Tries, in order: the text with markdown fencing removed, then the span from
    the first ``{`` to the last ``}`` (models like to wrap JSON in prose).

    Raises:
        ModelOutputParseError: If no JSON object can be decoded
    """
    cleaned = _strip_fences(text or "")
    candidates = [cleaned]
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if 0 <= start < end:
        candidates.append(cleaned[start : end + 1])

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(data, dict):
            return data
        last_error = ValueError("JSON must be an object")
    raise ModelOutputParseError(f"Invalid JSON: {last_error}")


def parse_json_from_model(text: str) -> dict[str, Any] | None:
    """Tolerant variant of load_json_object: None instead of raising."""
    try:
        return load_json_object(text)
    except ModelOutputParseError as e:
        logger.warning(f"Could not parse model output: {e}")
        return None


def parse_curator_output(text: str) -> CuratorOutput:
    """Curator reply -> validated ADD operations. Unparseable output yields none."""
    data = parse_json_from_model(text) or {}
    notes = data.get("notes")
    return CuratorOutput(
        notes=notes if isinstance(notes, str) else "",
        operations=parse_operations(data.get("operations")),
    )


def parse_reflector_output(text: str) -> ReflectorOutput:
    """Reflector reply -> feedback tags and memory candidates."""
    data = parse_json_from_model(text) or {}
    raw_tags = data.get("bullet_tags")
    if raw_tags is None:
        raw_tags = data.get("bulletTags")
    raw_candidates = data.get("memory_candidates")
    if raw_candidates is None:
        raw_candidates = data.get("memoryCandidates")
    # Candidates carry no type; they are always additions
    if isinstance(raw_candidates, list):
        raw_candidates = [
            {"type": "ADD", **c} if isinstance(c, dict) else c for c in raw_candidates
        ]
    notes = data.get("notes")
    return ReflectorOutput(
        notes=notes if isinstance(notes, str) else "",
        bullet_tags=parse_bullet_tags(raw_tags),
        memory_candidates=parse_operations(raw_candidates),
    )
