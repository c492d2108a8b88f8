# ace_playbook/reflector/__init__.py
from .parser import (
    ModelOutputParseError,
    load_json_object,
    parse_curator_output,
    parse_json_from_model,
    parse_reflector_output,
)

__all__ = [
    "ModelOutputParseError",
    "load_json_object",
    "parse_curator_output",
    "parse_json_from_model",
    "parse_reflector_output",
]
