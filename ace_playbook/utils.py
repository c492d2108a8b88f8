import json
import logging
import math
import re
from datetime import UTC, datetime
from typing import Any

BULLET_ID_PREFIX = "ace"

_BULLET_ID_RE = re.compile(rf"^{BULLET_ID_PREFIX}-(\d+)$")
_CJK_RE = re.compile(r"[\u4e00-\u9fff\u3000-\u303f\uff00-\uffef]")
_WHITESPACE_RE = re.compile(r"\s+")


def now_iso() -> str:
    """UTC timestamp with fixed microsecond precision, so string order is time order"""
    return datetime.now(UTC).isoformat(timespec="microseconds")


def generate_bullet_id(counter: int) -> str:
    """Generate stable bullet ID in format: ace-{counter:05d}"""
    return f"{BULLET_ID_PREFIX}-{counter:05d}"


def parse_bullet_seq(bullet_id: str) -> int | None:
    """Return the numeric suffix of an ace-NNNNN id, or None for foreign ids"""
    match = _BULLET_ID_RE.match(bullet_id or "")
    return int(match.group(1)) if match else None


def normalize_for_dedupe(text: str | None) -> str:
    """Collapse whitespace and case-fold, so trivially different phrasings compare equal"""
    return _WHITESPACE_RE.sub(" ", (text or "").replace("\r\n", "\n")).strip().casefold()


def count_non_whitespace(text: str | None) -> int:
    return len(_WHITESPACE_RE.sub("", text or ""))


def estimate_tokens(text: str | None) -> int:
    """Approximate token cost: CJK characters at 1.5 chars/token, everything else at 4.

    Monotonic: appending text never lowers the estimate.
    """
    if not text:
        return 0
    cjk_chars = len(_CJK_RE.findall(text))
    other_chars = len(text) - cjk_chars
    return math.ceil(cjk_chars / 1.5 + other_chars / 4)


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure structured JSON logging"""
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        class JSONFormatter(logging.Formatter):
            def format(self, record: logging.LogRecord) -> str:
                log_obj = {
                    "timestamp": datetime.now(UTC).isoformat(),
                    "level": record.levelname,
                    "logger": record.name,
                    "message": record.getMessage(),
                }
                if record.exc_info:
                    log_obj["exception"] = self.formatException(record.exc_info)
                event_data = getattr(record, "event_data", None)
                if isinstance(event_data, dict):
                    log_obj.update(event_data)
                return json.dumps(log_obj, ensure_ascii=False, default=str)

        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    logging.root.handlers = []
    logging.root.addHandler(handler)
    logging.root.setLevel(log_level)


def log_event(event_type: str, data: dict[str, Any]) -> None:
    """Log structured event with metadata"""
    logger = logging.getLogger("ace_playbook.events")
    event_data = {"event_type": event_type, **data}
    logger.info(event_type, extra={"event_data": event_data})
