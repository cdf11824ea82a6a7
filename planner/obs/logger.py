"""Structured JSON logging to stdout.

One compact JSON object per event, picked up by whatever collects stdout.
Traveler messages never reach the log: free-text fields are replaced by
their length before serialisation.
"""

from typing import Any, Dict
from datetime import datetime, timezone
import json

from planner.obs.context import request_id_var, session_id_var

# Fields that may carry what the traveler typed or what was shown back to them
_TEXT_FIELDS = ("text", "utterance", "message", "reply")


def _short_id(value: Any) -> Any:
    if value is None:
        return None
    s = str(value)
    return s[:8] if s else None


def _scrub(fields: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in fields.items():
        if k in _TEXT_FIELDS:
            out[f"{k}_length"] = len(v) if isinstance(v, str) else None
        elif k == "session_id":
            out[k] = _short_id(v)
        else:
            out[k] = v
    return out


def log_event(event: str, **fields: Any) -> None:
    level = fields.pop("level", "INFO")
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
        "request_id": request_id_var.get(),
        "session_id": _short_id(session_id_var.get()),
    }
    payload.update(_scrub(fields))

    try:
        print(json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str))
    except (TypeError, ValueError):
        # Never let a bad field take the turn down with it
        print(json.dumps({"ts": payload["ts"], "level": "ERROR", "event": "log_encode_failed", "for": event}))
