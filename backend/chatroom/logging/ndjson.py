from __future__ import annotations

import json
import os
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

# Chat bodies never reach the log; anything string-like is clipped to this.
MAX_VALUE_CHARS = 200

_lock = threading.Lock()


def log_dir() -> Path:
    p = os.environ.get("CHATROOM_LOG_DIR")
    if p:
        return Path(p)
    # backend/chatroom/logging/ndjson.py -> backend/data/logs
    return Path(__file__).resolve().parents[2] / "data" / "logs"


def _retention_days() -> int:
    try:
        return int(os.environ.get("CHATROOM_LOG_RETENTION_DAYS", "7"))
    except ValueError:
        return 7


def day_file(ts: Optional[float] = None) -> Path:
    """One file per local day: chatroom-YYYY-MM-DD.ndjson."""
    day = datetime.fromtimestamp(ts or time.time()).strftime("%Y-%m-%d")
    return log_dir() / f"chatroom-{day}.ndjson"


def _clip(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float)):
        return v
    if isinstance(v, dict):
        return {str(k): _clip(vv) for k, vv in v.items()}
    if isinstance(v, (list, tuple)):
        return [_clip(x) for x in v]
    s = v if isinstance(v, str) else str(v)
    if len(s) <= MAX_VALUE_CHARS:
        return s
    return s[:MAX_VALUE_CHARS] + "…"


def init_logging() -> None:
    """Create the log directory and drop day files past retention."""
    d = log_dir()
    cutoff = (datetime.now() - timedelta(days=_retention_days())).timestamp()
    with _lock:
        d.mkdir(parents=True, exist_ok=True)
        for p in d.glob("chatroom-*.ndjson"):
            try:
                if p.stat().st_mtime < cutoff:
                    p.unlink(missing_ok=True)
            except OSError:
                continue


def log_event(
    *,
    level: str,
    event: str,
    data: Optional[dict[str, Any]] = None,
    sessionId: Optional[str] = None,
) -> None:
    """
    Append one record: {"ts", "level", "event", "sessionId"?, "data"?}.

    `event` is dotted by layer (`ws.*` for transport, `session.*` for the
    room); `sessionId` ties a record to one connection. Never raises.
    """
    rec: dict[str, Any] = {"ts": int(time.time() * 1000), "level": level, "event": event}
    if sessionId:
        rec["sessionId"] = sessionId
    if data:
        rec["data"] = _clip(data)

    line = json.dumps(rec, ensure_ascii=False)
    with _lock:
        try:
            p = day_file()
            p.parent.mkdir(parents=True, exist_ok=True)
            with open(p, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError:
            pass
