from __future__ import annotations

import os
from pathlib import Path


DEFAULT_PORT = 8080
DEFAULT_HOST = "0.0.0.0"
DEFAULT_OUTBOX_SIZE = 256


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except Exception:
        return default


def backend_dir() -> Path:
    # backend/chatroom/config.py -> backend/
    return Path(__file__).resolve().parents[1]


def load_dotenvs() -> None:
    """
    Load environment variables from:
    - backend/.env
    - repo-root/.env
    """
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:  # noqa: BLE001
        return

    load_dotenv(backend_dir() / ".env")
    load_dotenv(backend_dir().parent / ".env")


def listen_port() -> int:
    port = _int_env("CHATROOM_PORT", DEFAULT_PORT)
    return port if 0 < port < 65536 else DEFAULT_PORT


def listen_host() -> str:
    return os.environ.get("CHATROOM_HOST", DEFAULT_HOST).strip() or DEFAULT_HOST


def outbox_size() -> int:
    # Per-connection outbound queue bound; frames beyond it are dropped.
    size = _int_env("CHATROOM_OUTBOX_SIZE", DEFAULT_OUTBOX_SIZE)
    return size if size > 0 else DEFAULT_OUTBOX_SIZE
