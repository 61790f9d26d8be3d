import json
import os
from typing import Any, Callable

import pytest


def token_count_line(
    total: "dict[str, Any] | None" = None,
    rate_limits: "dict[str, Any] | None" = None,
) -> "str":
    """
    builds one event_msg/token_count log line.
    """
    payload: "dict[str, Any]" = {"type": "token_count"}
    if total is not None:
        payload["info"] = {"total_token_usage": total}
    if rate_limits is not None:
        payload["rate_limits"] = rate_limits
    return json.dumps({"type": "event_msg", "payload": payload})


def session_meta_line(
    session_id: "str",
    timestamp: "str" = "2025-10-01T12:00:00Z",
    source: "Any" = "cli",
    model_provider: "str | None" = "openai",
) -> "str":
    payload: "dict[str, Any]" = {
        "id": session_id,
        "timestamp": timestamp,
        "cwd": "/work",
        "source": source,
    }
    if model_provider is not None:
        payload["model_provider"] = model_provider
    return json.dumps({"type": "session_meta", "payload": payload})


@pytest.fixture()
def codex_home(tmp_path: "Any") -> "str":
    """
    empty agent home directory.
    """
    home = tmp_path / "codex"
    home.mkdir()
    return str(home)


@pytest.fixture()
def write_session(codex_home: "str") -> "Callable[..., str]":
    """
    writes a rollout file under sessions/YYYY/MM/DD and returns its path.
    mtime sets the file's modification time so ordering is deterministic.
    """

    def _write(
        name: "str",
        lines: "list[str]",
        day: "str" = "2025/10/01",
        mtime: "float | None" = None,
    ) -> "str":
        directory = os.path.join(codex_home, "sessions", *day.split("/"))
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, f"rollout-{name}.jsonl")
        with open(path, "w", encoding="utf-8") as handle:
            for line in lines:
                handle.write(line + "\n")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _write
