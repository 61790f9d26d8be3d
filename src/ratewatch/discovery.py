import asyncio
import enum
import json
import os
from datetime import datetime, timezone
from typing import Protocol, Sequence

import structlog

from ratewatch.errors import SessionDiscoveryError
from ratewatch.models import SessionRecord

logger = structlog.get_logger()

# sessions started from an interactive front end, as opposed
# to headless `exec` runs or sub-agents
INTERACTIVE_SESSION_SOURCES: "tuple[str, ...]" = ("cli", "vscode")

SESSIONS_SUBDIR = "sessions"
ROLLOUT_PREFIX = "rollout-"
ROLLOUT_SUFFIX = ".jsonl"


class SessionSortKey(enum.Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class SessionDiscovery(Protocol):
    """
    SessionDiscovery locates recorded sessions under an agent
    home directory, newest first.
    """

    async def list_sessions(
        self,
        codex_home: "str",
        limit: "int",
        sort_key: "SessionSortKey",
        sources: "Sequence[str]",
        providers: "Sequence[str] | None",
        default_provider: "str",
    ) -> "list[SessionRecord]": ...


def _parse_timestamp(value: "object") -> "datetime | None":
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def read_session_meta(path: "str") -> "dict[str, object] | None":
    """
    returns the session_meta payload from the first line of a
    rollout file, or None when it is missing or unreadable.
    """
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            first = handle.readline()
    except OSError:
        logger.debug("session_meta_unreadable", path=path)
        return None

    try:
        record = json.loads(first)
    except (ValueError, RecursionError):
        return None

    if not isinstance(record, dict) or record.get("type") != "session_meta":
        return None
    payload = record.get("payload")
    return payload if isinstance(payload, dict) else None


class RolloutSessionDiscovery:
    """
    RolloutSessionDiscovery implements the SessionDiscovery protocol
    over the on-disk layout <codex_home>/sessions/YYYY/MM/DD/rollout-*.jsonl.
    Each file opens with a session_meta record carrying the id,
    start timestamp, source and model provider of the session.
    """

    async def list_sessions(
        self,
        codex_home: "str",
        limit: "int",
        sort_key: "SessionSortKey",
        sources: "Sequence[str]",
        providers: "Sequence[str] | None",
        default_provider: "str",
    ) -> "list[SessionRecord]":
        return await asyncio.to_thread(
            self._list_sessions,
            codex_home,
            limit,
            sort_key,
            sources,
            providers,
            default_provider,
        )

    def _list_sessions(
        self,
        codex_home: "str",
        limit: "int",
        sort_key: "SessionSortKey",
        sources: "Sequence[str]",
        providers: "Sequence[str] | None",
        default_provider: "str",
    ) -> "list[SessionRecord]":
        root = os.path.join(codex_home, SESSIONS_SUBDIR)
        if not os.path.isdir(root):
            logger.debug("sessions_dir_missing", path=root)
            return []

        candidates = self._collect_candidates(root)
        if sort_key is SessionSortKey.CREATED_AT:
            candidates = self._with_creation_order(candidates)
        candidates.sort(key=lambda c: c[0], reverse=True)

        records: "list[SessionRecord]" = []
        for _, path, mtime in candidates:
            if len(records) >= limit:
                break

            meta = read_session_meta(path)
            if meta is None:
                continue

            # an empty source filter accepts every session
            source = meta.get("source")
            if sources and source not in sources:
                continue

            model_provider = meta.get("model_provider")
            if not isinstance(model_provider, str) or not model_provider:
                model_provider = default_provider
            if providers is not None and model_provider not in providers:
                continue

            records.append(
                SessionRecord(
                    id=str(meta.get("id") or os.path.basename(path)),
                    path=path,
                    created_at=_parse_timestamp(meta.get("timestamp")),
                    updated_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
                    source=source if isinstance(source, str) else None,
                    model_provider=model_provider,
                )
            )

        logger.debug("sessions_listed", root=root, count=len(records))
        return records

    @staticmethod
    def _collect_candidates(root: "str") -> "list[tuple[float, str, float]]":
        """
        walks the sessions tree and returns (sort_value, path, mtime)
        tuples, keyed by modification time.
        """
        candidates: "list[tuple[float, str, float]]" = []

        def _raise(err: "OSError") -> "None":
            raise err

        try:
            for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
                for name in filenames:
                    if not (
                        name.startswith(ROLLOUT_PREFIX)
                        and name.endswith(ROLLOUT_SUFFIX)
                    ):
                        continue
                    path = os.path.join(dirpath, name)
                    try:
                        mtime = os.path.getmtime(path)
                    except OSError:
                        # file removed between listing and stat
                        continue
                    candidates.append((mtime, path, mtime))
        except OSError as e:
            raise SessionDiscoveryError(f"cannot list sessions in {root}: {e}") from e

        return candidates

    @staticmethod
    def _with_creation_order(
        candidates: "list[tuple[float, str, float]]",
    ) -> "list[tuple[float, str, float]]":
        """
        re-keys candidates by the session_meta start timestamp,
        falling back to mtime when the meta carries none.
        """
        keyed: "list[tuple[float, str, float]]" = []
        for mtime, path, _ in candidates:
            meta = read_session_meta(path)
            created = _parse_timestamp(meta.get("timestamp")) if meta else None
            keyed.append(
                (created.timestamp() if created else mtime, path, mtime)
            )
        return keyed
