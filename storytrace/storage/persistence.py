"""Durable storage for the trace service.

Two independent write paths share one data directory:

- ``events.ndjson``: append-only raw log, one JSON object per line
- ``stats.json``: full aggregate snapshot, replaced atomically
"""
import asyncio
import os
import stat
import tempfile
from pathlib import Path
from typing import Sequence

import orjson
import structlog
from pydantic import ValidationError

from ..errors import TraceWriteFailed
from ..event_models import TraceEvent
from ..stats.models import StatsSnapshot

log = structlog.get_logger()

EVENTS_FILENAME = "events.ndjson"
STATS_FILENAME = "stats.json"

# Read once: os.umask can only be queried by setting it
_UMASK = os.umask(0)
os.umask(_UMASK)


class SnapshotPersistence:
    """File-backed persistence for events and the stats snapshot."""

    def __init__(self, data_dir: str | os.PathLike):
        self.data_dir = Path(data_dir).resolve()
        self.events_file = self.data_dir / EVENTS_FILENAME
        self.stats_file = self.data_dir / STATS_FILENAME

    async def load(self) -> StatsSnapshot:
        """
        Load the persisted snapshot.

        Missing, unreadable or malformed files yield a fresh snapshot. The
        failure is logged and never raised.

        Returns:
            The loaded snapshot, or an empty one
        """
        return await asyncio.to_thread(self._load_sync)

    def _load_sync(self) -> StatsSnapshot:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.warning("stats.data_dir_unavailable", path=str(self.data_dir), error=str(e))

        try:
            raw = self.stats_file.read_bytes()
        except FileNotFoundError:
            log.info("stats.fresh", path=str(self.stats_file))
            return StatsSnapshot()
        except OSError as e:
            log.warning("stats.load_failed", path=str(self.stats_file), error=str(e))
            return StatsSnapshot()

        try:
            parsed = orjson.loads(raw)
            if not isinstance(parsed, dict):
                raise ValueError(f"snapshot root is {type(parsed).__name__}, expected object")
            return StatsSnapshot.model_validate(parsed)
        except (orjson.JSONDecodeError, ValidationError, ValueError) as e:
            log.warning("stats.load_failed", path=str(self.stats_file), error=str(e))
            return StatsSnapshot()

    async def append_events(self, events: Sequence[TraceEvent]) -> None:
        """
        Append events to the raw log, one JSON object per line.

        Raises:
            TraceWriteFailed: If serialization or the append fails
        """
        if not events:
            return
        try:
            payload = b"".join(
                orjson.dumps(event.model_dump(mode="json", by_alias=True)) + b"\n"
                for event in events
            )
        except orjson.JSONEncodeError as e:
            log.error("events.serialize_failed", error=str(e))
            raise TraceWriteFailed(str(e)) from e

        try:
            await asyncio.to_thread(self._append_sync, payload)
        except OSError as e:
            log.error("events.append_failed", path=str(self.events_file), error=str(e))
            raise TraceWriteFailed(str(e)) from e

    def _append_sync(self, payload: bytes) -> None:
        with open(self.events_file, "ab") as f:
            f.write(payload)

    async def save_snapshot(self, snapshot: StatsSnapshot) -> None:
        """
        Replace ``stats.json`` with the given snapshot.

        The snapshot is serialized before the first await, so the bytes on
        disk always reflect one consistent in-memory state.

        Raises:
            TraceWriteFailed: If serialization, the write or the rename fails
        """
        try:
            content = orjson.dumps(
                snapshot.model_dump(mode="json", by_alias=True),
                option=orjson.OPT_INDENT_2,
            )
        except orjson.JSONEncodeError as e:
            log.error("stats.serialize_failed", error=str(e))
            raise TraceWriteFailed(str(e)) from e

        try:
            await asyncio.to_thread(self._atomic_write, content)
        except OSError as e:
            log.error("stats.persist_failed", path=str(self.stats_file), error=str(e))
            raise TraceWriteFailed(str(e)) from e

    def _atomic_write(self, content: bytes) -> None:
        # Keep the existing file's permissions; a first write gets the
        # umask default rather than NamedTemporaryFile's 0600
        try:
            mode = stat.S_IMODE(self.stats_file.stat().st_mode)
        except OSError:
            mode = 0o666 & ~_UMASK

        # Unique temp names keep concurrent writers off each other's file
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=self.data_dir,
            prefix=f".{STATS_FILENAME}.",
            suffix=".tmp",
            delete=False,
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            try:
                tmp_file.write(content)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            except OSError:
                tmp_file.close()
                tmp_path.unlink(missing_ok=True)
                raise
        try:
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, self.stats_file)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
