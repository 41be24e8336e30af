"""
Diagnosis history - append-only list of completed workflows.

Backends:
- Redis (REDIS_URL set): RPUSH + LTRIM in one MULTI transaction, so
  concurrent writers never lose an append
- In-memory fallback: list guarded by a lock, single process only

Entries are JSON documents; readers skip entries that no longer parse.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

import redis
from pydantic import ValidationError

from app.config import HISTORY_KEY, HISTORY_MAX_ENTRIES, REDIS_URL
from app.models import Diagnosis, HistoryEntry, Treatment

logger = logging.getLogger(__name__)


def init_redis(url: Optional[str] = REDIS_URL) -> Optional[redis.Redis]:
    """Connect to Redis, or return None to use the in-memory list"""
    if not url:
        logger.warning("⚠️ Redis not configured - history kept in memory")
        return None

    try:
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
        # Test connection
        client.ping()
        logger.info("✓ Redis initialized for history")
        return client
    except redis.RedisError as e:
        logger.error(f"Redis connection failed, history kept in memory: {e}")
        return None


class HistoryStore:
    def __init__(
        self,
        key: str = HISTORY_KEY,
        max_entries: int = HISTORY_MAX_ENTRIES,
        redis_client: Optional[redis.Redis] = None,
    ):
        if max_entries < 1:
            raise ValueError(f"History max_entries must be at least 1 (got {max_entries})")
        self.key = key
        self.max_entries = max_entries
        self._redis = redis_client
        self._lock = threading.Lock()
        self._entries: List[str] = []

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def append(self, entry: HistoryEntry) -> bool:
        """Append one entry. Best effort: returns False instead of raising"""
        document = entry.model_dump_json(by_alias=True)

        if self._redis is None:
            with self._lock:
                self._entries.append(document)
                if len(self._entries) > self.max_entries:
                    del self._entries[:-self.max_entries]
            return True

        try:
            with self._redis.pipeline(transaction=True) as pipe:
                pipe.rpush(self.key, document)
                pipe.ltrim(self.key, -self.max_entries, -1)
                pipe.execute()
            return True
        except redis.RedisError as e:
            logger.error(f"History append failed [{self.key}]: {e}")
            return False

    def record(self, image: Optional[str], diagnosis: Diagnosis, treatment: Treatment) -> bool:
        entry = HistoryEntry(
            timestamp=datetime.now(timezone.utc),
            image=image,
            diagnosis=diagnosis.model_dump(by_alias=True),
            treatment=treatment.model_dump(by_alias=True, mode="json"),
        )
        return self.append(entry)

    def list_entries(self, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Newest first; entries that fail to parse are skipped"""
        if self._redis is None:
            with self._lock:
                documents = list(self._entries)
        else:
            try:
                documents = self._redis.lrange(self.key, 0, -1)
            except redis.RedisError as e:
                logger.error(f"History read failed [{self.key}]: {e}")
                return []

        entries = []
        for document in reversed(documents):
            try:
                entries.append(HistoryEntry.model_validate_json(document))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable history entry: {e.error_count()} error(s)")
                continue
            if limit is not None and len(entries) >= limit:
                break
        return entries

    def clear(self) -> None:
        if self._redis is None:
            with self._lock:
                self._entries.clear()
            return

        try:
            self._redis.delete(self.key)
        except redis.RedisError as e:
            logger.error(f"History clear failed [{self.key}]: {e}")

    def stats(self) -> dict:
        if self._redis is None:
            with self._lock:
                count = len(self._entries)
        else:
            try:
                count = self._redis.llen(self.key)
            except redis.RedisError as e:
                return {"backend": self.backend, "status": "error", "error": str(e)}
        return {"backend": self.backend, "entries": count, "max_entries": self.max_entries}
