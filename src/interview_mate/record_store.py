"""Persistence for interview records.

Every write is appended to a JSONL journal and mirrored into Redis when a
Redis URL is configured. Reads prefer Redis and fall back to replaying the
journal, which stays authoritative.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, cast

import redis
from redis import Redis
from redis.exceptions import RedisError

from .auth import Principal
from .models import InterviewRecord

logger = logging.getLogger(__name__)

INDEX_KEY = "records:index"
OWNER_KEY = "records:owner"

_UPSERT = "upsert"
_DELETE = "delete"


def record_key(record_id: str) -> str:
    return f"record:{record_id}"


class RecordStoreError(RuntimeError):
    """Raised when a record cannot be persisted or removed."""


@dataclass(slots=True)
class _StoredRecord:
    record: InterviewRecord
    owner: Optional[str]


class RecordRepository:
    """Upsert-by-id store with an owner association fixed at first insert."""

    def __init__(self, archive_path: Path, redis_url: Optional[str]) -> None:
        self._archive_path = Path(archive_path)
        self._archive_path.parent.mkdir(parents=True, exist_ok=True)
        self._redis_url = redis_url
        self._redis: Optional[Redis] = None
        self._journal_cache: Optional[Dict[str, _StoredRecord]] = None
        self._journal_signature: Optional[Tuple[int, int]] = None

    @property
    def archive_path(self) -> Path:
        """Return the filesystem path for the JSONL journal."""

        return self._archive_path

    def _get_redis(self) -> Optional[Redis]:
        if not self._redis_url:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(  # type: ignore[call-overload]
                    self._redis_url,
                    decode_responses=True,
                )
            except RedisError as exc:  # pragma: no cover - network guarded
                logger.warning("Redis connection failed: %s", exc)
                self._redis = None
        return self._redis

    # Writes -----------------------------------------------------------

    def save(self, record: InterviewRecord, principal: Principal) -> None:
        """Insert or replace ``record``; the first writer becomes its owner."""

        owner = self.owner_of(record.id) or principal.email
        payload = record.to_dict()
        self._append(
            {
                "op": _UPSERT,
                "ts": _timestamp(),
                "id": record.id,
                "owner": owner,
                "by": principal.email,
                "record": payload,
            }
        )
        logger.info("Saved record %s for %s", record.id, owner)

        client = self._get_redis()
        if not client:
            return
        key = record_key(record.id)
        try:
            client.set(key, json.dumps(payload, ensure_ascii=False))
            client.zadd(INDEX_KEY, {record.id: record.created_at})
            client.hsetnx(OWNER_KEY, record.id, owner)
        except RedisError as exc:  # pragma: no cover - best effort
            logger.warning("Redis persistence failed for %s: %s", key, exc)

    def delete(self, record_id: str, principal: Optional[Principal] = None) -> None:
        if self.get(record_id) is None:
            raise RecordStoreError(f"Record '{record_id}' not found.")
        self._append(
            {
                "op": _DELETE,
                "ts": _timestamp(),
                "id": record_id,
                "by": principal.email if principal else None,
            }
        )
        logger.info("Deleted record %s", record_id)

        client = self._get_redis()
        if not client:
            return
        key = record_key(record_id)
        try:
            client.delete(key)
            client.zrem(INDEX_KEY, record_id)
            client.hdel(OWNER_KEY, record_id)
        except RedisError as exc:  # pragma: no cover - best effort
            logger.warning("Redis delete failed for %s: %s", key, exc)

    def _append(self, entry: Dict[str, Any]) -> None:
        try:
            with self._archive_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise RecordStoreError(
                f"Unable to write record journal {self._archive_path}: {exc}"
            ) from exc
        finally:
            self.refresh()

    # Reads ------------------------------------------------------------

    def list(self, principal: Principal) -> List[InterviewRecord]:
        """Records visible to ``principal``, newest first."""

        stored = self._load_all()
        visible = [
            item.record
            for item in stored
            if principal.privileged or item.owner == principal.email
        ]
        visible.sort(key=lambda record: record.created_at, reverse=True)
        return visible

    def get(self, record_id: str) -> Optional[InterviewRecord]:
        client = self._get_redis()
        if client:
            try:
                record = self._fetch_from_redis(client, record_id)
            except RedisError as exc:
                logger.warning("Failed to read %s from Redis: %s", record_id, exc)
            else:
                if record is not None:
                    return record
        stored = self._load_journal().get(record_id)
        return stored.record if stored else None

    def owner_of(self, record_id: str) -> Optional[str]:
        client = self._get_redis()
        if client:
            try:
                owner = client.hget(OWNER_KEY, record_id)
            except RedisError as exc:
                logger.warning("Failed to read owner of %s from Redis: %s", record_id, exc)
            else:
                if owner:
                    return str(owner)
        stored = self._load_journal().get(record_id)
        return stored.owner if stored else None

    def can_access(self, record_id: str, principal: Principal) -> bool:
        return principal.privileged or self.owner_of(record_id) == principal.email

    def refresh(self) -> None:
        """Drop the cached journal replay so the next read reloads it."""

        self._journal_cache = None
        self._journal_signature = None

    def _load_all(self) -> List[_StoredRecord]:
        client = self._get_redis()
        if client:
            try:
                return list(self._iter_redis_records(client))
            except RedisError as exc:
                logger.warning("Failed to list Redis records, using journal: %s", exc)
        return list(self._load_journal().values())

    def _iter_redis_records(self, client: Redis) -> Iterable[_StoredRecord]:
        ids: List[str] = client.zrevrange(INDEX_KEY, 0, -1)  # type: ignore[assignment]
        owners: Dict[str, str] = client.hgetall(OWNER_KEY)  # type: ignore[assignment]
        for record_id in ids:
            record = self._fetch_from_redis(client, record_id)
            if record is None:
                continue
            yield _StoredRecord(record=record, owner=owners.get(record_id))

    def _fetch_from_redis(self, client: Redis, record_id: str) -> Optional[InterviewRecord]:
        raw_value = client.get(record_key(record_id))
        if not raw_value:
            return None
        if isinstance(raw_value, bytes):
            raw_value = raw_value.decode("utf-8")
        try:
            payload = json.loads(str(raw_value))
        except json.JSONDecodeError as exc:
            logger.warning("Corrupt Redis payload for %s: %s", record_id, exc)
            return None
        if not isinstance(payload, dict):
            return None
        return InterviewRecord.from_dict(cast(Dict[str, Any], payload))

    def _load_journal(self) -> Dict[str, _StoredRecord]:
        path = self._archive_path
        signature: Optional[Tuple[int, int]] = None
        if path.exists():
            try:
                stat = path.stat()
                signature = (stat.st_mtime_ns, stat.st_size)
            except OSError:
                signature = None
        if (
            self._journal_cache is not None
            and signature is not None
            and self._journal_signature == signature
        ):
            return self._journal_cache
        if not path.exists():
            self._journal_cache = {}
            self._journal_signature = None
            return self._journal_cache
        try:
            with path.open("r", encoding="utf-8") as handle:
                records = self._replay(handle)
        except OSError as exc:
            raise RecordStoreError(f"Unable to read record journal {path}: {exc}") from exc
        self._journal_cache = records
        self._journal_signature = signature
        return records

    @staticmethod
    def _replay(handle: Iterable[str]) -> Dict[str, _StoredRecord]:
        records: Dict[str, _StoredRecord] = {}
        for raw_line in handle:
            text = raw_line.strip()
            if not text:
                continue
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:  # pragma: no cover - invalid row
                logger.debug("Skipping malformed journal row: %s", text)
                continue
            if not isinstance(parsed, dict):
                continue
            entry = cast(Dict[str, Any], parsed)
            record_id = entry.get("id")
            if not isinstance(record_id, str):
                continue
            operation = entry.get("op")
            if operation == _DELETE:
                records.pop(record_id, None)
                continue
            if operation != _UPSERT:
                continue
            payload = entry.get("record")
            if not isinstance(payload, dict):
                continue
            previous = records.get(record_id)
            owner = previous.owner if previous and previous.owner else entry.get("owner")
            try:
                record = InterviewRecord.from_dict(cast(Dict[str, Any], payload))
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Skipping unreadable record %s: %s", record_id, exc)
                continue
            records[record_id] = _StoredRecord(
                record=record,
                owner=str(owner) if owner else None,
            )
        return records


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
