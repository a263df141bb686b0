"""Structured log shipping to a Redis LIST.

Each record becomes one JSON entry:
    {"level": "info", "msg": "register success", "time": "2026-01-02T03:04:05Z",
     "meta": {"user_id": "42", "email": "a@b.com"}}

LPUSH keeps the newest entry at index 0, LTRIM caps the list at `max_entries`,
and EXPIRE keeps an idle list from living forever. The handler runs behind a
QueueHandler/QueueListener pair, so request handling only ever enqueues.

Usage:
    logger.info("cache HIT", extra=log_meta(key=key, user_id=user_id))
"""

import json
import logging
import queue
from datetime import datetime, timedelta, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any

import redis

from src.ua_common.context import CURRENT_USER_ID
from src.ua_common.datetime_utils import to_rfc3339

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


def log_meta(**fields: Any) -> dict[str, dict[str, str]]:
    """Build the `extra` kwarg carrying string-valued metadata."""
    return {"meta": {k: str(v) for k, v in fields.items()}}


class ContextFilter(logging.Filter):
    """Guarantee `record.meta` exists and stamp the authenticated user id."""

    def filter(self, record: logging.LogRecord) -> bool:
        meta = dict(getattr(record, "meta", None) or {})
        uid = CURRENT_USER_ID.get()
        if uid is not None:
            meta.setdefault("auth_uid", str(uid))
        record.meta = meta
        return True


class RedisListHandler(logging.Handler):
    def __init__(
        self,
        client: redis.Redis,
        key: str,
        max_entries: int = 1000,
        retention: timedelta | None = None,
        level: int = logging.INFO,
    ) -> None:
        super().__init__(level)
        self._client = client
        self._key = key
        self._max_entries = max_entries
        self._retention = retention

    def format_entry(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
            "msg": record.getMessage(),
            "time": to_rfc3339(datetime.fromtimestamp(record.created, tz=timezone.utc)),
        }
        meta = getattr(record, "meta", None)
        if meta:
            entry["meta"] = meta
        return json.dumps(entry)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            payload = self.format_entry(record)
            pipe = self._client.pipeline(transaction=False)
            pipe.lpush(self._key, payload)
            pipe.ltrim(self._key, 0, self._max_entries - 1)
            if self._retention is not None and self._retention.total_seconds() > 0:
                pipe.expire(self._key, self._retention)
            pipe.execute()
        except Exception:
            self.handleError(record)


def start_redis_logging(
    redis_url: str,
    key: str,
    max_entries: int,
    retention: timedelta,
    logger: logging.Logger | None = None,
) -> QueueListener:
    """Attach a non-blocking Redis LIST handler to `logger` (root by default).

    The caller owns the returned listener and must call `.stop()` on shutdown.
    """
    target = logger or logging.getLogger()
    client = redis.Redis.from_url(redis_url, socket_connect_timeout=3, socket_timeout=2)
    redis_handler = RedisListHandler(client, key, max_entries, retention)

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(-1)
    queue_handler = QueueHandler(log_queue)
    queue_handler.addFilter(ContextFilter())
    target.addHandler(queue_handler)

    listener = QueueListener(log_queue, redis_handler, respect_handler_level=True)
    listener.start()
    return listener
