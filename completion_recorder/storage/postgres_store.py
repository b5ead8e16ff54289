"""PostgreSQL-backed checkpoint store with merge-append upserts."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from functools import partial

import psycopg
from psycopg_pool import ConnectionPool, PoolTimeout

from completion_recorder.core.context import ConversationIdentity
from completion_recorder.core.errors import StoreConfigError, StoreUnavailableError
from completion_recorder.core.messages import BaseMessage, dump_messages_json
from completion_recorder.core.task_path import classify_task_path
from completion_recorder.observability.logging import log_event
from completion_recorder.observability.metrics import emit_counter
from completion_recorder.storage.gateway import MessageGateway
from completion_recorder.storage.workers import SHUTDOWN_DRAIN, SHUTDOWN_POLICIES, PersistenceWorkerPool
from completion_recorder.util.logger import logger


CHECKPOINT_TABLE = "ide_checkpoints"
EMPTY_BLOB = b"[]"

# jsonb rejects \u0000; an escaped backslash before "u0000" is literal text.
_NUL_ESCAPE = re.compile(rb"(?<!\\)((?:\\\\)*)\\u0000")


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


class PostgresMessageStore(MessageGateway):
    """Append-only checkpoint documents keyed by (thread_id, checkpoint_id).

    Construction opens a bounded pool and creates the schema; failures there
    raise ``StoreUnavailableError``. After that, ``append_messages`` hands the
    batch to a background writer and storage failures are only logged.
    """

    def __init__(
        self,
        *,
        dsn: str,
        schema: str = "public",
        max_connections: int = 5,
        acquire_timeout: float = 3.0,
        workers: int = 2,
        queue_size: int = 1000,
        shutdown_policy: str = SHUTDOWN_DRAIN,
        shutdown_timeout: float = 5.0,
    ) -> None:
        if not dsn.strip():
            raise StoreConfigError("postgres dsn is empty")
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", schema):
            raise StoreConfigError("postgres schema contains invalid characters")
        if shutdown_policy not in SHUTDOWN_POLICIES:
            raise StoreConfigError(f"unknown shutdown policy: {shutdown_policy}")

        self.dsn = dsn
        self.schema = schema
        self.table = f"{schema}.{CHECKPOINT_TABLE}"
        self.max_connections = max_connections
        self.acquire_timeout = acquire_timeout
        self.shutdown_policy = shutdown_policy
        self.shutdown_timeout = shutdown_timeout

        logger.info("connecting to postgres schema=%s", schema)
        self._pool = self._open_pool()
        try:
            self._init_db()
        except StoreUnavailableError:
            self._pool.close()
            raise
        log_event("checkpoint_store_ready", table=self.table, max_connections=max_connections)

        self._workers = PersistenceWorkerPool(
            workers=workers,
            queue_size=queue_size,
            name="completion-recorder-writer",
        )

    def _open_pool(self) -> ConnectionPool:
        pool = ConnectionPool(
            conninfo=self.dsn,
            min_size=1,
            max_size=self.max_connections,
            timeout=self.acquire_timeout,
            open=False,
            name="completion-recorder",
        )
        try:
            pool.open(wait=True, timeout=self.acquire_timeout)
        except (PoolTimeout, psycopg.Error) as exc:
            pool.close()
            logger.error("failed to connect to postgres: %s", exc)
            raise StoreUnavailableError(f"cannot connect to postgres: {exc}") from exc
        return pool

    def _init_db(self) -> None:
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"CREATE SCHEMA IF NOT EXISTS {self.schema}")
                    cur.execute(
                        f"""
                        CREATE TABLE IF NOT EXISTS {self.table} (
                          thread_id     TEXT NOT NULL,
                          prompt_id     TEXT NOT NULL,
                          session_id    TEXT NOT NULL,
                          checkpoint_ts TEXT NOT NULL DEFAULT '',
                          checkpoint_id TEXT NOT NULL,
                          blob          BYTEA NOT NULL,
                          task_path     TEXT NOT NULL DEFAULT '',
                          PRIMARY KEY (thread_id, checkpoint_id)
                        )
                        """
                    )
                    cur.execute(
                        f"""
                        CREATE INDEX IF NOT EXISTS {CHECKPOINT_TABLE}_thread_id_idx
                        ON {self.table} (thread_id)
                        """
                    )
                    cur.execute(
                        f"""
                        CREATE INDEX IF NOT EXISTS {CHECKPOINT_TABLE}_thread_id_checkpoint_id_idx
                        ON {self.table} (thread_id, checkpoint_id)
                        """
                    )
                conn.commit()
        except (PoolTimeout, psycopg.Error) as exc:
            logger.error("failed to initialize checkpoint schema: %s", exc)
            raise StoreUnavailableError(f"cannot initialize schema: {exc}") from exc
        logger.info("checkpoint schema initialized table=%s", self.table)

    def _serialize(self, messages: list[BaseMessage], identity: ConversationIdentity) -> bytes:
        try:
            blob = dump_messages_json(messages)
        except (TypeError, ValueError) as exc:
            logger.error(
                "failed to serialize batch thread_id=%s checkpoint_id=%s: %s",
                identity.thread_id,
                identity.checkpoint_id,
                exc,
            )
            emit_counter("recorder_serialization_failures", labels={"site": "batch"})
            return EMPTY_BLOB
        if b"\\u0000" not in blob:
            return blob
        blob, stripped = _NUL_ESCAPE.subn(rb"\1", blob)
        if stripped:
            logger.warning(
                "stripped %d NUL characters from batch thread_id=%s checkpoint_id=%s",
                stripped,
                identity.thread_id,
                identity.checkpoint_id,
            )
            emit_counter("recorder_serialization_failures", stripped, labels={"site": "nul"})
        return blob

    def _upsert_sql(self) -> str:
        return f"""
            INSERT INTO {self.table} AS cp
              (thread_id, prompt_id, session_id, checkpoint_ts, checkpoint_id, blob, task_path)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (thread_id, checkpoint_id)
            DO UPDATE SET
              blob = convert_to(
                (
                  COALESCE(convert_from(cp.blob, 'UTF8')::jsonb, '[]'::jsonb)
                  || convert_from(EXCLUDED.blob, 'UTF8')::jsonb
                )::text,
                'UTF8'
              ),
              checkpoint_ts = EXCLUDED.checkpoint_ts,
              prompt_id = EXCLUDED.prompt_id,
              session_id = EXCLUDED.session_id
            """

    def write_messages(self, messages: list[BaseMessage], identity: ConversationIdentity) -> bool:
        """Synchronously merge-append one batch. Returns False when the batch was dropped."""

        if not messages:
            return True
        blob = self._serialize(messages, identity)
        task_path = classify_task_path(messages)
        params = (
            identity.thread_id,
            identity.prompt_id,
            identity.session_id,
            _now_iso(),
            identity.checkpoint_id,
            blob,
            task_path,
        )
        try:
            with self._pool.connection(timeout=self.acquire_timeout) as conn:
                with conn.cursor() as cur:
                    cur.execute(self._upsert_sql(), params)
                conn.commit()
        except PoolTimeout as exc:
            logger.error(
                "postgres connection unavailable, dropping batch thread_id=%s checkpoint_id=%s: %s",
                identity.thread_id,
                identity.checkpoint_id,
                exc,
            )
            emit_counter("recorder_batches_dropped", labels={"reason": "pool_timeout"})
            return False
        except psycopg.Error as exc:
            logger.error(
                "checkpoint upsert failed, dropping batch thread_id=%s checkpoint_id=%s: %s",
                identity.thread_id,
                identity.checkpoint_id,
                exc,
            )
            emit_counter("recorder_batches_dropped", labels={"reason": "query_error"})
            return False

        logger.debug(
            "checkpoint batch written thread_id=%s checkpoint_id=%s size=%d task_path=%s",
            identity.thread_id,
            identity.checkpoint_id,
            len(messages),
            task_path,
        )
        emit_counter("recorder_batches_written", labels={"task_path": task_path})
        return True

    def append_messages(self, messages: list[BaseMessage], identity: ConversationIdentity) -> None:
        if not messages:
            return
        batch = list(messages)
        self._workers.submit(identity.storage_key, partial(self.write_messages, batch, identity))

    def close(self, policy: str | None = None) -> None:
        self._workers.shutdown(policy or self.shutdown_policy, self.shutdown_timeout)
        self._pool.close()
        logger.info("checkpoint store closed table=%s", self.table)
