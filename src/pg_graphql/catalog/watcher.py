"""
Schema change watcher.

A ``ddl_command_end`` event trigger publishes the command tag of every DDL
statement on a notification channel. ``SchemaWatcher`` listens on that channel
from a background thread and rebuilds the catalog store on every relevant
notification.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from psycopg import sql

from pg_graphql.catalog.store import CatalogStore

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "pg_graphql_schema_change"
DEFAULT_IGNORED_TAGS: tuple[str, ...] = ("REFRESH MATERIALIZED VIEW",)

_FUNCTION_NAME = "pg_graphql_notify_schema_change"
_TRIGGER_NAME = "pg_graphql_watch"


def install_schema_watch(conn: Any, channel: str = DEFAULT_CHANNEL) -> None:
    """
    Install (or replace) the event trigger that reports DDL on ``channel``.

    Requires a role allowed to create event triggers (superuser on most
    installations).
    """
    function = sql.SQL(
        """
        create or replace function {function}()
            returns event_trigger
            language plpgsql
        as $$
        begin
            perform pg_catalog.pg_notify({channel}, tg_tag);
        end;
        $$
        """
    ).format(function=sql.Identifier(_FUNCTION_NAME), channel=sql.Literal(channel))
    drop = sql.SQL("drop event trigger if exists {trigger}").format(
        trigger=sql.Identifier(_TRIGGER_NAME)
    )
    create = sql.SQL(
        "create event trigger {trigger} on ddl_command_end execute procedure {function}()"
    ).format(trigger=sql.Identifier(_TRIGGER_NAME), function=sql.Identifier(_FUNCTION_NAME))

    with conn.transaction():
        conn.execute(function)
        conn.execute(drop)
        conn.execute(create)
    logger.info("Installed schema watch trigger on channel %s", channel)


class SchemaWatcher:
    """
    Rebuild a ``CatalogStore`` whenever the schema changes.

    Args:
        store: Store to rebuild
        connect: Callable opening a new autocommit connection used for LISTEN
        channel: Notification channel the event trigger publishes on
        ignored_tags: Command tags that never trigger a rebuild
        poll_interval: Seconds between checks of the stop flag
    """

    def __init__(
        self,
        store: CatalogStore,
        connect: Callable[[], Any],
        *,
        channel: str = DEFAULT_CHANNEL,
        ignored_tags: Iterable[str] = DEFAULT_IGNORED_TAGS,
        poll_interval: float = 1.0,
    ) -> None:
        self._store = store
        self._connect = connect
        self._channel = channel
        self._ignored = frozenset(tag.upper() for tag in ignored_tags)
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def should_rebuild(self, tag: str) -> bool:
        """Whether a notification payload (a command tag) warrants a rebuild."""
        return tag.strip().upper() not in self._ignored

    def handle(self, tag: str) -> bool:
        """Process one notification; return True when the catalog was rebuilt."""
        if not self.should_rebuild(tag):
            logger.debug("Ignoring schema change %s", tag)
            return False
        logger.info("Schema change detected (%s), rebuilding catalog", tag)
        self._store.rebuild()
        return True

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._listen_loop, name="pg-graphql-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout if timeout is not None else self._poll_interval * 5)
        self._thread = None

    def run_forever(self) -> None:
        """Listen in the calling thread until ``stop()`` is called from elsewhere."""
        self._stop.clear()
        self._listen_loop()

    def _listen_loop(self) -> None:
        conn = self._connect()
        try:
            conn.execute(sql.SQL("listen {}").format(sql.Identifier(self._channel)))
            logger.info("Listening for schema changes on %s", self._channel)
            while not self._stop.is_set():
                for notify in conn.notifies(timeout=self._poll_interval):
                    try:
                        self.handle(notify.payload)
                    except Exception as e:
                        # Keep the previous snapshot and wait for the next change
                        logger.error("Catalog rebuild failed: %s", e, exc_info=True)
                    if self._stop.is_set():
                        break
        finally:
            conn.close()
