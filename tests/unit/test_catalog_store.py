"""Tests for the catalog store and the schema watcher."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from pg_graphql.catalog.store import CatalogStore
from pg_graphql.catalog.watcher import DEFAULT_CHANNEL, SchemaWatcher, install_schema_watch


class TestCatalogStore:
    def test_first_snapshot_is_built_lazily(self, metadata_factory):
        calls = []

        def loader():
            calls.append(1)
            return metadata_factory()

        store = CatalogStore(loader)
        assert store.version == 0
        assert calls == []

        snapshot = store.snapshot()

        assert snapshot.version == 1
        assert store.snapshot() is snapshot
        assert len(calls) == 1

    def test_rebuild_swaps_in_new_version(self, metadata_factory):
        store = CatalogStore(metadata_factory)
        first = store.snapshot()

        second = store.rebuild()

        assert second.version == 2
        assert store.snapshot() is second
        # The old snapshot is untouched
        assert first.version == 1
        assert first.get_type("Account") is not None

    def test_failed_rebuild_keeps_previous_snapshot(self, metadata_factory):
        results = [metadata_factory()]

        def loader():
            if not results:
                raise RuntimeError("database unavailable")
            return results.pop()

        store = CatalogStore(loader)
        first = store.snapshot()

        with pytest.raises(RuntimeError):
            store.rebuild()
        assert store.snapshot() is first
        assert store.version == 1

    def test_concurrent_rebuilds_load_one_at_a_time(self, metadata_factory):
        guard = threading.Lock()
        active = []
        overlaps = []

        def loader():
            with guard:
                active.append(1)
                overlaps.append(len(active))
            time.sleep(0.02)
            with guard:
                active.pop()
            return metadata_factory()

        store = CatalogStore(loader)
        threads = [threading.Thread(target=store.rebuild) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert max(overlaps) == 1
        assert store.version == 3
        assert store.snapshot().version == 3

    def test_concurrent_first_use_builds_once(self, metadata_factory):
        calls = []

        def loader():
            calls.append(1)
            time.sleep(0.02)
            return metadata_factory()

        store = CatalogStore(loader)
        threads = [threading.Thread(target=store.snapshot) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert store.version == 1


class TestSchemaWatcher:
    def test_ignored_tags(self):
        watcher = SchemaWatcher(MagicMock(), MagicMock())

        assert watcher.should_rebuild("CREATE TABLE")
        assert watcher.should_rebuild("ALTER TABLE")
        assert not watcher.should_rebuild("REFRESH MATERIALIZED VIEW")
        assert not watcher.should_rebuild(" refresh materialized view ")

    def test_custom_ignored_tags(self):
        watcher = SchemaWatcher(MagicMock(), MagicMock(), ignored_tags=["COMMENT"])

        assert not watcher.should_rebuild("COMMENT")
        assert watcher.should_rebuild("REFRESH MATERIALIZED VIEW")

    def test_handle_rebuilds_store(self):
        store = MagicMock()
        watcher = SchemaWatcher(store, MagicMock())

        assert watcher.handle("CREATE TABLE")
        assert not watcher.handle("REFRESH MATERIALIZED VIEW")
        assert store.rebuild.call_count == 1

    def test_listen_loop_survives_failed_rebuild(self):
        store = MagicMock()
        store.rebuild.side_effect = RuntimeError("boom")
        conn = MagicMock()
        watcher = SchemaWatcher(store, lambda: conn, poll_interval=0.01)

        def notifies(timeout):
            watcher._stop.set()
            return [MagicMock(payload="CREATE TABLE"), MagicMock(payload="ALTER TABLE")]

        conn.notifies.side_effect = notifies

        watcher.run_forever()

        assert store.rebuild.call_count == 1
        conn.close.assert_called_once()

    def test_stop_without_start_is_a_no_op(self):
        watcher = SchemaWatcher(MagicMock(), MagicMock())

        watcher.stop()

        assert not watcher.running


class TestInstallSchemaWatch:
    def test_runs_in_one_transaction(self):
        conn = MagicMock()

        install_schema_watch(conn)

        conn.transaction.assert_called_once()
        assert conn.execute.call_count == 3

    def test_channel_is_literal(self):
        conn = MagicMock()

        install_schema_watch(conn, DEFAULT_CHANNEL)

        function = conn.execute.call_args_list[0][0][0]
        assert f"pg_notify('{DEFAULT_CHANNEL}', tg_tag)" in function.as_string(None)
