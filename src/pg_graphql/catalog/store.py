"""
Catalog store - holds the current catalog snapshot.

The store owns exactly one ``CatalogSnapshot`` at a time. ``rebuild()`` derives
a complete new snapshot off to the side and swaps the reference in one step, so
a reader either sees the old snapshot or the new one, never a mix.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from pg_graphql.catalog.builder import CatalogBuilder
from pg_graphql.catalog.metadata import RelationalMetadata
from pg_graphql.catalog.models import CatalogSnapshot

logger = logging.getLogger(__name__)

MetadataLoader = Callable[[], RelationalMetadata]


class CatalogStore:
    """
    Process-wide holder of the current catalog snapshot.

    Args:
        loader: Callable returning fresh ``RelationalMetadata``
        default_schema: Schema whose tables keep their bare names

    Example:
        store = CatalogStore(lambda: PostgresMetadataReader(conn).read())
        snapshot = store.snapshot()
    """

    def __init__(self, loader: MetadataLoader, *, default_schema: str = "public") -> None:
        self._loader = loader
        self._default_schema = default_schema
        self._lock = threading.Lock()
        self._snapshot: CatalogSnapshot | None = None
        self._version = 0

    @property
    def version(self) -> int:
        """Version of the current snapshot, 0 before the first build."""
        return self._version

    def snapshot(self) -> CatalogSnapshot:
        """Return the current snapshot, building it on first use."""
        current = self._snapshot
        if current is not None:
            return current
        with self._lock:
            # Another thread may have built it while we waited
            if self._snapshot is not None:
                return self._snapshot
            return self._build()

    def rebuild(self) -> CatalogSnapshot:
        """Read metadata, build a new snapshot and swap it in."""
        with self._lock:
            return self._build()

    def _build(self) -> CatalogSnapshot:
        # Caller holds the lock, so metadata is read and swapped in version order
        started = time.perf_counter()
        metadata = self._loader()
        version = self._version + 1
        snapshot = CatalogBuilder(metadata, default_schema=self._default_schema).build(version)
        self._snapshot = snapshot
        self._version = version

        logger.info(
            "Catalog rebuilt: version=%d types=%d fields=%d args=%d (%.1f ms)",
            snapshot.version,
            len(snapshot.types),
            len(snapshot.fields),
            len(snapshot.args),
            (time.perf_counter() - started) * 1000,
        )
        return snapshot
