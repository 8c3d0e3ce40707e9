"""Record cache - in-memory mirror of the record store.

The cache is authoritative for reads. Every mutation updates the in-memory
collection and then writes the whole collection for that entity type back to
the store before returning (unless the caller defers with persist=False).
"""

import copy
import threading
from typing import Any, Callable, Mapping, Optional

from rental_bot.logging_config import get_logger
from rental_bot.repositories.record_store import (
    EntityType,
    PersistenceError,
    RecordStore,
    StoreReadError,
)
from rental_bot.services.clock import Clock
from rental_bot.utils.merge import deep_merge
from rental_bot.utils.timestamps import to_iso

logger = get_logger(__name__)

Record = dict[str, Any]
RecordUpdater = Callable[[Optional[Record]], Optional[Record]]
BatchUpdater = Callable[[str, Record], Optional[Record]]


class RecordCache:
    """Thread-safe cache of all entity collections.

    Each entity type has its own lock. A read-modify-write on one type, together
    with the flush that follows it, runs entirely under that type's lock, so
    concurrent updates to the same type cannot interleave. Records handed out
    are copies; callers change state only through the mutation methods.

    Args:
        store: durable storage for the collections
        clock: time source for updated_at stamps
    """

    def __init__(self, store: RecordStore, clock: Clock):
        self._store = store
        self._clock = clock
        self._collections: dict[EntityType, dict[str, Record]] = {entity: {} for entity in EntityType}
        self._locks = {entity: threading.RLock() for entity in EntityType}
        self._dirty = {entity: False for entity in EntityType}

    @property
    def store(self) -> RecordStore:
        return self._store

    def load(self) -> dict[str, int]:
        """Load every collection from the store.

        A type whose document cannot be read is reset to empty and reported as
        a warning; the other types still load.

        Returns:
            Record count per entity type
        """
        counts: dict[str, int] = {}
        for entity in EntityType:
            with self._locks[entity]:
                try:
                    records = self._store.read(entity)
                except StoreReadError as e:
                    logger.warning("collection_load_failed", entity=entity.value, error=str(e))
                    records = None
                self._collections[entity] = records or {}
                self._dirty[entity] = False
                counts[entity.value] = len(self._collections[entity])

        logger.info("cache_loaded", **counts)
        return counts

    def get(self, entity: EntityType, key: str) -> Optional[Record]:
        """Get a record by key (None if absent). Never touches the store."""
        with self._locks[entity]:
            record = self._collections[entity].get(key)
            return copy.deepcopy(record) if record is not None else None

    def get_all(self, entity: EntityType) -> dict[str, Record]:
        """Get a copy of a whole collection."""
        with self._locks[entity]:
            return copy.deepcopy(self._collections[entity])

    def values(self, entity: EntityType) -> list[Record]:
        """Get copies of all records of a type."""
        with self._locks[entity]:
            return [copy.deepcopy(record) for record in self._collections[entity].values()]

    def exists(self, entity: EntityType, key: str) -> bool:
        with self._locks[entity]:
            return key in self._collections[entity]

    def count(self, entity: EntityType) -> int:
        with self._locks[entity]:
            return len(self._collections[entity])

    def put(
        self,
        entity: EntityType,
        key: str,
        partial: Mapping[str, Any],
        persist: bool = True,
    ) -> Record:
        """Merge a partial record into the stored one (or create it).

        Nested mappings are merged key by key. The result is stamped with
        updated_at.

        Args:
            entity: Entity type
            key: Record key
            partial: Fields to merge
            persist: Write the collection to the store before returning

        Returns:
            The merged record

        Raises:
            PersistenceError: If persist is set and the write fails; the cache keeps the new state
        """
        with self._locks[entity]:
            current = self._collections[entity].get(key, {})
            record = deep_merge(current, partial)
            record["updated_at"] = to_iso(self._clock.now())
            self._collections[entity][key] = record
            self._mark_changed(entity, persist)
            return copy.deepcopy(record)

    def replace(
        self,
        entity: EntityType,
        key: str,
        record: Mapping[str, Any],
        persist: bool = True,
    ) -> Record:
        """Store a record as given, discarding whatever was there.

        Raises:
            PersistenceError: If persist is set and the write fails
        """
        with self._locks[entity]:
            self._collections[entity][key] = copy.deepcopy(dict(record))
            self._mark_changed(entity, persist)
            return copy.deepcopy(self._collections[entity][key])

    def update(
        self,
        entity: EntityType,
        key: str,
        updater: RecordUpdater,
        persist: bool = True,
    ) -> Optional[Record]:
        """Atomic read-modify-write of one record.

        The updater receives a copy of the current record (None if absent) and
        returns the full new record, or None to leave the record unchanged.
        It runs under the entity type's lock, so it must not call back into the
        cache for the same type from another thread.

        Returns:
            The record after the update (None if it still does not exist)

        Raises:
            PersistenceError: If persist is set and the write fails
        """
        with self._locks[entity]:
            current = self._collections[entity].get(key)
            updated = updater(copy.deepcopy(current) if current is not None else None)
            if updated is None:
                return copy.deepcopy(current) if current is not None else None
            self._collections[entity][key] = copy.deepcopy(updated)
            self._mark_changed(entity, persist)
            return copy.deepcopy(updated)

    def update_all(
        self,
        entity: EntityType,
        updater: BatchUpdater,
        persist: bool = True,
    ) -> list[str]:
        """Atomic batch transform of a collection with a single flush.

        The updater is called with (key, record copy) for every record and
        returns the new record or None for "unchanged".

        Returns:
            Keys of changed records

        Raises:
            PersistenceError: If anything changed, persist is set and the write fails
        """
        with self._locks[entity]:
            changed: dict[str, Record] = {}
            for key, record in self._collections[entity].items():
                updated = updater(key, copy.deepcopy(record))
                if updated is not None:
                    changed[key] = updated
            if changed:
                self._collections[entity].update(changed)
                self._mark_changed(entity, persist)
            return list(changed.keys())

    def delete(self, entity: EntityType, key: str, persist: bool = True) -> bool:
        """Remove a record.

        Returns:
            True if the record existed

        Raises:
            PersistenceError: If the record existed, persist is set and the write fails
        """
        with self._locks[entity]:
            if key not in self._collections[entity]:
                return False
            del self._collections[entity][key]
            self._mark_changed(entity, persist)
            return True

    def is_dirty(self, entity: EntityType) -> bool:
        """True if the collection has changes not yet written to the store."""
        with self._locks[entity]:
            return self._dirty[entity]

    def flush(self, entity: EntityType) -> bool:
        """Write a collection to the store if it has unwritten changes.

        Returns:
            True if a write happened

        Raises:
            PersistenceError: If the write fails
        """
        with self._locks[entity]:
            if not self._dirty[entity]:
                return False
            self._write_locked(entity)
            return True

    def flush_all(self) -> list[str]:
        """Write every dirty collection.

        All types are attempted even if one fails.

        Returns:
            Names of written entity types

        Raises:
            PersistenceError: If any write failed
        """
        flushed: list[str] = []
        failed: list[str] = []
        for entity in EntityType:
            try:
                if self.flush(entity):
                    flushed.append(entity.value)
            except PersistenceError:
                failed.append(entity.value)
        if failed:
            raise PersistenceError(f"Failed to flush: {', '.join(failed)}")
        return flushed

    def clear(self) -> None:
        """Drop all cached records without touching the store."""
        for entity in EntityType:
            with self._locks[entity]:
                self._collections[entity].clear()
                self._dirty[entity] = False

    def get_statistics(self) -> dict[str, int]:
        """Record count per entity type."""
        return {entity.value: self.count(entity) for entity in EntityType}

    def _mark_changed(self, entity: EntityType, persist: bool) -> None:
        self._dirty[entity] = True
        if persist:
            self._write_locked(entity)

    def _write_locked(self, entity: EntityType) -> None:
        try:
            self._store.write(entity, self._collections[entity])
        except PersistenceError as e:
            logger.error("collection_flush_failed", entity=entity.value, error=str(e))
            raise
        self._dirty[entity] = False

    def __repr__(self) -> str:
        counts = ", ".join(f"{name}={count}" for name, count in self.get_statistics().items())
        return f"RecordCache({counts})"
