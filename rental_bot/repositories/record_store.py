"""Record store - durable JSON documents, one per entity type.

Layout:
    <data_dir>/groups.json, users.json, rentals.json, settings.json, activity.json
    <backup_dir>/<YYYY-MM-DD_HH-MM-SS>/<entity>.json

Each document is a JSON object mapping record key to record. Documents are
always rewritten whole; the write goes to a temp file that replaces the
document, so an interrupted write leaves the previous version in place.
"""

import json
import os
import shutil
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

from rental_bot.logging_config import get_logger
from rental_bot.utils.timestamps import format_backup_stamp, parse_backup_stamp

logger = get_logger(__name__)


class EntityType(str, Enum):
    """Entity collections kept by the store."""

    GROUPS = "groups"
    USERS = "users"
    RENTALS = "rentals"
    SETTINGS = "settings"
    ACTIVITY = "activity"


class StoreError(Exception):
    """Base exception for record store errors."""

    pass


class StoreReadError(StoreError):
    """Raised when an entity document cannot be read or parsed."""

    pass


class PersistenceError(StoreError):
    """Raised when an entity document or backup cannot be written."""

    pass


class StorageInitializationError(StoreError):
    """Raised when the storage directories cannot be created. Fatal at startup."""

    pass


class RecordStore:
    """Filesystem storage for entity collections.

    Writes and snapshot copies of the same entity file are serialized through a
    per-entity lock; different entity types never block each other.

    Args:
        data_dir: directory holding the entity documents
        backup_dir: backup root, defaults to <data_dir>/backups
    """

    def __init__(self, data_dir: Path, backup_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir)
        self.backup_dir = Path(backup_dir) if backup_dir is not None else self.data_dir / "backups"
        self._locks = {entity: threading.Lock() for entity in EntityType}

    def initialize(self) -> None:
        """Create the data and backup directories.

        Raises:
            StorageInitializationError: If either directory cannot be created
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageInitializationError(
                f"Cannot create storage directories under {self.data_dir}: {e}"
            ) from e

        logger.info(
            "record_store_initialized",
            data_dir=str(self.data_dir),
            backup_dir=str(self.backup_dir),
        )

    def path_for(self, entity: EntityType) -> Path:
        """Path of the document for an entity type."""
        return self.data_dir / f"{entity.value}.json"

    def read(self, entity: EntityType) -> Optional[dict[str, dict[str, Any]]]:
        """Read an entity document.

        Args:
            entity: Entity type to read

        Returns:
            Mapping of key to record, or None if the document does not exist yet

        Raises:
            StoreReadError: If the document exists but cannot be read or parsed
        """
        path = self.path_for(entity)
        with self._locks[entity]:
            if not path.exists():
                return None
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise StoreReadError(f"Failed to read {path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreReadError(f"{path} must contain a JSON object, got {type(data).__name__}")

        records: dict[str, dict[str, Any]] = {}
        for key, value in data.items():
            if not isinstance(value, dict):
                logger.warning(
                    "record_skipped_not_an_object",
                    entity=entity.value,
                    key=key,
                )
                continue
            records[str(key)] = value
        return records

    def write(self, entity: EntityType, records: Mapping[str, Mapping[str, Any]]) -> None:
        """Overwrite an entity document with the full collection.

        Args:
            entity: Entity type to write
            records: Complete collection for the type

        Raises:
            PersistenceError: If the collection cannot be serialized or written
        """
        path = self.path_for(entity)
        temp_path = path.with_name(path.name + ".tmp")
        try:
            payload = json.dumps(records, indent=2, ensure_ascii=False, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize {entity.value}: {e}") from e

        with self._locks[entity]:
            try:
                temp_path.write_text(payload, encoding="utf-8")
                os.replace(temp_path, path)
            except OSError as e:
                raise PersistenceError(f"Failed to write {path}: {e}") from e

        logger.debug("collection_written", entity=entity.value, records=len(records))

    def create_snapshot(self, at: datetime) -> Path:
        """Copy every existing entity document into a timestamped backup directory.

        Args:
            at: Time of the snapshot, used for the directory name

        Returns:
            Path of the backup directory

        Raises:
            PersistenceError: If the backup cannot be written
        """
        target = self.backup_dir / format_backup_stamp(at)
        copied = 0
        try:
            target.mkdir(parents=True, exist_ok=True)
            for entity in EntityType:
                source = self.path_for(entity)
                with self._locks[entity]:
                    if source.exists():
                        shutil.copy2(source, target / source.name)
                        copied += 1
        except OSError as e:
            raise PersistenceError(f"Backup to {target} failed: {e}") from e

        logger.info("backup_created", backup=target.name, files=copied)
        return target

    def list_snapshots(self) -> list[str]:
        """Names of all backup directories, oldest first."""
        if not self.backup_dir.exists():
            return []
        return sorted(entry.name for entry in self.backup_dir.iterdir() if entry.is_dir())

    def prune_snapshots(self, now: datetime, retention_days: int = 30) -> list[str]:
        """Remove backup directories older than the retention window.

        Age comes from the directory name; directories with other names fall
        back to their modification time. Failures to remove a single directory
        are logged and skipped.

        Args:
            now: Current time
            retention_days: Backups older than this many days are removed

        Returns:
            Names of removed backup directories
        """
        cutoff = now - timedelta(days=retention_days)
        removed: list[str] = []

        if not self.backup_dir.exists():
            return removed

        for entry in sorted(self.backup_dir.iterdir()):
            if not entry.is_dir():
                continue
            try:
                taken_at = parse_backup_stamp(entry.name)
                if taken_at is None:
                    taken_at = datetime.fromtimestamp(entry.stat().st_mtime, tz=timezone.utc)
                if taken_at < cutoff:
                    shutil.rmtree(entry)
                    removed.append(entry.name)
            except OSError as e:
                logger.warning("backup_prune_failed", backup=entry.name, error=str(e))

        if removed:
            logger.info("backups_pruned", count=len(removed), retention_days=retention_days)
        return removed

    def __repr__(self) -> str:
        return f"RecordStore(data_dir={str(self.data_dir)!r})"
