"""Persistent key-value store backed by SQLAlchemy."""
import json
import logging
import time
from dataclasses import fields
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qiaomu import monitoring
from qiaomu.config import StorageSettings, settings
from qiaomu.errors import StorageError, ValidationError
from qiaomu.models.models import StorageEntry
from qiaomu.utils import format_bytes

logger = logging.getLogger(__name__)

# Migration from schema version N to N + 1
Migration = Callable[[Any], Any]


def merge_defaults(defaults: Any, data: Any) -> Any:
    """Fill fields missing from a persisted record with their defaults.

    Nested dicts are merged recursively; keys unknown to the defaults are kept.
    """
    if not isinstance(defaults, dict) or not isinstance(data, dict):
        return data
    merged = dict(data)
    for key, default in defaults.items():
        if key not in merged:
            merged[key] = default
        else:
            merged[key] = merge_defaults(default, merged[key])
    return merged


def parse_version(raw: Any) -> int:
    """Schema version of an envelope; legacy string versions count as 1."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    return 1


class StorageService:
    """Service for reading and writing persisted records."""

    def __init__(self, db: Session, storage_settings: Optional[StorageSettings] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.settings = storage_settings or settings.storage
        self.keys = self.settings.keys

    # -------------------------------------------------------------------------
    # Raw key-value access
    # -------------------------------------------------------------------------

    def get(self, key: str) -> Optional[Any]:
        """Get the decoded JSON stored under key, or None."""
        try:
            entry = self.db.query(StorageEntry).filter(StorageEntry.key == key).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            monitoring.storage_errors.labels(operation="read").inc()
            raise StorageError(f"Failed to read {key}: {e}") from e
        if entry is None:
            return None
        try:
            return json.loads(entry.value)
        except json.JSONDecodeError:
            logger.warning(f"Corrupt JSON stored under {key}, ignoring it")
            return None

    def put(self, key: str, value: Any) -> None:
        """Store value under key, raising StorageError on failure."""
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key} is not serializable: {e}") from e

        try:
            entry = self.db.query(StorageEntry).filter(StorageEntry.key == key).first()
            if entry is None:
                self.db.add(StorageEntry(key=key, value=payload))
            else:
                entry.value = payload
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            monitoring.storage_errors.labels(operation="write").inc()
            raise StorageError(f"Failed to write {key}: {e}") from e

    def set(self, key: str, value: Any) -> bool:
        """Store value under key; returns False instead of raising."""
        try:
            self.put(key, value)
            return True
        except StorageError as e:
            logger.error("Storage write failed: %s", e)
            return False

    def remove(self, key: str) -> None:
        """Delete the entry stored under key, if any."""
        try:
            self.db.query(StorageEntry).filter(StorageEntry.key == key).delete()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            monitoring.storage_errors.labels(operation="remove").inc()
            raise StorageError(f"Failed to remove {key}: {e}") from e

    def exists(self, key: str) -> bool:
        """Whether any entry, readable or not, is stored under key."""
        try:
            count = self.db.query(StorageEntry).filter(StorageEntry.key == key).count()
        except SQLAlchemyError as e:
            self.db.rollback()
            monitoring.storage_errors.labels(operation="read").inc()
            raise StorageError(f"Failed to read {key}: {e}") from e
        return count > 0

    def keys_in_use(self) -> List[str]:
        return [key for (key,) in self.db.query(StorageEntry.key).all()]

    # -------------------------------------------------------------------------
    # Versioned records
    # -------------------------------------------------------------------------

    def save(self, key: str, data: Any) -> None:
        """Write data wrapped in a versioned envelope."""
        self.put(key, {
            "data": data,
            "timestamp": int(time.time() * 1000),
            "version": self.settings.schema_version,
        })

    def load(
        self,
        key: str,
        default: Any = None,
        migrations: Optional[Dict[int, Migration]] = None,
    ) -> Any:
        """Read a versioned record, migrating and merging it with defaults.

        Never raises: unreadable or missing records yield the default.
        """
        try:
            envelope = self.get(key)
        except StorageError as e:
            logger.error("Falling back to defaults for %s: %s", key, e)
            return default

        if not isinstance(envelope, dict) or envelope.get("data") is None:
            return default

        data = envelope["data"]
        version = parse_version(envelope.get("version"))
        current = self.settings.schema_version

        if version != current:
            logger.warning(f"Data version mismatch for {key}: stored {version}, expected {current}")

        if version < current and migrations:
            try:
                for step in range(version, current):
                    migrate = migrations.get(step)
                    if migrate is not None:
                        data = migrate(data)
                        logger.info(f"Migrated {key} from schema {step} to {step + 1}")
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Migration of {key} failed, using defaults: {e}")
                return default
            try:
                self.save(key, data)
            except StorageError as e:
                logger.warning("Could not persist migrated %s: %s", key, e)

        return merge_defaults(default, data)

    def append_capped(self, key: str, entry: Any, cap: int) -> List[Any]:
        """Append to a list record, dropping the oldest entries beyond cap."""
        items = self.get(key)
        if not isinstance(items, list):
            items = []
        items.append(entry)
        if len(items) > cap:
            items = items[len(items) - cap:]
        self.put(key, items)
        return items

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    def _named_keys(self) -> Dict[str, str]:
        return {f.name: getattr(self.keys, f.name) for f in fields(self.keys)}

    def clear_all(self) -> None:
        """Remove every application record."""
        for key in self._named_keys().values():
            self.remove(key)

    def export_data(self) -> Dict[str, Any]:
        """Export every stored application record keyed by its name."""
        exported: Dict[str, Any] = {}
        for name, key in self._named_keys().items():
            value = self.get(key)
            if value is None:
                continue
            # Enveloped records export their payload, capped lists export as-is
            if isinstance(value, dict) and "data" in value and "version" in value:
                value = value["data"]
            exported[name] = value
        return {
            "timestamp": int(time.time() * 1000),
            "version": self.settings.schema_version,
            "data": exported,
        }

    def import_data(self, payload: Any) -> List[str]:
        """Import records produced by export_data.

        Raises ValidationError for malformed payloads; on a write failure the
        previous records are restored and the StorageError is re-raised.
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            raise ValidationError("Invalid import data format")

        if parse_version(payload.get("version")) != self.settings.schema_version:
            logger.warning("Import data version mismatch, records may need migration")

        named_keys = self._named_keys()
        plan = []
        for name, data in payload["data"].items():
            key = named_keys.get(str(name).lower())
            if key is None:
                logger.warning(f"Skipping unknown import record {name}")
                continue
            plan.append((key, data))

        backup = self.export_data()
        try:
            for key, data in plan:
                if isinstance(data, list):
                    self.put(key, data)
                else:
                    self.save(key, data)
        except StorageError:
            logger.error("Import failed, restoring previous data")
            self._restore(backup)
            raise

        logger.info(f"Imported {len(plan)} records")
        return [key for key, _ in plan]

    def _restore(self, backup: Dict[str, Any]) -> None:
        named_keys = self._named_keys()
        for name, data in backup["data"].items():
            try:
                if isinstance(data, list):
                    self.put(named_keys[name], data)
                else:
                    self.save(named_keys[name], data)
            except StorageError as e:
                logger.error(f"Failed to restore {name}: {e}")

    def storage_usage(self) -> Dict[str, Any]:
        """Size of every application record."""
        details = {}
        total = 0
        for name, key in self._named_keys().items():
            value = self.get(key)
            size = len(json.dumps(value, ensure_ascii=False).encode("utf-8")) if value is not None else 0
            details[name] = {"size": size, "sizeFormatted": format_bytes(size)}
            total += size
        return {"total": total, "totalFormatted": format_bytes(total), "details": details}
