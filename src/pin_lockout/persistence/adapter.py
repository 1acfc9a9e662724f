"""Persistence Adapter - durable mirror of lockout state and history.

The in-memory index is authoritative while the process runs; this adapter
only mirrors it so state survives a restart. Every failure is logged and
swallowed: a storage outage must never block an authentication decision.
"""

import logging
from typing import List, Optional, Sequence

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from pin_lockout.common.constants import PersistenceConstants
from pin_lockout.persistence.kv_store import KeyValueStore
from pin_lockout.schemas import AttemptRecord, LockoutStatus

logger = logging.getLogger(__name__)

_history_adapter = TypeAdapter(List[AttemptRecord])


class PersistenceAdapter:
    """Saves and loads per-principal status and attempt history."""
    
    STATE_PREFIX = PersistenceConstants.STATE_KEY_PREFIX
    ATTEMPTS_PREFIX = PersistenceConstants.ATTEMPTS_KEY_PREFIX
    
    def __init__(self, store: KeyValueStore):
        self.store = store
    
    @classmethod
    def state_key(cls, principal_id: str) -> str:
        return f"{cls.STATE_PREFIX}{principal_id}"
    
    @classmethod
    def attempts_key(cls, principal_id: str) -> str:
        return f"{cls.ATTEMPTS_PREFIX}{principal_id}"
    
    def _write(self, key: str, value: bytes) -> bool:
        try:
            self.store.set(key, value)
            return True
        except Exception as e:
            logger.error(f"Failed to persist {key}; continuing in memory: {e}")
            return False
    
    def _read(self, key: str) -> Optional[bytes]:
        try:
            return self.store.get(key)
        except Exception as e:
            logger.error(f"Failed to load {key}; treating as missing: {e}")
            return None
    
    def _discard_corrupt(self, key: str, error: Exception) -> None:
        logger.warning(f"Discarding corrupt record {key}: {error}")
        try:
            self.store.delete(key)
        except Exception as e:
            logger.error(f"Failed to delete corrupt record {key}: {e}")
    
    def save(self, principal_id: str, status: LockoutStatus) -> bool:
        """Persist a status. Returns False if the write failed."""
        return self._write(self.state_key(principal_id), status.to_json().encode("utf-8"))
    
    def load(self, principal_id: str) -> Optional[LockoutStatus]:
        """Load a status, or None if missing, unreadable or corrupt."""
        key = self.state_key(principal_id)
        data = self._read(key)
        if data is None:
            return None
        try:
            return LockoutStatus.from_json(data)
        except (PydanticValidationError, ValueError) as e:
            self._discard_corrupt(key, e)
            return None
    
    def save_history(self, principal_id: str, records: Sequence[AttemptRecord]) -> bool:
        """Persist an attempt history. Returns False if the write failed."""
        return self._write(
            self.attempts_key(principal_id),
            _history_adapter.dump_json(list(records)),
        )
    
    def load_history(self, principal_id: str) -> List[AttemptRecord]:
        """Load an attempt history ordered oldest first; [] if missing or corrupt."""
        key = self.attempts_key(principal_id)
        data = self._read(key)
        if data is None:
            return []
        try:
            records = _history_adapter.validate_json(data)
        except (PydanticValidationError, ValueError) as e:
            self._discard_corrupt(key, e)
            return []
        return sorted(records, key=lambda r: r.timestamp)
    
    def known_principals(self) -> List[str]:
        """Every principal with persisted status or history."""
        principals = set()
        try:
            for key in self.store.keys(self.STATE_PREFIX):
                principals.add(key[len(self.STATE_PREFIX):])
            for key in self.store.keys(self.ATTEMPTS_PREFIX):
                principals.add(key[len(self.ATTEMPTS_PREFIX):])
        except Exception as e:
            logger.error(f"Failed to list persisted principals: {e}")
        return sorted(principals)
    
    def forget(self, principal_id: str) -> None:
        """Remove a principal's persisted status and history."""
        for key in (self.state_key(principal_id), self.attempts_key(principal_id)):
            try:
                self.store.delete(key)
            except Exception as e:
                logger.error(f"Failed to delete {key}: {e}")
