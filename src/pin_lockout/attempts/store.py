"""Attempt Store - bounded, append-only attempt history per principal."""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from pin_lockout.common.constants import HistoryConstants
from pin_lockout.core.types import AuthMethod
from pin_lockout.persistence.adapter import PersistenceAdapter
from pin_lockout.schemas import AttemptContext, AttemptRecord, utc_now

logger = logging.getLogger(__name__)


class AttemptStore:
    """In-memory attempt history mirrored to the persistence adapter.
    
    Mutations for a principal must happen under that principal's lock;
    the store itself does no locking.
    """
    
    RETENTION = timedelta(seconds=HistoryConstants.RAW_RETENTION_SECONDS)
    
    def __init__(self, persistence: Optional[PersistenceAdapter] = None):
        self.persistence = persistence
        self._history: Dict[str, List[AttemptRecord]] = {}
    
    def record(
        self,
        principal_id: str,
        device_id: str,
        source_address: str,
        success: bool,
        method: AuthMethod = AuthMethod.PIN,
        context: Optional[AttemptContext] = None,
        error_code: Optional[str] = None,
        risk_score: int = 0,
        timestamp: Optional[datetime] = None,
    ) -> AttemptRecord:
        """Append a new attempt and trim history older than 24h.
        
        Returns:
            The immutable AttemptRecord that was stored
        """
        timestamp = timestamp or utc_now()
        attempt = AttemptRecord(
            principal_id=principal_id,
            device_id=device_id,
            source_address=source_address,
            timestamp=timestamp,
            success=success,
            method=method,
            error_code=error_code,
            risk_score=risk_score,
            context=context or AttemptContext(),
        )
        
        cutoff = timestamp - self.RETENTION
        history = [a for a in self._history.get(principal_id, []) if a.timestamp > cutoff]
        history.append(attempt)
        self._history[principal_id] = history
        
        if self.persistence is not None:
            self.persistence.save_history(principal_id, history)
        
        return attempt
    
    def recent_attempts(
        self,
        principal_id: str,
        window: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> List[AttemptRecord]:
        """Attempts for a principal, oldest first.
        
        Args:
            principal_id: Principal to look up
            window: Only attempts newer than now - window. All retained
                history if omitted.
            now: Reference instant for the window
        """
        attempts = self._history.get(principal_id, [])
        if window is None:
            return list(attempts)
        
        cutoff = (now or utc_now()) - window
        return [a for a in attempts if a.timestamp > cutoff]
    
    def replace_history(self, principal_id: str, records: Iterable[AttemptRecord]) -> None:
        """Install a history loaded from persistence."""
        self._history[principal_id] = sorted(records, key=lambda r: r.timestamp)
    
    def prune(self, principal_id: str, older_than: datetime) -> int:
        """Drop attempts at or before older_than. Returns how many were removed."""
        attempts = self._history.get(principal_id)
        if not attempts:
            return 0
        
        kept = [a for a in attempts if a.timestamp > older_than]
        removed = len(attempts) - len(kept)
        if removed:
            self._history[principal_id] = kept
            if self.persistence is not None:
                self.persistence.save_history(principal_id, kept)
        return removed
    
    def forget(self, principal_id: str) -> None:
        self._history.pop(principal_id, None)
    
    def principals(self) -> List[str]:
        return list(self._history.keys())
    
    def all_attempts(self, since: Optional[datetime] = None) -> List[AttemptRecord]:
        """Snapshot of every principal's attempts newer than since."""
        snapshot: List[AttemptRecord] = []
        for attempts in list(self._history.values()):
            snapshot.extend(
                a for a in list(attempts) if since is None or a.timestamp > since
            )
        return snapshot
