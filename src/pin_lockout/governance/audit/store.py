"""Audit Store - Abstraction for audit event persistence.

Design principles:
- Write-only from the engine's point of view; reads exist for operators
- Thread-safe operations
- Append-only JSONL with hash chain integrity for the file backend
"""

import fcntl
import hashlib
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Iterator, List, Optional

from pin_lockout.common.constants import AuditConstants
from pin_lockout.common.exceptions import AuditError, AuditLogIntegrityError
from pin_lockout.governance.schemas import AuditEvent, AuditEventType

logger = logging.getLogger(__name__)


class AuditStore(ABC):
    """Abstract base class for audit event storage backends."""
    
    @abstractmethod
    def append_event(self, event: AuditEvent) -> AuditEvent:
        """Append an audit event to the store.
        
        Args:
            event: The audit event to append
            
        Returns:
            The event with hash chain fields populated
            
        Raises:
            AuditError: If the write fails
        """
        pass
    
    def get_events(
        self,
        event_type: Optional[AuditEventType] = None,
        principal_id: Optional[str] = None,
    ) -> Iterator[AuditEvent]:
        """Retrieve events with optional filtering.
        
        Backends that cannot be read back yield nothing.
        """
        return iter(())


class _HashChain:
    """Hash chain bookkeeping shared by the chained stores."""
    
    def __init__(self, hash_algorithm: str = AuditConstants.HASH_ALGORITHM):
        self.hash_algorithm = hash_algorithm
        self.last_hash: Optional[str] = None
    
    def compute(self, content: str) -> str:
        hasher = hashlib.new(self.hash_algorithm)
        hasher.update(content.encode("utf-8"))
        return hasher.hexdigest()
    
    @staticmethod
    def serialize(event_dict: dict) -> str:
        return json.dumps(event_dict, sort_keys=True, ensure_ascii=False, default=str)
    
    def link(self, event: AuditEvent) -> AuditEvent:
        event_dict = event.model_dump(mode="json")
        event_dict["previous_hash"] = self.last_hash
        event_dict["entry_hash"] = None
        event_dict["entry_hash"] = self.compute(self.serialize(event_dict))
        return AuditEvent.model_validate(event_dict)
    
    def verify_line(self, event_dict: dict, previous_hash: Optional[str], where: str) -> str:
        if event_dict.get("previous_hash") != previous_hash:
            raise AuditLogIntegrityError(
                f"Hash chain broken at {where}. "
                f"Expected previous_hash={previous_hash}, "
                f"got {event_dict.get('previous_hash')}"
            )
        stored_hash = event_dict.get("entry_hash")
        check = dict(event_dict, entry_hash=None)
        if self.compute(self.serialize(check)) != stored_hash:
            raise AuditLogIntegrityError(
                f"Entry hash mismatch at {where}. Entry may have been tampered with."
            )
        return stored_hash


class InMemoryAuditStore(AuditStore):
    """Keeps events in a list. Used in tests and development."""
    
    def __init__(self, enable_hash_chain: bool = True):
        self.enable_hash_chain = enable_hash_chain
        self._chain = _HashChain()
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()
    
    def append_event(self, event: AuditEvent) -> AuditEvent:
        with self._lock:
            if self.enable_hash_chain:
                event = self._chain.link(event)
                self._chain.last_hash = event.entry_hash
            self._events.append(event)
            return event
    
    def get_events(
        self,
        event_type: Optional[AuditEventType] = None,
        principal_id: Optional[str] = None,
    ) -> Generator[AuditEvent, None, None]:
        with self._lock:
            events = list(self._events)
        for event in events:
            if event_type and event.event_type != event_type:
                continue
            if principal_id and event.principal_id != principal_id:
                continue
            yield event
    
    def verify_integrity(self) -> bool:
        if not self.enable_hash_chain:
            return True
        previous_hash = None
        with self._lock:
            events = list(self._events)
        for index, event in enumerate(events):
            previous_hash = self._chain.verify_line(
                event.model_dump(mode="json"), previous_hash, f"event {index}"
            )
        return True
    
    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._chain.last_hash = None


class LoggingAuditStore(AuditStore):
    """Hands each event to a structured logger (external log pipeline)."""
    
    DEFAULT_LOGGER_NAME = "pin_lockout.audit"
    
    def __init__(self, logger_name: str = DEFAULT_LOGGER_NAME, level: int = logging.INFO):
        self.audit_logger = logging.getLogger(logger_name)
        self.level = level
    
    def append_event(self, event: AuditEvent) -> AuditEvent:
        self.audit_logger.log(
            self.level,
            f"Lockout audit event: {event.event_type.value}",
            extra={"audit_event": event.model_dump(mode="json")},
        )
        return event


class FileAuditStore(AuditStore):
    """File-based audit store with JSONL format and hash chain integrity.
    
    Features:
    - Append-only JSONL files with daily rotation
    - Hash chain per daily file for tamper detection
    - Atomic appends with file locking
    """
    
    DEFAULT_LOG_DIR = Path(__file__).parent.parent.parent.parent.parent / "logs" / "audit"
    
    def __init__(
        self,
        log_dir: Optional[str] = None,
        log_filename_pattern: str = "lockout_audit_{date}.jsonl",
        enable_hash_chain: bool = True,
        hash_algorithm: str = AuditConstants.HASH_ALGORITHM,
        fsync_on_write: bool = False,
    ):
        """Initialize file audit store.
        
        Args:
            log_dir: Directory for audit logs. Uses default if not provided.
            log_filename_pattern: Pattern for log filename. {date} is replaced.
            enable_hash_chain: Whether to enable hash chain integrity.
            hash_algorithm: Hash algorithm for integrity checks.
            fsync_on_write: Whether to fsync after each write (slower but safer).
        """
        self.log_dir = Path(log_dir) if log_dir else self.DEFAULT_LOG_DIR
        self.log_filename_pattern = log_filename_pattern
        self.enable_hash_chain = enable_hash_chain
        self.fsync_on_write = fsync_on_write
        
        self._lock = threading.Lock()
        self._chain = _HashChain(hash_algorithm)
        self._chain_date: Optional[str] = None
        
        self.log_dir.mkdir(parents=True, exist_ok=True)
        try:
            os.chmod(self.log_dir, 0o700)
        except OSError:
            pass  # May fail on some systems; proceed anyway
        
        if self.enable_hash_chain:
            self._chain_date = self._today()
            self._chain.last_hash = self._scan_log_for_last_hash(self._chain_date)
    
    @staticmethod
    def _today() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d")
    
    def _log_path(self, date: str) -> Path:
        return self.log_dir / self.log_filename_pattern.replace("{date}", date)
    
    def _scan_log_for_last_hash(self, date: str) -> Optional[str]:
        """Read the last hash from a day's log file."""
        log_path = self._log_path(date)
        if not log_path.exists():
            return None
        
        last_hash = None
        try:
            with open(log_path, "r") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        last_hash = json.loads(line).get("entry_hash")
        except (json.JSONDecodeError, IOError):
            return None
        return last_hash
    
    def append_event(self, event: AuditEvent) -> AuditEvent:
        """Append event to today's log file with file locking."""
        with self._lock:
            today = self._today()
            if self.enable_hash_chain:
                # Each daily file carries its own chain
                if today != self._chain_date:
                    self._chain_date = today
                    self._chain.last_hash = self._scan_log_for_last_hash(today)
                event = self._chain.link(event)
            
            log_path = self._log_path(today)
            try:
                fd = os.open(
                    str(log_path),
                    os.O_WRONLY | os.O_CREAT | os.O_APPEND,
                    0o600
                )
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX)
                    try:
                        os.write(fd, (event.to_jsonl() + "\n").encode("utf-8"))
                        if self.fsync_on_write:
                            os.fsync(fd)
                    finally:
                        fcntl.flock(fd, fcntl.LOCK_UN)
                finally:
                    os.close(fd)
            except OSError as e:
                raise AuditError(f"Failed to append audit event: {e}")
            
            if self.enable_hash_chain:
                self._chain.last_hash = event.entry_hash
            
            return event
    
    def get_events(
        self,
        event_type: Optional[AuditEventType] = None,
        principal_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> Generator[AuditEvent, None, None]:
        """Retrieve events from one day's log with optional filtering."""
        log_path = self._log_path(date or self._today())
        if not log_path.exists():
            return
        
        with open(log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    event = AuditEvent.from_jsonl(line)
                except (json.JSONDecodeError, ValueError) as e:
                    logger.warning(f"Skipped malformed audit entry: {e}")
                    continue
                
                if event_type and event.event_type != event_type:
                    continue
                if principal_id and event.principal_id != principal_id:
                    continue
                yield event
    
    def verify_integrity(self, date: Optional[str] = None) -> bool:
        """Verify hash chain integrity of one day's log file.
        
        Raises:
            AuditLogIntegrityError: If the chain is broken or an entry altered
        """
        if not self.enable_hash_chain:
            return True
        
        log_path = self._log_path(date or self._today())
        if not log_path.exists():
            return True  # Empty log is valid
        
        previous_hash = None
        with open(log_path, "r") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    event_dict = json.loads(line)
                except json.JSONDecodeError as e:
                    raise AuditLogIntegrityError(
                        f"Malformed JSON at line {line_number}: {e}"
                    )
                previous_hash = self._chain.verify_line(
                    event_dict, previous_hash, f"line {line_number}"
                )
        return True
    
    def get_log_files(self) -> List[Path]:
        """Get list of all audit log files."""
        return sorted(self.log_dir.glob("*.jsonl"))
