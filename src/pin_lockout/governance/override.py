"""Override Authority - emergency codes and manager overrides.

Both paths end in the state machine's shared unlock. Neither can clear a
permanently locked principal, and a rejected request never changes state;
it is only audited.
"""

import hashlib
import hmac
import logging
import threading
from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol, runtime_checkable

from pin_lockout.common.constants import AuditConstants
from pin_lockout.core.types import LockoutState, UnlockReason
from pin_lockout.governance.audit.sink import AuditSink
from pin_lockout.governance.schemas import OverrideRecord, OverrideType

if TYPE_CHECKING:
    from pin_lockout.lockout.state_machine import LockoutStateMachine

logger = logging.getLogger(__name__)


def _digest(code: str) -> str:
    return hashlib.new(AuditConstants.HASH_ALGORITHM, code.encode("utf-8")).hexdigest()


class EmergencyCodeSet:
    """Emergency unlock codes, held only as digests.

    Membership is checked against every digest with hmac.compare_digest so
    the time taken does not depend on which code (if any) matched.
    """

    def __init__(self, codes: Iterable[str] = (), single_use: bool = False):
        self.single_use = single_use
        self._lock = threading.Lock()
        self._digests: List[str] = []
        self._add_all(codes)

    def _add_all(self, codes: Iterable[str]) -> None:
        for code in codes:
            if not code or not code.strip():
                raise ValueError("Emergency unlock codes must be non-blank")
            digest = _digest(code)
            if digest not in self._digests:
                self._digests.append(digest)

    def _index(self, code: str) -> Optional[int]:
        candidate = _digest(code or "")
        found = None
        for i, digest in enumerate(self._digests):
            if hmac.compare_digest(candidate, digest) and found is None:
                found = i
        return found

    def matches(self, code: str) -> bool:
        with self._lock:
            return self._index(code) is not None

    def consume(self, code: str) -> bool:
        """Check a code and, for single-use sets, remove it on match."""
        with self._lock:
            index = self._index(code)
            if index is None:
                return False
            if self.single_use:
                del self._digests[index]
            return True

    def rotate(self, codes: Iterable[str]) -> None:
        """Replace every code."""
        with self._lock:
            previous = self._digests
            self._digests = []
            try:
                self._add_all(codes)
            except ValueError:
                self._digests = previous
                raise

    def revoke(self, code: str) -> bool:
        with self._lock:
            index = self._index(code)
            if index is None:
                return False
            del self._digests[index]
            return True

    def __len__(self) -> int:
        return len(self._digests)

    def __bool__(self) -> bool:
        return bool(self._digests)


@runtime_checkable
class ManagerCredentialVerifier(Protocol):
    """Verifies a manager's proof of identity (PIN, badge, SSO assertion)."""

    def verify(self, manager_id: str, proof: str) -> bool:
        ...


class OverrideAuthority:
    """Validates emergency and manager unlock requests."""

    def __init__(
        self,
        state_machine: "LockoutStateMachine",
        audit: AuditSink,
        codes: Optional[EmergencyCodeSet] = None,
        verifier: Optional[ManagerCredentialVerifier] = None,
    ):
        """
        Args:
            state_machine: Performs the actual unlock
            audit: Receives override and denial events
            codes: Emergency codes; emergency unlock always fails without any
            verifier: Checks manager proof; proof is not checked if None
        """
        self.state_machine = state_machine
        self.audit = audit
        self.codes = codes if codes is not None else EmergencyCodeSet()
        self.verifier = verifier

    def emergency_codes_available(self) -> bool:
        return bool(self.codes)

    def _deny(
        self,
        principal_id: str,
        override_type: OverrideType,
        actor_id: Optional[str],
        reason: str,
    ) -> bool:
        logger.warning(
            f"{override_type.value.capitalize()} unlock denied for {principal_id}: {reason}"
        )
        self.audit.log_override_denied(principal_id, override_type, actor_id, reason)
        return False

    def emergency_unlock(self, principal_id: str, code: str, unlocked_by: str) -> bool:
        """Unlock a principal with an emergency code.

        Returns:
            True if the principal was unlocked
        """
        with self.state_machine.locks.hold(principal_id):
            # Nothing is created or expired until the code checks out
            if not self.codes.matches(code):
                return self._deny(principal_id, OverrideType.EMERGENCY, unlocked_by, "invalid_code")
            if not self.state_machine.has_status(principal_id):
                return self._deny(principal_id, OverrideType.EMERGENCY, unlocked_by, "not_locked")
            status = self.state_machine.get_status(principal_id)

            if status.state == LockoutState.PERMANENTLY_LOCKED:
                return self._deny(
                    principal_id, OverrideType.EMERGENCY, unlocked_by, "permanently_locked"
                )
            if not status.is_locked:
                return self._deny(principal_id, OverrideType.EMERGENCY, unlocked_by, "not_locked")

            # Re-checked under the set's lock so a single-use code is spent once
            if not self.codes.consume(code):
                return self._deny(principal_id, OverrideType.EMERGENCY, unlocked_by, "invalid_code")

            self.state_machine.unlock(
                principal_id, UnlockReason.EMERGENCY_UNLOCK.value, unlocked_by
            )
            self.audit.log_emergency_unlock(OverrideRecord(
                override_type=OverrideType.EMERGENCY,
                principal_id=principal_id,
                actor_id=unlocked_by,
                previous_state=status.state.value,
                previous_risk_level=status.risk_level.value,
            ))
            if self.codes.single_use:
                self.audit.log_emergency_codes_changed("consumed", unlocked_by, len(self.codes))
            return True

    def manager_unlock(
        self,
        principal_id: str,
        manager_id: str,
        proof: str,
        justification: str,
    ) -> bool:
        """Unlock a principal whose lockout requires a manager.

        Returns:
            True if the principal was unlocked
        """
        with self.state_machine.locks.hold(principal_id):
            # Read without creating or expiring until the manager is verified
            status = self.state_machine.snapshot_of(principal_id)

            if status is None or not status.requires_manager_override:
                return self._deny(
                    principal_id, OverrideType.MANAGER, manager_id, "override_not_required"
                )
            if status.state == LockoutState.PERMANENTLY_LOCKED:
                return self._deny(principal_id, OverrideType.MANAGER, manager_id, "permanently_locked")
            if not justification or not justification.strip():
                return self._deny(principal_id, OverrideType.MANAGER, manager_id, "missing_justification")
            if self.verifier is not None and not self.verifier.verify(manager_id, proof):
                return self._deny(principal_id, OverrideType.MANAGER, manager_id, "invalid_credentials")

            # Overdue locks expire rather than count as a manager override
            self.state_machine.expire_if_due(principal_id, UnlockReason.LOCKOUT_EXPIRED.value)
            if not self.state_machine.unlock(
                principal_id, UnlockReason.MANAGER_OVERRIDE.value, manager_id
            ):
                return self._deny(principal_id, OverrideType.MANAGER, manager_id, "not_locked")

            self.audit.log_manager_override(OverrideRecord(
                override_type=OverrideType.MANAGER,
                principal_id=principal_id,
                actor_id=manager_id,
                justification=justification.strip(),
                previous_state=status.state.value,
                previous_risk_level=status.risk_level.value,
            ))
            return True

    def rotate_emergency_codes(self, codes: Iterable[str], changed_by: Optional[str] = None) -> None:
        self.codes.rotate(codes)
        logger.info(f"Emergency unlock codes rotated ({len(self.codes)} active)")
        self.audit.log_emergency_codes_changed("rotated", changed_by, len(self.codes))

    def revoke_emergency_code(self, code: str, changed_by: Optional[str] = None) -> bool:
        revoked = self.codes.revoke(code)
        if revoked:
            logger.info(f"Emergency unlock code revoked ({len(self.codes)} active)")
            self.audit.log_emergency_codes_changed("revoked", changed_by, len(self.codes))
        return revoked
