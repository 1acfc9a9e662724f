"""Example: a brute-force burst against one POS terminal."""

from pin_lockout.common.config.lockout import LockoutConfig
from pin_lockout.common.logging import get_logger
from pin_lockout.service import LockoutService
from pin_lockout.utils import describe_state, format_lockout_duration

logger = get_logger(__name__)


def example_brute_force_scenario():
    """
    Example scenario: someone guesses PINs at a terminal.
    
    1. Five wrong PINs arrive seconds apart
    2. The risk scorer flags the burst as rapid and patterned
    3. The principal is locked and a manager must approve the unlock
    4. The manager unlocks with a written justification
    """
    service = LockoutService(
        config=LockoutConfig(emergency_unlock_codes=("DEMO-0001",)),
    )
    
    status = None
    for _ in range(5):
        status = service.record_attempt(
            "emp_042", "pos_front_1", "10.20.0.14", success=False,
            metadata={"tenant_id": "store_12", "error_code": "PIN_MISMATCH"},
        )
    
    logger.info(
        f"{status.principal_id}: {describe_state(status.state)} for "
        f"{format_lockout_duration(status.lockout_duration)} "
        f"(risk {status.risk_level.value}, manager needed: {status.requires_manager_override})"
    )
    
    unlocked = service.manager_unlock(
        "emp_042", "mgr_007", proof="", justification="Employee forgot new PIN; ID checked"
    )
    logger.info(f"Manager unlock accepted: {unlocked}")
    
    service.shutdown()
    return service.get_lockout_status("emp_042")


if __name__ == "__main__":
    status = example_brute_force_scenario()
    print(f"Final state: {describe_state(status.state)}")
