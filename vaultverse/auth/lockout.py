"""
VaultAuth - Lockout Policy

Failed-login state machine. Counters live on the identity row and are
only ever changed through IdentityStore.update_lockout(), so concurrent
requests against the same identity cannot lose an increment.

Password logins go through claim_attempt() before the hasher runs and
settle_attempt() afterwards. record_outcome() applies a finished outcome
in one step.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from vaultverse.faults import Fault
from .core import LockoutState, utcnow
from .faults import AUTH_ACCOUNT_LOCKED, AUTH_IDENTITY_NOT_FOUND, STORE_UNAVAILABLE
from .stores import IdentityStore


class LockoutPolicy:
    """
    Per-identity lockout after repeated failed logins.

    - Each failure increments ``attempts``
    - Reaching ``max_attempts`` sets ``locked_until = now + lockout_duration``
    - Success resets both fields
    - Expiry is lazy: the first failure after the lock lifts is attempt 1
    """

    def __init__(
        self,
        store: IdentityStore,
        max_attempts: int = 5,
        lockout_duration: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.store = store
        self.max_attempts = max_attempts
        self.lockout_duration = lockout_duration
        self.clock = clock or utcnow
        self.logger = logger or logging.getLogger("vaultverse.lockout")

    async def state(self, identity_id: str) -> LockoutState:
        """Current lockout state of an identity."""
        try:
            identity = await self.store.get(identity_id)
        except Fault:
            raise
        except Exception as exc:
            raise STORE_UNAVAILABLE(operation="get_identity") from exc

        if identity is None:
            raise AUTH_IDENTITY_NOT_FOUND(identity_id=identity_id)
        return identity.lockout

    async def check(self, identity_id: str) -> None:
        """
        Reject the attempt if the identity is locked.

        Consumes no attempt.

        Raises:
            AUTH_ACCOUNT_LOCKED: Lock in effect (carries retry_after seconds)
        """
        current = await self.state(identity_id)
        now = self.clock()

        if current.is_locked(now):
            raise AUTH_ACCOUNT_LOCKED(
                retry_after=current.retry_after(now),
                identity_id=identity_id,
            )

    def remaining_attempts(self, state: LockoutState) -> int:
        """Attempts left before the next lock."""
        return max(0, self.max_attempts - state.attempts)

    async def claim_attempt(self, identity_id: str) -> LockoutState:
        """
        Atomically reserve one login attempt before the password is checked.

        The reservation counts as a failure until settle_attempt() says
        otherwise.

        Raises:
            AUTH_ACCOUNT_LOCKED: Lock in effect, or the attempt budget is
                already spent by in-flight logins
        """
        now = self.clock()
        new_state = await self._apply(
            identity_id,
            lambda state: state.claim(now, self.max_attempts, self.lockout_duration),
        )

        if new_state.is_locked(now):
            raise AUTH_ACCOUNT_LOCKED(
                retry_after=new_state.retry_after(now),
                identity_id=identity_id,
            )
        return new_state

    async def settle_attempt(self, identity_id: str, success: bool) -> LockoutState:
        """
        Resolve an attempt reserved by claim_attempt().

        A failure at the threshold sets the lock. A success resets the
        counters unless a concurrent failure has locked the identity.
        """
        now = self.clock()

        if success:
            mutate = lambda state: state.settle_success(now)
        else:
            mutate = lambda state: state.settle_failure(
                now, self.max_attempts, self.lockout_duration
            )

        new_state = await self._apply(identity_id, mutate)
        if not success:
            self._log_lock(identity_id, new_state, now)
        return new_state

    async def record_outcome(self, identity_id: str, success: bool) -> LockoutState:
        """
        Apply one login outcome atomically and return the new state.

        A failure recorded while still locked leaves the state unchanged.
        """
        now = self.clock()

        if success:
            mutate = lambda state: state.reset()
        else:
            mutate = lambda state: state.after_failure(
                now, self.max_attempts, self.lockout_duration
            )

        new_state = await self._apply(identity_id, mutate)
        if not success:
            self._log_lock(identity_id, new_state, now)
        return new_state

    async def _apply(
        self,
        identity_id: str,
        mutate: Callable[[LockoutState], LockoutState],
    ) -> LockoutState:
        try:
            return await self.store.update_lockout(identity_id, mutate)
        except Fault:
            raise
        except Exception as exc:
            self.logger.error(f"Lockout update failed for identity {identity_id}: {exc}")
            raise STORE_UNAVAILABLE(operation="update_lockout") from exc

    def _log_lock(self, identity_id: str, state: LockoutState, now: datetime) -> None:
        if state.attempts >= self.max_attempts and state.is_locked(now):
            self.logger.warning(
                f"Identity {identity_id} locked until {state.locked_until.isoformat()}"
            )
