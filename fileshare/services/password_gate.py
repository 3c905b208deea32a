"""
Password gate for protected share links.

Each access attempt is its own small state machine that starts LOCKED for a
protected link and UNLOCKED for a public one. The only transition is
LOCKED -> UNLOCKED on a matching password; a mismatch leaves it LOCKED and
raises AuthenticationError.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from passlib.exc import PasswordValueError

from fileshare.exceptions import AuthenticationError
from fileshare.models.share import ShareLink
from fileshare.services.share_store import ShareLinkStore
from fileshare.utils.prometheus_metrics import share_link_password_failures_total
from fileshare.utils.security import is_hashable_password, verify_password

logger = logging.getLogger("fileshare.gate")


class GateState(str, Enum):
    """Password gate states."""
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"


@dataclass
class UnlockResult:
    """Outcome of one access attempt that reached UNLOCKED."""

    share_link: ShareLink
    state: GateState
    bypassed: bool = False  # link has no password, no comparison was made
    counted: bool = False
    accessed_count: Optional[int] = None

    @property
    def token(self) -> str:
        return self.share_link.token


def initial_state(share_link: ShareLink) -> GateState:
    """Starting state of an access attempt for ``share_link``."""
    return GateState.LOCKED if share_link.has_password else GateState.UNLOCKED


def check(password_hash: Optional[str], password: Optional[str]) -> GateState:
    """
    Gate transition as a pure function of (stored hash, submitted password).

    No hash means the link is public. A missing password never unlocks a
    protected link, and neither does one bcrypt would truncate or refuse:
    stored passwords never exceed 72 bytes, so a longer submission cannot
    be the stored one.
    """
    if password_hash is None:
        return GateState.UNLOCKED
    if password is None or not is_hashable_password(password):
        return GateState.LOCKED
    try:
        matched = verify_password(password, password_hash)
    except PasswordValueError:
        return GateState.LOCKED
    return GateState.UNLOCKED if matched else GateState.LOCKED


class PasswordGate:
    """Verifies submitted passwords against share links in the store."""

    def __init__(self, store: ShareLinkStore):
        self.store = store

    async def verify(self, token: str, password: Optional[str] = None) -> UnlockResult:
        """
        Run one access attempt through the gate.

        Args:
            token: Share token
            password: Submitted password (ignored for public links)

        Returns:
            UnlockResult in state UNLOCKED

        Raises:
            NotFoundError / ExpiredLinkError: from the store, before any hashing
            AuthenticationError: protected link and wrong or missing password
        """
        share_link = await self.store.lookup(token)

        if initial_state(share_link) is GateState.UNLOCKED:
            return UnlockResult(share_link=share_link, state=GateState.UNLOCKED, bypassed=True)

        # bcrypt is CPU bound, keep it off the event loop
        state = await asyncio.to_thread(check, share_link.password_hash, password)
        if state is not GateState.UNLOCKED:
            share_link_password_failures_total.inc()
            logger.warning(
                "Share password rejected",
                extra={
                    "event": "share",
                    "share_id": share_link.id,
                    "reason": "missing" if password is None else "mismatch",
                },
            )
            raise AuthenticationError()

        return UnlockResult(share_link=share_link, state=GateState.UNLOCKED)
