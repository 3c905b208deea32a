"""
Access accounting for share links.
"""
import logging

from fileshare.exceptions import NotAuthorizedError
from fileshare.services.password_gate import GateState, UnlockResult
from fileshare.services.share_store import ShareLinkStore

logger = logging.getLogger("fileshare.counter")


class AccessCounter:
    """
    Counts successful accesses. One UNLOCKED result is worth exactly one
    increment; the increment itself is a single UPDATE in the store.
    """

    def __init__(self, store: ShareLinkStore):
        self.store = store

    async def increment_on_unlock(self, result: UnlockResult) -> int:
        """
        Record the access represented by ``result``.

        Returns:
            The counter value after this access. Calling again with the same
            result returns the same value without touching the store.

        Raises:
            NotAuthorizedError: the result is not UNLOCKED
            NotFoundError / ExpiredLinkError: link gone or expired meanwhile
        """
        if result.state is not GateState.UNLOCKED:
            raise NotAuthorizedError()
        if result.counted:
            return result.accessed_count

        count = await self.store.increment_counter(result.token)
        result.counted = True
        result.accessed_count = count
        logger.debug(
            "Share access counted",
            extra={"event": "share", "share_id": result.share_link.id, "accessed_count": count},
        )
        return count
