from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from tubeshelf.logger import get_logger
from tubeshelf.sync.errors import ApiError, AuthExpiredError

if TYPE_CHECKING:
    from tubeshelf.auth.base import SessionProvider

logger = get_logger(__name__)

T = TypeVar("T")

Operation = Callable[[str], Awaitable[T]]


class AuthRetryPolicy:
    """
    Refresh-once-on-401 around any remote call.

    At most one silent refresh and one extra attempt per call; a broken
    refresher can never cause a loop. A missing token counts as the first 401.
    """

    def __init__(self, session: SessionProvider):
        self._session = session

    async def _refresh(self, name: str) -> str:
        logger.debug(f"auth.refresh op={name}")
        token = await self._session.refresh_token_silently()
        if not token:
            logger.warning(f"Session refresh returned no token during {name}")
            raise AuthExpiredError(f"Session expired during {name}; sign in again")
        return token

    async def run(self, operation: Operation[T], name: str = "") -> T:
        token = self._session.get_access_token()
        refreshed = False
        if not token:
            token = await self._refresh(name)
            refreshed = True

        try:
            return await operation(token)
        except ApiError as e:
            if e.status != 401:
                raise
            if refreshed:
                raise AuthExpiredError(f"Unauthorized after refresh during {name}") from e

        token = await self._refresh(name)
        try:
            return await operation(token)
        except ApiError as e:
            if e.status == 401:
                raise AuthExpiredError(f"Unauthorized after refresh during {name}") from e
            raise
