from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class AuthHealthStatus(str, Enum):
    OK = "ok"
    OK_API_QUOTA = "ok_api_quota"
    AUTH_INVALID = "auth_invalid"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthHealthResult:
    provider: str
    status: AuthHealthStatus
    message: str


class SessionProvider(Protocol):
    """
    What the sync core needs from a session. It never initiates sign-in.

    - get_access_token() returns the current bearer token, or None
    - refresh_token_silently() obtains a fresh token without user interaction,
      or None when that is impossible
    """

    @property
    def is_authenticated(self) -> bool: ...

    def get_access_token(self) -> Optional[str]: ...

    async def refresh_token_silently(self) -> Optional[str]: ...


class AuthProvider(SessionProvider, Protocol):
    """
    Provider interface used by the CLI. Keep it minimal.

    - ensure_ready() may refresh tokens or prompt login (interactive)
    - health_check() performs a cheap authenticated call to validate auth
    """

    name: str

    def ensure_ready(self) -> None: ...

    def health_check(self) -> AuthHealthResult: ...
