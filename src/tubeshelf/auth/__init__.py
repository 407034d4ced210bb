from __future__ import annotations

from tubeshelf.auth.base import (
    AuthHealthResult,
    AuthHealthStatus,
    AuthProvider,
    SessionProvider,
)
from tubeshelf.auth.health import check
from tubeshelf.auth.registry import get_provider

__all__ = [
    "AuthHealthResult",
    "AuthHealthStatus",
    "AuthProvider",
    "SessionProvider",
    "check",
    "get_provider",
]
