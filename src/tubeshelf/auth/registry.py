from __future__ import annotations

from typing import Callable, Dict

from tubeshelf.auth.base import AuthProvider
from tubeshelf.auth.providers.youtube import YouTubeOAuthProvider

_FACTORIES: Dict[str, Callable[[], AuthProvider]] = {
    "youtube": YouTubeOAuthProvider,
}

_PROVIDERS: Dict[str, AuthProvider] = {}


def get_provider(name: str) -> AuthProvider:
    key = (name or "").strip().lower()
    if key not in _FACTORIES:
        raise ValueError(f"Unknown auth provider: {name}")
    if key not in _PROVIDERS:
        _PROVIDERS[key] = _FACTORIES[key]()
    return _PROVIDERS[key]


def reset_providers() -> None:
    """Drop cached provider instances (credentials are reloaded on next use)."""
    _PROVIDERS.clear()
