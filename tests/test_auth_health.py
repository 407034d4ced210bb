import json

import pytest

from fakes import FakeService, http_error
from tubeshelf.auth import AuthHealthResult, AuthHealthStatus, check, get_provider
from tubeshelf.auth.providers import youtube as youtube_provider


def test_health_result_shapes():
    r = AuthHealthResult(
        provider="youtube",
        status=AuthHealthStatus.OK,
        message="ok",
    )

    assert r.provider == "youtube"
    assert r.status == AuthHealthStatus.OK


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        get_provider("vimeo")


def test_registry_returns_same_instance():
    assert get_provider("youtube") is get_provider(" YouTube ")


def test_missing_token_is_auth_invalid():
    assert check("youtube").status == AuthHealthStatus.AUTH_INVALID


def _seed_token(tmp_path):
    (tmp_path / "auth").mkdir(exist_ok=True)
    (tmp_path / "auth" / "oauth_token.json").write_text(
        json.dumps(
            {
                "token": "abc",
                "refresh_token": "r",
                "expiry": "2099-01-01T00:00:00Z",
                "client_id": "cid",
                "client_secret": "secret",
            }
        ),
        encoding="utf-8",
    )


@pytest.mark.parametrize(
    "response, expected",
    [
        ({"items": [{"id": "UC1"}]}, AuthHealthStatus.OK),
        (http_error(403, "quotaExceeded"), AuthHealthStatus.OK_API_QUOTA),
        (http_error(401, "authError"), AuthHealthStatus.AUTH_INVALID),
        (http_error(500, "backendError"), AuthHealthStatus.FAILED),
    ],
)
def test_health_check_classifies_responses(tmp_path, monkeypatch, response, expected):
    _seed_token(tmp_path)
    service = FakeService()
    service.queue("channels", "list", response)
    monkeypatch.setattr(youtube_provider, "build_youtube_service", lambda token: service)

    result = check("youtube")

    assert result.status == expected
    assert service.calls[0][2]["mine"] is True
