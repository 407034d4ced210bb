import asyncio

import pytest

from fakes import FakeSession
from tubeshelf.sync.auth_retry import AuthRetryPolicy
from tubeshelf.sync.errors import ApiError, AuthExpiredError, NetworkError


class ScriptedOperation:
    """Returns or raises the scripted outcomes in order, recording tokens."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.tokens = []

    async def __call__(self, token):
        self.tokens.append(token)
        await asyncio.sleep(0)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_success_needs_no_refresh():
    session = FakeSession()
    op = ScriptedOperation("ok")

    assert asyncio.run(AuthRetryPolicy(session).run(op, "op")) == "ok"
    assert session.refresh_calls == 0
    assert op.tokens == ["tok-1"]


def test_single_401_refreshes_and_retries_once():
    session = FakeSession()
    op = ScriptedOperation(ApiError(401), "ok")

    assert asyncio.run(AuthRetryPolicy(session).run(op, "op")) == "ok"
    assert session.refresh_calls == 1
    assert op.tokens == ["tok-1", "tok-2"]


def test_401_twice_raises_auth_expired_after_one_refresh():
    session = FakeSession()
    op = ScriptedOperation(ApiError(401), ApiError(401), "never reached")

    with pytest.raises(AuthExpiredError):
        asyncio.run(AuthRetryPolicy(session).run(op, "op"))

    assert session.refresh_calls == 1
    assert len(op.tokens) == 2


def test_refresh_returning_none_raises_auth_expired():
    session = FakeSession(refreshed=None)
    op = ScriptedOperation(ApiError(401))

    with pytest.raises(AuthExpiredError):
        asyncio.run(AuthRetryPolicy(session).run(op, "op"))

    assert session.refresh_calls == 1
    assert op.tokens == ["tok-1"]


def test_missing_token_refreshes_before_first_attempt():
    session = FakeSession(token=None)
    op = ScriptedOperation("ok")

    assert asyncio.run(AuthRetryPolicy(session).run(op, "op")) == "ok"
    assert session.refresh_calls == 1
    assert op.tokens == ["tok-2"]


def test_missing_token_then_401_does_not_refresh_again():
    session = FakeSession(token=None)
    op = ScriptedOperation(ApiError(401), "never reached")

    with pytest.raises(AuthExpiredError):
        asyncio.run(AuthRetryPolicy(session).run(op, "op"))

    assert session.refresh_calls == 1


def test_non_auth_errors_pass_through_without_refresh():
    session = FakeSession()

    with pytest.raises(ApiError) as exc:
        asyncio.run(AuthRetryPolicy(session).run(ScriptedOperation(ApiError(500)), "op"))
    assert exc.value.status == 500

    with pytest.raises(NetworkError):
        asyncio.run(AuthRetryPolicy(session).run(ScriptedOperation(NetworkError("down")), "op"))

    assert session.refresh_calls == 0


def test_error_after_refresh_is_not_retried_again():
    session = FakeSession()
    op = ScriptedOperation(ApiError(401), ApiError(503), "never reached")

    with pytest.raises(ApiError) as exc:
        asyncio.run(AuthRetryPolicy(session).run(op, "op"))

    assert exc.value.status == 503
    assert session.refresh_calls == 1
