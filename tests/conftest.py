import logging

import pytest


@pytest.fixture(autouse=True)
def clean_env_and_state(tmp_path, monkeypatch):
    """
    Ensure tests don't leak env, logger state, cached env views, or auth providers.
    """

    keys = [
        "TUBESHELF_COMMAND",
        "TUBESHELF_RUN_ID",
        "TUBESHELF_VERBOSE",
        "TUBESHELF_QUIET",
        "TUBESHELF_ENRICH_DURATIONS",
        "YT_PAGE_SIZE",
        "YT_REQUEST_TIMEOUT",
        "LOG_LEVEL",
        "LOG_RETENTION",
    ]
    for k in keys:
        monkeypatch.delenv(k, raising=False)

    # Never write into the project tree
    monkeypatch.setenv("TUBESHELF_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("TUBESHELF_AUTH_DIR", str(tmp_path / "auth"))
    monkeypatch.setenv("TUBESHELF_STATE_DIR", str(tmp_path / "state"))

    from tubeshelf.env import reset_env_caches

    reset_env_caches()

    # Reset logger global state
    import tubeshelf.logger.state

    tubeshelf.logger.state.reset()

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    from tubeshelf.auth.registry import reset_providers

    reset_providers()

    yield

    reset_env_caches()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
