from tubeshelf.env import paths


def test_paths_respect_env_overrides(tmp_path):
    assert paths.logs_dir() == tmp_path / "logs"
    assert paths.auth_dir() == tmp_path / "auth"
    assert paths.state_dir() == tmp_path / "state"

    assert paths.logs_dir().exists()
    assert paths.auth_dir().exists()
    assert paths.state_dir().exists()


def test_file_helpers(tmp_path):
    assert paths.auth_token_file() == tmp_path / "auth" / "oauth_token.json"
    assert paths.auth_client_secrets_file() == tmp_path / "auth" / "client_secret.json"
    assert paths.progress_record_file() == tmp_path / "state" / "progress.json"


def test_module_logs_dir(tmp_path):
    mod = paths.module_logs_dir("show")

    assert mod.exists()
    assert mod == tmp_path / "logs" / "show"
