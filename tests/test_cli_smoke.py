import asyncio

import pytest

from fakes import make_engine
from tubeshelf.cli.common import (
    EXIT_AUTH,
    EXIT_FAILED,
    EXIT_OK,
    EXIT_PARTIAL,
    EXIT_QUOTA,
    format_duration,
    playlist_arg,
    run_engine_command,
)
from tubeshelf.main import build_parser, main
from tubeshelf.sync.errors import (
    AuthExpiredError,
    InconsistentStateError,
    NetworkError,
    QuotaExhaustedError,
)


@pytest.mark.parametrize("argv", [["auth", "--help"], ["show", "--help"], ["move", "--help"]])
def test_subcommand_help_runs(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    assert exc.value.code == 0


@pytest.mark.parametrize("argv", [[], ["help"], ["help", "reorder"], ["delete", "help"]])
def test_help_dispatch_returns_zero(argv, capsys):
    assert main(argv) == 0
    assert "usage" in capsys.readouterr().out


def test_parser_accepts_playlist_urls():
    args = build_parser().parse_args(
        ["reorder", "https://www.youtube.com/playlist?list=PLabc", "item-1", "2"]
    )
    assert args.playlist_id == "PLabc"
    assert args.new_index == 2


def test_playlist_arg_rejects_system_playlists():
    import argparse

    with pytest.raises(argparse.ArgumentTypeError):
        playlist_arg("WL")
    with pytest.raises(argparse.ArgumentTypeError):
        playlist_arg("https://example.com/nothing")


@pytest.mark.parametrize(
    "error, code",
    [
        (None, EXIT_OK),
        (QuotaExhaustedError(403, "quota"), EXIT_QUOTA),
        (AuthExpiredError("expired"), EXIT_AUTH),
        (InconsistentStateError("half done", ["A", "B"]), EXIT_PARTIAL),
        (NetworkError("down"), EXIT_FAILED),
    ],
)
def test_outcomes_map_to_exit_codes(error, code):
    async def body(engine):
        await asyncio.sleep(0)
        if error is not None:
            raise error

    engine, _, _, _ = make_engine()
    assert run_engine_command("test", body, engine=engine) == code


def test_engine_command_runs_real_mutation():
    engine, remote, _, cache = make_engine()
    remote.seed("A", "x", "y")

    async def body(engine):
        await engine.load_all("A")
        await engine.delete("A", "x")

    assert run_engine_command("delete", body, engine=engine) == EXIT_OK
    assert [i.item_id for i in remote.playlists["A"]] == ["y"]


def test_format_duration():
    assert format_duration(None) == "-"
    assert format_duration(65) == "1:05"
    assert format_duration(3723) == "1:02:03"


def test_delete_command_refuses_item_from_another_playlist(monkeypatch):
    from tubeshelf.cli import cli_playlists, common

    engine, remote, _, _ = make_engine()
    remote.seed("PLaaa", "a1", "a2")
    remote.seed("PLbbb", "b1", "b2")
    monkeypatch.setattr(common, "build_engine", lambda session=None: engine)

    args = build_parser().parse_args(["delete", "PLaaa", "b1"])

    assert cli_playlists.handle_delete(args) == EXIT_FAILED
    assert remote.count("delete") == 0
    assert [i.item_id for i in remote.playlists["PLbbb"]] == ["b1", "b2"]
