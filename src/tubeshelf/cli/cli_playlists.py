from __future__ import annotations

import argparse
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn

from tubeshelf.cli.common import (
    add_output_flags,
    format_duration,
    playlist_arg,
    print_table,
    run_engine_command,
)
from tubeshelf.env import get_logging_env
from tubeshelf.logger import get_logger
from tubeshelf.sync import LoadProgress, MutationEngine, PlaylistSnapshot
from tubeshelf.sync.progress import ProgressRecord, ProgressStore, choose_current_video

log = get_logger("cli.playlists")


# ------------------------------------------------------------
# Parser
# ------------------------------------------------------------


def build_playlists_parser(subparsers: argparse._SubParsersAction) -> None:
    playlists = subparsers.add_parser("playlists", help="List your playlists")
    add_output_flags(playlists)

    show = subparsers.add_parser("show", help="Load a playlist and print its items")
    show.add_argument("playlist_id", type=playlist_arg, help="Playlist id or URL")
    show.add_argument("--video", help="Video id to mark as current")
    add_output_flags(show)

    delete = subparsers.add_parser("delete", help="Remove an item from a playlist")
    delete.add_argument("playlist_id", type=playlist_arg)
    delete.add_argument("item_id", help="Playlist item id (see `show`)")
    add_output_flags(delete)

    reorder = subparsers.add_parser("reorder", help="Move an item within a playlist")
    reorder.add_argument("playlist_id", type=playlist_arg)
    reorder.add_argument("item_id")
    reorder.add_argument(
        "new_index",
        type=int,
        help="0-based target index among available videos",
    )
    add_output_flags(reorder)

    move = subparsers.add_parser("move", help="Move an item to another playlist")
    move.add_argument("playlist_id", type=playlist_arg, help="Source playlist")
    move.add_argument("target_playlist_id", type=playlist_arg)
    move.add_argument("item_id")
    add_output_flags(move)

    replace = subparsers.add_parser(
        "replace", help="Swap the video behind an item, keeping its position"
    )
    replace.add_argument("playlist_id", type=playlist_arg)
    replace.add_argument("item_id")
    replace.add_argument("video_id", help="Replacement video id")
    replace.add_argument("--title", help="Title to show until the next reload")
    add_output_flags(replace)


# ------------------------------------------------------------
# Rendering
# ------------------------------------------------------------


def _build_progress(console: Console) -> Progress:
    return Progress(
        TextColumn("{task.description}"),
        BarColumn(bar_width=None),
        TextColumn("{task.completed}/{task.fields[expected]}"),
        expand=True,
        console=console,
        disable=get_logging_env().quiet,
    )


def render_snapshot(
    snapshot: PlaylistSnapshot,
    current_video: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    rows = []
    available_index = 0
    for item in snapshot.items:
        if item.is_available:
            index = str(available_index)
            available_index += 1
        else:
            index = "-"
        marker = ">" if current_video and item.video_id == current_video else ""
        rows.append(
            [
                marker,
                index,
                item.title,
                item.channel_title or "",
                format_duration(item.duration_seconds),
                item.item_id,
            ]
        )

    title = snapshot.snippet.title if snapshot.snippet else snapshot.playlist_id
    print_table(
        ["", "#", "Title", "Channel", "Length", "Item id"],
        rows,
        title=title,
        console=console,
    )

    summary = (
        f"{len(snapshot.available_items)} videos, "
        f"total {format_duration(snapshot.total_duration_seconds)}"
    )
    if snapshot.unavailable_count:
        summary += f" ({snapshot.unavailable_count} unavailable)"
    (console or Console()).print(summary, style="dim")


# ------------------------------------------------------------
# Handlers
# ------------------------------------------------------------


def handle_playlists(args: argparse.Namespace) -> int:
    async def body(engine: MutationEngine) -> None:
        playlists = await engine.aggregator.load_user_playlists()
        if get_logging_env().quiet:
            return
        print_table(
            ["Title", "Playlist id", "Items", "Privacy"],
            [
                [
                    p.title,
                    p.playlist_id,
                    "?" if p.item_count is None else str(p.item_count),
                    p.privacy_status.value,
                ]
                for p in playlists
            ],
        )

    return run_engine_command("playlists", body)


def handle_show(args: argparse.Namespace) -> int:
    store = ProgressStore()
    console = Console()

    async def body(engine: MutationEngine) -> None:
        with _build_progress(console) as progress:
            task = progress.add_task("Loading", total=None, expected="?")

            def on_progress(p: LoadProgress) -> None:
                progress.update(
                    task,
                    completed=p.items_loaded,
                    total=p.total_items,
                    expected="?" if p.total_items is None else p.total_items,
                )

            snapshot = await engine.open_playlist(args.playlist_id, on_progress)

        if snapshot is None:
            return

        previous = store.load()
        remembered = (
            previous.video_id if previous.playlist_id == args.playlist_id else None
        )
        current = choose_current_video(snapshot.items, args.video, remembered)
        try:
            store.save(ProgressRecord(playlist_id=args.playlist_id, video_id=current))
        except OSError as e:
            log.warning(f"Could not save progress record: {e}")

        if not get_logging_env().quiet:
            render_snapshot(snapshot, current, console)

    return run_engine_command("show", body)


def handle_delete(args: argparse.Namespace) -> int:
    async def body(engine: MutationEngine) -> None:
        await engine.load_all(args.playlist_id)
        await engine.delete(args.playlist_id, args.item_id)
        log.info(f"Deleted {args.item_id} from {args.playlist_id}")

    return run_engine_command("delete", body)


def handle_reorder(args: argparse.Namespace) -> int:
    async def body(engine: MutationEngine) -> None:
        snapshot = await engine.load_all(args.playlist_id)
        available = [i.item_id for i in snapshot.available_items]
        old_index = available.index(args.item_id) if args.item_id in available else -1
        await engine.reorder(args.playlist_id, args.item_id, old_index, args.new_index)
        log.info(f"Moved {args.item_id} to index {args.new_index} in {args.playlist_id}")

    return run_engine_command("reorder", body)


def handle_move(args: argparse.Namespace) -> int:
    async def body(engine: MutationEngine) -> None:
        await engine.load_all(args.playlist_id)
        new_item_id = await engine.move(
            args.playlist_id, args.target_playlist_id, args.item_id
        )
        log.info(
            f"Moved {args.item_id} from {args.playlist_id} to "
            f"{args.target_playlist_id} as {new_item_id}"
        )

    return run_engine_command("move", body)


def handle_replace(args: argparse.Namespace) -> int:
    async def body(engine: MutationEngine) -> None:
        await engine.load_all(args.playlist_id)
        new_item_id = await engine.replace(
            args.playlist_id, args.item_id, args.video_id, title=args.title
        )
        log.info(f"Replaced {args.item_id} with {args.video_id} as {new_item_id}")

    return run_engine_command("replace", body)


HANDLERS = {
    "playlists": handle_playlists,
    "show": handle_show,
    "delete": handle_delete,
    "reorder": handle_reorder,
    "move": handle_move,
    "replace": handle_replace,
}
