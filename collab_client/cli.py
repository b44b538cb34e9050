#!/usr/bin/env python
"""Headless collaborative playlist client.

One-shot commands talk to the API directly; if the server is unreachable
the mutation is saved to the offline queue and sent by the next ``sync`` or
``watch``. ``watch`` keeps a live view of the playlist until interrupted.
"""
import argparse
import asyncio
import config
import sys
from collab_client.api import HttpPlaylistAPI
from collab_client.offline_queue import OfflineAction, OfflineQueue, dispatch, replay
from collab_client.reconcile import SORT_MANUAL, SORT_VOTES, canonical_order, optimistic_move, sort_for_display
from collab_client.storage import LocalStore
from collab_client.sync import SyncEngine
from collab_client.transport import SseEventSource
from collab_client.views import filter_tracks, format_time, now_playing, total_duration
from core.errors import NotFound, PlaylistError, TransportFailure
from core.logging import setup_logging


def render_playlist(items, mode: str = SORT_MANUAL) -> str:
    """Text rendering of the playlist with a duration header."""
    items = list(items)
    lines = [f"{len(items)} tracks, {format_time(total_duration(items))} total"]
    for index, item in enumerate(sort_for_display(items, mode), start=1):
        marker = ">" if item.get("is_playing") else " "
        track = item["track"]
        lines.append(
            f"{marker} {index:>3}. {track['title']} - {track['artist']}"
            f"  [{format_time(track['duration_seconds'])}]  {item['votes']:+d}  ({item['added_by']})  {item['id']}"
        )
    return "\n".join(lines)


async def run_action(api: HttpPlaylistAPI, queue: OfflineQueue, action: OfflineAction) -> int:
    try:
        result = await dispatch(api, action)
    except TransportFailure as e:
        queue.enqueue(action)
        print(f"Server unreachable ({e}); queued for later ({len(queue)} pending)")
        return 0
    except PlaylistError as e:
        print(f"Error: {e.code}: {e}", file=sys.stderr)
        return 1
    if isinstance(result, dict) and "votes" in result:
        print(f"{result['id']}: {result['votes']} votes")
    elif isinstance(result, dict) and "track" in result:
        print(f"Added {result['track']['title']} as {result['id']}")
    else:
        print("OK")
    return 0


async def move_action(api: HttpPlaylistAPI, item_id: str, index: int) -> OfflineAction:
    """Resolve a display index to a position key against the current playlist."""
    items = await api.fetch_playlist()
    _, position = optimistic_move(canonical_order(items), item_id, index)
    if position is None:
        raise NotFound(details={"id": item_id})
    return OfflineAction.move(item_id, position)


async def watch(args, api: HttpPlaylistAPI, queue: OfflineQueue) -> int:
    engine = SyncEngine(
        api,
        SseEventSource(args.url, read_timeout=config.STREAM_READ_TIMEOUT),
        queue,
        added_by=args.name,
    )
    last = {"render": None}

    def show(e: SyncEngine) -> None:
        current = now_playing(e.items)
        header = f"[{e.status.value}] queued={e.queued}"
        if current is not None:
            header += f"  now playing: {current['track']['title']}"
        render = f"{header}\n{render_playlist(e.items, args.sort)}"
        if render != last["render"]:
            last["render"] = render
            print(f"\n{render}", flush=True)

    engine.add_listener(show)
    await engine.load()
    try:
        await engine.start()
    finally:
        await engine.close()
    return 0


async def main_async(args) -> int:
    api = HttpPlaylistAPI(args.url, timeout=config.REQUEST_TIMEOUT)
    queue = OfflineQueue(LocalStore(args.store))
    try:
        if args.command == "watch":
            return await watch(args, api, queue)

        if args.command == "tracks":
            tracks = filter_tracks(await api.fetch_tracks(), args.query or "", args.genre)
            for track in tracks:
                print(f"{track['id']:>12}  {track['title']} - {track['artist']}  [{format_time(track['duration_seconds'])}]")
            return 0

        if args.command == "list":
            print(render_playlist(await api.fetch_playlist(), args.sort))
            return 0

        if args.command == "sync":
            report = await replay(queue, api)
            print(f"sent={len(report.sent)} requeued={len(report.requeued)}")
            if report.error is not None:
                action = report.requeued[0]
                print(f"  stopped at {action.type} {action.id or action.track_id}: {report.error.code}")
            return 1 if report.stopped else 0

        if args.command == "pending":
            for action in queue.load():
                print(action.to_record())
            return 0

        if args.command == "add":
            action = OfflineAction.add(args.track_id, args.name)
        elif args.command == "remove":
            action = OfflineAction.remove(args.item_id)
        elif args.command == "vote":
            action = OfflineAction.vote(args.item_id, args.direction)
        elif args.command == "play":
            action = OfflineAction.play(args.item_id)
        else:
            action = await move_action(api, args.item_id, args.index)
        return await run_action(api, queue, action)
    except TransportFailure as e:
        print(f"Server unreachable: {e}", file=sys.stderr)
        return 2
    except PlaylistError as e:
        print(f"Error: {e.code}: {e}", file=sys.stderr)
        return 1
    finally:
        api.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collaborative playlist client")
    parser.add_argument("--url", default=config.API_URL, help="API server root (default: %(default)s)")
    parser.add_argument("--store", default=config.OFFLINE_STORE, help="Offline queue file (default: %(default)s)")
    parser.add_argument("--name", default=config.DEFAULT_ADDED_BY, help="Name shown on tracks you add")
    sub = parser.add_subparsers(dest="command", required=True)

    watch_p = sub.add_parser("watch", help="Follow the playlist live")
    watch_p.add_argument("--sort", choices=[SORT_MANUAL, SORT_VOTES], default=SORT_MANUAL)

    list_p = sub.add_parser("list", help="Show the playlist")
    list_p.add_argument("--sort", choices=[SORT_MANUAL, SORT_VOTES], default=SORT_MANUAL)

    tracks_p = sub.add_parser("tracks", help="Browse the catalog")
    tracks_p.add_argument("query", nargs="?")
    tracks_p.add_argument("--genre", default="All")

    add_p = sub.add_parser("add", help="Add a track")
    add_p.add_argument("track_id")

    for name in ("remove", "play"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a playlist item")
        p.add_argument("item_id")

    vote_p = sub.add_parser("vote", help="Vote on a playlist item")
    vote_p.add_argument("item_id")
    vote_p.add_argument("direction", choices=["up", "down"])

    move_p = sub.add_parser("move", help="Move an item to a 1-based slot in manual order")
    move_p.add_argument("item_id")
    move_p.add_argument("index", type=int)

    sub.add_parser("sync", help="Send actions queued while offline")
    sub.add_parser("pending", help="Show actions queued while offline")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if getattr(args, "index", None) is not None:
        args.index = max(0, args.index - 1)
    setup_logging(config.LOG_LEVEL, config.LOG_FILE)
    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
