"""playqueue — entry point.

    python play.py 42            play the playlist starting at content 42
    python play.py 42 --no-check skip the preflight checks
    python play.py --web         serve the control API + event WebSocket
"""
import argparse
import asyncio
import logging
import sys
import uuid

from rich import print as rprint

from playqueue.config import OUTPUT_DIR, WEB_PORT
from playqueue.contents import ContentsService
from playqueue.controller import PlaybackController
from playqueue.models import ControllerState
from playqueue.player import QueuePlayer
from playqueue.preflight import run_preflight
from playqueue.repository import PlaylistRepository
from playqueue.ui import console, print_event, print_header, print_playlist, print_status_line
from playqueue.videos import VideosService
from playqueue.web.state import PlaybackEvents


def _setup_logging(verbose: bool):
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=OUTPUT_DIR / "playqueue.log",
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def main(content_id: int, check: bool = True):
    print_header()

    if check and not await run_preflight():
        sys.exit(1)

    events = PlaybackEvents()
    queue = events.subscribe(str(uuid.uuid4()))
    player = QueuePlayer()
    controller = PlaybackController(
        content_id,
        repository=PlaylistRepository(),
        videos=VideosService(),
        contents=ContentsService(),
        player=player,
        events=events,
    )

    if not controller.reload():
        console.print(f"  [red]Couldn't load a playlist for content {content_id}.[/red]")
        sys.exit(1)
    print_playlist(controller.get_snapshot())
    controller.play()

    titles = {e.content_id: e.content.title for e in controller.store.entries}
    try:
        while True:
            try:
                event, data = await asyncio.wait_for(queue.get(), timeout=15)
                print_event(event, data)
            except asyncio.TimeoutError:
                snapshot = controller.get_snapshot()
                print_status_line(snapshot, titles.get(snapshot["now_playing"]))
            # Done once the queue drained and nothing more will be enqueued
            state = controller.state
            if player.current_item is None and (
                state is ControllerState.FAILED
                or (state is ControllerState.HAS_DATA and controller.store.at_end)
            ):
                break
    finally:
        controller.stop()
        await controller.wait_idle()

    console.print("\n  [bold cyan]▶[/bold cyan]  End of playlist.\n")


def serve():
    import uvicorn
    from playqueue.web.server import create_app

    uvicorn.run(create_app(), host="127.0.0.1", port=WEB_PORT, log_level="info")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sequential video playlist player")
    parser.add_argument("content_id", nargs="?", type=int, help="content to start the playlist from")
    parser.add_argument("--web", action="store_true", help="serve the control API instead of the CLI")
    parser.add_argument("--no-check", action="store_true", help="skip preflight checks")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    _setup_logging(args.verbose)
    if args.web:
        serve()
        sys.exit(0)
    if args.content_id is None:
        parser.error("content_id is required unless --web is given")

    try:
        asyncio.run(main(args.content_id, check=not args.no_check))
    except KeyboardInterrupt:
        rprint("\n\n  [bold]Progress saved.[/bold] Goodbye.\n")
        sys.exit(0)
