"""UI display helpers — now-playing panel, playlist table, status line."""
from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import APP_VERSION
from .utils import fmt_proportion, fmt_time

console = Console()

_STATE_STYLES = {
    "initial": "dim",
    "loading": "yellow",
    "loadingAdditional": "yellow",
    "hasData": "green",
    "failed": "red",
}


def print_header():
    console.print(
        f"\n  [bold cyan]▶  playqueue[/bold cyan]"
        f"  [dim]v{APP_VERSION}[/dim]"
    )


def print_playlist(snapshot: dict):
    """Table of the loaded playlist with the cursor marked."""
    entries = snapshot.get("entries", [])
    if not entries:
        console.print("  [dim]Playlist is empty.[/dim]")
        return
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("", width=2)
    table.add_column("#", style="dim", width=6)
    table.add_column("Title", style="white")
    table.add_column("Watched", width=8)
    table.add_column("Source", width=8)
    for i, e in enumerate(entries):
        marker = "[cyan]›[/cyan]" if i == snapshot.get("cursor") else ""
        watched = "[green]done[/green]" if e["finished"] else fmt_proportion(e["proportion"])
        source = "[magenta]local[/magenta]" if e["downloaded"] else "[dim]stream[/dim]"
        table.add_row(marker, str(e["content_id"]), e["title"][:50], watched, source)
    console.print(table)


def print_now_playing(data: dict):
    title = data.get("title") or f"Content {data.get('content_id')}"
    console.print(Panel(
        f"  [bold]{title}[/bold]\n  [dim]{data.get('url', '')}[/dim]",
        title="[bold green]▶[/bold green] Now playing",
        border_style="green",
        expand=False,
        padding=(0, 1),
    ))


def print_event(event: str, data: Any):
    """One-line rendering of a controller event."""
    if event == "now_playing":
        print_now_playing(data)
    elif event == "state":
        style = _STATE_STYLES.get(data["state"], "white")
        console.print(f"  [{style}]● {data['state']}[/{style}]  [dim]cursor {data['cursor']}[/dim]")
    elif event == "enqueued":
        where = "local file" if data.get("local") else "stream"
        console.print(f"  [dim]+ queued {data['content_id']} ({where}) → {data['queue']}[/dim]")
    elif event == "progress":
        done = "  [green]✓ finished[/green]" if data["finished"] else ""
        console.print(
            f"  [dim]⟳ {data['content_id']} at {fmt_time(data['elapsed'])} "
            f"({fmt_proportion(data['proportion'])})[/dim]{done}"
        )
    elif event == "conflict":
        console.print("  [bold red]⏸ Paused — this account is already streaming somewhere else.[/bold red]")
    elif event == "error":
        console.print(f"  [red]✗ {data.get('stage')}: {data.get('error')}[/red]")


def print_status_line(snapshot: dict, title: Optional[str] = None):
    """Persistent one-liner: play state, position bar, queue length."""
    playback = snapshot["playback"]
    elapsed = playback["elapsed"]
    dur = playback["duration"]
    if dur and dur > 0:
        bar_len = 20
        filled = min(bar_len, int(elapsed / dur * bar_len))
        bar = "[green]" + "━" * filled + "[/green]" + "[dim]" + "·" * (bar_len - filled) + "[/dim]"
        progress = f"  {fmt_time(elapsed)}/{fmt_time(dur)} {bar}"
    else:
        progress = f"  {fmt_time(elapsed)}"
    icon = "[yellow]⏸[/yellow]" if playback["paused"] else "[green]▶[/green]"
    name = title or str(snapshot.get("now_playing") or "—")
    console.print(f"  {icon}{progress}  [dim]{name}  ·  queue {len(snapshot['queue'])}[/dim]")
