"""Startup Preflight Check"""
import shutil
import shlex

import httpx
from rich.console import Console

from .config import API_HOST, APP_VERSION, LIBRARY_FILE, PLAYER_COMMAND
from .errors import RepositoryError
from .repository import PlaylistRepository

console = Console()


async def run_preflight() -> bool:
    """
    Run all startup checks. Print results. Return True only if ALL pass.
    """
    console.print(f"\n  [bold]▶  playqueue v{APP_VERSION}[/bold] — preflight check\n")

    checks = [
        ("Python deps", _check_python_deps),
        ("Content API", _check_api),
        ("Library file", _check_library),
        ("Player command", _check_player),
    ]

    results = []
    for i, (label, fn) in enumerate(checks, 1):
        ok, msg, fix = await fn()
        results.append((ok, label, msg, fix))
        icon = "[green]✓[/green]" if ok else "[red]✗[/red]"
        dots = "." * max(30 - len(label), 3)
        status = f"[green]{msg}[/green]" if ok else f"[red]{msg}[/red]"
        console.print(f"  [{i}/{len(checks)}] {label} {dots} {icon} {status}")

    failures = [(label, fix) for ok, label, _, fix in results if not ok and fix]
    if failures:
        console.print("")
        for label, fix in failures:
            console.print(f"  [yellow]Fix for {label}:[/yellow]")
            for line in fix.strip().splitlines():
                console.print(f"    {line}")
            console.print("")
        return False

    console.print("")
    return True


async def _check_python_deps() -> tuple[bool, str, str]:
    missing = []
    versions = []
    try:
        import httpx as hx
        versions.append(f"httpx {hx.__version__}")
    except ImportError:
        missing.append("httpx")

    try:
        import starlette
        versions.append(f"starlette {starlette.__version__}")
    except ImportError:
        missing.append("starlette")

    try:
        import dotenv  # noqa: F401
        versions.append("python-dotenv")
    except ImportError:
        missing.append("python-dotenv")

    if missing:
        return False, f"missing: {', '.join(missing)}", "Run: pip install -e ."
    return True, ", ".join(versions), ""


async def _check_api() -> tuple[bool, str, str]:
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            r = await client.get(API_HOST)
            if r.status_code < 500:
                return True, f"reachable at {API_HOST.replace('http://', '').replace('https://', '')}", ""
    except httpx.HTTPError:
        pass
    return False, "not responding", f"Check API_HOST in .env (currently {API_HOST})"


async def _check_library() -> tuple[bool, str, str]:
    if not LIBRARY_FILE.exists():
        return False, "not found", f"Create {LIBRARY_FILE} or set LIBRARY_FILE in .env"
    try:
        library = PlaylistRepository(LIBRARY_FILE).load_library()
    except RepositoryError as e:
        return False, "unreadable", e.describe()
    return True, f"{len(library['contents'])} contents", ""


async def _check_player() -> tuple[bool, str, str]:
    if not PLAYER_COMMAND:
        return True, "silent (no PLAYER_COMMAND)", ""
    exe = shlex.split(PLAYER_COMMAND)[0]
    if shutil.which(exe):
        return True, exe, ""
    return False, f"{exe} not found", f"Install {exe} or clear PLAYER_COMMAND in .env"
