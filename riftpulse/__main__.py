from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console

from .config import (
    config_path,
    ensure_paths,
    get_api_key,
    get_config,
    open_config_in_editor,
    save_config,
    set_api_key,
)
from .dashboards import comparison_table, live_panel, render_report
from .errors import RateLimitExceeded, RiftPulseError
from .logs import setup_logging
from .ratelimit import profile_for
from .service import PlayerService, parse_since


app = typer.Typer(add_completion=False, no_args_is_help=True, help="League of Legends stats and insights")
console = Console()


@app.callback()
def main_callback(log_level: str = typer.Option("WARNING", help="Log level: DEBUG, INFO, WARNING")) -> None:
    setup_logging(log_level)
    ensure_paths()


def _service(cfg) -> PlayerService:
    try:
        return PlayerService.from_config(cfg)
    except RuntimeError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


def _puuid(cfg, svc: PlayerService, riot_id: Optional[str]) -> str:
    if riot_id:
        puuid = svc.resolve_riot_id(riot_id)
        if not puuid:
            rprint(f"[red]Riot ID {riot_id} not found.[/red]")
            raise typer.Exit(code=1)
        return puuid
    puuid = cfg["player"].get("puuid")
    if not puuid:
        rprint("[red]No PUUID; run `riftpulse auth` first or pass --riot-id.[/red]")
        raise typer.Exit(code=1)
    return puuid


@app.command()
def auth(
    riot_id: Optional[str] = typer.Option(None, help="Riot ID as GameName#TAG"),
    api_key: Optional[str] = typer.Option(None, help="Riot API key (overrides env/keyring)"),
):
    """Set Riot key and Riot ID; resolve PUUID and save config."""
    cfg = get_config()
    if api_key:
        set_api_key(api_key)
        rprint("[green]Saved API key to keyring.[/green]")
    elif not get_api_key(cfg):
        rprint("[yellow]No API key found. You can pass --api-key or set RIOT_API_KEY.[/yellow]")
        raise typer.Exit(code=1)

    if riot_id:
        cfg["player"]["riot_id"] = riot_id
        save_config(cfg)
    riot_id = cfg["player"].get("riot_id")
    if not riot_id:
        rprint("[red]riot_id not set. Pass --riot-id or run `riftpulse config edit`.[/red]")
        raise typer.Exit(code=1)

    svc = _service(cfg)
    try:
        puuid = svc.resolve_riot_id(riot_id)
    except (ValueError, RiftPulseError) as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    if not puuid:
        rprint(f"[red]Riot ID {riot_id} not found.[/red]")
        raise typer.Exit(code=1)
    cfg["player"]["puuid"] = puuid
    save_config(cfg)
    rprint(f"[green]PUUID resolved and saved:[/green] {puuid}")


@app.command()
def report(
    riot_id: Optional[str] = typer.Option(None, help="Riot ID as GameName#TAG (defaults to the configured player)"),
    count: Optional[int] = typer.Option(None, help="Number of recent matches"),
    since: Optional[str] = typer.Option(None, help="Since filter: e.g. 7d, 2024-01-01"),
    queue: Optional[int] = typer.Option(None, help="Queue filter, e.g. 420 for Ranked Solo"),
    tier: Optional[str] = typer.Option(None, help="Benchmark tier (defaults to the player's solo rank)"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw report as JSON"),
):
    """Champion stats, trends and insights for recent games."""
    cfg = get_config()
    svc = _service(cfg)
    try:
        puuid = _puuid(cfg, svc, riot_id)
        rep = svc.build_report(puuid, count=count, tier=tier, since=parse_since(since), queue=queue)
    except RateLimitExceeded as e:
        rprint(f"[yellow]{e}[/yellow]")
        raise typer.Exit(code=2)
    except (ValueError, RiftPulseError) as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    if as_json:
        console.print_json(data=rep.to_dict())
    else:
        render_report(rep, cfg, console)


@app.command()
def compare(
    tier: str = typer.Argument("gold", help="bronze|silver|gold|platinum|diamond"),
    riot_id: Optional[str] = typer.Option(None, help="Riot ID as GameName#TAG"),
    count: Optional[int] = typer.Option(None, help="Number of recent matches"),
):
    """Compare recent performance against a tier average."""
    cfg = get_config()
    svc = _service(cfg)
    try:
        rep = svc.build_report(_puuid(cfg, svc, riot_id), count=count, tier=tier)
    except RateLimitExceeded as e:
        rprint(f"[yellow]{e}[/yellow]")
        raise typer.Exit(code=2)
    console.print(comparison_table(rep.comparison, rep.reference_tier, cfg))


@app.command()
def live(riot_id: Optional[str] = typer.Option(None, help="Riot ID as GameName#TAG")):
    """Show the player's current game, if any."""
    cfg = get_config()
    svc = _service(cfg)
    puuid = _puuid(cfg, svc, riot_id)
    try:
        game = svc.live_game(puuid)
    except RateLimitExceeded as e:
        rprint(f"[yellow]{e}[/yellow]")
        raise typer.Exit(code=2)
    console.print(live_panel(game, puuid, cfg))


@app.command()
def config(
    action: str = typer.Argument("show", help="show|edit|path"),
):
    if action == "show":
        rprint(Path(config_path()).read_text())
    elif action == "path":
        rprint(config_path())
    elif action == "edit":
        opened = open_config_in_editor()
        if not opened:
            rprint("[yellow]Could not open editor. Edit the file manually:[/yellow]")
            rprint(config_path())
    else:
        rprint("[red]Unknown action. Use show|edit|path[/red]")


@app.command()
def doctor():
    cfg = get_config()
    ok = True
    rprint("[bold]Config[/bold]", config_path())
    if not Path(config_path()).exists():
        rprint("[red]Missing config file[/red]")
        ok = False
    try:
        profile = profile_for(cfg["quota"].get("profile"))
        rprint(f"[green]Quota profile[/green]: {profile.name} ({profile.max_requests} per {profile.window_s:.0f}s)")
    except ValueError as e:
        rprint(f"[red]{e}[/red]")
        ok = False
    if not get_api_key(cfg):
        rprint("[yellow]No API key found (set RIOT_API_KEY or run auth).[/yellow]")
        sys.exit(1)
    rprint("[green]API key present[/green]")
    svc = _service(cfg)
    try:
        if svc.client.verify_key():
            rprint("[green]Riot API accepted the key[/green]")
        else:
            rprint("[red]Riot API rejected the key[/red]")
            ok = False
    except RiftPulseError as e:
        rprint(f"[yellow]Riot API not reachable[/yellow]: {e}")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    app()
