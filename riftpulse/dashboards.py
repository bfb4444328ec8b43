from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .aggregate import ChampionStats
from .champions import champion_name
from .insights import ComparisonMetric, Insights
from .normalize import queue_name
from .service import PlayerReport
from .trends import TrendPoint


BLOCKS = "▁▂▃▄▅▆▇"


def sparkline(values: Sequence[float]) -> str:
    if not values:
        return ""
    vmin = min(values)
    vmax = max(values)
    if vmax - vmin < 1e-6:
        return BLOCKS[0] * len(values)
    out = []
    for v in values:
        idx = int((v - vmin) / (vmax - vmin) * (len(BLOCKS) - 1))
        out.append(BLOCKS[idx])
    return "".join(out)


def form_string(form: Sequence[bool]) -> str:
    return "".join("W" if w else "L" for w in form)


def _palette(cfg: Dict[str, Any]) -> Dict[str, str]:
    return cfg.get("render", {}).get("palette", {})


def _rating_color(rating: str, palette: Dict[str, str]) -> str:
    if rating in ("excellent", "good"):
        return palette.get("ok", "green")
    if rating == "average":
        return palette.get("neutral", "grey70")
    if rating == "below-average":
        return palette.get("warn", "yellow")
    return palette.get("bad", "red")


def champions_table(champions: List[ChampionStats], limit: int = 10) -> Table:
    table = Table(title="Champions", box=box.ROUNDED)
    table.add_column("Champion")
    table.add_column("Games", justify="right")
    table.add_column("WR %", justify="right")
    table.add_column("KDA", justify="right")
    table.add_column("CS/min", justify="right")
    table.add_column("Dmg", justify="right")
    table.add_column("Form")
    table.add_column("Grade", justify="center")
    for c in [c for c in champions if c.games > 0][:limit]:
        table.add_row(
            c.champion_name,
            str(c.games),
            f"{c.win_rate:.1f}",
            f"{c.avg_kda:.2f}",
            f"{c.avg_cs_per_min:.1f}",
            f"{c.avg_damage:,.0f}",
            form_string(c.recent_form),
            c.grade or "-",
        )
    return table


def trends_table(points: List[TrendPoint], forecast: Optional[List[TrendPoint]] = None) -> Table:
    table = Table(title="Daily trend", box=box.ROUNDED)
    table.add_column("Date")
    table.add_column("Games", justify="right")
    table.add_column("WR %", justify="right")
    table.add_column("KDA", justify="right")
    table.add_column("Score", justify="right")
    for p in points:
        table.add_row(p.date, str(p.games), f"{p.win_rate:.0f}", f"{p.avg_kda:.2f}", f"{p.performance:.1f}")
    for p in forecast or []:
        table.add_row(Text(p.date, style="dim"), "-", f"{p.win_rate:.0f}", f"{p.avg_kda:.2f}", Text(f"{p.performance:.1f}", style="dim"))
    return table


def insights_panel(ins: Insights, cfg: Dict[str, Any]) -> Panel:
    palette = _palette(cfg)
    accent = palette.get("accent", "cyan")
    rank = ins.predicted_rank
    spark = sparkline([p.performance for p in ins.trend_series])
    header = Text.assemble(
        (f" Score {ins.overall_score:.0f} ", "bold white on black"),
        ("  |  ", accent),
        (f"{rank.tier} {rank.division} ({rank.confidence:.0%})", accent),
        ("  |  ", accent),
        (f"Role: {ins.primary_role}", accent),
        ("  |  ", accent),
        (f"Trend: {ins.trend} {spark}", accent),
    )
    lines = [header]
    lines.append(Text("Strengths: " + ", ".join(ins.strengths or ["-"]), style=palette.get("ok", "green")))
    lines.append(Text("Improve: " + ", ".join(ins.improvements or ["-"]), style=palette.get("warn", "yellow")))
    if ins.strongest_champions:
        lines.append(Text("Strongest: " + ", ".join(ins.strongest_champions)))
    if ins.recommended_role != ins.primary_role:
        lines.append(Text(f"Recommended role: {ins.recommended_role}", style=accent))
    if ins.peak:
        lines.append(Text(f"Peak: {ins.peak.champion_name} on {ins.peak.date} (KDA {ins.peak.kda:.2f}, {ins.peak.damage:,} dmg)"))
    return Panel(Group(*lines), title="Insights", box=box.ROUNDED)


def comparison_table(metrics: List[ComparisonMetric], tier: str, cfg: Dict[str, Any]) -> Table:
    palette = _palette(cfg)
    table = Table(title=f"vs {tier.title()} average", box=box.ROUNDED)
    table.add_column("Metric")
    table.add_column("You", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Pct", justify="right")
    table.add_column("Rating")
    for m in metrics:
        table.add_row(
            m.category,
            f"{m.player_value:.2f}",
            f"{m.average_value:.2f}",
            f"{m.percentile:.0f}",
            Text(m.rating, style=_rating_color(m.rating, palette)),
        )
    return table


def live_panel(game: Optional[Dict[str, Any]], puuid: str, cfg: Dict[str, Any]) -> Panel:
    palette = _palette(cfg)
    if not game:
        return Panel(Text("Not in game", style=palette.get("warn", "yellow")), title="LIVE", box=box.ROUNDED)
    length = int(game.get("gameLength") or 0)
    me = next((p for p in game.get("participants") or [] if p.get("puuid") == puuid), {})
    header = Text.assemble(
        (" LIVE ", "bold white on black"),
        ("  |  ", palette.get("accent", "cyan")),
        (queue_name(game.get("gameQueueConfigId") or 0), palette.get("accent", "cyan")),
        ("  |  ", palette.get("accent", "cyan")),
        (f"{length // 60:02d}:{length % 60:02d}", palette.get("accent", "cyan")),
    )
    body = Text(f"{champion_name(int(me.get('championId') or 0))}, team {me.get('teamId', '?')}")
    return Panel(Group(header, body), box=box.ROUNDED)


def render_report(report: PlayerReport, cfg: Dict[str, Any], console: Optional[Console] = None) -> None:
    console = console or Console()
    palette = _palette(cfg)
    if report.partial:
        console.print(
            f"[{palette.get('warn', 'yellow')}]Some data unavailable: {', '.join(report.unavailable)}[/]"
        )
    if not report.insights.games:
        console.print(f"[{palette.get('warn', 'yellow')}]No recent games found.[/]")
    console.print(insights_panel(report.insights, cfg))
    console.print(champions_table(report.champions))
    console.print(trends_table(report.trends, report.insights.forecast))
    console.print(comparison_table(report.comparison, report.reference_tier, cfg))
