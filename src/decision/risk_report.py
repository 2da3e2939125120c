"""
===============================================================================
RISK REPORT — Terminal Rendering of Seasonal Crash Risk
===============================================================================

Rich table of a SeasonalRiskResult: one row per calendar month with the
crash probability, its credible interval and the factor decomposition of
the seasonal prior.

    Month       Risk   95% CI          S_m   Base   Vol   Chain  Sent  Cycle  N/T
    September  41.2%  [29.8%, 54.0%]  1.34  1.12  1.04  1.00   1.32  1.15   7/372
===============================================================================
"""
from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from decision.crash_risk_config import MONTH_NAMES
from decision.seasonal_crash_risk import MONTHS, SeasonalRiskResult

# Lower bounds of each level on the 0-1 probability scale
RISK_LEVEL_BANDS = (
    (0.70, "Extreme"),
    (0.50, "High"),
    (0.30, "Elevated"),
    (0.15, "Moderate"),
)


def classify_risk_level(risk: float) -> str:
    for lower, level in RISK_LEVEL_BANDS:
        if risk >= lower:
            return level
    return "Low"


def risk_style(level: str) -> str:
    if level == "Extreme":
        return "bold red"
    elif level == "High":
        return "red"
    elif level == "Elevated":
        return "yellow"
    elif level == "Moderate":
        return "dim"
    return "green"


def format_risk_display(risk: float) -> str:
    """
    Format a crash probability for display with color coding.

    Args:
        risk: Probability in [0, 1]

    Returns:
        Rich markup string for display
    """
    style = risk_style(classify_risk_level(risk))
    return f"[{style}]{risk:.1%}[/{style}]"


def build_risk_table(result: SeasonalRiskResult) -> Table:
    table = Table(
        title=f"Seasonal crash risk · {result.timeframe_days}-day horizon",
        show_header=True,
        header_style="bold white",
        border_style="dim",
        box=box.SIMPLE,
        padding=(0, 1),
    )
    table.add_column("Month", justify="left", width=10)
    table.add_column("Risk", justify="right", width=7)
    table.add_column("95% CI", justify="center", width=16)
    table.add_column("S_m", justify="right", width=6)
    table.add_column("Base", justify="right", width=6)
    table.add_column("Vol", justify="right", width=6)
    table.add_column("Chain", justify="right", width=6)
    table.add_column("Sent", justify="right", width=6)
    table.add_column("Cycle", justify="right", width=6)
    table.add_column("N/T", justify="right", width=9)

    for month in MONTHS:
        estimate = result.risk_by_month[month]
        parts = result.components[month].to_dict()
        level = classify_risk_level(estimate.risk)
        interval = parts["credible_interval"]
        table.add_row(
            MONTH_NAMES[month],
            Text(f"{estimate.risk:.1%}", style=risk_style(level)),
            f"[{interval['lower']}, {interval['upper']}]",
            parts["enhanced_seasonal_factor"],
            parts["base_seasonal_factor"],
            parts["volatility_adjustment"],
            parts["onchain_factor"],
            parts["sentiment_factor"],
            parts["cycle_factor"],
            f"{parts['extreme_events']}/{parts['total_days']}",
        )
    return table


def render_risk_table(result: SeasonalRiskResult, console: Optional[Console] = None) -> None:
    """Print the per-month risk table and a one-line context summary."""
    console = console or Console()
    context = result.context

    console.print()
    console.print(build_risk_table(result))
    position = f"{context.price_from_top:.0%}" if context.price_from_top is not None else "-"
    console.print(
        f"  [dim]sentiment ×{context.sentiment_factor:.2f} · "
        f"on-chain {context.onchain_risk_level or '-'} · "
        f"price at {position} of 365d high · "
        f"overall extreme frequency {result.overall_frequency:.2%}[/dim]"
    )
    if context.missing_signals:
        console.print(f"  [dim italic]defaulted: {', '.join(context.missing_signals)}[/dim italic]")
    console.print()
