"""Text rendering for chat replies and digests.

Output is deterministic for a given input: no clock reads, UTC times only.
"""

from decimal import Decimal

from ratebot.clock import to_utc
from ratebot.models import RateStats


def human_price(value: Decimal) -> str:
    """Two decimal places, e.g. ``65000.00``."""
    return f"{value:.2f}"


def format_rate_line(stats: RateStats) -> str:
    """One digest line: ``BTC | Price: 65000.00 | Updated: 12:00:00``."""
    return (
        f"{stats.symbol} | Price: {human_price(stats.price)} | "
        f"Updated: {to_utc(stats.updated_at):%H:%M:%S}"
    )


def format_digest(snapshot: list[RateStats]) -> str:
    """One line per symbol, in the order given."""
    return "\n".join(format_rate_line(s) for s in snapshot)


def format_rate_details(stats: RateStats) -> str:
    """Multi-line detail message for a single symbol."""
    lines = [
        f"[{stats.symbol}]",
        f"Price: {human_price(stats.price)}",
    ]
    if stats.min_24h is not None:
        lines.append(f"24h min: {human_price(stats.min_24h)}")
    if stats.max_24h is not None:
        lines.append(f"24h max: {human_price(stats.max_24h)}")
    if stats.change_1h_pct is not None:
        lines.append(f"1h change: {stats.change_1h_pct:+.2f}%")
    lines.append(f"Updated: {to_utc(stats.updated_at):%H:%M:%S} UTC")
    return "\n".join(lines)
