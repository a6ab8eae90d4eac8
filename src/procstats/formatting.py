"""Formatting utilities for consistent output across CLI and logs."""


def format_elapsed(ms: int) -> str:
    """Format a period length for summaries (coarse).

    Returns:
        - Under a minute: "45s"
        - Under an hour: "12m 5s"
        - Under a day: "5h 30m"
        - Otherwise: "1d 5h"
    """
    seconds = max(0, ms) // 1000
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_duration_ms(ms: int) -> str:
    """Format a duration exactly, e.g. "+1d2h3m4s5ms" (zero is "0")."""
    if ms == 0:
        return "0"
    sign = "-" if ms < 0 else "+"
    ms = abs(ms)
    parts = []
    for unit, size in (("d", 86_400_000), ("h", 3_600_000), ("m", 60_000), ("s", 1000)):
        count, ms = divmod(ms, size)
        if count:
            parts.append(f"{count}{unit}")
    if ms:
        parts.append(f"{ms}ms")
    return sign + "".join(parts)


def format_percent(value: float) -> str:
    """Format a percentage with one decimal, e.g. "42.5%"."""
    return f"{value:.1f}%"


def format_kb(kb: float) -> str:
    """Format a memory size given in KB."""
    if kb >= 1024 * 1024:
        return f"{kb / (1024 * 1024):.1f}GB"
    if kb >= 1024:
        return f"{kb / 1024:.1f}MB"
    return f"{kb:.0f}KB"
