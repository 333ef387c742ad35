"""
Monitoring Capability

Admin-only host snapshot (``system_health``) and model usage report
(``api_usage``).
"""

import asyncio
import time
from typing import Any

import psutil

from rin.core.tools.base import ToolContext, ToolHandler

CPU_SAMPLE_SECONDS = 0.5


def _fmt_mb(num_bytes: float) -> str:
    return f"{num_bytes / 1024 / 1024:.1f} MB"


def _fmt_uptime(seconds: float) -> str:
    seconds = int(seconds)
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    return f"{days}d {hours}h {rem // 60}m"


def collect_system_health(cpu_interval: float = CPU_SAMPLE_SECONDS) -> str:
    """Memory, CPU, load, uptime and root disk usage as display lines. Blocks for ``cpu_interval``."""
    mem = psutil.virtual_memory()
    lines = [
        f"Memory : {_fmt_mb(mem.total - mem.available)} / {_fmt_mb(mem.total)} used "
        f"({round(mem.percent)}%)"
    ]

    cores = psutil.cpu_count() or "unknown"
    lines.append(f"CPU    : {cores} cores, {psutil.cpu_percent(interval=cpu_interval):.0f}% busy")

    load = psutil.getloadavg()
    lines.append(f"Load   : {' / '.join(f'{v:.2f}' for v in load)} (1/5/15 min)")

    lines.append(f"Uptime : {_fmt_uptime(time.time() - psutil.boot_time())}")

    disk = psutil.disk_usage("/")
    lines.append(
        f"Disk   : {disk.used / 1024**3:.1f}G used / {disk.total / 1024**3:.1f}G total "
        f"({round(disk.percent)}%)"
    )
    return "\n".join(lines)


async def system_health(args: dict[str, Any], context: ToolContext) -> str:
    return await asyncio.to_thread(collect_system_health)


async def api_usage(args: dict[str, Any], context: ToolContext) -> str:
    try:
        days = max(1, int(args.get("days") or 7))
    except (TypeError, ValueError):
        days = 7
    rows = await context.store.usage_summary(days)
    if not rows:
        return f"No API calls recorded in the last {days} days."
    lines = [f"API usage, last {days} days:"]
    lines.extend(
        f"  {r.model}: {r.calls} calls | in: {r.tokens_in} | out: {r.tokens_out} tokens"
        for r in rows
    )
    return "\n".join(lines)


HANDLERS: dict[str, ToolHandler] = {
    "system_health": system_health,
    "api_usage": api_usage,
}
