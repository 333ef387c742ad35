"""
File Capability

File tools for the caller's folder under the uploads directory. Every path
goes through ``resolve_sandboxed_path`` before any I/O; non-admin callers
never see absolute server paths in results.

Operations:
- read_file / write_file / list_directory / delete_file
- send_file: deliver a file through the chat transport
- convert_file (admin): csv to json and json to csv
"""

import asyncio
import csv
import io
import json
import logging
import os
from pathlib import Path
from typing import Any

from rin.core.tools.base import ToolContext, ToolHandler
from rin.core.tools.sandbox import resolve_sandboxed_path

logger = logging.getLogger(__name__)

MAX_READ_BYTES = 512 * 1024


def _resolve(args: dict[str, Any], context: ToolContext, op: str) -> Path:
    return resolve_sandboxed_path(args.get("path"), context.sandbox_root, context.admin, op)


def _display(path: Path, context: ToolContext) -> str:
    """Path as shown to the model: root-relative for sandboxed callers."""
    if context.admin:
        return str(path)
    try:
        relative = path.relative_to(os.path.abspath(context.sandbox_root))
    except ValueError:
        return path.name
    return str(relative) if str(relative) != "." else "."


async def read_file(args: dict[str, Any], context: ToolContext) -> str:
    path = _resolve(args, context, "read_file")

    def _read() -> str:
        size = path.stat().st_size
        if size > MAX_READ_BYTES:
            return (
                f"File is {round(size / 1024)} KB, too large to read inline. "
                "Read a smaller excerpt instead."
            )
        return path.read_text(encoding="utf-8")

    try:
        return await asyncio.to_thread(_read)
    except FileNotFoundError:
        return f"File not found: {_display(path, context)}"
    except UnicodeDecodeError:
        return f"Cannot read '{_display(path, context)}': file is not valid UTF-8 text"


async def write_file(args: dict[str, Any], context: ToolContext) -> str:
    path = _resolve(args, context, "write_file")
    content_bytes = str(args.get("content", "")).encode("utf-8")

    def _write() -> int:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content_bytes)
        return len(content_bytes)

    size = await asyncio.to_thread(_write)
    logger.info(
        "File written",
        extra={"caller_id": context.caller_id, "size_bytes": size},
    )
    return f"Written {size} bytes to {_display(path, context)}"


async def list_directory(args: dict[str, Any], context: ToolContext) -> str:
    path = _resolve(args, context, "list_directory")

    def _list() -> list[str]:
        if not context.admin:
            path.mkdir(parents=True, exist_ok=True)
        lines = []
        for entry in sorted(path.iterdir(), key=lambda e: e.name):
            if entry.is_dir():
                lines.append(f"d {entry.name}")
            else:
                lines.append(f"- {entry.name} {entry.stat().st_size}B")
        return lines

    try:
        lines = await asyncio.to_thread(_list)
    except FileNotFoundError:
        return f"Directory not found: {_display(path, context)}"
    except NotADirectoryError:
        return f"Not a directory: {_display(path, context)}"
    return "\n".join(lines) if lines else "(empty directory)"


async def delete_file(args: dict[str, Any], context: ToolContext) -> str:
    path = _resolve(args, context, "delete_file")
    try:
        await asyncio.to_thread(path.unlink)
    except FileNotFoundError:
        return f"File not found: {_display(path, context)}"
    logger.info("File deleted", extra={"caller_id": context.caller_id})
    return f"Deleted: {_display(path, context)}"


async def send_file(args: dict[str, Any], context: ToolContext) -> str:
    if context.transport is None:
        return "Failed to send file: no chat transport is available."

    path = _resolve(args, context, "send_file")
    if not await asyncio.to_thread(path.is_file):
        return f"Failed to send file: {path.name} does not exist."

    await context.transport.send_file(context.caller_id, path, args.get("caption") or None)
    return f"File sent successfully: {path.name}"


def _parse_csv(content: str) -> list[dict[str, str]]:
    reader = csv.DictReader(io.StringIO(content.strip()), skipinitialspace=True)
    return [
        {(key or "").strip(): (value or "").strip() for key, value in row.items()}
        for row in reader
    ]


def _render_csv(rows: list[dict[str, Any]]) -> str:
    headers = list(rows[0].keys()) if rows else []
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({h: "" if row.get(h) is None else str(row.get(h)) for h in headers})
    return buffer.getvalue().rstrip("\n")


async def convert_file(args: dict[str, Any], context: ToolContext) -> str:
    path = _resolve(args, context, "convert_file")
    source = path.suffix.lower().lstrip(".")
    target = str(args.get("format", "")).lower().lstrip(".")

    if (source, target) not in {("csv", "json"), ("json", "csv")}:
        return f"Unsupported: {source} to {target}. Supported conversions: csv to json, json to csv"

    content = await asyncio.to_thread(path.read_text, encoding="utf-8")
    out = path.with_suffix(f".{target}")

    if target == "json":
        rows = _parse_csv(content)
        await asyncio.to_thread(out.write_text, json.dumps(rows, indent=2), encoding="utf-8")
    else:
        data = json.loads(content)
        if not isinstance(data, list):
            return "JSON must be an array of objects."
        rows = [row for row in data if isinstance(row, dict)]
        await asyncio.to_thread(out.write_text, _render_csv(rows), encoding="utf-8")

    return f"Converted to {_display(out, context)} ({len(rows)} rows)"


HANDLERS: dict[str, ToolHandler] = {
    "read_file": read_file,
    "write_file": write_file,
    "list_directory": list_directory,
    "delete_file": delete_file,
    "send_file": send_file,
    "convert_file": convert_file,
}
