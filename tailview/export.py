from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from .models import ALL_LEVELS, LogEntry, LogInfo
from .query import ALL, FilterState, build_query, clamp_lines
from .services import LogStoreClient, LogStoreError

logger = logging.getLogger(__name__)

EXPORT_MAX_LINES = 10_000
RULE_WIDTH = 80
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size: Optional[int]) -> str:
    """Human readable 1024-based size: ``0 Bytes``, ``1.5 KB``, ``2 MB``."""

    if not size or size <= 0:
        return "0 Bytes"
    index = 0
    while size >= 1024 ** (index + 1) and index < len(_SIZE_UNITS) - 1:
        index += 1
    value = round(size / 1024**index, 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[index]}"


def format_entry(entry: LogEntry) -> str:
    function = f"[{entry.function}]" if entry.function else ""
    return f"{entry.timestamp} [{entry.level.value}] {function} {entry.message}".strip()


def describe_levels(filters: FilterState) -> str:
    if not filters.levels:
        return ALL
    return ",".join(level.value for level in ALL_LEVELS if level in filters.levels)


def build_export_text(
    entries: Iterable[LogEntry],
    info: Optional[LogInfo],
    filters: FilterState,
    now: Optional[datetime] = None,
) -> str:
    entries = list(entries)
    stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    if info is not None:
        file_path = info.file_path or "Unknown"
        size = format_file_size(info.size or 0)
        modified = info.last_modified or "Unknown"
    else:
        file_path = size = modified = "Unknown"
    header = (
        f"Logs - {stamp}\n"
        f"Total Entries: {len(entries)}\n"
        f"Level Filter: {describe_levels(filters)}\n"
        f"Category Filter: {filters.category or ALL}\n"
        f"File: {file_path}\n"
        f"Size: {size}\n"
        f"Last Modified: {modified}\n"
        f"{'=' * RULE_WIDTH}\n\n"
    )
    return header + "\n".join(format_entry(entry) for entry in entries)


async def collect_export(
    client: LogStoreClient,
    filters: FilterState,
    info: Optional[LogInfo] = None,
) -> tuple[str, int]:
    """Fetch the filtered set (capped) and render it as a plain-text block.

    Returns the text and the number of entries in it. Raises LogStoreError
    when the entries themselves cannot be fetched.
    """

    capped = replace(filters, lines=min(clamp_lines(filters.lines), EXPORT_MAX_LINES))
    snapshot = await client.get_logs(build_query(capped))
    if info is None:
        try:
            info = await client.get_log_info()
        except LogStoreError as exc:
            logger.warning("Export without file info: %s", exc.message)
    logger.debug("Exporting %d entries", len(snapshot))
    return build_export_text(snapshot.entries, info, filters), len(snapshot)
