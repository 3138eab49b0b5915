# ================================================================
# File     : utils.py
# Purpose  : Shared helpers for RoleRollup: console output, files,
#            timestamps and table rendering
# Notes    : Colour via colorama, tables via tabulate. British English
#            in user-facing text.
# ================================================================

import os
import csv
import json
import uuid
import pathlib
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from colorama import Fore, Style, init as _colorama_init
from tabulate import tabulate

_colorama_init(autoreset=True)

DEBUG_ENABLED = False

# level -> (colour, marker)
LEVELS = {
    "info": (Fore.CYAN, "[•]"),
    "warn": (Fore.YELLOW, "[!]"),
    "error": (Fore.RED, "[✗]"),
    "success": (Fore.GREEN, "[✓]"),
    "debug": (Fore.MAGENTA, "[∆]"),
}


# ================================================================
# Function: fncSetDebug
# Purpose : Switch debug-level console output on or off
# ================================================================
def fncSetDebug(enabled: bool) -> None:
    global DEBUG_ENABLED
    DEBUG_ENABLED = bool(enabled)


# ================================================================
# Function: fncPrintMessage
# Purpose : Print one levelled, coloured console line
# Notes   : Levels: info, warn, error, success, debug. Also the
#           default progress/log callback of the aggregation engine,
#           hence the (message, level) signature.
# ================================================================
def fncPrintMessage(message: str, level: str = "info") -> None:
    if level == "debug" and not DEBUG_ENABLED:
        return
    colour, mark = LEVELS.get(level, ("", "[ ]"))
    print(f"{colour}{mark} {message}{Style.RESET_ALL}")


# ================================================================
# Function: fncDisplayBanner
# ================================================================
def fncDisplayBanner(version: str = "v1.0") -> None:
    art = r"""
 ____       _      ____       _ _
|  _ \ ___ | | ___|  _ \ ___ | | |_   _ _ __
| |_) / _ \| |/ _ \ |_) / _ \| | | | | | '_ \
|  _ < (_) | |  __/  _ < (_) | | | |_| | |_) |
|_| \_\___/|_|\___|_| \_\___/|_|_|\__,_| .__/
                                       |_|
"""
    print(f"{Fore.CYAN}{art}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}RoleRollup {version} — who really holds the keys, in one table.{Style.RESET_ALL}\n")


# ================================================================
# Function: fncEnsureFolder
# Purpose : mkdir -p, returning the resolved Path
# ================================================================
def fncEnsureFolder(path) -> pathlib.Path:
    folder = pathlib.Path(path).expanduser().resolve()
    folder.mkdir(parents=True, exist_ok=True)
    return folder


# ================================================================
# Function: fncLoadEnv
# Purpose : Environment variable, unquoted, or default when unset/empty
# ================================================================
def fncLoadEnv(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.environ.get(name, "").strip().strip("'\"")
    if raw:
        return raw
    return default.strip() if isinstance(default, str) else default


# ================================================================
# Function: fncReadJSON
# Purpose : Load a JSON document
# Notes   : With safe=True an unreadable/invalid file gives {} and a
#           warning instead of an exception
# ================================================================
def fncReadJSON(path: str, safe: bool = True) -> Dict[str, Any]:
    try:
        return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as ex:
        if not safe:
            raise
        fncPrintMessage(f"Ignoring unreadable JSON {path}: {ex}", "warn")
        return {}


# ================================================================
# Function: fncWriteJSON
# Purpose : Pretty-print data to a JSON file (UTF-8, indent 2)
# Notes   : Non-JSON values (enums, datetimes) are written via str()
# ================================================================
def fncWriteJSON(path: str, data: Any) -> None:
    target = pathlib.Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(data, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
    fncPrintMessage(f"JSON written → {target}", "success")


# ================================================================
# Function: fncExportCSV
# Purpose : Write list[dict] to CSV
# Notes   : Column order from headers when given, else the sorted
#           union of keys. None becomes an empty cell.
# ================================================================
def fncExportCSV(path: str, rows: Iterable[Dict[str, Any]], headers: Optional[List[str]] = None) -> None:
    rows = list(rows)
    target = pathlib.Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    columns = list(headers) if headers else sorted({k for r in rows for k in r})
    with open(target, "w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        if columns:
            writer.writerow(columns)
        for r in rows:
            writer.writerow(["" if r.get(c) is None else r.get(c) for c in columns])

    level = "success" if rows else "warn"
    fncPrintMessage(f"CSV written ({len(rows)} row(s)) → {target}", level)


# ================================================================
# Function: fncUtcNow
# Purpose : Current UTC time as ISO-8601 with a 'Z' suffix
# ================================================================
def fncUtcNow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ================================================================
# Function: fncToTable
# Purpose : Render list[dict] or list[list] as a GitHub-style table
# Notes   : max_rows truncates and appends a "more rows" line
# ================================================================
def fncToTable(rows: Iterable[Any], headers: Optional[List[str]] = None, max_rows: Optional[int] = None) -> str:
    rows = list(rows)
    if not rows:
        return "(no data)"

    hidden = 0
    if max_rows and len(rows) > max_rows:
        hidden = len(rows) - max_rows
        rows = rows[:max_rows]

    if isinstance(rows[0], dict):
        columns = headers or sorted({k for r in rows for k in r})
        body = [["" if r.get(c) is None else r.get(c) for c in columns] for r in rows]
        table = tabulate(body, headers=columns, tablefmt="github")
    else:
        table = tabulate(rows, headers=headers or "firstrow", tablefmt="github")

    if hidden:
        table += f"\n… {hidden} more row(s) not shown"
    return table


# ================================================================
# Function: fncMask
# Purpose : Hide the middle of a secret for log output
# ================================================================
def fncMask(value: Optional[str], show: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= show * 2:
        return "*" * len(value)
    return value[:show] + "*" * (len(value) - show * 2) + value[-show:]


def fncNewRunId(prefix: str = "run") -> str:
    """Short id to correlate console output with export folders."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"
