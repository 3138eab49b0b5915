# ================================================================
# File     : exports.py
# Purpose  : Handle export logic for RoleRollup (CSV, JSON)
# Notes    : Called by RoleRollup.py after module(s) finish. A module
#            payload may carry "columns" to fix the CSV column order
#            of its "rows" table.
# ================================================================

import pathlib
from datetime import datetime, timezone

from core.utils import fncPrintMessage, fncEnsureFolder, fncExportCSV, fncWriteJSON

SUPPORTED_FORMATS = {"csv", "json"}


# ================================================================
# Function: fncExportList
# Purpose  : Flatten --export values ("csv,json" or "csv json")
# ================================================================
def fncExportList(args_export) -> set:
    if not args_export:
        return set()
    out = set()
    chunks = args_export if isinstance(args_export, (list, tuple)) else [args_export]
    for chunk in chunks:
        if not isinstance(chunk, str):
            continue
        for part in chunk.replace(",", " ").split():
            fmt = part.strip().lower()
            if fmt in SUPPORTED_FORMATS:
                out.add(fmt)
            else:
                fncPrintMessage(f"Ignoring unsupported export format: {part}", "warn")
    return out


# ================================================================
# Function: fncGetExportPath
# Purpose  : Build structured output path under <root>/<timestamp>/<module>
# ================================================================
def fncGetExportPath(module_name: str, root: pathlib.Path) -> pathlib.Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    mod_slug = module_name.replace("/", "_").replace("\\", "_")
    return fncEnsureFolder(root / ts / mod_slug)


def _write_tables(out_dir: pathlib.Path, module_name: str, data: dict) -> None:
    columns = data.get("columns")
    for key, val in data.items():
        if key in ("summary", "columns"):
            continue
        if isinstance(val, list) and val and isinstance(val[0], dict):
            headers = columns if key == "rows" and columns else None
            fncExportCSV(str(out_dir / f"{module_name}_{key}.csv"), val, headers=headers)
    if columns and not data.get("rows"):
        # still emit a header-only file so downstream loaders find it
        fncExportCSV(str(out_dir / f"{module_name}_rows.csv"), [], headers=columns)


# ================================================================
# Function: fncExportSingleModule
# Purpose  : Handle all export formats for one module
# ================================================================
def fncExportSingleModule(module_name: str, data: dict, formats: set, root: pathlib.Path) -> pathlib.Path:
    out_dir = fncGetExportPath(module_name, root)

    if "json" in formats:
        fncWriteJSON(str(out_dir / f"{module_name}.json"), data)

    if "csv" in formats:
        _write_tables(out_dir, module_name, data)

    fncPrintMessage(f"Exports written → {out_dir}", "success")
    return out_dir


# ================================================================
# Function: fncExportMultiModule
# Purpose  : Handle all export formats when running multiple modules
# ================================================================
def fncExportMultiModule(results: dict, formats: set, root: pathlib.Path) -> pathlib.Path:
    out_dir = fncGetExportPath("ALL_MODULES", root)

    if "json" in formats:
        fncWriteJSON(str(out_dir / "all_modules.json"), results)

    if "csv" in formats:
        for mod, data in results.items():
            if isinstance(data, dict) and not data.get("error") and not data.get("skipped"):
                _write_tables(fncEnsureFolder(out_dir / mod), mod, data)

    fncPrintMessage(f"Exports written → {out_dir}", "success")
    return out_dir
