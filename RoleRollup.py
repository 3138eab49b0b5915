#!/usr/bin/env python3
# ================================================================
# Tool     : RoleRollup
# Purpose  : Point-in-time privileged-access report across Entra
#            directory roles and Azure RBAC
# Notes    : Read-only. One run = one snapshot; nothing is cached
#            between runs.
# ================================================================

import sys
import argparse
import pathlib

from core.config import fncInitConfig, fncApplyCliOverrides, fncIsDebug
from core.utils import fncPrintMessage, fncSetDebug, fncDisplayBanner
from core.module_loader import fncRunModule, fncRunAllModules
from core.exports import (
    fncExportList,
    fncExportSingleModule,
    fncExportMultiModule,
)

PROVIDER = "azure"


# ================================================================
# Function: fncParseArguments
# Purpose  : Define and parse command-line arguments for RoleRollup
# ================================================================
def fncParseArguments(argv=None):
    parser = argparse.ArgumentParser(
        prog="RoleRollup",
        description="RoleRollup — privileged-access rollup for Entra ID + Azure RBAC"
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--scan",
        help="Name of module to execute (e.g., privileged_access, connection_check)"
    )
    group.add_argument(
        "--run-all",
        action="store_true",
        help="Run all available modules"
    )

    parser.add_argument(
        "--skip",
        help="Comma-separated module names to skip with --run-all",
        default=""
    )

    parser.add_argument(
        "--export",
        nargs="*",
        metavar="FMT[,FMT...]",
        help="Export formats: csv, json. Example: --export csv,json",
        default=None
    )

    parser.add_argument(
        "--out-dir",
        help="Root folder for exports (default: ~/.rolerollup/reports)",
        default=None
    )

    parser.add_argument(
        "--config",
        help="Path to config.json (default: ~/.rolerollup/config.json)",
        default=None
    )

    parser.add_argument(
        "--tenant-id",
        help="Override the tenant id from config/environment",
        default=None
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug output"
    )

    return parser.parse_args(argv)


def _failed(result) -> bool:
    return isinstance(result, dict) and "error" in result


# ================================================================
# Function: main
# Purpose  : Main entry point for RoleRollup execution
# Notes    : Exit code 1 when any module failed or could not run
# ================================================================
def main(argv=None) -> int:
    args = fncParseArguments(argv)

    cfg = fncInitConfig(args.config)
    cfg = fncApplyCliOverrides(cfg, args)
    fncSetDebug(fncIsDebug(cfg))

    fncDisplayBanner("v1.0")
    fncPrintMessage("Debug output enabled.", "debug")

    from handlers.session import fncOpenSession
    try:
        session = fncOpenSession(cfg)
    except Exception as ex:
        fncPrintMessage(f"Unable to continue without valid credentials: {ex}", "error")
        return 1

    export_formats = fncExportList(args.export)
    reports_root = pathlib.Path(args.out_dir).expanduser() if args.out_dir else \
        pathlib.Path(cfg.get("rolerollup_home") or pathlib.Path.home() / ".rolerollup") / "reports"

    if args.run_all:
        skip_list = [m.strip() for m in args.skip.split(",") if m.strip()]
        results = fncRunAllModules(PROVIDER, session, args, skip_list=skip_list)
        if export_formats:
            fncExportMultiModule(results, export_formats, reports_root)
        ok = bool(results) and not any(_failed(r) or r is None for r in results.values())
    else:
        fncPrintMessage(f"Running scan module: {args.scan}", "info")
        result = fncRunModule(PROVIDER, args.scan, session, args)
        if export_formats and isinstance(result, dict) and not _failed(result):
            fncExportSingleModule(args.scan, result, export_formats, reports_root)
        ok = isinstance(result, dict) and not _failed(result)

    if ok:
        fncPrintMessage("Rollup complete.", "success")
        return 0
    fncPrintMessage("Rollup finished with errors.", "error")
    return 1


if __name__ == "__main__":
    sys.exit(main())
