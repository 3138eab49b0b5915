"""Tests for config loading and CSV/JSON export."""

from __future__ import annotations

import csv
import json
from types import SimpleNamespace

from core.config import (
    DEFAULT_AZURE_ROLES,
    fncApplyCliOverrides,
    fncGetPrivilegedRoles,
    fncInitConfig,
    fncMergeDefaults,
    fncSectionsEnabled,
)
from core.exports import fncExportList, fncExportSingleModule
from core.models import REPORT_COLUMNS
from core.utils import fncExportCSV, fncToTable


def test_init_config_writes_defaults(tmp_path, monkeypatch) -> None:
    """First run creates a config file with the default allow-lists."""
    for key in ("TENANT_ID", "CLIENT_ID", "CLIENT_SECRET"):
        monkeypatch.delenv(f"ROLEROLLUP_{key}", raising=False)
    path = tmp_path / "cfg" / "config.json"

    cfg = fncInitConfig(str(path))

    assert path.exists()
    assert fncGetPrivilegedRoles(cfg, "azure") == DEFAULT_AZURE_ROLES
    assert "Global Administrator" in fncGetPrivilegedRoles(cfg, "entra")
    assert all(fncSectionsEnabled(cfg).values())


def test_env_overrides_file(tmp_path, monkeypatch) -> None:
    """Environment credentials win over the config file."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"tenant_id": "from-file", "client_id": "cid"}), encoding="utf-8")
    monkeypatch.setenv("ROLEROLLUP_TENANT_ID", "from-env")
    monkeypatch.delenv("ROLEROLLUP_CLIENT_ID", raising=False)

    cfg = fncInitConfig(str(path))

    assert cfg["tenant_id"] == "from-env"
    assert cfg["client_id"] == "cid"


def test_partial_config_merged_with_defaults() -> None:
    """A hand-edited config keeps its values and gains missing keys."""
    cfg = fncMergeDefaults({"privileged_roles": {"azure": ["Owner"]}, "sections": {"azure_schedules": False}})

    assert cfg["privileged_roles"]["azure"] == ["Owner"]
    assert "Global Administrator" in cfg["privileged_roles"]["entra"]
    assert fncSectionsEnabled(cfg) == {
        "entra_eligibility": True,
        "entra_active_schedules": True,
        "azure_schedules": False,
    }


def test_cli_overrides() -> None:
    """--debug and --tenant-id are folded into the config."""
    cfg = fncApplyCliOverrides({"debug": False, "tenant_id": "a"}, SimpleNamespace(debug=True, tenant_id="b"))

    assert cfg == {"debug": True, "tenant_id": "b"}


def test_export_list_parsing() -> None:
    """Comma and space separated formats are both accepted; unknown ones dropped."""
    assert fncExportList(["csv,json"]) == {"csv", "json"}
    assert fncExportList(["CSV", "html"]) == {"csv"}
    assert fncExportList(None) == set()


def test_csv_follows_header_order(tmp_path) -> None:
    """Rows are written in the given column order with None as blank."""
    path = tmp_path / "rows.csv"

    fncExportCSV(str(path), [{"b": 2, "a": None}], headers=["b", "a"])

    with open(path, newline="", encoding="utf-8") as f:
        lines = list(csv.reader(f))
    assert lines == [["b", "a"], ["2", ""]]


def test_single_module_export(tmp_path) -> None:
    """A module payload is written as JSON plus one CSV per table."""
    data = {
        "summary": {"Rows": 0},
        "columns": list(REPORT_COLUMNS),
        "rows": [],
        "sections": [{"section": "entra_direct_assignments", "status": "complete"}],
        "warnings": [],
    }

    out_dir = fncExportSingleModule("privileged_access", data, {"csv", "json"}, tmp_path)

    assert json.loads((out_dir / "privileged_access.json").read_text(encoding="utf-8"))["columns"] == REPORT_COLUMNS
    with open(out_dir / "privileged_access_rows.csv", newline="", encoding="utf-8") as f:
        assert next(csv.reader(f)) == REPORT_COLUMNS
    assert (out_dir / "privileged_access_sections.csv").exists()


def test_table_truncation_note() -> None:
    """Long tables are cut with a trailing count."""
    out = fncToTable([{"a": i} for i in range(5)], headers=["a"], max_rows=2)

    assert out.endswith("3 more row(s) not shown")
