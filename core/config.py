# ================================================================
# File     : config.py
# Purpose  : Configuration management for RoleRollup
# Notes    : Handles initial creation, loading, and saving of config.
#            The privileged role allow-lists live here.
# ================================================================

import copy
import pathlib
from typing import Dict, List

from core.utils import fncPrintMessage, fncEnsureFolder, fncReadJSON, fncWriteJSON, fncLoadEnv

DEFAULT_HOME = pathlib.Path.home() / ".rolerollup"

DEFAULT_ENTRA_ROLES = [
    "Global Administrator",
    "Privileged Role Administrator",
    "Privileged Authentication Administrator",
    "Security Administrator",
    "User Administrator",
    "Application Administrator",
    "Cloud Application Administrator",
    "Conditional Access Administrator",
    "Exchange Administrator",
    "SharePoint Administrator",
    "Intune Administrator",
    "Authentication Administrator",
    "Billing Administrator",
    "Password Administrator",
]

DEFAULT_AZURE_ROLES = [
    "Owner",
    "User Access Administrator",
    "Contributor",
    "Role Based Access Control Administrator",
]

SECTION_KEYS = ("entra_eligibility", "entra_active_schedules", "azure_schedules")


# ================================================================
# Function: fncDefaultConfig
# Purpose : Return a default configuration dictionary
# Notes   : Called when config file does not exist
# ================================================================
def fncDefaultConfig() -> dict:
    return {
        "version": "1.0",
        "rolerollup_home": str(DEFAULT_HOME),
        "debug": False,
        "tenant_id": "",
        "client_id": "",
        "client_secret": "",
        "authority": "https://login.microsoftonline.com",
        "privileged_roles": {
            "entra": list(DEFAULT_ENTRA_ROLES),
            "azure": list(DEFAULT_AZURE_ROLES),
        },
        "sections": {key: True for key in SECTION_KEYS},
    }


# ================================================================
# Function: fncInitConfig
# Purpose : Create or load configuration file
# Notes   : Ensures base folder exists; returns full config dict
# ================================================================
def fncInitConfig(config_path: str = None) -> dict:
    path = pathlib.Path(config_path or DEFAULT_HOME / "config.json")

    fncEnsureFolder(path.parent)

    if not path.exists():
        fncPrintMessage(f"No config found at {path}. Creating default...", "warn")
        cfg = fncDefaultConfig()
        fncWriteJSON(str(path), cfg)
        return fncApplyEnvOverrides(cfg)
    return fncLoadConfig(str(path))


# ================================================================
# Function: fncMergeDefaults
# Purpose : Fill keys missing from an older/hand-edited config
# Notes   : Nested dicts are merged one level deep
# ================================================================
def fncMergeDefaults(cfg: dict) -> dict:
    merged = fncDefaultConfig()
    for key, value in (cfg or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


# ================================================================
# Function: fncApplyEnvOverrides
# Purpose : Environment overrides (useful in CI/CD or container)
# Notes   : ROLEROLLUP_TENANT_ID / _CLIENT_ID / _CLIENT_SECRET
# ================================================================
def fncApplyEnvOverrides(cfg: dict) -> dict:
    for key in ("tenant_id", "client_id", "client_secret"):
        cfg[key] = fncLoadEnv(f"ROLEROLLUP_{key.upper()}", cfg.get(key)) or ""
    return cfg


# ================================================================
# Function: fncLoadConfig
# Purpose : Load configuration file and apply environment overrides
# ================================================================
def fncLoadConfig(config_path: str) -> dict:
    cfg = fncMergeDefaults(fncReadJSON(config_path))
    cfg = fncApplyEnvOverrides(cfg)
    fncPrintMessage(f"Loaded configuration from {config_path}", "debug")
    return cfg


# ================================================================
# Function: fncSaveConfig
# Purpose : Save configuration file safely
# ================================================================
def fncSaveConfig(cfg: dict, config_path: str = None) -> None:
    path = pathlib.Path(config_path or DEFAULT_HOME / "config.json")
    fncEnsureFolder(path.parent)
    fncWriteJSON(str(path), cfg)
    fncPrintMessage(f"Configuration saved → {path}", "success")


# ================================================================
# Function: fncGetPrivilegedRoles
# Purpose : Return the configured allow-list names for a control plane
# Notes   : plane is "entra" or "azure"
# ================================================================
def fncGetPrivilegedRoles(cfg: dict, plane: str) -> List[str]:
    roles = (cfg.get("privileged_roles") or {}).get(plane)
    if not roles:
        fncPrintMessage(f"No privileged roles configured for '{plane}'", "warn")
        return []
    return [r for r in roles if isinstance(r, str) and r.strip()]


# ================================================================
# Function: fncSectionsEnabled
# Purpose : Which optional collectors are switched on
# ================================================================
def fncSectionsEnabled(cfg: dict) -> Dict[str, bool]:
    sections = cfg.get("sections") or {}
    return {key: bool(sections.get(key, True)) for key in SECTION_KEYS}


# ================================================================
# Function: fncApplyCliOverrides
# Purpose : Apply command-line flags to the loaded config
# ================================================================
def fncApplyCliOverrides(cfg: dict, args) -> dict:
    if getattr(args, "debug", None):
        cfg["debug"] = True
    if getattr(args, "tenant_id", None):
        cfg["tenant_id"] = args.tenant_id
    return cfg


# ================================================================
# Function: fncIsDebug
# Purpose : Return whether debug mode is enabled in config
# ================================================================
def fncIsDebug(cfg: dict) -> bool:
    return bool(cfg.get("debug", False))
