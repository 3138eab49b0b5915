# ================================================================
# File     : module_loader.py
# Purpose  : Find, import and run RoleRollup scan modules
# Notes    : A scan module is modules/<provider>/<name>.py exposing
#            run(session, args) -> dict. Optional REQUIRED_PERMS is
#            echoed before the run. Modules run one after another.
# ================================================================

import importlib
import importlib.util
import pathlib
import traceback
from typing import Any, Dict, Iterable, List, Optional

from core.utils import fncPrintMessage

MODULES_ROOT = pathlib.Path(__file__).resolve().parent.parent / "modules"


def _dotted(provider: str, module_name: str) -> str:
    return f"modules.{provider}.{module_name}"


# ================================================================
# Function: fncLoadModule
# Purpose : Import modules.<provider>.<name> if it exists
# Notes   : None when the module file is absent. Import errors from
#           inside an existing module are not hidden.
# ================================================================
def fncLoadModule(provider: str, module_name: str):
    dotted = _dotted(provider, module_name)
    try:
        spec = importlib.util.find_spec(dotted)
    except ModuleNotFoundError:
        spec = None
    if spec is None:
        fncPrintMessage(f"No such scan module: {provider}/{module_name}", "error")
        return None
    return importlib.import_module(dotted)


# ================================================================
# Function: fncRunModule
# Purpose : Run one module and hand back its payload
# Notes   : A module that raises is reported as {"error": "..."};
#           a missing module or missing run() gives None.
# ================================================================
def fncRunModule(provider: str, module_name: str, session, args) -> Optional[Dict[str, Any]]:
    try:
        mod = fncLoadModule(provider, module_name)
    except Exception as ex:
        fncPrintMessage(f"Import of {provider}/{module_name} failed: {ex}", "error")
        return {"error": f"import failed: {ex}"}
    if mod is None:
        return None

    run = getattr(mod, "run", None)
    if not callable(run):
        fncPrintMessage(f"{provider}/{module_name} has no run(session, args)", "warn")
        return None

    perms = getattr(mod, "REQUIRED_PERMS", None)
    if perms:
        fncPrintMessage(f"{module_name} needs: {', '.join(perms)}", "debug")

    fncPrintMessage(f"▶ {provider}/{module_name}", "info")
    try:
        result = run(session, args)
    except Exception as ex:
        fncPrintMessage(f"{module_name} failed: {ex}", "error")
        fncPrintMessage(traceback.format_exc(), "debug")
        return {"error": str(ex)}
    fncPrintMessage(f"✔ {provider}/{module_name}", "success")
    return result


# ================================================================
# Function: fncDiscoverModules
# Purpose : List runnable module names for a provider
# Notes   : Skips files starting with '_'
# ================================================================
def fncDiscoverModules(provider: str, root: pathlib.Path = MODULES_ROOT) -> List[str]:
    base = root / provider
    if not base.is_dir():
        fncPrintMessage(f"Provider folder missing: {base}", "warn")
        return []
    names = sorted(p.stem for p in base.glob("*.py") if not p.name.startswith("_"))
    fncPrintMessage(f"{provider} modules: {', '.join(names) or '(none)'}", "debug")
    return names


# ================================================================
# Function: fncRunAllModules
# Purpose : Run every discovered module except the skipped ones
# Notes   : Returns { module_name: payload | {"error"} | {"skipped"} }
# ================================================================
def fncRunAllModules(provider: str, session, args, skip_list: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    skipped = set(skip_list or [])
    names = fncDiscoverModules(provider)
    if not names:
        fncPrintMessage(f"Nothing to run for '{provider}'", "warn")
        return {}

    fncPrintMessage(f"Running {len(names)} module(s) for {provider}", "info")
    results: Dict[str, Any] = {}
    for name in names:
        if name in skipped:
            fncPrintMessage(f"Skipped by --skip: {name}", "debug")
            results[name] = {"skipped": True}
        else:
            results[name] = fncRunModule(provider, name, session, args)
    return results
