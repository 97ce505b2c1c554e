"""
orcamento/core/paths.py — Centralized Path Configuration

Single source of truth for all directory paths across the application.
Every module imports from here instead of computing its own DATA_DIR.

Override any of them with environment variables:
    ORCAMENTO_DATA_DIR    — JSON stores, logs, orcamento_config.json
    ORCAMENTO_OUTPUT_DIR  — exported PDFs
    ORCAMENTO_LOGO        — logo file path or http(s) URL
"""

import os
import logging

log = logging.getLogger("orcamento.paths")

# ── Project Root ──────────────────────────────────────────────────────────────
_THIS_FILE = os.path.abspath(__file__)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(_THIS_FILE)))

_DEFAULT_DATA_DIR = os.path.join(PROJECT_ROOT, "data")


def _resolve_dir(env_name: str, default: str) -> str:
    """Env override when set, otherwise the project-relative default."""
    env_dir = os.environ.get(env_name, "").strip()
    return env_dir or default


DATA_DIR = _resolve_dir("ORCAMENTO_DATA_DIR", _DEFAULT_DATA_DIR)
OUTPUT_DIR = _resolve_dir("ORCAMENTO_OUTPUT_DIR", os.path.join(PROJECT_ROOT, "output"))
ASSETS_DIR = os.path.join(PROJECT_ROOT, "assets")
LOG_DIR = os.path.join(DATA_DIR, "logs")

# Well-known logo location; may also be an http(s) URL
LOGO_SOURCE = os.environ.get("ORCAMENTO_LOGO", "").strip() or os.path.join(ASSETS_DIR, "logo.png")


def validate_paths() -> dict:
    """Runtime validation. Call at app startup to catch path issues early.

    Returns:
        {"ok": bool, "errors": [str], "warnings": [str], "resolved": {name: path}}
    """
    result = {"ok": True, "errors": [], "warnings": [], "resolved": {}}

    result["resolved"] = {
        "PROJECT_ROOT": PROJECT_ROOT,
        "DATA_DIR": DATA_DIR,
        "OUTPUT_DIR": OUTPUT_DIR,
        "LOGO_SOURCE": LOGO_SOURCE,
    }

    for name, path in (("DATA_DIR", DATA_DIR), ("OUTPUT_DIR", OUTPUT_DIR)):
        test_file = os.path.join(path, ".write_test")
        try:
            os.makedirs(path, exist_ok=True)
            with open(test_file, "w") as f:
                f.write("ok")
            os.remove(test_file)
        except OSError as e:
            result["errors"].append(f"{name} not writable: {e}")
            result["ok"] = False

    is_url = LOGO_SOURCE.startswith(("http://", "https://"))
    if not is_url and not os.path.exists(LOGO_SOURCE):
        result["warnings"].append(f"Logo not found: {LOGO_SOURCE} (PDFs render without logo)")

    return result
