"""
Business defaults and runtime settings.

Values come from (lowest → highest priority):
    DEFAULTS below → DATA_DIR/orcamento_config.json → environment variables
"""

import os
import json
import logging

from orcamento.core import paths

log = logging.getLogger("orcamento.settings")

DEFAULTS = {
    "company_whatsapp": "(19) 99308-8395",
    "technician_name":  "ALEXANDRE FREITAS",
    "warranty_text":    "GARANTIA DE 30 DIAS DOS SERVIÇOS PRESTADOS",
    "storage":          "file",
    "logo_timeout":     10,
}

STORAGE_BACKENDS = ("file", "memory")

# env var → settings key
_ENV_KEYS = {
    "ORCAMENTO_WHATSAPP":   "company_whatsapp",
    "ORCAMENTO_TECHNICIAN": "technician_name",
    "ORCAMENTO_WARRANTY":   "warranty_text",
    "ORCAMENTO_STORAGE":    "storage",
    "ORCAMENTO_LOGO_TIMEOUT": "logo_timeout",
}


def load_config(data_dir: str = None) -> dict:
    """Merged settings dict. A missing or corrupt config file is ignored."""
    cfg = dict(DEFAULTS)
    path = os.path.join(data_dir or paths.DATA_DIR, "orcamento_config.json")
    try:
        with open(path, encoding="utf-8") as f:
            file_cfg = json.load(f)
        if isinstance(file_cfg, dict):
            cfg.update({k: v for k, v in file_cfg.items() if k in DEFAULTS})
    except FileNotFoundError:
        pass
    except (json.JSONDecodeError, OSError) as e:
        log.warning("Config %s unreadable, using defaults: %s", path, e)

    for env_name, key in _ENV_KEYS.items():
        val = os.environ.get(env_name, "").strip()
        if val:
            cfg[key] = val

    try:
        cfg["logo_timeout"] = float(cfg["logo_timeout"])
    except (TypeError, ValueError):
        cfg["logo_timeout"] = float(DEFAULTS["logo_timeout"])
    cfg["storage"] = str(cfg["storage"]).lower()
    return cfg


def validate_settings(cfg: dict = None) -> dict:
    """Start-up check. Returns {"ok": bool, "errors": [...], "warnings": [...]}."""
    cfg = cfg if cfg is not None else load_config()
    result = {"ok": True, "errors": [], "warnings": []}

    if cfg.get("storage") not in STORAGE_BACKENDS:
        result["errors"].append(
            f"Unknown storage backend {cfg.get('storage')!r} (use one of {', '.join(STORAGE_BACKENDS)})")
        result["ok"] = False
    if cfg.get("storage") == "memory":
        result["warnings"].append("Memory storage: quotes are lost on restart")
    if cfg.get("logo_timeout", 0) <= 0:
        result["errors"].append("logo_timeout must be positive")
        result["ok"] = False
    if not (os.environ.get("ORCAMENTO_USER") and os.environ.get("ORCAMENTO_PASS")):
        result["warnings"].append("ORCAMENTO_USER/ORCAMENTO_PASS not set, API is unauthenticated")
    return result
