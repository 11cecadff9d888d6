"""
Configuration loader for the Leedz tool servers.

Behavior:
- One JSON file per daemon ("translator" or "mailer").
- Looks for an explicit path, then the env var `LEEDZ_TRANSLATOR_CONFIG` /
  `LEEDZ_MAILER_CONFIG`, then `leedz_bridge/config/<daemon>_config.json`.
- Loaded values are deep-merged over the built-in defaults and validated
  against `leedz_bridge/json_schema/<daemon>.schema.json`.
- If nothing is found, the defaults are used and a warning is logged.
"""

import copy
import json
import os
from typing import Any, Dict, Optional

from .logger import logger

DEFAULT_SYSTEM_PROMPT = """You translate requests about the Leedz invoicing database into HTTP calls.

Available endpoints (JSON bodies):
- GET /clients (query: email, name, company, search), GET /clients/{id}
- POST /clients, PUT /clients/{id}, DELETE /clients/{id}
- GET /clients/stats, GET /clients/{id}/stats
- GET /bookings, GET /bookings/{id}, GET /bookings/search/{keyword}
- POST /bookings, PUT /bookings/{id}, DELETE /bookings/{id}
- GET /stats, GET /config, POST /config

IMPORTANT: Respond with ONE JSON object and nothing else.

For requests that map onto an endpoint:
{"actionable": true, "method": "GET|POST|PUT|DELETE", "endpoint": "/path", "data": {...}, "description": "short summary"}

For greetings, questions or anything that is not a database operation:
{"actionable": false, "response": "your reply to the user"}"""

_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "translator": {
        "database": {"apiUrl": "http://127.0.0.1:3000", "timeout": 30},
        "llm": {
            "provider": "openai",
            "url": "http://127.0.0.1:1234/v1/chat/completions",
            "model": "local-model",
            "temperature": 0.1,
            "maxTokens": 1024,
            "timeout": 60,
            "systemPrompt": DEFAULT_SYSTEM_PROMPT,
        },
        "logging": {
            "file": os.path.join("~", ".leedz", "logs", "mcp_server.log"),
            "level": "INFO",
        },
        "mcp": {
            "protocolVersion": "2025-06-18",
            "name": "leedz-mcp",
            "version": "2.0.0",
            "toolName": "the_leedz",
        },
        "http": {"host": "127.0.0.1", "port": 3002},
    },
    "mailer": {
        "http": {"host": "127.0.0.1", "port": 3001},
        "gmail": {
            "apiBase": "https://gmail.googleapis.com/gmail/v1/users/me",
            "timeout": 30,
        },
        "token": {
            "lifetimeSeconds": 3600,
            "probeIntervalSeconds": 2700,
            "probeTimeoutSeconds": 5,
        },
        "logging": {
            "file": os.path.join("~", ".leedz", "logs", "gmail_mcp.log"),
            "level": "INFO",
        },
        "mcp": {
            "protocolVersion": "2025-06-18",
            "name": "gmail-mcp",
            "version": "1.0.0",
        },
    },
}

_ENV_VARS = {
    "translator": "LEEDZ_TRANSLATOR_CONFIG",
    "mailer": "LEEDZ_MAILER_CONFIG",
}

_config_cache: Dict[str, Dict[str, Any]] = {}


def _package_dir() -> str:
    return os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def _default_config_path(kind: str) -> str:
    return os.path.join(_package_dir(), "config", f"{kind}_config.json")


def _check_kind(kind: str) -> None:
    if kind not in _DEFAULTS:
        raise ValueError(f"Unknown daemon kind: '{kind}'. Expected one of {sorted(_DEFAULTS)}")


def default_config(kind: str) -> Dict[str, Any]:
    """Return a fresh copy of the built-in defaults for a daemon."""
    _check_kind(kind)
    return copy.deepcopy(_DEFAULTS[kind])


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `override` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(kind: str, path: Optional[str] = None) -> Dict[str, Any]:
    """Load a daemon's configuration from JSON with fallbacks.

    Candidates that are missing, malformed or fail schema validation are
    skipped with a log entry; when none is usable the defaults are returned.
    """
    _check_kind(kind)
    if kind in _config_cache:
        return _config_cache[kind]

    candidates = []
    if path:
        candidates.append(path)
    env_path = os.environ.get(_ENV_VARS[kind])
    if env_path:
        candidates.append(env_path)
    candidates.append(_default_config_path(kind))

    for p in candidates:
        try:
            p_abs = os.path.abspath(os.path.expanduser(p))
            if not os.path.exists(p_abs):
                continue
            with open(p_abs, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ValueError("Configuration must be a JSON object")
            cfg = deep_merge(_DEFAULTS[kind], loaded)
            validate_config(kind, cfg)
            _config_cache[kind] = cfg
            logger.info(f"Configuration loaded from {p_abs}")
            return cfg
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file {p}: {e}")
            continue
        except Exception as e:
            logger.warning(f"Failed to load config {p}: {e}")
            continue

    logger.warning(
        f"No {kind} config found; using defaults. "
        f"Create 'leedz_bridge/config/{kind}_config.json' or set {_ENV_VARS[kind]} to customize."
    )
    _config_cache[kind] = default_config(kind)
    return _config_cache[kind]


def _load_schema(kind: str) -> Dict[str, Any]:
    schema_path = os.path.join(_package_dir(), "json_schema", f"{kind}.schema.json")
    with open(schema_path, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_config(kind: str, cfg: Dict[str, Any]) -> None:
    """Validate configuration using the daemon's JSON Schema.

    Raises jsonschema.ValidationError on invalid configs.
    """
    from jsonschema import validate

    _check_kind(kind)
    if not isinstance(cfg, dict):
        raise ValueError("Configuration must be a JSON object/dict")

    validate(instance=cfg, schema=_load_schema(kind))


def reset_config_cache() -> None:
    """Forget loaded configurations (mainly for testing)."""
    _config_cache.clear()


if __name__ == "__main__":
    # Simple CLI for debugging
    import sys

    print(json.dumps(load_config(sys.argv[1] if len(sys.argv) > 1 else "translator"), indent=2))
