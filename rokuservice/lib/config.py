"""
Shared configuration loader for the Roku service.

Loads a single JSON config file.  Search order:
  1. /etc/rokuservice/config.json   (system-wide install)
  2. config.json                     (CWD — handy for local dev)

Every key is optional; missing values fall back to the defaults passed to
``cfg()`` at the call site.

Usage:
    from rokuservice.lib.config import cfg

    port         = cfg("server", "port", default=5000)
    store_path   = cfg("registry", "path", default="rokus.json")
    delay_ms     = cfg("remote", "keypress_delay_ms", default=150)
    discovery    = cfg("discovery")  # returns the whole dict
"""

import json
import logging

logger = logging.getLogger("roku-service.config")

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/rokuservice/config.json",
    "config.json",
]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    server = config.get("server") or {}
    port = server.get("port")
    if port is not None and (not isinstance(port, int) or not 0 < port < 65536):
        logger.warning("Config %s: server.port %r is not a valid TCP port", path, port)
    host = server.get("host")
    if host is not None and not isinstance(host, (str, list)):
        logger.warning("Config %s: server.host should be a string or a list of strings", path)

    remote = config.get("remote") or {}
    delay = remote.get("keypress_delay_ms")
    if delay is not None and (not isinstance(delay, (int, float)) or delay < 0):
        logger.warning("Config %s: remote.keypress_delay_ms %r must be >= 0", path, delay)
    max_count = remote.get("max_send_count")
    if max_count is not None and (not isinstance(max_count, int) or max_count < 1):
        logger.warning("Config %s: remote.max_send_count %r must be a whole number >= 1", path, max_count)

    registry = config.get("registry") or {}
    if "path" in registry and not registry.get("path"):
        logger.warning("Config %s: empty registry.path — falling back to rokus.json", path)

    level = (config.get("logging") or {}).get("level")
    if level is not None and str(level).upper() not in _LOG_LEVELS:
        logger.warning("Config %s: unknown logging.level '%s'", path, level)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _SEARCH_PATHS:
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.info("No config.json found — using defaults")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("server")                          → config["server"]
    cfg("server", "port")                  → config["server"]["port"]
    cfg("remote", "timeout", default=5)    → config["remote"]["timeout"] or 5
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
