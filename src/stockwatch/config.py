"""Settings loading: optional YAML file, then environment overrides."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from stockwatch.errors import ConfigError
from stockwatch.models import MonitorSettings

logger = logging.getLogger(__name__)

# env var -> settings field
ENV_OVERRIDES = {
    "STOCKWATCH_ACCESS_TOKEN": "access_token",
    "STOCKWATCH_REFRESH_TOKEN": "refresh_token",
    "STOCKWATCH_WEBHOOK_URL": "webhook_url",
    "STOCKWATCH_POLL_INTERVAL": "poll_interval_seconds",
    "STOCKWATCH_AUTO_RESERVE": "auto_reserve",
}


def load_dotenv(path: str | Path | None = None) -> Path | None:
    """Load a .env file into os.environ without overriding existing vars."""
    env_path = Path(path) if path else Path.cwd() / ".env"
    if not env_path.exists():
        return None
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                key, value = key.strip(), value.strip().strip('"').strip("'")
                if key not in os.environ:
                    os.environ[key] = value
    logger.info("Loaded .env from %s", env_path)
    return env_path


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a YAML mapping, got {type(data).__name__}")
    return data


def load_settings(
    path: str | Path | None = None, environ: dict[str, str] | None = None
) -> MonitorSettings:
    """Build settings from an optional YAML file plus STOCKWATCH_* env vars."""
    env = os.environ if environ is None else environ
    path = path or env.get("STOCKWATCH_CONFIG")

    data = _read_yaml(Path(path)) if path else {}

    for var, field in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[field] = value
    # Bare name used by most deployments of the webhook
    if "webhook_url" not in data and env.get("DISCORD_WEBHOOK"):
        data["webhook_url"] = env["DISCORD_WEBHOOK"]

    try:
        return MonitorSettings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid config: {e}") from e
