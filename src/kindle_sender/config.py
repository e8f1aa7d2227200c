"""Centralized configuration for kindle-sender.

Files used by the tool:
    ~/.kindle_sender/auth.json  - cached OAuth tokens (written by the tool)
    ./config.json               - delivery settings (directories, receivers, Azure app)
    ./.env                      - optional environment overrides

This module auto-loads the .env file on import. Variables already present
in the environment take precedence over the file.

Environment overrides:
    KINDLE_SENDER_CONFIG         - path to the settings file
    KINDLE_SENDER_CLIENT_SECRET  - Azure client secret (keeps it out of config.json)
    KINDLE_SENDER_LOG_LEVEL      - logging level for the CLI (default: INFO)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_DIR = Path.home() / ".kindle_sender"
TOKEN_FILE = CONFIG_DIR / "auth.json"

ENV_FILE = Path.cwd() / ".env"
DEFAULT_CONFIG_FILE = Path("config.json")
DEFAULT_CALLBACK_URI = "http://localhost:8080/callback"
ENV_PREFIX = "KINDLE_SENDER_"


class ConfigError(Exception):
    """Raised when the settings file is missing or invalid."""


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _load_env_file(env_path: Path, prefix: str = ENV_PREFIX) -> dict[str, str]:
    """Export the kindle-sender overrides found in a .env file.

    Only ``KINDLE_SENDER_*`` keys are taken; anything else in the file
    belongs to other tools and is left alone. A leading ``export`` is
    accepted so the same file can be sourced from a shell.

    Args:
        env_path: Path to .env file.
        prefix: Key prefix to accept.

    Returns:
        The variables that were exported (already-set ones are skipped).
    """
    if not env_path.is_file():
        return {}

    loaded = {}
    for raw in env_path.read_text().splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key.startswith(prefix):
            continue
        if key in os.environ:
            continue
        os.environ[key] = loaded[key] = _unquote(value.strip())

    return loaded


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Pick the settings file: explicit path, then env var, then ./config.json."""
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get("KINDLE_SENDER_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE


@dataclass(frozen=True)
class DeliverySettings:
    """Everything one delivery run needs to know.

    Attributes:
        client_id: Azure application (client) ID.
        client_secret: Azure application client secret.
        tenant_id: Azure tenant ID ("common" for personal accounts).
        callback_uri: Redirect URI registered on the Azure app.
        source_directory: Folder holding e-books waiting to be sent.
        destination_directory: Folder e-books are moved to once sent.
        receivers: Kindle addresses each e-book is mailed to.
        callback_timeout: Seconds to wait for the browser redirect (None = forever).
    """

    client_id: str
    client_secret: str
    tenant_id: str
    source_directory: Path
    destination_directory: Path
    receivers: tuple[str, ...] = field(default_factory=tuple)
    callback_uri: str = DEFAULT_CALLBACK_URI
    callback_timeout: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> DeliverySettings:
        """Build settings from the parsed config.json structure.

        Raises:
            ConfigError: If a required key is missing or malformed.
        """
        azure = data.get("azure")
        if not isinstance(azure, dict):
            raise ConfigError("Missing 'azure' section (client_id, client_secret, tenant_id)")

        missing = [
            key
            for key in ("ebook_to_send_directory", "ebook_sent_directory", "receivers")
            if not data.get(key)
        ]
        missing += [f"azure.{key}" for key in ("client_id", "tenant_id") if not azure.get(key)]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

        client_secret = os.environ.get("KINDLE_SENDER_CLIENT_SECRET") or azure.get(
            "client_secret"
        )
        if not client_secret:
            raise ConfigError(
                "Missing azure.client_secret. "
                "Set it in config.json or the KINDLE_SENDER_CLIENT_SECRET env var."
            )

        receivers = data["receivers"]
        if isinstance(receivers, str) or not all(isinstance(r, str) for r in receivers):
            raise ConfigError("'receivers' must be a list of email addresses")
        receivers = tuple(r.strip() for r in receivers if r.strip())
        if not receivers:
            raise ConfigError("'receivers' must list at least one email address")

        timeout = data.get("callback_timeout")
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            raise ConfigError("'callback_timeout' must be a positive number of seconds")

        return cls(
            client_id=azure["client_id"],
            client_secret=client_secret,
            tenant_id=azure["tenant_id"],
            source_directory=Path(data["ebook_to_send_directory"]).expanduser(),
            destination_directory=Path(data["ebook_sent_directory"]).expanduser(),
            receivers=receivers,
            callback_uri=data.get("callback_uri") or DEFAULT_CALLBACK_URI,
            callback_timeout=timeout,
        )

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> DeliverySettings:
        """Load settings from a JSON file.

        Args:
            path: Settings file. Defaults to KINDLE_SENDER_CONFIG or ./config.json.

        Raises:
            ConfigError: If the file is missing, not JSON, or incomplete.
        """
        config_path = resolve_config_path(path)
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Error reading configuration file ({config_path}): {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file must hold a JSON object: {config_path}")

        return cls.from_dict(data)

    def describe(self) -> list[str]:
        """Human-readable summary of the settings (secret masked)."""
        lines = [
            f"Callback URI:      {self.callback_uri}",
            f"To-send directory: {self.source_directory}",
            f"Sent directory:    {self.destination_directory}",
            f"Tenant:            {self.tenant_id}",
            f"Client ID:         {self.client_id}",
            "Receivers:",
        ]
        lines += [f"  {index}. {email}" for index, email in enumerate(self.receivers, 1)]
        return lines


def ensure_config_dir() -> Path:
    """Create the token directory if it doesn't exist.

    Returns:
        Path to the config directory.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    return CONFIG_DIR


def get_status(config_path: str | Path | None = None) -> dict:
    """Report which configuration files are present."""
    return {
        "config_dir": str(CONFIG_DIR),
        "config_file": str(resolve_config_path(config_path)),
        "config_exists": resolve_config_path(config_path).exists(),
        "token": TOKEN_FILE.exists(),
        "env_file": ENV_FILE.exists(),
        "client_secret_env": bool(os.environ.get("KINDLE_SENDER_CLIENT_SECRET")),
    }


_loaded = _load_env_file(ENV_FILE)
