"""Provider configuration loading with layered precedence.

Configuration precedence (highest wins):
1. Keyword arguments passed to ``WebsocketProvider``
2. Environment variables (CHAINRPC_WS_*)
3. Project config (.chainrpc_ws/provider.json)
4. User config (~/.chainrpc_ws/provider.json)
5. Built-in defaults

Usage:
    from chainrpc_ws.client.config import load_client_config, get_provider_config

    config = load_client_config(workspace_path=Path.cwd())
    provider_config = get_provider_config(workspace_path=Path.cwd())

Environment Variables:
    CHAINRPC_WS_TIMEOUT: Per-request timeout seconds (default: unset, no timeout)
    CHAINRPC_WS_SYNC_INTERVAL: Token refresh interval seconds (default: 60.0)
    CHAINRPC_WS_AUTH_RETRY_DELAY: Delay after a failed token refresh (default: 10.0)
    CHAINRPC_WS_DECHUNK_TIMEOUT: Seconds to wait for a partial frame to complete (default: 15.0)
    CHAINRPC_WS_CONNECTING_POLL: Send retry interval while connecting (default: 0.01)
    CHAINRPC_WS_PROTOCOL: WebSocket sub-protocol name (default: unset)
    CHAINRPC_WS_OPEN_TIMEOUT: Opening handshake timeout seconds (default: 10.0)
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, get_type_hints

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".chainrpc_ws"
CONFIG_FILE_NAME = "provider.json"


def _parse_env_value(value: str, target_type: Type) -> Any:
    """Parse environment variable value to target type."""
    # Extract inner type from Optional
    args = getattr(target_type, '__args__', ())
    if args and type(None) in args:
        if value == "":
            return None
        inner_types = [a for a in args if a is not type(None)]
        if inner_types:
            target_type = inner_types[0]

    if target_type == float:
        return float(value)
    return value


@dataclass
class ProviderConfig:
    """WebSocket provider settings.

    Attributes:
        timeout: Per-request timeout in seconds. None means requests wait
            until answered or until the connection drops.
        sync_interval: Seconds between background token refreshes.
        auth_retry_delay: Seconds to wait after a failed token refresh.
        dechunk_timeout: Seconds a partial frame may wait for its remainder
            before pending requests are failed.
        connecting_poll_interval: Seconds between send retries while the
            socket is still connecting.
        protocol: WebSocket sub-protocol to request.
        open_timeout: Opening handshake timeout in seconds.
    """
    timeout: Optional[float] = None
    sync_interval: float = 60.0
    auth_retry_delay: float = 10.0
    dechunk_timeout: float = 15.0
    connecting_poll_interval: float = 0.01
    protocol: Optional[str] = None
    open_timeout: float = 10.0

    def __post_init__(self):
        """Validate configuration values."""
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive when set")
        if self.sync_interval <= 0:
            raise ValueError("sync_interval must be positive")
        if self.auth_retry_delay <= 0:
            raise ValueError("auth_retry_delay must be positive")
        if self.dechunk_timeout <= 0:
            raise ValueError("dechunk_timeout must be positive")
        if self.connecting_poll_interval <= 0:
            raise ValueError("connecting_poll_interval must be positive")
        if self.open_timeout <= 0:
            raise ValueError("open_timeout must be positive")


@dataclass
class ClientConfig:
    """Root configuration.

    Attributes:
        provider: WebSocket provider settings.
    """
    provider: ProviderConfig = field(default_factory=ProviderConfig)


# Maps "section.field" paths to environment variable names
ENV_VAR_MAPPING: Dict[str, str] = {
    "provider.timeout": "CHAINRPC_WS_TIMEOUT",
    "provider.sync_interval": "CHAINRPC_WS_SYNC_INTERVAL",
    "provider.auth_retry_delay": "CHAINRPC_WS_AUTH_RETRY_DELAY",
    "provider.dechunk_timeout": "CHAINRPC_WS_DECHUNK_TIMEOUT",
    "provider.connecting_poll_interval": "CHAINRPC_WS_CONNECTING_POLL",
    "provider.protocol": "CHAINRPC_WS_PROTOCOL",
    "provider.open_timeout": "CHAINRPC_WS_OPEN_TIMEOUT",
}


def get_config_paths(workspace_path: Optional[Path] = None) -> Dict[str, Path]:
    """Get the paths where config files are searched.

    Args:
        workspace_path: Path to project workspace.

    Returns:
        Dict with 'user' and optionally 'project' paths.
    """
    paths = {
        "user": Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME,
    }
    if workspace_path:
        paths["project"] = Path(workspace_path) / CONFIG_DIR_NAME / CONFIG_FILE_NAME
    return paths


def _find_config_files(workspace_path: Optional[Path] = None) -> List[Path]:
    """Existing config files, ordered from lowest to highest precedence."""
    paths = get_config_paths(workspace_path)
    return [paths[k] for k in ("user", "project") if k in paths and paths[k].exists()]


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base, returning new dict.

    Lists and other non-dict values are replaced, not merged.
    """
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _get_field_type(dataclass_type: Type, field_name: str) -> Type:
    """Get the type of a field in a dataclass, or str as fallback."""
    try:
        hints = get_type_hints(dataclass_type)
        return hints.get(field_name, str)
    except Exception:
        return str


def _apply_env_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to config dict."""
    result = config_dict.copy()

    for path, env_var in ENV_VAR_MAPPING.items():
        env_value = os.environ.get(env_var)
        if env_value is None:
            continue

        section, field_name = path.split(".")
        current = result.get(section)
        current = dict(current) if isinstance(current, dict) else {}
        result[section] = current

        target_type = _get_field_type(ProviderConfig, field_name)
        try:
            current[field_name] = _parse_env_value(env_value, target_type)
            logger.debug("Applied env override: %s=%s", env_var, env_value)
        except (ValueError, TypeError) as e:
            logger.warning("Invalid value for %s: %s (%s)", env_var, env_value, e)

    return result


def _dict_to_provider_config(data: Dict[str, Any]) -> ProviderConfig:
    """Convert dict to ProviderConfig, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(ProviderConfig)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    unknown = {k for k in data if k not in valid_fields and not k.startswith("_")}
    if unknown:
        logger.warning("Unknown provider config keys (ignored): %s", unknown)

    try:
        return ProviderConfig(**filtered)
    except (TypeError, ValueError) as e:
        logger.warning("Invalid provider config values, using defaults: %s", e)
        return ProviderConfig()


def _dict_to_config(data: Dict[str, Any]) -> ClientConfig:
    provider_data = data.get("provider", {})
    if not isinstance(provider_data, dict):
        logger.warning("Invalid 'provider' config (expected dict), using defaults")
        provider_data = {}
    return ClientConfig(provider=_dict_to_provider_config(provider_data))


def load_client_config(workspace_path: Optional[Path] = None) -> ClientConfig:
    """Load configuration with layered precedence.

    Args:
        workspace_path: Path to project workspace for project-level config.
            If None, only user config and environment variables are used.

    Returns:
        Merged ClientConfig instance.
    """
    merged: Dict[str, Any] = {}

    for config_file in _find_config_files(workspace_path):
        try:
            with open(config_file) as f:
                file_config = json.load(f)

            if not isinstance(file_config, dict):
                logger.warning("Invalid config format in %s (expected object)", config_file)
                continue

            merged = _deep_merge(merged, file_config)
            logger.debug("Loaded config from %s", config_file)

        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s: %s", config_file, e)
        except OSError as e:
            logger.warning("Failed to read %s: %s", config_file, e)

    merged = _apply_env_overrides(merged)
    return _dict_to_config(merged)


def get_provider_config(workspace_path: Optional[Path] = None) -> ProviderConfig:
    """Convenience function to get just the provider section."""
    return load_client_config(workspace_path).provider


def generate_example_config() -> str:
    """Generate an example provider.json configuration file."""
    example = {
        "_comment": "chainrpc-ws provider configuration",
        "provider": {
            "timeout": 30.0,
            "sync_interval": 60.0,
            "auth_retry_delay": 10.0,
            "dechunk_timeout": 15.0,
            "connecting_poll_interval": 0.01,
            "protocol": None,
            "open_timeout": 10.0,
        },
    }
    return json.dumps(example, indent=2)


__all__ = [
    "ClientConfig",
    "ENV_VAR_MAPPING",
    "ProviderConfig",
    "generate_example_config",
    "get_config_paths",
    "get_provider_config",
    "load_client_config",
]
