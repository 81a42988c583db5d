"""Configuration management for the dashboard proxy and client."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

DEFAULT_API_URL = "http://127.0.0.1:8000"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_TRUSTED_PROXIES = ("127.0.0.1",)


@dataclass(frozen=True)
class ProxySettings:
    """Connection details for the external user API."""

    base_url: str
    api_key: str
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    trusted_proxies: Tuple[str, ...] = DEFAULT_TRUSTED_PROXIES

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "ProxySettings":
        """Create :class:`ProxySettings` from raw dictionary data."""
        base_url = str(data.get("base_url") or "").strip().rstrip("/")
        api_key = str(data.get("api_key") or "").strip()
        missing = []
        if not base_url:
            missing.append("REQRES_BASE_URL")
        if not api_key:
            missing.append("REQRES_API_KEY")
        if missing:
            raise RuntimeError(f"Missing API configuration: {', '.join(missing)} must be set")
        return ProxySettings(
            base_url=base_url,
            api_key=api_key,
            timeout=_parse_timeout(data.get("timeout")),
            trusted_proxies=_parse_hosts(data.get("trusted_proxies")),
        )


@dataclass(frozen=True)
class ClientSettings:
    """Where the dashboard client finds the proxy and keeps its session."""

    api_url: str
    storage_path: Path
    timeout: float = DEFAULT_REQUEST_TIMEOUT


def _parse_timeout(value: object) -> float:
    if value is None or value == "":
        return DEFAULT_REQUEST_TIMEOUT
    try:
        timeout = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid request timeout: {value!r}") from exc
    if timeout <= 0:
        raise ValueError("Request timeout must be positive")
    return timeout


def _parse_hosts(value: object) -> Tuple[str, ...]:
    """Accept a comma separated string or a YAML list of forwarding proxies."""
    if value is None or value == "":
        return DEFAULT_TRUSTED_PROXIES
    items = value.split(",") if isinstance(value, str) else list(value)  # type: ignore[call-overload]
    hosts = tuple(str(item).strip() for item in items if str(item).strip())
    return hosts or DEFAULT_TRUSTED_PROXIES


def load_config_file(config_path: Optional[Path]) -> Dict[str, object]:
    """Load the optional YAML configuration file."""
    if config_path is None or not config_path.exists():
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")
    return raw


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the path to the configuration file, if one is configured."""
    if not env_value:
        return None
    return Path(env_value).expanduser().resolve(strict=False)


def resolve_storage_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the persisted client session."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "session.sqlite3").resolve(strict=False)


def _section(raw: Mapping[str, object], name: str) -> Dict[str, object]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    return dict(section)


def load_proxy_settings(environ: Optional[Mapping[str, str]] = None) -> ProxySettings:
    """Build proxy settings from the YAML file and environment variables."""
    env = os.environ if environ is None else environ
    raw = load_config_file(resolve_config_path(env.get("DASHBOARD_CONFIG")))
    data = _section(raw, "proxy")
    for key, variable in (
        ("base_url", "REQRES_BASE_URL"),
        ("api_key", "REQRES_API_KEY"),
        ("timeout", "DASHBOARD_REQUEST_TIMEOUT"),
        ("trusted_proxies", "DASHBOARD_TRUSTED_PROXIES"),
    ):
        value = env.get(variable)
        if value:
            data[key] = value
    return ProxySettings.from_dict(data)


def load_client_settings(environ: Optional[Mapping[str, str]] = None) -> ClientSettings:
    """Build client settings from the YAML file and environment variables."""
    env = os.environ if environ is None else environ
    raw = load_config_file(resolve_config_path(env.get("DASHBOARD_CONFIG")))
    data = _section(raw, "client")

    api_url = str(env.get("DASHBOARD_API_URL") or data.get("api_url") or DEFAULT_API_URL)
    api_url = api_url.strip().rstrip("/")
    if not api_url:
        raise ValueError("Dashboard API URL must not be empty")

    storage_value = env.get("DASHBOARD_STORAGE_PATH") or data.get("storage_path")
    return ClientSettings(
        api_url=api_url,
        storage_path=resolve_storage_path(str(storage_value) if storage_value else None),
        timeout=_parse_timeout(env.get("DASHBOARD_REQUEST_TIMEOUT") or data.get("timeout")),
    )


__all__ = [
    "ClientSettings",
    "ProxySettings",
    "load_client_settings",
    "load_config_file",
    "load_proxy_settings",
    "resolve_config_path",
    "resolve_storage_path",
]
