"""TOML-based endpoint, backoff and logging configuration.

Loads ~/.cloudpath/defaults.toml (global) and cloudpath.toml (project),
merges them, and resolves sections into typed objects:

    [endpoints.logging]
    canonical_uri = "https://logging.googleapis.com/"
    psc_endpoint = "www-endpoint.p.googleapis.com"

    [backoff]
    initial_delay = 0.1
    max_attempts = 10
    multiplier = 2.0

    [logging]
    level = "DEBUG"

    [client]
    user_agent = "my-tool/1.0"
    timeout = 30
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cloudpath.constants import (
    CONFIG_DIR_NAME,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    GLOBAL_CONFIG_NAME,
    PROJECT_CONFIG_NAME,
)
from cloudpath.endpoints import PrivateServiceConnect, ServiceEndpoint
from cloudpath.gcp.endpoints import COMPUTE_ENDPOINT, LOGGING_ENDPOINT
from cloudpath.infra.retry import BackoffPolicy
from cloudpath.logging import LogConfig

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / CONFIG_DIR_NAME / GLOBAL_CONFIG_NAME

BUILTIN_ENDPOINTS: dict[str, ServiceEndpoint] = {
    "logging": LOGGING_ENDPOINT,
    "compute": COMPUTE_ENDPOINT,
}


@dataclass(frozen=True, slots=True)
class ClientSettings:
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT_SECONDS


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("endpoints", {})
    merged.setdefault("backoff", {})
    merged.setdefault("logging", {})
    merged.setdefault("client", {})
    return merged


def resolve_endpoint(name: str, config: RawConfig | None = None) -> ServiceEndpoint:
    """Build the ``ServiceEndpoint`` called ``name``.

    Configured values override the built-in endpoint of the same name.
    """
    config = config if config is not None else load_config()
    raw = dict(config["endpoints"].get(name, {}))
    builtin = BUILTIN_ENDPOINTS.get(name)

    if builtin is None and not raw:
        available = sorted({*BUILTIN_ENDPOINTS, *config["endpoints"]})
        raise KeyError(f"Endpoint '{name}' not found. Available: {', '.join(available)}")

    canonical_uri = raw.pop("canonical_uri", None) or (builtin.canonical_uri if builtin else None)
    if canonical_uri is None:
        raise ValueError(f"Endpoint '{name}' missing 'canonical_uri' field")

    mtls_uri = raw.pop("mtls_uri", None) or (builtin.mtls_uri if builtin else None)
    psc_endpoint = raw.pop("psc_endpoint", None)
    if raw:
        raise ValueError(f"Endpoint '{name}' has unknown fields: {', '.join(sorted(raw))}")

    return ServiceEndpoint(
        canonical_uri=canonical_uri,
        mtls_uri=mtls_uri,
        psc=PrivateServiceConnect(psc_endpoint) if psc_endpoint else None,
    )


def resolve_backoff(config: RawConfig | None = None) -> BackoffPolicy:
    config = config if config is not None else load_config()
    return BackoffPolicy(**config["backoff"])


def resolve_log_config(config: RawConfig | None = None) -> LogConfig:
    config = config if config is not None else load_config()
    return LogConfig(**config["logging"])


def resolve_client_settings(config: RawConfig | None = None) -> ClientSettings:
    config = config if config is not None else load_config()
    return ClientSettings(**config["client"])
