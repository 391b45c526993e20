"""Config loading for the privacy gateway.

Reads `.privacy-gateway/config.yaml` (or `~/.privacy-gateway/config.yaml`).
Raises SystemExit on parse errors or a missing `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided: for testing or explicit override)
  2. PRIVACY_GATEWAY_CONFIG environment variable (if set)
  3. `.privacy-gateway/config.yaml` (working directory: for development)
  4. `~/.privacy-gateway/config.yaml` (home directory: for deployments)

Environment variable overrides:
  PRIVACY_GATEWAY_PORT  : overrides proxy.port
  PRIVACY_GATEWAY_CONFIG: sets an explicit config file path to try first

The upstream API key is never read from the file: ``upstream.api_key_env``
names the environment variable that holds it.

The cohort threshold is not a config value. See gateway.constants.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

import yaml

from gateway.constants import DEFAULT_MAX_TEXT_TOKENS
from gateway.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_INJECTION_POLICIES: frozenset[str] = frozenset({"redact", "block"})

DEFAULT_CONFIG_PATHS = [
    ".privacy-gateway/config.yaml",
    os.path.expanduser("~/.privacy-gateway/config.yaml"),
]


def _config_error(msg: str) -> SystemExit:
    print(f"CONFIG ERROR: {msg}", file=sys.stderr)
    return SystemExit(1)


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class UpstreamConfig:
    """AI completion collaborator (Anthropic Messages API).

    anthropic:   Base URL; requests go to ``{anthropic}/v1/messages``.
    api_key_env: Name of the environment variable holding the API key.
    """

    anthropic: str = "https://api.anthropic.com"
    api_key_env: str = "ANTHROPIC_API_KEY"
    model: str = "claude-3-5-sonnet-20241022"
    max_tokens: int = 4096
    temperature: float = 0.7
    timeout_s: float = 60.0

    @property
    def api_key(self) -> Optional[str]:
        return os.environ.get(self.api_key_env) or None


@dataclass
class GatewayConfig:
    """Validation pipeline tunables."""

    max_text_tokens: int = DEFAULT_MAX_TEXT_TOKENS
    injection_policy: str = "redact"  # "redact" | "block"
    allowlist_path: Optional[str] = None


@dataclass
class ProxyConfig:
    """HTTP binding configuration."""

    host: str = "127.0.0.1"
    port: int = 8787


@dataclass
class Config:
    """Root configuration object populated from .privacy-gateway/config.yaml.

    All fields have safe defaults: the gateway can start without a config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On an invalid injection policy or token budget.
        """
        # ── Gateway ───────────────────────────────────────────────────────────
        gateway_raw = raw.get("gateway") or {}
        policy = gateway_raw.get("injection_policy", "redact")
        if policy not in VALID_INJECTION_POLICIES:
            raise _config_error(
                f"Invalid gateway.injection_policy: '{policy}'. "
                f"Supported values: {sorted(VALID_INJECTION_POLICIES)}."
            )
        max_text_tokens = gateway_raw.get("max_text_tokens", DEFAULT_MAX_TEXT_TOKENS)
        if isinstance(max_text_tokens, bool) or not isinstance(max_text_tokens, int) or max_text_tokens <= 0:
            raise _config_error(
                f"gateway.max_text_tokens must be a positive integer, got {max_text_tokens!r}."
            )
        gateway = GatewayConfig(
            max_text_tokens=max_text_tokens,
            injection_policy=policy,
            allowlist_path=gateway_raw.get("allowlist_path"),
        )

        # ── Proxy ─────────────────────────────────────────────────────────────
        proxy_raw = raw.get("proxy") or {}
        proxy = ProxyConfig(
            host=proxy_raw.get("host", "127.0.0.1"),
            port=proxy_raw.get("port", 8787),
        )

        # ── Upstream ──────────────────────────────────────────────────────────
        upstream_raw = raw.get("upstream") or {}
        upstream = UpstreamConfig(
            anthropic=upstream_raw.get("anthropic", "https://api.anthropic.com"),
            api_key_env=upstream_raw.get("api_key_env", "ANTHROPIC_API_KEY"),
            model=upstream_raw.get("model", "claude-3-5-sonnet-20241022"),
            max_tokens=upstream_raw.get("max_tokens", 4096),
            temperature=upstream_raw.get("temperature", 0.7),
            timeout_s=upstream_raw.get("timeout_s", 60.0),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            upstream=upstream,
            gateway=gateway,
            proxy=proxy,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def _candidate_paths(config_path: Optional[str]) -> list[str]:
    explicit = [config_path, os.environ.get("PRIVACY_GATEWAY_CONFIG")]
    return [p for p in explicit if p] + list(DEFAULT_CONFIG_PATHS)


def _first_existing(candidates: list[str]) -> Optional[str]:
    for candidate in candidates:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            return expanded
    return None


def _read_document(path: str) -> dict:
    """Parse ``path`` and check its version header. Raises SystemExit(1)."""
    try:
        with open(path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise _config_error(
            f"Failed to parse {path}: {exc}\n"
            "The gateway will not start on a config it cannot read. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        raise _config_error(f"Could not read {path}: {exc}")

    if raw is not None and not isinstance(raw, dict):
        raise _config_error(f"{path} must hold a YAML mapping at the top level.")

    version = (raw or {}).get("version")
    if version is None:
        raise _config_error(
            f"{path} has no 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    unsupported = isinstance(version, bool) or not isinstance(version, int)
    if unsupported or version not in SUPPORTED_VERSIONS:
        raise _config_error(
            f"{path} declares config version {version!r}; "
            f"this gateway reads versions {sorted(SUPPORTED_VERSIONS)}."
        )
    return raw


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate gateway configuration.

    With no file at any search path the defaults are used; that is not an
    error. A file that exists but is invalid stops the process: the message
    goes to stderr and SystemExit(1) is raised. ``PRIVACY_GATEWAY_PORT`` is
    applied last in both cases.

    Raises:
        SystemExit(1): Unparseable YAML, a missing or unsupported ``version``,
                       invalid gateway settings, or a non-integer
                       ``PRIVACY_GATEWAY_PORT``.
    """
    candidates = _candidate_paths(config_path)
    found = _first_existing(candidates)

    if found is None:
        logger.info("No config file found, using defaults", searched=candidates)
        config = Config.defaults()
    else:
        logger.info("Loading config", path=found)
        config = Config.from_dict(_read_document(found), path=found)

    _apply_env_overrides(config)

    if config.proxy.host == "0.0.0.0":
        logger.warning(
            "SECURITY WARNING: binding on all interfaces. The gateway should "
            "only be reachable from the application backend (127.0.0.1)."
        )

    logger.info(
        "Config ready",
        path=found,
        version=config.version,
        injection_policy=config.gateway.injection_policy,
        custom_allowlists=config.gateway.allowlist_path is not None,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply PRIVACY_GATEWAY_PORT to ``config`` in place. Raises SystemExit(1)."""
    env_port = os.environ.get("PRIVACY_GATEWAY_PORT")
    if env_port is None:
        return
    try:
        config.proxy.port = int(env_port)
    except ValueError:
        raise _config_error(f"PRIVACY_GATEWAY_PORT is not a valid integer: '{env_port}'")
