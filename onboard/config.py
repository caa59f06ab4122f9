"""Configuration schema, snapshot reader and atomic writer."""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_GATEWAY_PORT = 18789
DEFAULT_CONFIG_DIR = Path("~/.gateway-onboard")
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_WORKSPACE = str(DEFAULT_CONFIG_DIR / "workspace")
CONFIG_PATH_ENV = "GATEWAY_ONBOARD_CONFIG"


class _Section(BaseModel):
    # Unknown keys survive a read/validate/write cycle.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class GatewayAuthConfig(_Section):
    mode: Literal["token", "password"] | None = None
    token: str | None = None
    password: str | None = None


class TailscaleConfig(_Section):
    mode: Literal["off", "serve", "funnel"] | None = None
    reset_on_exit: bool | None = Field(default=None, alias="resetOnExit")

    @field_validator("mode", mode="before")
    @classmethod
    def _yaml_off(cls, value: Any) -> Any:
        # Unquoted `off` is a YAML 1.1 boolean.
        return "off" if value is False else value


class RemoteGatewayConfig(_Section):
    url: str | None = None
    token: str | None = None


class NodesConfig(_Section):
    deny_commands: list[str] | None = Field(default=None, alias="denyCommands")
    allow_commands: list[str] | None = Field(default=None, alias="allowCommands")


class GatewayConfig(_Section):
    mode: Literal["local", "remote"] | None = None
    port: int | None = Field(default=None, ge=1, le=65535, strict=True)
    bind: Literal["loopback", "lan", "auto", "custom", "tailnet"] | None = None
    custom_bind_host: str | None = Field(default=None, alias="customBindHost")
    auth: GatewayAuthConfig | None = None
    tailscale: TailscaleConfig | None = None
    remote: RemoteGatewayConfig | None = None
    nodes: NodesConfig | None = None


class AgentDefaultsConfig(_Section):
    workspace: str | None = None


class AgentsConfig(_Section):
    defaults: AgentDefaultsConfig | None = None


class PluginEntryConfig(_Section):
    enabled: bool | None = None


class PluginsConfig(_Section):
    enabled: bool | None = None
    entries: dict[str, PluginEntryConfig] = Field(default_factory=dict)


class Config(_Section):
    """Root document. Channel sections are owned by their adapters."""
    gateway: GatewayConfig | None = None
    agents: AgentsConfig | None = None
    channels: dict[str, dict[str, Any]] = Field(default_factory=dict)
    plugins: PluginsConfig | None = None
    wizard: dict[str, Any] | None = None


@dataclass(frozen=True)
class ConfigIssue:
    path: str
    message: str


@dataclass
class ConfigSnapshot:
    path: Path
    exists: bool
    valid: bool
    config: dict[str, Any] = field(default_factory=dict)
    issues: list[ConfigIssue] = field(default_factory=list)


class ConfigWriteError(RuntimeError):
    """The document could not be persisted; its on-disk state is unknown."""


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Explicit path, then $GATEWAY_ONBOARD_CONFIG, then the default."""
    raw = path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
    return Path(raw).expanduser().resolve()


def _issues_from_validation(err: ValidationError) -> list[ConfigIssue]:
    issues = []
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", ())) or "<root>"
        issues.append(ConfigIssue(path=loc, message=item.get("msg", "invalid value")))
    return issues


def read_config_file_snapshot(path: str | Path | None = None) -> ConfigSnapshot:
    """Read and validate the document without ever raising on bad content."""
    p = resolve_config_path(path)
    if not p.exists():
        return ConfigSnapshot(path=p, exists=False, valid=True, config={})

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to read {p}: {e}")
        return ConfigSnapshot(
            path=p, exists=True, valid=False,
            issues=[ConfigIssue(path="<file>", message=str(e))],
        )

    if data is None:
        data = {}
    if not isinstance(data, dict):
        return ConfigSnapshot(
            path=p, exists=True, valid=False,
            issues=[ConfigIssue(path="<root>", message="top level must be a mapping")],
        )

    try:
        Config.model_validate(data)
    except ValidationError as e:
        issues = _issues_from_validation(e)
        logger.warning(f"{p} has {len(issues)} validation issue(s)")
        return ConfigSnapshot(path=p, exists=True, valid=False, config=data, issues=issues)

    return ConfigSnapshot(path=p, exists=True, valid=True, config=data)


def write_config_file(config: dict[str, Any], path: str | Path | None = None) -> Path:
    """Replace the whole document on disk atomically."""
    p = resolve_config_path(path)
    try:
        Config.model_validate(config)
    except ValidationError as e:
        raise ConfigWriteError(f"Refusing to write an invalid config: {e}") from e

    text = yaml.safe_dump(config, default_flow_style=False, sort_keys=False, allow_unicode=True)
    tmp_name = None
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=p.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, p)
    except OSError as e:
        if tmp_name:
            Path(tmp_name).unlink(missing_ok=True)
        raise ConfigWriteError(f"Could not write config to {p}: {e}") from e

    logger.info(f"Config written to {p}")
    return p


def resolve_gateway_port(config: dict[str, Any]) -> int:
    port = (config.get("gateway") or {}).get("port")
    if isinstance(port, int) and not isinstance(port, bool) and 0 < port <= 65535:
        return port
    return DEFAULT_GATEWAY_PORT


def summarize_existing_config(config: dict[str, Any]) -> str:
    """Short human summary of what an existing document already sets."""
    gateway = config.get("gateway") or {}
    lines = []
    workspace = ((config.get("agents") or {}).get("defaults") or {}).get("workspace")
    if workspace:
        lines.append(f"workspace: {workspace}")
    if gateway.get("mode"):
        lines.append(f"gateway.mode: {gateway['mode']}")
    if "port" in gateway:
        lines.append(f"gateway.port: {gateway['port']}")
    if gateway.get("bind"):
        lines.append(f"gateway.bind: {gateway['bind']}")
    remote_url = (gateway.get("remote") or {}).get("url")
    if remote_url:
        lines.append(f"gateway.remote.url: {remote_url}")
    channels = sorted((config.get("channels") or {}).keys())
    if channels:
        lines.append(f"channels: {', '.join(channels)}")
    return "\n".join(lines) if lines else "No key settings detected."
