"""Gateway network/auth/exposure settings and the constraint resolver.

`resolve()` is pure: identical inputs always give identical settings and
notices (apart from a generated token), which keeps the rules testable
without any prompting.
"""

import copy
import secrets
from dataclasses import dataclass, replace
from typing import Any, Literal

from loguru import logger

from onboard.config import resolve_gateway_port

WizardFlow = Literal["quickstart", "advanced"]
BindMode = Literal["loopback", "lan", "auto", "custom", "tailnet"]
AuthMode = Literal["token", "password"]
TailscaleMode = Literal["off", "serve", "funnel"]

BIND_MODES: tuple[str, ...] = ("loopback", "lan", "auto", "custom", "tailnet")
AUTH_MODES: tuple[str, ...] = ("token", "password")
TAILSCALE_MODES: tuple[str, ...] = ("off", "serve", "funnel")

# Node commands that write private data or record; new gateways deny them until armed.
DEFAULT_DANGEROUS_NODE_DENY_COMMANDS = [
    "camera.snap",
    "camera.clip",
    "screen.record",
    "calendar.add",
    "contacts.add",
    "reminders.add",
]


class PasswordRequiredError(ValueError):
    """Password auth was chosen but no password was supplied."""


class CustomBindHostRequiredError(ValueError):
    """bind=custom was chosen but no host was supplied."""


@dataclass(frozen=True)
class Notice:
    field: str
    reason: str
    message: str = ""


@dataclass(frozen=True)
class GatewaySettings:
    port: int
    bind: BindMode
    auth_mode: AuthMode
    tailscale_mode: TailscaleMode
    custom_bind_host: str | None = None
    token: str | None = None
    password: str | None = None
    tailscale_reset_on_exit: bool = False


@dataclass(frozen=True)
class QuickstartGatewayDefaults:
    """Gateway values recovered from the existing document."""
    has_existing: bool
    port: int
    bind: BindMode
    auth_mode: AuthMode
    tailscale_mode: TailscaleMode
    token: str | None = None
    password: str | None = None
    custom_bind_host: str | None = None
    tailscale_reset_on_exit: bool = False


@dataclass(frozen=True)
class GatewaySelections:
    """Operator answers. None means "not asked"; the existing value is kept."""
    port: int | None = None
    bind: BindMode | None = None
    custom_bind_host: str | None = None
    auth_mode: AuthMode | None = None
    token: str | None = None
    password: str | None = None
    tailscale_mode: TailscaleMode | None = None
    tailscale_reset_on_exit: bool | None = None


def random_token() -> str:
    return secrets.token_hex(24)


def quickstart_defaults(config: dict[str, Any]) -> QuickstartGatewayDefaults:
    gateway = config.get("gateway") or {}
    auth = gateway.get("auth") or {}
    tailscale = gateway.get("tailscale") or {}

    has_existing = (
        isinstance(gateway.get("port"), int)
        or gateway.get("bind") is not None
        or auth.get("mode") is not None
        or auth.get("token") is not None
        or auth.get("password") is not None
        or gateway.get("customBindHost") is not None
        or tailscale.get("mode") is not None
    )

    bind = gateway.get("bind")
    if bind not in BIND_MODES:
        bind = "loopback"

    auth_mode = auth.get("mode")
    if auth_mode not in AUTH_MODES:
        if auth.get("token"):
            auth_mode = "token"
        elif auth.get("password"):
            auth_mode = "password"
        else:
            auth_mode = "token"

    tailscale_mode = tailscale.get("mode")
    if tailscale_mode is False:
        tailscale_mode = "off"
    if tailscale_mode not in TAILSCALE_MODES:
        tailscale_mode = "off"

    return QuickstartGatewayDefaults(
        has_existing=has_existing,
        port=resolve_gateway_port(config),
        bind=bind,
        auth_mode=auth_mode,
        tailscale_mode=tailscale_mode,
        token=auth.get("token") or None,
        password=auth.get("password") or None,
        custom_bind_host=gateway.get("customBindHost") or None,
        tailscale_reset_on_exit=bool(tailscale.get("resetOnExit", False)),
    )


def _pick(selected: Any, existing: Any) -> Any:
    return existing if selected is None else selected


def resolve(
    flow: WizardFlow,
    existing: QuickstartGatewayDefaults,
    selections: GatewaySelections | None = None,
) -> tuple[GatewaySettings, list[Notice]]:
    """Merge answers over existing values, then apply the constraint fixups in order.

    1. tailscale exposure forces bind=loopback and drops the custom host
    2. funnel forces password auth
    3. token auth without a token gets a generated one
    4. password auth without a password raises PasswordRequiredError
    """
    sel = selections or GatewaySelections()
    notices: list[Notice] = []

    if flow == "advanced":
        reset_default = False
    else:
        reset_default = existing.tailscale_reset_on_exit

    settings = GatewaySettings(
        port=_pick(sel.port, existing.port),
        bind=_pick(sel.bind, existing.bind),
        custom_bind_host=_pick(sel.custom_bind_host, existing.custom_bind_host),
        auth_mode=_pick(sel.auth_mode, existing.auth_mode),
        token=_pick(sel.token, existing.token) or None,
        password=_pick(sel.password, existing.password) or None,
        tailscale_mode=_pick(sel.tailscale_mode, existing.tailscale_mode),
        tailscale_reset_on_exit=bool(_pick(sel.tailscale_reset_on_exit, reset_default)),
    )

    if settings.tailscale_mode != "off" and settings.bind != "loopback":
        logger.info(f"tailscale={settings.tailscale_mode} requires loopback; bind {settings.bind} -> loopback")
        settings = replace(settings, bind="loopback", custom_bind_host=None)
        notices.append(Notice(
            field="bind",
            reason="tailscale-requires-loopback",
            message="Tailscale requires bind=loopback. Adjusting bind to loopback.",
        ))

    if settings.tailscale_mode == "funnel" and settings.auth_mode != "password":
        logger.info("tailscale funnel requires password auth; auth token -> password")
        settings = replace(settings, auth_mode="password")
        notices.append(Notice(
            field="authMode",
            reason="funnel-requires-password",
            message="Tailscale funnel requires password auth.",
        ))

    if settings.auth_mode == "token" and not settings.token:
        settings = replace(settings, token=random_token())

    if settings.auth_mode == "password" and not settings.password:
        raise PasswordRequiredError("Password auth needs a password")

    if settings.bind != "custom":
        settings = replace(settings, custom_bind_host=None)
    elif not settings.custom_bind_host:
        raise CustomBindHostRequiredError("bind=custom needs an IPv4 address")

    return settings, notices


def apply_gateway_settings(
    config: dict[str, Any],
    settings: GatewaySettings,
    has_existing: bool,
) -> dict[str, Any]:
    """Return a copy of the document with the gateway section rewritten from settings."""
    next_config = copy.deepcopy(config)
    gateway = next_config.setdefault("gateway", {})

    auth = gateway.setdefault("auth", {})
    auth["mode"] = settings.auth_mode
    if settings.auth_mode == "token":
        auth["token"] = settings.token
    else:
        auth["password"] = settings.password

    gateway["port"] = settings.port
    gateway["bind"] = settings.bind
    if settings.bind == "custom":
        gateway["customBindHost"] = settings.custom_bind_host
    else:
        gateway.pop("customBindHost", None)

    tailscale = gateway.setdefault("tailscale", {})
    tailscale["mode"] = settings.tailscale_mode
    tailscale["resetOnExit"] = settings.tailscale_reset_on_exit

    nodes = gateway.get("nodes") or {}
    if (
        not has_existing
        and nodes.get("denyCommands") is None
        and nodes.get("allowCommands") is None
        and nodes.get("browser") is None
    ):
        gateway["nodes"] = {**nodes, "denyCommands": list(DEFAULT_DANGEROUS_NODE_DENY_COMMANDS)}

    return next_config
