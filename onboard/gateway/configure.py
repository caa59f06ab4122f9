"""Collect gateway answers from the operator and run them through the resolver."""

import shutil
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger

from onboard.gateway.settings import (
    CustomBindHostRequiredError,
    GatewaySelections,
    GatewaySettings,
    Notice,
    PasswordRequiredError,
    QuickstartGatewayDefaults,
    WizardFlow,
    apply_gateway_settings,
    resolve,
)
from onboard.prompts import SelectOption, WizardPrompter
from onboard.validators import (
    normalize_token_input,
    validate_ipv4,
    validate_password,
    validate_port,
)

BIND_OPTIONS = [
    SelectOption("loopback", "Loopback (127.0.0.1)"),
    SelectOption("lan", "LAN (0.0.0.0)"),
    SelectOption("tailnet", "Tailnet (Tailscale IP)"),
    SelectOption("auto", "Auto (Loopback -> LAN)"),
    SelectOption("custom", "Custom IP"),
]

AUTH_OPTIONS = [
    SelectOption("token", "Token", "Recommended default (local + remote)"),
    SelectOption("password", "Password"),
]

TAILSCALE_OPTIONS = [
    SelectOption("off", "Off", "No Tailscale exposure"),
    SelectOption("serve", "Serve", "Private HTTPS for your tailnet (devices on Tailscale)"),
    SelectOption("funnel", "Funnel", "Public HTTPS via Tailscale Funnel (internet)"),
]

TAILSCALE_DOCS_LINES = [
    "Serve exposes the gateway to devices on your tailnet only.",
    "Funnel exposes the gateway publicly and requires password auth.",
    "Both keep the gateway bound to loopback.",
]

TAILSCALE_MISSING_BIN_LINES = [
    "Tailscale binary not found in PATH.",
    "Install Tailscale and sign in before starting the gateway,",
    "otherwise serve/funnel setup will fail at startup.",
]

BIND_LABELS = {o.value: o.label for o in BIND_OPTIONS}


@dataclass
class GatewayConfigureResult:
    config: dict[str, Any]
    settings: GatewaySettings
    notices: list[Notice]


def find_tailscale_binary() -> str | None:
    return shutil.which("tailscale")


def format_quickstart_summary(defaults: QuickstartGatewayDefaults) -> str:
    lines = ["Keeping your current gateway settings:"] if defaults.has_existing else []
    lines.append(f"Gateway port: {defaults.port}")
    lines.append(f"Gateway bind: {BIND_LABELS.get(defaults.bind, defaults.bind)}")
    if defaults.bind == "custom" and defaults.custom_bind_host:
        lines.append(f"Gateway custom IP: {defaults.custom_bind_host}")
    lines.append(f"Gateway auth: {'Token (default)' if defaults.auth_mode == 'token' else 'Password'}")
    lines.append(f"Tailscale exposure: {defaults.tailscale_mode.title()}")
    lines.append("Direct to chat channels.")
    return "\n".join(lines)


def _collect_advanced(
    defaults: QuickstartGatewayDefaults,
    prompter: WizardPrompter,
    local_port: int,
) -> GatewaySelections:
    port = int(prompter.text("Gateway port", initial_value=str(local_port), validate=validate_port))
    bind = prompter.select("Gateway bind", BIND_OPTIONS, initial_value=defaults.bind)

    custom_bind_host = None
    if bind == "custom":
        custom_bind_host = prompter.text(
            "Custom IP address",
            initial_value=defaults.custom_bind_host or "",
            placeholder="192.168.1.100",
            validate=validate_ipv4,
        )

    auth_mode = prompter.select("Gateway auth", AUTH_OPTIONS, initial_value="token")
    tailscale_mode = prompter.select("Tailscale exposure", TAILSCALE_OPTIONS, initial_value="off")

    reset_on_exit = False
    if tailscale_mode != "off":
        prompter.note("\n".join(TAILSCALE_DOCS_LINES), "Tailscale")
        reset_on_exit = prompter.confirm("Reset Tailscale serve/funnel on exit?", default=False)

    # Funnel ends up on password auth regardless, so skip the token question.
    token = None
    if auth_mode == "token" and tailscale_mode != "funnel":
        token = normalize_token_input(prompter.text(
            "Gateway token (blank to generate)",
            initial_value=defaults.token or "",
            placeholder="Needed for multi-machine or non-loopback access",
        )) or None

    password = None
    if auth_mode == "password" or tailscale_mode == "funnel":
        password = prompter.text("Gateway password", validate=validate_password, password=True)

    return GatewaySelections(
        port=port,
        bind=bind,
        custom_bind_host=custom_bind_host,
        auth_mode=auth_mode,
        token=token,
        password=password,
        tailscale_mode=tailscale_mode,
        tailscale_reset_on_exit=reset_on_exit,
    )


def _collect_quickstart(defaults: QuickstartGatewayDefaults, prompter: WizardPrompter) -> GatewaySelections:
    custom_bind_host = None
    if defaults.bind == "custom" and not defaults.custom_bind_host and defaults.tailscale_mode == "off":
        custom_bind_host = prompter.text("Custom IP address", placeholder="192.168.1.100", validate=validate_ipv4)
    return GatewaySelections(custom_bind_host=custom_bind_host)


def configure_gateway(
    flow: WizardFlow,
    config: dict[str, Any],
    defaults: QuickstartGatewayDefaults,
    prompter: WizardPrompter,
    local_port: int,
) -> GatewayConfigureResult:
    """Ask for (advanced) or reuse (quickstart) gateway settings and write them into the document."""
    if flow == "advanced":
        selections = _collect_advanced(defaults, prompter, local_port)
    else:
        selections = _collect_quickstart(defaults, prompter)

    tailscale_mode = selections.tailscale_mode or defaults.tailscale_mode
    if tailscale_mode != "off" and not find_tailscale_binary():
        prompter.note("\n".join(TAILSCALE_MISSING_BIN_LINES), "Tailscale Warning")

    while True:
        try:
            settings, notices = resolve(flow, defaults, selections)
            break
        except PasswordRequiredError:
            password = prompter.text("Gateway password", validate=validate_password, password=True)
            selections = replace(selections, password=password)
        except CustomBindHostRequiredError:
            host = prompter.text("Custom IP address", placeholder="192.168.1.100", validate=validate_ipv4)
            selections = replace(selections, custom_bind_host=host)

    for notice in notices:
        logger.info(f"gateway fixup: {notice.field} ({notice.reason})")
        prompter.note(notice.message or notice.reason, "Note")

    next_config = apply_gateway_settings(config, settings, has_existing=defaults.has_existing)
    return GatewayConfigureResult(config=next_config, settings=settings, notices=notices)
