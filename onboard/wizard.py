"""First-run onboarding: the steps from risk acknowledgement to the Control UI summary."""

import copy
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from onboard.channels.install import PluginInstaller
from onboard.channels.registry import ChannelRegistry, default_registry
from onboard.channels.setup import SetupChannelsOptions, setup_channels
from onboard.config import (
    DEFAULT_WORKSPACE,
    ConfigSnapshot,
    read_config_file_snapshot,
    resolve_gateway_port,
    summarize_existing_config,
    write_config_file,
)
from onboard.flow import choose_existing_config_action, select_flow
from onboard.gateway.configure import configure_gateway, format_quickstart_summary
from onboard.gateway.probe import (
    GatewayCredentials,
    ProbeResult,
    probe,
    resolve_control_ui_links,
    wait_for_reachable,
)
from onboard.gateway.remote import prompt_remote_gateway_config
from onboard.gateway.settings import GatewaySettings, quickstart_defaults
from onboard.prompts import SelectOption, WizardCancelled, WizardPrompter

TOKEN_ENV = "GATEWAY_ONBOARD_TOKEN"
PASSWORD_ENV = "GATEWAY_ONBOARD_PASSWORD"

RISK_LINES = [
    "Security warning. Please read.",
    "",
    "The gateway lets an agent read files and run actions if tools are enabled.",
    "A bad prompt can trick it into doing unsafe things.",
    "",
    "If you are not comfortable with basic security and access control, stop here.",
    "",
    "Recommended baseline:",
    "- Pairing/allowlists + mention gating.",
    "- Sandbox + least-privilege tools.",
    "- Keep secrets out of the agent's reachable filesystem.",
]


@dataclass
class OnboardOptions:
    flow: str | None = None
    mode: str | None = None
    workspace: str | None = None
    accept_risk: bool = False
    skip_channels: bool = False
    skip_health: bool = False
    health_deadline_ms: int = 15_000


def require_risk_acknowledgement(opts: OnboardOptions, prompter: WizardPrompter) -> None:
    if opts.accept_risk:
        return
    prompter.note("\n".join(RISK_LINES), "Security")
    if not prompter.confirm("I understand this is powerful and inherently risky. Continue?", default=False):
        raise WizardCancelled("risk not accepted")


def apply_wizard_metadata(config: dict[str, Any], mode: str) -> dict[str, Any]:
    next_config = copy.deepcopy(config)
    wizard = dict(next_config.get("wizard") or {})
    wizard["lastRunCommand"] = "onboard"
    wizard["lastRunMode"] = mode
    wizard["lastRunAt"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
    next_config["wizard"] = wizard
    return next_config


def apply_local_workspace(config: dict[str, Any], workspace: str) -> dict[str, Any]:
    next_config = copy.deepcopy(config)
    agents = next_config.setdefault("agents", {})
    defaults = agents.setdefault("defaults", {})
    defaults["workspace"] = workspace
    next_config.setdefault("gateway", {})["mode"] = "local"
    return next_config


def _local_credentials(config: dict[str, Any]) -> GatewayCredentials:
    auth = (config.get("gateway") or {}).get("auth") or {}
    return GatewayCredentials(
        token=auth.get("token") or os.environ.get(TOKEN_ENV) or None,
        password=auth.get("password") or os.environ.get(PASSWORD_ENV) or None,
    )


def _settings_credentials(settings: GatewaySettings) -> GatewayCredentials:
    if settings.auth_mode == "token":
        return GatewayCredentials(token=settings.token)
    return GatewayCredentials(password=settings.password)


def _choose_mode(
    opts: OnboardOptions,
    flow: str,
    config: dict[str, Any],
    prompter: WizardPrompter,
) -> str:
    if opts.mode:
        return opts.mode
    if flow == "quickstart":
        return "local"

    local_url = f"ws://127.0.0.1:{resolve_gateway_port(config)}"
    local_probe = probe(local_url, _local_credentials(config))
    remote = (config.get("gateway") or {}).get("remote") or {}
    remote_url = (remote.get("url") or "").strip()
    remote_probe: ProbeResult | None = None
    if remote_url:
        remote_probe = probe(remote_url, GatewayCredentials(token=remote.get("token")))

    if not remote_url:
        remote_hint = "No remote URL configured yet"
    elif remote_probe is not None and remote_probe.reachable:
        remote_hint = f"Gateway reachable ({remote_url})"
    else:
        remote_hint = f"Configured but unreachable ({remote_url})"

    return prompter.select(
        "What do you want to set up?",
        [
            SelectOption(
                "local",
                "Local gateway (this machine)",
                f"Gateway reachable ({local_url})" if local_probe.reachable else f"No gateway detected ({local_url})",
            ),
            SelectOption("remote", "Remote gateway (info-only)", remote_hint),
        ],
        initial_value="local",
    )


def _ensure_workspace(workspace: str) -> None:
    try:
        Path(workspace).expanduser().mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Could not create workspace {workspace}: {e}")


def finalize(
    config: dict[str, Any],
    settings: GatewaySettings,
    prompter: WizardPrompter,
    opts: OnboardOptions,
) -> None:
    base_path = ((config.get("gateway") or {}).get("controlUi") or {}).get("basePath")
    links = resolve_control_ui_links(settings.bind, settings.port, settings.custom_bind_host, base_path)
    credentials = _settings_credentials(settings)

    with prompter.progress(f"Waiting for gateway at {links.ws_url}...") as spin:
        reachable = wait_for_reachable(links.ws_url, credentials, deadline_ms=opts.health_deadline_ms)
        spin.stop("Gateway reachable." if reachable else "Gateway not detected yet.")

    result = probe(links.ws_url, credentials)
    if result.reachable:
        status_line = "Gateway: reachable"
    else:
        status_line = "Gateway: not detected" + (f" ({result.detail})" if result.detail else "")
        logger.info(f"Final probe of {links.ws_url} failed: {result.detail}")

    lines = [f"Web UI: {links.http_url}"]
    if settings.auth_mode == "token" and settings.token:
        lines.append(f"Web UI (with token): {links.http_url}#token={settings.token}")
    lines.append(f"Gateway WS: {links.ws_url}")
    lines.append(status_line)
    prompter.note("\n".join(lines), "Control UI")


def _note_invalid_snapshot(snapshot: ConfigSnapshot, prompter: WizardPrompter) -> None:
    if snapshot.config:
        prompter.note(summarize_existing_config(snapshot.config), "Invalid config")
    issues = "\n".join(f"- {issue.path}: {issue.message}" for issue in snapshot.issues)
    prompter.note(issues or "Unknown problem.", "Config issues")
    prompter.outro(f"Config invalid. Repair {snapshot.path} and run onboarding again.")


def run_onboarding(
    opts: OnboardOptions,
    prompter: WizardPrompter,
    config_path: str | Path | None = None,
    registry: ChannelRegistry | None = None,
    installer: PluginInstaller | None = None,
) -> int:
    """Run the wizard end to end. Returns the process exit code.

    WizardCancelled propagates to the caller; nothing is written in that case.
    """
    prompter.intro("Gateway onboarding")
    require_risk_acknowledgement(opts, prompter)

    snapshot = read_config_file_snapshot(config_path)
    if snapshot.exists and not snapshot.valid:
        _note_invalid_snapshot(snapshot, prompter)
        return 1
    base_config: dict[str, Any] = snapshot.config if snapshot.valid else {}

    selection = select_flow(opts.flow, opts.mode, snapshot.exists, prompter)
    flow = selection.flow

    if snapshot.exists:
        prompter.note(summarize_existing_config(base_config), "Existing config detected")
        action = choose_existing_config_action(prompter)
        if action == "reset":
            logger.info("Resetting in-memory config")
            base_config = {}

    defaults = quickstart_defaults(base_config)
    if flow == "quickstart":
        prompter.note(format_quickstart_summary(defaults), "QuickStart")

    mode = _choose_mode(opts, flow, base_config, prompter)

    if mode == "remote":
        next_config = prompt_remote_gateway_config(base_config, prompter)
        next_config = apply_wizard_metadata(next_config, mode)
        write_config_file(next_config, snapshot.path)
        prompter.outro("Remote gateway configured.")
        return 0

    current_workspace = ((base_config.get("agents") or {}).get("defaults") or {}).get("workspace")
    if opts.workspace:
        workspace = opts.workspace
    elif flow == "quickstart":
        workspace = current_workspace or DEFAULT_WORKSPACE
    else:
        workspace = prompter.text("Workspace directory", initial_value=current_workspace or DEFAULT_WORKSPACE)
    workspace = workspace.strip() or DEFAULT_WORKSPACE
    next_config = apply_local_workspace(base_config, workspace)

    gateway = configure_gateway(flow, next_config, defaults, prompter, resolve_gateway_port(base_config))
    next_config = gateway.config

    if opts.skip_channels:
        prompter.note("Skipping channel setup.", "Channels")
    else:
        registry = registry or default_registry()
        quickstart = flow == "quickstart"
        next_config = setup_channels(
            next_config,
            prompter,
            registry=registry,
            options=SetupChannelsOptions(
                quickstart_defaults=quickstart,
                skip_confirm=quickstart,
                skip_dm_policy_prompt=quickstart,
                force_allow_from_channels=(
                    [a.id for a in registry.adapters.values() if a.quickstart_allow_from] if quickstart else []
                ),
            ),
            installer=installer,
        )

    next_config = apply_wizard_metadata(next_config, mode)
    write_config_file(next_config, snapshot.path)
    _ensure_workspace(workspace)

    if opts.skip_health:
        prompter.note("Skipping gateway health check.", "Health check")
    else:
        finalize(next_config, gateway.settings, prompter, opts)

    prompter.outro("Onboarding complete.")
    return 0
