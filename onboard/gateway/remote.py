"""Connection info for a gateway running on another machine."""

import copy
from typing import Any

from onboard.gateway.probe import GatewayCredentials, probe
from onboard.prompts import SelectOption, WizardPrompter
from onboard.validators import validate_required, validate_ws_url

DEFAULT_GATEWAY_URL = "ws://127.0.0.1:18789"


def prompt_remote_gateway_config(config: dict[str, Any], prompter: WizardPrompter) -> dict[str, Any]:
    remote = (config.get("gateway") or {}).get("remote") or {}
    url = prompter.text(
        "Gateway WebSocket URL",
        initial_value=remote.get("url") or DEFAULT_GATEWAY_URL,
        validate=validate_ws_url,
    ).strip() or DEFAULT_GATEWAY_URL

    auth_choice = prompter.select(
        "Gateway auth",
        [
            SelectOption("token", "Token (recommended)"),
            SelectOption("off", "No auth"),
        ],
        initial_value="token",
    )

    token = ""
    if auth_choice == "token":
        token = prompter.text(
            "Gateway token",
            initial_value=remote.get("token") or "",
            validate=validate_required,
        ).strip()

    with prompter.progress(f"Checking {url}...") as spin:
        result = probe(url, GatewayCredentials(token=token or None))
        if result.reachable:
            spin.stop("Remote gateway reachable.")
        else:
            spin.stop(f"Remote gateway not reachable ({result.detail or 'unknown error'}). Saving anyway.")

    next_config = copy.deepcopy(config)
    gateway = next_config.setdefault("gateway", {})
    gateway["mode"] = "remote"
    gateway["remote"] = {"url": url}
    if token:
        gateway["remote"]["token"] = token
    return next_config
