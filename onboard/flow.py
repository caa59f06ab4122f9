"""Choosing between the quickstart and advanced onboarding paths."""

from dataclasses import dataclass, field
from typing import Literal

from loguru import logger

from onboard.gateway.settings import Notice, WizardFlow
from onboard.prompts import SelectOption, WizardPrompter

ExistingConfigAction = Literal["keep", "modify", "reset"]

FLOW_ALIASES = {"quickstart": "quickstart", "advanced": "advanced", "manual": "advanced"}


class InvalidFlowError(ValueError):
    """An explicit --flow value that is not quickstart, advanced or manual."""


@dataclass
class FlowSelection:
    flow: WizardFlow
    notices: list[Notice] = field(default_factory=list)


def normalize_flow(raw: str | None) -> WizardFlow | None:
    text = (raw or "").strip().lower()
    if not text:
        return None
    if text not in FLOW_ALIASES:
        raise InvalidFlowError(f"Invalid --flow '{raw}' (use quickstart, manual, or advanced).")
    return FLOW_ALIASES[text]


def select_flow(
    explicit_flag: str | None,
    gateway_mode_hint: str | None,
    existing_config_present: bool,
    prompter: WizardPrompter,
) -> FlowSelection:
    flow = normalize_flow(explicit_flag)
    if flow is None:
        quickstart_hint = (
            "Keeps current gateway settings; configure details later."
            if existing_config_present
            else "Sensible defaults; configure details later."
        )
        flow = prompter.select(
            "Onboarding mode",
            [
                SelectOption("quickstart", "QuickStart", quickstart_hint),
                SelectOption("advanced", "Manual", "Configure port, network, Tailscale, and auth options."),
            ],
            initial_value="quickstart",
        )

    notices: list[Notice] = []
    if gateway_mode_hint == "remote" and flow == "quickstart":
        notice = Notice(
            field="flow",
            reason="remote-requires-advanced",
            message="QuickStart only supports local gateways. Switching to Manual mode.",
        )
        logger.info("remote gateway mode forces the advanced flow")
        prompter.note(notice.message, "QuickStart")
        notices.append(notice)
        flow = "advanced"

    return FlowSelection(flow=flow, notices=notices)


def choose_existing_config_action(prompter: WizardPrompter) -> ExistingConfigAction:
    return prompter.select(
        "Config handling",
        [
            SelectOption("keep", "Use existing values"),
            SelectOption("modify", "Update values"),
            SelectOption("reset", "Reset"),
        ],
        initial_value="keep",
    )
