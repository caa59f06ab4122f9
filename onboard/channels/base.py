"""Channel adapter interface used by the onboarding engine."""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

from onboard.prompts import WizardPrompter
from onboard.validators import parse_allow_from

DEFAULT_ACCOUNT_ID = "default"

DmPolicy = Literal["pairing", "allowlist", "open", "disabled"]
DM_POLICIES: tuple[str, ...] = ("pairing", "allowlist", "open", "disabled")


@dataclass
class ChannelStatus:
    channel: str
    configured: bool
    selection_hint: str
    quickstart_score: float | None = None
    status_lines: list[str] = field(default_factory=list)


@dataclass
class ConfigureContext:
    prompter: WizardPrompter
    account_id: str | None = None
    prompt_account_ids: bool = False
    force_allow_from: bool = False


@dataclass
class ConfigureResult:
    config: dict[str, Any]
    account_id: str | None = None


def channel_section(config: dict[str, Any], channel_id: str) -> dict[str, Any]:
    """Read-only view of channels.<id>; empty when absent."""
    section = (config.get("channels") or {}).get(channel_id)
    return section if isinstance(section, dict) else {}


def with_channel_section(config: dict[str, Any], channel_id: str, section: dict[str, Any] | None) -> dict[str, Any]:
    """Copy of the document with channels.<id> replaced (or removed when section is None)."""
    next_config = copy.deepcopy(config)
    channels = next_config.setdefault("channels", {})
    if section is None:
        channels.pop(channel_id, None)
        if not channels:
            next_config.pop("channels", None)
    else:
        channels[channel_id] = copy.deepcopy(section)
    return next_config


def mask_secret(value: str) -> str:
    return f"{value[:8]}...{value[-4:]}" if len(value) > 12 else "(set)"


class ChannelAdapter(ABC):
    """One chat integration.

    The default account operations treat channels.<id> as a single account;
    multi-account adapters override them.
    """

    id: str = "base"
    label: str = "Base"
    blurb: str = ""
    quickstart_score: float = 0
    multi_account: bool = False
    supports_disable: bool = True
    supports_delete: bool = True
    # Set when the adapter implements set_account_enabled.
    supports_account_toggle: bool = False
    supports_dm_policy: bool = False
    quickstart_allow_from: bool = False

    @abstractmethod
    def is_configured(self, config: dict[str, Any]) -> bool:
        pass

    @abstractmethod
    def configure(self, config: dict[str, Any], ctx: ConfigureContext) -> ConfigureResult:
        pass

    def is_enabled(self, config: dict[str, Any]) -> bool:
        return channel_section(config, self.id).get("enabled", True) is not False

    def get_status(self, config: dict[str, Any], account_overrides: dict[str, str] | None = None) -> ChannelStatus:
        configured = self.is_configured(config)
        if configured and not self.is_enabled(config):
            line, hint = "configured (disabled)", "configured · disabled"
        elif configured:
            line, hint = "configured", "configured"
        else:
            line, hint = "not configured", "not configured"
        return ChannelStatus(
            channel=self.id,
            configured=configured,
            selection_hint=hint,
            quickstart_score=self.quickstart_score if not configured else self.quickstart_score / 2,
            status_lines=[f"{self.label}: {line}"],
        )

    def list_account_ids(self, config: dict[str, Any]) -> list[str]:
        return [DEFAULT_ACCOUNT_ID] if self.is_configured(config) else []

    def default_account_id(self, config: dict[str, Any]) -> str:
        ids = self.list_account_ids(config)
        if DEFAULT_ACCOUNT_ID in ids or not ids:
            return DEFAULT_ACCOUNT_ID
        return ids[0]

    def resolve_account(self, config: dict[str, Any], account_id: str) -> dict[str, Any] | None:
        section = channel_section(config, self.id)
        return dict(section) if section and account_id == DEFAULT_ACCOUNT_ID else None

    def delete_account(self, config: dict[str, Any], account_id: str) -> dict[str, Any]:
        return with_channel_section(config, self.id, None)

    def set_account_enabled(self, config: dict[str, Any], account_id: str, enabled: bool) -> dict[str, Any]:
        raise NotImplementedError(f"{self.id} does not toggle individual accounts")

    def disable(self, config: dict[str, Any]) -> dict[str, Any]:
        section = dict(channel_section(config, self.id))
        section["enabled"] = False
        return with_channel_section(config, self.id, section)

    # DM access policy; only used when supports_dm_policy is set.

    def get_dm_policy(self, config: dict[str, Any]) -> str:
        policy = channel_section(config, self.id).get("dmPolicy")
        return policy if policy in DM_POLICIES else "pairing"

    def set_dm_policy(self, config: dict[str, Any], policy: str) -> dict[str, Any]:
        section = dict(channel_section(config, self.id))
        section["dmPolicy"] = policy
        if policy == "open":
            allow = list(section.get("allow_from") or [])
            if "*" not in allow:
                section["allow_from"] = allow + ["*"]
        return with_channel_section(config, self.id, section)

    def allow_from_label(self) -> str:
        return "User ID(s) (comma-separated)"

    def prompt_allow_from(
        self,
        config: dict[str, Any],
        prompter: WizardPrompter,
        account_id: str | None = None,
    ) -> dict[str, Any]:
        section = dict(channel_section(config, self.id))
        section["allow_from"] = prompt_allow_from(
            prompter, self.id, self.allow_from_label(), section.get("allow_from") or []
        )
        return with_channel_section(config, self.id, section)


def prompt_allow_from(
    prompter: WizardPrompter,
    channel_name: str,
    label: str,
    default_values: list[str] | None = None,
) -> list[str]:
    """Prompt for allow_from values with channel-specific validation."""

    def _validate(raw: str) -> str | None:
        _valid, invalid = parse_allow_from(channel_name, raw)
        if invalid:
            return f"Invalid value(s): {', '.join(invalid)} (check format and try again)"
        return None

    raw = prompter.text(label, initial_value=",".join(default_values or []), validate=_validate)
    valid, _invalid = parse_allow_from(channel_name, raw)
    return valid


def prompt_secret(
    prompter: WizardPrompter,
    label: str,
    current: str,
) -> str:
    """Keep the stored secret unless the operator asks to change it."""
    if current:
        prompter.note(f"Current {label.lower()}: {mask_secret(current)}")
        if not prompter.confirm(f"Change {label.lower()}?", default=False):
            return current

    def _required(value: str) -> str | None:
        return None if value.strip() else f"{label} cannot be empty"

    return prompter.text(label, validate=_required, password=True).strip()
