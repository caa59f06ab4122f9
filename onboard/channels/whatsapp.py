"""WhatsApp channel. Supports several linked numbers, one account per number."""

import re
from typing import Any

from onboard.channels.base import (
    DEFAULT_ACCOUNT_ID,
    ChannelAdapter,
    ChannelStatus,
    ConfigureContext,
    ConfigureResult,
    channel_section,
    prompt_allow_from,
    with_channel_section,
)
from onboard.prompts import SelectOption, WizardPrompter

_NEW_ACCOUNT = "__new__"

SETUP_STEPS = [
    "WhatsApp links to your real number as a companion device.",
    "",
    "1. Start the gateway with WhatsApp enabled",
    "2. A QR code will appear in the terminal",
    "3. On your phone: WhatsApp > Settings > Linked Devices > Link a Device",
    "4. Scan the QR code",
]


def normalize_account_id(value: str | None) -> str | None:
    text = re.sub(r"[^a-z0-9_-]+", "-", (value or "").strip().lower()).strip("-")
    return text or None


class WhatsAppAdapter(ChannelAdapter):
    id = "whatsapp"
    label = "WhatsApp"
    blurb = "Uses your real WhatsApp number. Scan a QR code once."
    quickstart_score = 8
    multi_account = True
    supports_account_toggle = True
    supports_dm_policy = True
    quickstart_allow_from = True

    def _accounts(self, config: dict[str, Any]) -> dict[str, dict[str, Any]]:
        accounts = channel_section(config, self.id).get("accounts")
        return accounts if isinstance(accounts, dict) else {}

    def _with_accounts(self, config: dict[str, Any], accounts: dict[str, dict[str, Any]]) -> dict[str, Any]:
        if not accounts:
            return with_channel_section(config, self.id, None)
        section = dict(channel_section(config, self.id))
        section["accounts"] = accounts
        return with_channel_section(config, self.id, section)

    def is_configured(self, config: dict[str, Any]) -> bool:
        return bool(self._accounts(config))

    def is_enabled(self, config: dict[str, Any]) -> bool:
        accounts = self._accounts(config)
        return any(a.get("enabled", True) is not False for a in accounts.values())

    def get_status(self, config: dict[str, Any], account_overrides: dict[str, str] | None = None) -> ChannelStatus:
        status = super().get_status(config, account_overrides)
        accounts = self._accounts(config)
        override = (account_overrides or {}).get(self.id)
        if len(accounts) > 1:
            status.selection_hint += f" · {len(accounts)} accounts"
        for account_id, account in accounts.items():
            state = "disabled" if account.get("enabled", True) is False else "linked"
            marker = " (selected)" if account_id == override else ""
            status.status_lines.append(f"  {account_id}: {state}{marker}")
        return status

    def list_account_ids(self, config: dict[str, Any]) -> list[str]:
        return list(self._accounts(config).keys())

    def resolve_account(self, config: dict[str, Any], account_id: str) -> dict[str, Any] | None:
        account = self._accounts(config).get(account_id)
        return dict(account) if account is not None else None

    def delete_account(self, config: dict[str, Any], account_id: str) -> dict[str, Any]:
        accounts = {k: v for k, v in self._accounts(config).items() if k != account_id}
        return self._with_accounts(config, accounts)

    def set_account_enabled(self, config: dict[str, Any], account_id: str, enabled: bool) -> dict[str, Any]:
        accounts = {k: dict(v) for k, v in self._accounts(config).items()}
        if account_id not in accounts:
            return config
        accounts[account_id]["enabled"] = enabled
        return self._with_accounts(config, accounts)

    def disable(self, config: dict[str, Any]) -> dict[str, Any]:
        accounts = {k: {**v, "enabled": False} for k, v in self._accounts(config).items()}
        return self._with_accounts(config, accounts)

    def _choose_account(self, config: dict[str, Any], ctx: ConfigureContext) -> str:
        existing = self.list_account_ids(config)
        override = normalize_account_id(ctx.account_id)
        if override:
            return override
        if not ctx.prompt_account_ids:
            return self.default_account_id(config)
        options = [SelectOption(a, a) for a in existing]
        options.append(SelectOption(_NEW_ACCOUNT, "Add another account"))
        choice = ctx.prompter.select("WhatsApp account", options, initial_value=self.default_account_id(config))
        if choice != _NEW_ACCOUNT:
            return choice
        raw = ctx.prompter.text(
            "New account id",
            placeholder="work",
            validate=lambda v: None if normalize_account_id(v) else "Use letters, digits, - or _",
        )
        return normalize_account_id(raw) or DEFAULT_ACCOUNT_ID

    def configure(self, config: dict[str, Any], ctx: ConfigureContext) -> ConfigureResult:
        prompter = ctx.prompter
        account_id = self._choose_account(config, ctx)
        account = dict(self._accounts(config).get(account_id) or {})
        if not account:
            prompter.note("\n".join(SETUP_STEPS), "WhatsApp linking")
        account["enabled"] = True

        account["auth_dir"] = prompter.text(
            "Auth directory (leave empty for default)",
            initial_value=account.get("auth_dir", ""),
        ).strip()

        current_allow = list(account.get("allow_from") or [])
        if ctx.force_allow_from or prompter.confirm("Set access restrictions?", default=bool(not current_allow)):
            account["allow_from"] = prompt_allow_from(
                prompter,
                self.id,
                "Your personal WhatsApp number(s) (comma-separated, include country code)",
                current_allow,
            )
        else:
            account["allow_from"] = current_allow

        accounts = {k: dict(v) for k, v in self._accounts(config).items()}
        accounts[account_id] = account
        return ConfigureResult(config=self._with_accounts(config, accounts), account_id=account_id)

    def set_dm_policy(self, config: dict[str, Any], policy: str) -> dict[str, Any]:
        section = dict(channel_section(config, self.id))
        section["dmPolicy"] = policy
        if policy == "open":
            accounts = {k: dict(v) for k, v in self._accounts(config).items()}
            for account in accounts.values():
                allow = list(account.get("allow_from") or [])
                if "*" not in allow:
                    account["allow_from"] = allow + ["*"]
            if accounts:
                section["accounts"] = accounts
        return with_channel_section(config, self.id, section)

    def allow_from_label(self) -> str:
        return "Phone number(s) (comma-separated, include country code)"

    def prompt_allow_from(
        self,
        config: dict[str, Any],
        prompter: WizardPrompter,
        account_id: str | None = None,
    ) -> dict[str, Any]:
        accounts = {k: dict(v) for k, v in self._accounts(config).items()}
        target = account_id if account_id in accounts else self.default_account_id(config)
        if target not in accounts:
            return config
        accounts[target]["allow_from"] = prompt_allow_from(
            prompter, self.id, self.allow_from_label(), accounts[target].get("allow_from") or []
        )
        return self._with_accounts(config, accounts)
