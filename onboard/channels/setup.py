"""Interactive channel reconciliation: pick channels, then configure, update, disable or delete them."""

import copy
from dataclasses import dataclass, field
from typing import Any, Literal

from loguru import logger

from onboard.channels.base import (
    DEFAULT_ACCOUNT_ID,
    ChannelAdapter,
    ChannelStatus,
    ConfigureContext,
)
from onboard.channels.install import (
    DEFAULT_INSTALL_TIMEOUT_S,
    PipPluginInstaller,
    PluginInstaller,
    PluginInstallError,
)
from onboard.channels.registry import CatalogEntry, ChannelRegistry, default_registry
from onboard.prompts import SelectOption, WizardPrompter

ChannelAction = Literal["update", "disable", "delete", "skip"]

SKIP_VALUE = "__skip__"
DONE_VALUE = "__done__"

DM_POLICY_OPTIONS = [
    SelectOption("pairing", "Pairing (recommended)"),
    SelectOption("allowlist", "Allowlist (specific users only)"),
    SelectOption("open", "Open (public inbound DMs)"),
    SelectOption("disabled", "Disabled (ignore DMs)"),
]


@dataclass
class SetupChannelsOptions:
    quickstart_defaults: bool = False
    skip_confirm: bool = False
    skip_status_note: bool = False
    allow_disable: bool = True
    skip_dm_policy_prompt: bool = False
    prompt_account_ids: bool = False
    initial_selection: list[str] = field(default_factory=list)
    account_overrides: dict[str, str] = field(default_factory=dict)
    force_allow_from_channels: list[str] = field(default_factory=list)
    install_timeout: float = DEFAULT_INSTALL_TIMEOUT_S


class ChannelReconciler:
    """One pass of channel setup over an in-memory config document.

    Nothing is persisted here; the caller writes the returned document.
    """

    def __init__(
        self,
        config: dict[str, Any],
        prompter: WizardPrompter,
        registry: ChannelRegistry,
        options: SetupChannelsOptions,
        installer: PluginInstaller,
    ):
        self.config = config
        self.prompter = prompter
        self.registry = registry
        self.options = options
        self.installer = installer
        self.status: dict[str, ChannelStatus] = {}
        self.selection: list[str] = []
        self.account_ids: dict[str, str] = {}
        self.handled: set[str] = set()

    # -- status ------------------------------------------------------------

    def _is_installed(self, channel_id: str) -> bool:
        entry = self.registry.catalog_entry(channel_id)
        return entry is None or self.installer.is_installed(entry)

    def _uninstalled_status(self, adapter: ChannelAdapter) -> ChannelStatus:
        return ChannelStatus(
            channel=adapter.id,
            configured=False,
            selection_hint="plugin · install",
            quickstart_score=0,
            status_lines=[f"{adapter.label}: install plugin to enable"],
        )

    def refresh_status(self, channel_id: str) -> None:
        adapter = self.registry.get(channel_id)
        if adapter is None:
            return
        if not self._is_installed(channel_id):
            self.status[channel_id] = self._uninstalled_status(adapter)
            return
        self.status[channel_id] = adapter.get_status(self.config, self.options.account_overrides)

    def collect_status(self) -> None:
        for channel_id in self.registry.ids():
            self.refresh_status(channel_id)

    def quickstart_default(self) -> str | None:
        best: tuple[str, float] | None = None
        for channel_id, status in self.status.items():
            if status.quickstart_score is None:
                continue
            if best is None or status.quickstart_score > best[1]:
                best = (channel_id, status.quickstart_score)
        return best[0] if best else None

    # -- notes -------------------------------------------------------------

    def note_status(self) -> None:
        lines: list[str] = []
        for status in self.status.values():
            lines.extend(status.status_lines)
        if lines:
            self.prompter.note("\n".join(lines), "Channel status")

    def note_primer(self) -> None:
        lines = [
            "DM security: default is pairing; unknown DMs get a pairing code.",
            'Public DMs require dmPolicy="open" + allow_from=["*"].',
            "",
        ]
        for adapter in self.registry.adapters.values():
            lines.append(f"{adapter.label}: {adapter.blurb}")
        self.prompter.note("\n".join(lines), "How channels work")

    def note_selection(self) -> None:
        lines = []
        for channel_id in self.selection:
            adapter = self.registry.get(channel_id)
            if adapter is not None:
                lines.append(f"{adapter.label}: {adapter.blurb}")
        if lines:
            self.prompter.note("\n".join(lines), "Selected channels")

    # -- selection ---------------------------------------------------------

    def _channel_options(self, exclude: set[str] | None = None) -> list[SelectOption]:
        options = []
        for channel_id, adapter in self.registry.adapters.items():
            if exclude and channel_id in exclude:
                continue
            status = self.status.get(channel_id)
            hint = status.selection_hint if status else None
            options.append(SelectOption(channel_id, adapter.label, hint))
        return options

    def run_quickstart(self) -> None:
        options = self._channel_options()
        options.append(SelectOption(SKIP_VALUE, "Skip for now", "You can add channels later by re-running onboarding"))
        choice = self.prompter.select("Select channel (QuickStart)", options, initial_value=self.quickstart_default())
        if choice != SKIP_VALUE:
            self.handle_choice(choice)

    def run_advanced(self) -> None:
        initial = self.options.initial_selection[0] if self.options.initial_selection else self.quickstart_default()
        while True:
            options = self._channel_options(exclude=self.handled)
            if not options:
                break
            options.append(SelectOption(DONE_VALUE, "Finished", "Done" if self.selection else "Skip for now"))
            if initial in self.handled:
                initial = DONE_VALUE
            choice = self.prompter.select("Select a channel", options, initial_value=initial)
            if choice == DONE_VALUE:
                break
            self.handled.add(choice)
            self.handle_choice(choice)

    # -- per-channel handling ----------------------------------------------

    def _add_selection(self, channel_id: str) -> None:
        if channel_id not in self.selection:
            self.selection.append(channel_id)

    def _enable_plugin_entry(self, channel_id: str) -> None:
        plugins = self.config.setdefault("plugins", {})
        entries = plugins.setdefault("entries", {})
        entry = entries.setdefault(channel_id, {})
        entry["enabled"] = True

    def ensure_installed(self, entry: CatalogEntry) -> bool:
        if self.installer.is_installed(entry):
            return True
        plugins = self.config.get("plugins") or {}
        if plugins.get("enabled") is False:
            self.prompter.note(f"Cannot enable {entry.id}: plugins are disabled.", "Channel setup")
            return False

        with self.prompter.progress(f"Installing {entry.package}...") as spin:
            try:
                self.installer.install(entry, timeout=self.options.install_timeout)
            except PluginInstallError as e:
                spin.stop("Install failed.")
                logger.warning(f"Plugin install failed for {entry.id}: {e}")
                self.prompter.note(f"{entry.label} plugin could not be installed:\n{e}", "Channel setup")
                return False
            spin.stop(f"Installed {entry.package}.")

        self.config = copy.deepcopy(self.config)
        self._enable_plugin_entry(entry.id)
        self.refresh_status(entry.id)
        return True

    def handle_choice(self, channel_id: str) -> None:
        adapter = self.registry.get(channel_id)
        if adapter is None:
            self.prompter.note(f"{channel_id} does not support onboarding yet.", "Channel setup")
            return

        entry = self.registry.catalog_entry(channel_id)
        if entry is not None and not self.ensure_installed(entry):
            return

        status = self.status.get(channel_id)
        if status is not None and status.configured:
            self.handle_configured(adapter)
            return
        self.configure(adapter)

    def configure(self, adapter: ChannelAdapter) -> None:
        ctx = ConfigureContext(
            prompter=self.prompter,
            account_id=self.options.account_overrides.get(adapter.id),
            prompt_account_ids=self.options.prompt_account_ids,
            force_allow_from=adapter.id in self.options.force_allow_from_channels,
        )
        result = adapter.configure(self.config, ctx)
        self.config = result.config
        if result.account_id:
            self.account_ids[adapter.id] = result.account_id
        self._add_selection(adapter.id)
        logger.debug(f"Configured channel {adapter.id} (account {result.account_id})")
        self.refresh_status(adapter.id)

    def prompt_configured_action(self, adapter: ChannelAdapter) -> ChannelAction:
        supports_disable = self.options.allow_disable and adapter.supports_disable
        supports_delete = self.options.allow_disable and adapter.supports_delete
        options = [SelectOption("update", "Modify settings")]
        if supports_disable:
            options.append(SelectOption("disable", "Disable (keeps config)"))
        if supports_delete:
            options.append(SelectOption("delete", "Delete config"))
        options.append(SelectOption("skip", "Skip (leave as-is)"))
        return self.prompter.select(
            f"{adapter.label} already configured. What do you want to do?",
            options,
            initial_value="update",
        )

    def prompt_account_id(self, adapter: ChannelAdapter) -> str:
        account_ids = [a for a in adapter.list_account_ids(self.config) if a]
        default_id = adapter.default_account_id(self.config)
        if len(account_ids) <= 1:
            return account_ids[0] if account_ids else default_id
        return self.prompter.select(
            f"{adapter.label} account",
            [SelectOption(a, a) for a in account_ids],
            initial_value=default_id,
        )

    def handle_configured(self, adapter: ChannelAdapter) -> None:
        action = self.prompt_configured_action(adapter)
        if action == "skip":
            return
        if action == "update":
            self.configure(adapter)
            return
        if not self.options.allow_disable:
            return

        account_id = self.prompt_account_id(adapter) if adapter.multi_account else DEFAULT_ACCOUNT_ID

        if action == "delete":
            label = f'{adapter.label} account "{account_id}"' if adapter.multi_account else adapter.label
            if not self.prompter.confirm(f"Delete {label}?", default=False):
                return
            self.config = adapter.delete_account(self.config, account_id)
            logger.info(f"Deleted {adapter.id} account {account_id}")
        elif adapter.supports_account_toggle:
            self.config = adapter.set_account_enabled(self.config, account_id, False)
            logger.info(f"Disabled {adapter.id} account {account_id}")
        else:
            self.config = adapter.disable(self.config)
            logger.info(f"Disabled {adapter.id}")
        self.refresh_status(adapter.id)

    # -- DM policy ---------------------------------------------------------

    def configure_dm_policies(self) -> None:
        adapters = [
            adapter
            for adapter in (self.registry.get(c) for c in self.selection)
            if adapter is not None and adapter.supports_dm_policy
        ]
        if not adapters:
            return
        if not self.prompter.confirm("Configure DM access policies now? (default: pairing)", default=False):
            return

        for adapter in adapters:
            self.prompter.note(
                "\n".join([
                    "Default: pairing (unknown DMs get a pairing code).",
                    'Allowlist DMs: dmPolicy="allowlist" + allow_from entries.',
                    'Public DMs: dmPolicy="open" + allow_from includes "*".',
                ]),
                f"{adapter.label} DM access",
            )
            current = adapter.get_dm_policy(self.config)
            policy = self.prompter.select(f"{adapter.label} DM policy", DM_POLICY_OPTIONS, initial_value=current)
            if policy != current:
                self.config = adapter.set_dm_policy(self.config, policy)
            if policy == "allowlist":
                self.config = adapter.prompt_allow_from(self.config, self.prompter, self.account_ids.get(adapter.id))

    # -- entry point -------------------------------------------------------

    def run(self) -> dict[str, Any]:
        self.collect_status()
        if not self.options.skip_status_note:
            self.note_status()
        if not self.options.skip_confirm and not self.prompter.confirm("Configure chat channels now?", default=True):
            return self.config

        self.note_primer()
        if self.options.quickstart_defaults:
            self.run_quickstart()
        else:
            self.run_advanced()

        self.note_selection()
        if not self.options.skip_dm_policy_prompt:
            self.configure_dm_policies()
        return self.config


def setup_channels(
    config: dict[str, Any],
    prompter: WizardPrompter,
    registry: ChannelRegistry | None = None,
    options: SetupChannelsOptions | None = None,
    installer: PluginInstaller | None = None,
) -> dict[str, Any]:
    """Run channel setup and return the (possibly) updated document."""
    reconciler = ChannelReconciler(
        config=config,
        prompter=prompter,
        registry=registry or default_registry(),
        options=options or SetupChannelsOptions(),
        installer=installer or PipPluginInstaller(),
    )
    return reconciler.run()
