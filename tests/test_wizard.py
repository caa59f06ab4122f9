from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from onboard import wizard as wizard_mod
from onboard.channels import telegram as telegram_mod
from onboard.channels.registry import ChannelRegistry
from onboard.channels.telegram import TelegramAdapter
from onboard.gateway import remote as remote_mod
from onboard.gateway.probe import ProbeResult
from onboard.gateway.settings import DEFAULT_DANGEROUS_NODE_DENY_COMMANDS
from onboard.prompts import WizardCancelled
from onboard.wizard import OnboardOptions, apply_wizard_metadata, run_onboarding


def _registry() -> ChannelRegistry:
    registry = ChannelRegistry()
    registry.register(TelegramAdapter())
    return registry


@pytest.fixture(autouse=True)
def _offline(monkeypatch):
    monkeypatch.setattr(telegram_mod, "verify_telegram_token", lambda token: (True, "Bot (@bot)", ""))
    monkeypatch.setattr(wizard_mod, "probe", lambda *a, **k: ProbeResult(reachable=False, detail="timeout"))
    monkeypatch.setattr(wizard_mod, "wait_for_reachable", lambda *a, **k: False)
    monkeypatch.setattr(remote_mod, "probe", lambda *a, **k: ProbeResult(reachable=True))


def test_quickstart_end_to_end_writes_defaults(tmp_path: Path, make_prompter) -> None:
    config_path = tmp_path / "config.yaml"
    workspace = tmp_path / "ws"
    prompter = make_prompter([
        ("Select channel (QuickStart)", "telegram"),
        ("Telegram bot token", "123:abc"),
        ("User ID", "42"),
    ])
    opts = OnboardOptions(flow="quickstart", accept_risk=True, workspace=str(workspace), skip_health=True)

    code = run_onboarding(opts, prompter, config_path, registry=_registry())

    assert code == 0
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    gateway = data["gateway"]
    assert gateway["mode"] == "local"
    assert gateway["port"] == 18789
    assert gateway["bind"] == "loopback"
    assert gateway["auth"]["mode"] == "token"
    assert len(gateway["auth"]["token"]) == 48
    assert gateway["tailscale"]["mode"] == "off"
    assert gateway["nodes"]["denyCommands"] == DEFAULT_DANGEROUS_NODE_DENY_COMMANDS
    assert data["agents"]["defaults"]["workspace"] == str(workspace)
    assert data["channels"]["telegram"] == {"enabled": True, "token": "123:abc", "allow_from": ["42"]}
    assert data["wizard"]["lastRunMode"] == "local"
    assert workspace.is_dir()
    assert prompter.outros == ["Onboarding complete."]
    assert "QuickStart" in prompter.note_titles()


def test_finalize_shows_control_ui_links(tmp_path: Path, make_prompter, monkeypatch) -> None:
    monkeypatch.setattr(wizard_mod, "probe", lambda *a, **k: ProbeResult(reachable=True))
    monkeypatch.setattr(wizard_mod, "wait_for_reachable", lambda *a, **k: True)
    prompter = make_prompter()
    opts = OnboardOptions(flow="quickstart", accept_risk=True, workspace=str(tmp_path / "ws"), skip_channels=True)

    assert run_onboarding(opts, prompter, tmp_path / "config.yaml", registry=_registry()) == 0

    control = dict(prompter.notes)["Control UI"]
    assert "Web UI: http://127.0.0.1:18789/" in control
    assert "Gateway WS: ws://127.0.0.1:18789" in control
    assert "Gateway: reachable" in control
    assert "#token=" in control


def test_declining_risk_cancels_before_reading_config(tmp_path: Path, make_prompter) -> None:
    prompter = make_prompter([("inherently risky", False)])
    with pytest.raises(WizardCancelled):
        run_onboarding(OnboardOptions(), prompter, tmp_path / "config.yaml")
    assert not (tmp_path / "config.yaml").exists()


def test_cancellation_mid_run_leaves_file_untouched(tmp_path: Path, make_prompter, cancel) -> None:
    config_path = tmp_path / "config.yaml"
    original = "gateway:\n  port: 9000\n  mode: local\nunknown: keep-me\n"
    config_path.write_text(original, encoding="utf-8")
    prompter = make_prompter([
        ("Config handling", "keep"),
        ("Select channel (QuickStart)", cancel),
    ])
    opts = OnboardOptions(flow="quickstart", accept_risk=True, workspace=str(tmp_path / "ws"))

    with pytest.raises(WizardCancelled):
        run_onboarding(opts, prompter, config_path, registry=_registry())

    assert config_path.read_text(encoding="utf-8") == original


def test_invalid_config_exits_without_writing(tmp_path: Path, make_prompter) -> None:
    config_path = tmp_path / "config.yaml"
    original = "gateway:\n  port: 99999\n"
    config_path.write_text(original, encoding="utf-8")
    prompter = make_prompter()

    code = run_onboarding(OnboardOptions(accept_risk=True), prompter, config_path)

    assert code == 1
    assert config_path.read_text(encoding="utf-8") == original
    assert "Config issues" in prompter.note_titles()
    assert "Repair" in prompter.outros[0]


def test_string_port_is_not_replaced_by_default(tmp_path: Path, make_prompter) -> None:
    config_path = tmp_path / "config.yaml"
    original = "gateway:\n  port: '9000'\n  mode: local\n"
    config_path.write_text(original, encoding="utf-8")
    prompter = make_prompter()
    opts = OnboardOptions(flow="quickstart", accept_risk=True, skip_channels=True, skip_health=True)

    assert run_onboarding(opts, prompter, config_path, registry=_registry()) == 1
    assert config_path.read_text(encoding="utf-8") == original
    assert "gateway.port" in dict(prompter.notes)["Config issues"]


def test_reset_discards_existing_values(tmp_path: Path, make_prompter) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump({"gateway": {"port": 9000}, "channels": {"telegram": {"token": "old"}}}),
        encoding="utf-8",
    )
    prompter = make_prompter([("Config handling", "reset")])
    opts = OnboardOptions(
        flow="quickstart", accept_risk=True, workspace=str(tmp_path / "ws"),
        skip_channels=True, skip_health=True,
    )

    assert run_onboarding(opts, prompter, config_path, registry=_registry()) == 0

    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert data["gateway"]["port"] == 18789
    assert "channels" not in data


def test_remote_mode_forces_advanced_and_writes_remote_info(tmp_path: Path, make_prompter) -> None:
    config_path = tmp_path / "config.yaml"
    prompter = make_prompter([
        ("Gateway WebSocket URL", "ws://10.0.0.2:18789"),
        ("Gateway auth", "off"),
    ])
    opts = OnboardOptions(flow="quickstart", mode="remote", accept_risk=True)

    assert run_onboarding(opts, prompter, config_path) == 0

    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert data["gateway"] == {"mode": "remote", "remote": {"url": "ws://10.0.0.2:18789"}}
    assert data["wizard"]["lastRunMode"] == "remote"
    assert prompter.note_titles() == ["QuickStart"]
    assert prompter.outros == ["Remote gateway configured."]


def test_advanced_flow_asks_mode_with_probe_hints(tmp_path: Path, make_prompter) -> None:
    prompter = make_prompter([
        ("What do you want to set up?", "local"),
        ("Workspace directory", str(tmp_path / "ws")),
        ("Gateway port", None),
        ("Gateway bind", "loopback"),
        ("Gateway auth", "token"),
        ("Tailscale exposure", "off"),
        ("Gateway token", "my-token"),
    ])
    opts = OnboardOptions(flow="manual", accept_risk=True, skip_channels=True, skip_health=True)

    assert run_onboarding(opts, prompter, tmp_path / "config.yaml") == 0

    hints = {o.value: o.hint for o in prompter.select_options["What do you want to set up?"]}
    assert hints["local"] == "No gateway detected (ws://127.0.0.1:18789)"
    assert hints["remote"] == "No remote URL configured yet"
    data = yaml.safe_load((tmp_path / "config.yaml").read_text(encoding="utf-8"))
    assert data["gateway"]["auth"] == {"mode": "token", "token": "my-token"}


def test_apply_wizard_metadata_keeps_other_keys() -> None:
    updated = apply_wizard_metadata({"wizard": {"custom": 1}}, "local")
    assert updated["wizard"]["custom"] == 1
    assert updated["wizard"]["lastRunCommand"] == "onboard"
