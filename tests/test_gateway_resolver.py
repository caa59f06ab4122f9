from __future__ import annotations

import pytest

from onboard.config import DEFAULT_GATEWAY_PORT
from onboard.gateway.settings import (
    DEFAULT_DANGEROUS_NODE_DENY_COMMANDS,
    CustomBindHostRequiredError,
    GatewaySelections,
    GatewaySettings,
    PasswordRequiredError,
    apply_gateway_settings,
    quickstart_defaults,
    resolve,
)


def _assert_invariants(settings: GatewaySettings) -> None:
    if settings.tailscale_mode != "off":
        assert settings.bind == "loopback"
        assert settings.custom_bind_host is None
    if settings.tailscale_mode == "funnel":
        assert settings.auth_mode == "password"
    if settings.auth_mode == "token":
        assert settings.token
    if settings.auth_mode == "password":
        assert settings.password
    if settings.bind == "custom":
        assert settings.custom_bind_host
    else:
        assert settings.custom_bind_host is None


def test_quickstart_without_existing_config_uses_documented_defaults() -> None:
    defaults = quickstart_defaults({})
    settings, notices = resolve("quickstart", defaults)

    assert defaults.has_existing is False
    assert settings.port == DEFAULT_GATEWAY_PORT
    assert settings.bind == "loopback"
    assert settings.auth_mode == "token"
    assert settings.token and len(settings.token) == 48
    assert settings.tailscale_mode == "off"
    assert settings.tailscale_reset_on_exit is False
    assert notices == []


def test_tailscale_forces_loopback_with_notice() -> None:
    defaults = quickstart_defaults({})
    settings, notices = resolve(
        "advanced",
        defaults,
        GatewaySelections(bind="lan", tailscale_mode="serve"),
    )

    assert settings.bind == "loopback"
    assert settings.tailscale_mode == "serve"
    assert [(n.field, n.reason) for n in notices] == [("bind", "tailscale-requires-loopback")]


def test_tailscale_clears_custom_bind_host() -> None:
    defaults = quickstart_defaults({})
    settings, notices = resolve(
        "advanced",
        defaults,
        GatewaySelections(bind="custom", custom_bind_host="192.168.1.10", tailscale_mode="serve"),
    )

    assert settings.bind == "loopback"
    assert settings.custom_bind_host is None
    assert notices[0].reason == "tailscale-requires-loopback"


def test_funnel_forces_password_auth() -> None:
    defaults = quickstart_defaults({})
    settings, notices = resolve(
        "advanced",
        defaults,
        GatewaySelections(auth_mode="token", tailscale_mode="funnel", password="hunter2"),
    )

    assert settings.auth_mode == "password"
    assert settings.password == "hunter2"
    assert ("authMode", "funnel-requires-password") in [(n.field, n.reason) for n in notices]


def test_funnel_with_lan_bind_emits_both_notices_in_order() -> None:
    defaults = quickstart_defaults({})
    _settings, notices = resolve(
        "advanced",
        defaults,
        GatewaySelections(bind="lan", tailscale_mode="funnel", password="pw"),
    )

    assert [n.reason for n in notices] == ["tailscale-requires-loopback", "funnel-requires-password"]


def test_password_auth_without_password_raises() -> None:
    defaults = quickstart_defaults({})
    with pytest.raises(PasswordRequiredError):
        resolve("advanced", defaults, GatewaySelections(auth_mode="password"))


def test_funnel_without_password_raises_instead_of_inventing_one() -> None:
    defaults = quickstart_defaults({})
    with pytest.raises(PasswordRequiredError):
        resolve("advanced", defaults, GatewaySelections(tailscale_mode="funnel"))


def test_custom_bind_without_host_raises() -> None:
    defaults = quickstart_defaults({})
    with pytest.raises(CustomBindHostRequiredError):
        resolve("advanced", defaults, GatewaySelections(bind="custom"))


def test_non_custom_bind_drops_stale_host() -> None:
    defaults = quickstart_defaults({"gateway": {"bind": "custom", "customBindHost": "10.0.0.5"}})
    settings, _notices = resolve("advanced", defaults, GatewaySelections(bind="lan"))

    assert settings.bind == "lan"
    assert settings.custom_bind_host is None


def test_existing_token_is_kept() -> None:
    defaults = quickstart_defaults({"gateway": {"auth": {"mode": "token", "token": "abc123"}}})
    settings, _notices = resolve("quickstart", defaults)
    assert settings.token == "abc123"


def test_resolver_invariants_hold_across_selection_grid() -> None:
    defaults = quickstart_defaults({})
    for bind in ("loopback", "lan", "auto", "custom", "tailnet"):
        for auth in ("token", "password"):
            for tailscale in ("off", "serve", "funnel"):
                selections = GatewaySelections(
                    bind=bind,
                    custom_bind_host="192.168.0.2",
                    auth_mode=auth,
                    password="pw",
                    tailscale_mode=tailscale,
                )
                settings, _notices = resolve("advanced", defaults, selections)
                _assert_invariants(settings)


def test_quickstart_defaults_fall_back_on_unknown_values() -> None:
    defaults = quickstart_defaults({
        "gateway": {
            "port": 9000,
            "bind": "everywhere",
            "auth": {"password": "pw"},
            "tailscale": {"mode": "sideways"},
        }
    })

    assert defaults.has_existing is True
    assert defaults.port == 9000
    assert defaults.bind == "loopback"
    assert defaults.auth_mode == "password"
    assert defaults.tailscale_mode == "off"


def test_quickstart_defaults_treat_yaml_false_as_off() -> None:
    defaults = quickstart_defaults({"gateway": {"tailscale": {"mode": False}}})
    assert defaults.tailscale_mode == "off"


def test_quickstart_keeps_existing_reset_on_exit_but_advanced_defaults_false() -> None:
    defaults = quickstart_defaults({"gateway": {"tailscale": {"mode": "serve", "resetOnExit": True}}})

    quick, _ = resolve("quickstart", defaults)
    advanced, _ = resolve("advanced", defaults)

    assert quick.tailscale_reset_on_exit is True
    assert advanced.tailscale_reset_on_exit is False


def test_apply_gateway_settings_writes_document_and_seeds_deny_list() -> None:
    settings = GatewaySettings(port=18789, bind="loopback", auth_mode="token", tailscale_mode="off", token="t")
    original = {"gateway": {"customBindHost": "1.2.3.4", "extra": 1}, "other": True}

    updated = apply_gateway_settings(original, settings, has_existing=False)

    gateway = updated["gateway"]
    assert gateway["auth"] == {"mode": "token", "token": "t"}
    assert gateway["port"] == 18789
    assert gateway["bind"] == "loopback"
    assert "customBindHost" not in gateway
    assert gateway["tailscale"] == {"mode": "off", "resetOnExit": False}
    assert gateway["nodes"]["denyCommands"] == DEFAULT_DANGEROUS_NODE_DENY_COMMANDS
    assert gateway["extra"] == 1
    assert updated["other"] is True
    assert original["gateway"]["customBindHost"] == "1.2.3.4"


def test_apply_gateway_settings_does_not_seed_deny_list_for_existing_gateway() -> None:
    settings = GatewaySettings(port=1, bind="lan", auth_mode="password", tailscale_mode="off", password="pw")
    updated = apply_gateway_settings({}, settings, has_existing=True)
    assert "nodes" not in updated["gateway"]
