"""Discord bot channel."""

from typing import Any

import httpx

from onboard.channels.base import (
    DEFAULT_ACCOUNT_ID,
    ChannelAdapter,
    ConfigureContext,
    ConfigureResult,
    channel_section,
    prompt_allow_from,
    prompt_secret,
    with_channel_section,
)

SETUP_STEPS = [
    "1. Go to https://discord.com/developers/applications",
    "2. Create an application and open its 'Bot' section",
    "3. Click 'Reset Token' and copy the token",
    "4. Enable 'Message Content Intent' under Privileged Gateway Intents",
    "5. Invite the bot with OAuth2 > URL Generator (scope: bot)",
]


def verify_discord_token(token: str) -> tuple[bool, str, str]:
    """Test if a Discord bot token works. Returns (ok, bot_name, error)."""
    try:
        r = httpx.get(
            "https://discord.com/api/v10/users/@me",
            headers={"Authorization": f"Bot {token}"},
            timeout=10,
        )
        if r.status_code == 200:
            return True, r.json().get("username", ""), ""
        if r.status_code == 401:
            return False, "", "Invalid token. Please check and try again."
        return False, "", f"Discord API error (status {r.status_code})"
    except Exception as e:
        return False, "", f"Could not reach Discord: {e}"


class DiscordAdapter(ChannelAdapter):
    id = "discord"
    label = "Discord"
    blurb = "Great if you already use Discord. Works in servers or DMs."
    quickstart_score = 5

    def is_configured(self, config: dict[str, Any]) -> bool:
        return bool(channel_section(config, self.id).get("token"))

    def configure(self, config: dict[str, Any], ctx: ConfigureContext) -> ConfigureResult:
        prompter = ctx.prompter
        section = dict(channel_section(config, self.id))
        section["enabled"] = True

        if not section.get("token"):
            prompter.note("\n".join(SETUP_STEPS), "Discord bot token")
        token = prompt_secret(prompter, "Discord bot token", section.get("token", ""))
        if token != section.get("token"):
            with prompter.progress("Testing token...") as spin:
                ok, bot_name, err = verify_discord_token(token)
                spin.stop(f"Connected! Bot: {bot_name}" if ok else err)
        section["token"] = token

        current_allow = list(section.get("allow_from") or [])
        if ctx.force_allow_from or prompter.confirm("Set access restrictions?", default=bool(not current_allow)):
            section["allow_from"] = prompt_allow_from(
                prompter, self.id, "User ID(s) (comma-separated)", current_allow
            )
        else:
            section["allow_from"] = current_allow

        return ConfigureResult(config=with_channel_section(config, self.id, section), account_id=DEFAULT_ACCOUNT_ID)
