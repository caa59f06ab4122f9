"""Telegram bot channel."""

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
    "1. Open Telegram and start a chat with @BotFather",
    "2. Send /newbot and follow the prompts",
    "3. Copy the token it gives you (looks like 123456789:ABCdef...)",
    "",
    "To find your own user ID, message @userinfobot.",
]


def verify_telegram_token(token: str) -> tuple[bool, str, str]:
    """Test if a Telegram bot token works. Returns (ok, bot_name, error)."""
    try:
        r = httpx.get(f"https://api.telegram.org/bot{token}/getMe", timeout=10)
        if r.status_code == 200:
            data = r.json()
            if data.get("ok"):
                bot = data["result"]
                name = bot.get("first_name", "")
                username = bot.get("username", "")
                return True, f"{name} (@{username})", ""
        if r.status_code == 401:
            return False, "", "Invalid token. Please check and try again."
        return False, "", f"Telegram API error (status {r.status_code})"
    except Exception as e:
        return False, "", f"Could not reach Telegram: {e}"


class TelegramAdapter(ChannelAdapter):
    id = "telegram"
    label = "Telegram"
    blurb = "Best for getting started. Works on phone and desktop."
    quickstart_score = 10
    supports_dm_policy = True
    quickstart_allow_from = True

    def is_configured(self, config: dict[str, Any]) -> bool:
        return bool(channel_section(config, self.id).get("token"))

    def configure(self, config: dict[str, Any], ctx: ConfigureContext) -> ConfigureResult:
        prompter = ctx.prompter
        section = dict(channel_section(config, self.id))
        section["enabled"] = True

        if not section.get("token"):
            prompter.note("\n".join(SETUP_STEPS), "Telegram bot token")
        token = prompt_secret(prompter, "Telegram bot token", section.get("token", ""))
        if token != section.get("token"):
            with prompter.progress("Testing token...") as spin:
                ok, bot_name, err = verify_telegram_token(token)
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
