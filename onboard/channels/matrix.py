"""Matrix channel. Ships as an optional plugin (matrix-nio) installed on demand."""

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
from onboard.validators import validate_required

DEFAULT_HOMESERVER = "https://matrix.org"


def _validate_homeserver(value: str) -> str | None:
    text = value.strip()
    if not text:
        return "Homeserver URL is required"
    if not text.startswith(("http://", "https://")):
        return "Homeserver must start with http:// or https://"
    return None


def verify_matrix_token(homeserver: str, token: str) -> tuple[bool, str, str]:
    """Ask the homeserver who owns this token. Returns (ok, user_id, error)."""
    try:
        r = httpx.get(
            f"{homeserver.rstrip('/')}/_matrix/client/v3/account/whoami",
            headers={"Authorization": f"Bearer {token}"},
            timeout=10,
        )
        if r.status_code == 200:
            return True, r.json().get("user_id", ""), ""
        if r.status_code == 401:
            return False, "", "Invalid access token."
        return False, "", f"Matrix API error (status {r.status_code})"
    except Exception as e:
        return False, "", f"Could not reach homeserver: {e}"


class MatrixAdapter(ChannelAdapter):
    id = "matrix"
    label = "Matrix"
    blurb = "Self-hostable and federated. Needs the matrix plugin."
    quickstart_score = 2

    def is_configured(self, config: dict[str, Any]) -> bool:
        section = channel_section(config, self.id)
        return bool(section.get("homeserver") and section.get("access_token"))

    def configure(self, config: dict[str, Any], ctx: ConfigureContext) -> ConfigureResult:
        prompter = ctx.prompter
        section = dict(channel_section(config, self.id))
        section["enabled"] = True

        section["homeserver"] = prompter.text(
            "Homeserver URL",
            initial_value=section.get("homeserver") or DEFAULT_HOMESERVER,
            validate=_validate_homeserver,
        ).strip().rstrip("/")
        section["user_id"] = prompter.text(
            "Bot user ID",
            initial_value=section.get("user_id", ""),
            placeholder="@assistant:matrix.org",
            validate=validate_required,
        ).strip()

        token = prompt_secret(prompter, "Access token", section.get("access_token", ""))
        if token != section.get("access_token"):
            with prompter.progress("Checking access token...") as spin:
                ok, user_id, err = verify_matrix_token(section["homeserver"], token)
                spin.stop(f"Connected as {user_id}" if ok else err)
        section["access_token"] = token

        current_allow = list(section.get("allow_from") or [])
        if ctx.force_allow_from or prompter.confirm("Set access restrictions?", default=bool(not current_allow)):
            section["allow_from"] = prompt_allow_from(
                prompter, self.id, "Matrix user ID(s) (comma-separated)", current_allow
            )
        else:
            section["allow_from"] = current_allow

        return ConfigureResult(config=with_channel_section(config, self.id, section), account_id=DEFAULT_ACCOUNT_ID)
