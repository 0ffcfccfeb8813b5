"""
Credential validators — check user-supplied secrets against the real APIs.

Telegram bot tokens are checked with the Bot API ``getMe`` call.
BlueBubbles passwords are checked with ``/api/v1/server/info`` on the
local BlueBubbles server. Neither check ever raises: network trouble
comes back as an invalid CredentialCheck with the reason attached.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

USER_AGENT = "carclaw-installer/0.1"


@dataclass
class CredentialCheck:
    """Outcome of one credential validation."""

    valid: bool
    message: str = ""
    identity: str = ""               # bot username, server name, ...


class CredentialValidator:
    """HTTP-backed validators for messaging service credentials."""

    def __init__(
        self,
        telegram_api: str = "https://api.telegram.org",
        timeout: int = 10,
    ):
        self._telegram_api = telegram_api.rstrip("/")
        self._timeout = timeout

    def validate_telegram_token(self, token: str) -> CredentialCheck:
        token = token.strip()
        if not token:
            return CredentialCheck(False, "No token entered")

        url = f"{self._telegram_api}/bot{urllib.parse.quote(token, safe=':')}/getMe"
        try:
            body = self._get_json(url)
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.debug("Telegram getMe failed: %s", e)
            return CredentialCheck(False, f"Token validation failed: {_reason(e)}")

        if body.get("ok") is True:
            username = (body.get("result") or {}).get("username", "")
            return CredentialCheck(True, f"Token valid — bot: @{username}", identity=username)
        return CredentialCheck(False, body.get("description") or "Telegram rejected the token")

    def validate_bluebubbles(self, url: str, password: str) -> CredentialCheck:
        if not password:
            return CredentialCheck(False, "No password entered")

        endpoint = f"{url.rstrip('/')}/api/v1/server/info?password={urllib.parse.quote(password, safe='')}"
        try:
            body = self._get_json(endpoint)
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.debug("BlueBubbles server/info failed: %s", e)
            return CredentialCheck(False, f"Could not reach BlueBubbles at {url}: {_reason(e)}")

        if body.get("status") == 200:
            name = str((body.get("data") or {}).get("computer_id", ""))
            return CredentialCheck(True, "BlueBubbles connection successful", identity=name)
        return CredentialCheck(False, body.get("message") or "BlueBubbles rejected the password")

    def _get_json(self, url: str) -> dict[str, Any]:
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            # Both APIs answer errors with a JSON body
            raw = e.read()
        data = json.loads(raw or b"{}")
        if not isinstance(data, dict):
            raise ValueError("Unexpected response shape")
        return data


def _reason(error: Exception) -> str:
    if isinstance(error, urllib.error.URLError) and not isinstance(error, urllib.error.HTTPError):
        return str(error.reason)
    return str(error)
