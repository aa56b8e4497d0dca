"""
Handles guest authentication with the Twitter web API: scraping a guest token
from the home page and building the headers every API request needs.
"""

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Dict

import aiohttp

from twspace_dl.core.hooks import HookPoint
from twspace_dl.exceptions import CredentialError
from twspace_dl.storage.cache import GUEST_TOKEN

from .client import BEARER_TOKEN

if TYPE_CHECKING:
    from twspace_dl.core.session import Session

log = logging.getLogger(__name__)

_GUEST_TOKEN_REGEX = re.compile(r"gt=(?P<token>\d{19})")


class GuestAuthenticator:
    """
    Obtains the session-scoped guest token and builds request headers.
    """

    def __init__(self, session: "Session"):
        """
        Initializes the authenticator.

        Args:
            session: The Session whose cache and hooks this authenticator uses.
        """
        self._session = session

    def authorization(self) -> str:
        """Returns the bearer authorization value, after the extension hook."""
        return self._session.hooks.apply(
            HookPoint.AUTHORIZATION,
            BEARER_TOKEN,
            self._session.username,
            self._session.space_id,
        )

    async def guest_token(self) -> str:
        """
        Returns the Session's guest token, acquiring it on first use.

        Raises:
            CredentialError: If no token was found within the retry budget.
        """
        token = await self._session.cache.get_or_resolve(
            GUEST_TOKEN, self._acquire_guest_token
        )
        return self._session.hooks.apply(
            HookPoint.GUEST_TOKEN, token, self._session.username, self._session.space_id
        )

    async def guest_header(self) -> Dict[str, str]:
        """Builds the headers required by the GraphQL endpoints."""
        headers = {
            "authorization": self.authorization(),
            "x-guest-token": await self.guest_token(),
        }
        return self._session.hooks.apply(
            HookPoint.GUEST_HEADER,
            headers,
            self._session.username,
            self._session.space_id,
        )

    async def _acquire_guest_token(self) -> str:
        """Scrapes a guest token from the home page, retrying on failure."""
        attempts = self._session.guest_token_attempts
        for attempt in range(1, attempts + 1):
            try:
                body = await self._session.client.fetch_home_page()
                if match := _GUEST_TOKEN_REGEX.search(body):
                    token = match.group("token")
                    log.info(f"Obtained guest token: {token[:6]}...")
                    return token
                log.warning(
                    f"[yellow]Guest token not found in home page "
                    f"(attempt {attempt}/{attempts}).[/yellow]"
                )
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                log.warning(
                    f"[yellow]Guest token request failed "
                    f"(attempt {attempt}/{attempts}): {e}[/yellow]"
                )
            if attempt < attempts:
                await asyncio.sleep(self._session.guest_token_retry_delay)

        raise CredentialError(f"No guest token found after {attempts} attempts.")
