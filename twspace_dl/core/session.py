"""
A Session is the resolution context for one Space download (or for one user's
batch run). It owns the resolution cache, so Sessions never share state except
for the HTTP client and the injected hooks.
"""

from typing import TYPE_CHECKING, Optional

from twspace_dl.api.auth import GuestAuthenticator
from twspace_dl.api.client import TwitterAPIClient
from twspace_dl.storage.cache import ResolutionCache

from .hooks import HookDispatcher
from .resolvers import SpaceResolver

if TYPE_CHECKING:
    from twspace_dl.models.config import DownloaderConfig


class Session:
    """Per-download state: cache, credentials and resolver stages."""

    def __init__(
        self,
        client: TwitterAPIClient,
        hooks: Optional[HookDispatcher] = None,
        space_id: Optional[str] = None,
        username: Optional[str] = None,
        guest_token_attempts: int = 5,
        guest_token_retry_delay: float = 1.0,
    ):
        self.client = client
        self.hooks = hooks or HookDispatcher()
        self.space_id = space_id
        self.username = username
        self.guest_token_attempts = guest_token_attempts
        self.guest_token_retry_delay = guest_token_retry_delay

        self.cache = ResolutionCache()
        self._auth = GuestAuthenticator(self)
        self._resolver = SpaceResolver(self)

    @classmethod
    def from_config(
        cls,
        config: "DownloaderConfig",
        client: TwitterAPIClient,
        hooks: Optional[HookDispatcher] = None,
        space_id: Optional[str] = None,
        username: Optional[str] = None,
    ) -> "Session":
        return cls(
            client,
            hooks,
            space_id=space_id,
            username=username,
            guest_token_attempts=config.guest_token_attempts,
            guest_token_retry_delay=config.guest_token_retry_delay,
        )

    @property
    def auth(self) -> GuestAuthenticator:
        """Provides access to the guest authentication helper."""
        return self._auth

    @property
    def resolver(self) -> SpaceResolver:
        """Provides access to the resolver stages."""
        return self._resolver

    def for_space(self, space_id: str) -> "Session":
        """Creates an independent Session for one Space found by this one."""
        return Session(
            self.client,
            self.hooks,
            space_id=space_id,
            username=self.username,
            guest_token_attempts=self.guest_token_attempts,
            guest_token_retry_delay=self.guest_token_retry_delay,
        )

    def __repr__(self) -> str:
        return f"Session(space_id={self.space_id!r}, username={self.username!r})"
