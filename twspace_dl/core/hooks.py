"""
Extension points around every resolver stage.

Integrators subclass `SpaceHooks` and override only the stages they care about.
Each hook receives the stage's resolved value plus the username and/or Space id
that apply, and returns a decision: `Accept(value)` to continue (optionally with
a rewritten value) or `Abort(reason)` to stop the download. `Abort()` with no
reason stops it silently.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from twspace_dl.exceptions import ExtensionAbort

log = logging.getLogger(__name__)


class HookPoint(str, Enum):
    """Named stages that can be intercepted."""

    AUTHORIZATION = "authorization"
    GUEST_TOKEN = "guest_token"
    GUEST_HEADER = "guest_header"
    METADATA = "metadata"
    DYN_URL = "dyn_url"
    MASTER_URL = "master_url"
    PLAYLIST_URL = "playlist_url"
    PLAYLIST_CONTENT = "playlist_content"
    USERINFO = "userinfo"
    RECENT_TWEETS = "recent_tweets"
    SPACE_URLS = "space_urls"


@dataclass(frozen=True)
class Accept:
    """Continue with `value`, which may differ from what the stage produced."""

    value: Any


@dataclass(frozen=True)
class Abort:
    """Stop the whole download. A `None` reason aborts silently."""

    reason: Optional[str] = None


HookDecision = Union[Accept, Abort]


class SpaceHooks:
    """
    Base class for extensions. Every hook passes its value through unchanged.
    """

    def authorization(
        self, value: str, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def guest_token(
        self, value: str, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def guest_header(
        self, value: dict, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def metadata(
        self, value: Any, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def dyn_url(
        self, value: str, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def master_url(
        self, value: str, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def playlist_url(
        self, value: str, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def playlist_content(
        self, value: str, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def userinfo(
        self, value: dict, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def recent_tweets(
        self, value: str, username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)

    def space_urls(
        self, value: list[str], username: Optional[str], space_id: Optional[str]
    ) -> HookDecision:
        return Accept(value)


class BlocklistHooks(SpaceHooks):
    """Skips discovered Spaces and vetoes direct downloads of blocked Space ids."""

    def __init__(self, blocked_ids: Iterable[str]):
        self.blocked_ids = frozenset(blocked_ids)

    def _is_blocked(self, url: str) -> bool:
        return url.rstrip("/").rsplit("/", 1)[-1] in self.blocked_ids

    def space_urls(self, value, username, space_id):
        kept = [url for url in value if not self._is_blocked(url)]
        if len(kept) < len(value):
            log.info(f"Block list removed {len(value) - len(kept)} Space(s).")
        return Accept(kept)

    def metadata(self, value, username, space_id):
        if space_id in self.blocked_ids:
            return Abort(f"Space {space_id} is on the block list.")
        return Accept(value)


class HookDispatcher:
    """Routes each stage's result through the registered `SpaceHooks`, if any."""

    def __init__(self, hooks: Optional[SpaceHooks] = None):
        self.hooks = hooks
        self._handlers: dict[HookPoint, Callable[..., HookDecision]] = {}
        if hooks is not None:
            self._handlers = {
                HookPoint.AUTHORIZATION: hooks.authorization,
                HookPoint.GUEST_TOKEN: hooks.guest_token,
                HookPoint.GUEST_HEADER: hooks.guest_header,
                HookPoint.METADATA: hooks.metadata,
                HookPoint.DYN_URL: hooks.dyn_url,
                HookPoint.MASTER_URL: hooks.master_url,
                HookPoint.PLAYLIST_URL: hooks.playlist_url,
                HookPoint.PLAYLIST_CONTENT: hooks.playlist_content,
                HookPoint.USERINFO: hooks.userinfo,
                HookPoint.RECENT_TWEETS: hooks.recent_tweets,
                HookPoint.SPACE_URLS: hooks.space_urls,
            }

    def apply(
        self,
        point: HookPoint,
        value: Any,
        username: Optional[str] = None,
        space_id: Optional[str] = None,
    ) -> Any:
        """
        Passes `value` through the hook for `point`.

        Returns:
            The accepted (possibly rewritten) value.

        Raises:
            ExtensionAbort: If the hook asked to stop the download.
        """
        handler = self._handlers.get(point)
        if handler is None:
            return value

        decision = handler(value, username, space_id)
        if isinstance(decision, Accept):
            return decision.value
        if isinstance(decision, Abort):
            if decision.reason:
                log.error(f"[red]Stopped by extension at '{point.value}': {decision.reason}[/red]")
            else:
                log.debug(f"Extension silently stopped the download at '{point.value}'.")
            raise ExtensionAbort(point.value, decision.reason)
        raise TypeError(
            f"Hook '{point.value}' returned {decision!r}; expected Accept or Abort."
        )
