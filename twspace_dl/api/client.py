"""
Async client for the undocumented Twitter endpoints used to locate Space audio.

Endpoint ids and query variables are pinned to the upstream API versions they
were captured from. When Twitter changes its contract, this is the only module
that should need updating.
"""

import json
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/15.1 Safari/605.1.15"
)

BEARER_TOKEN = (
    "Bearer AAAAAAAAAAAAAAAAAAAAANRILgAAAAAAnNwIzUejRCOuH5E6I8xnZz4puTs"
    "%3D1Zv7ttfk8LF81IUq16cHjhLTvJu4FA33AGWWjCpTnA"
)

HOME_URL = "https://twitter.com/"
AUDIO_SPACE_BY_ID_URL = (
    "https://twitter.com/i/api/graphql/Uv5R_-Chxbn1FEkyUkSW2w/AudioSpaceById"
)
LIVE_VIDEO_STREAM_STATUS_URL = "https://twitter.com/i/api/1.1/live_video_stream/status/"
USER_BY_SCREEN_NAME_URL = (
    "https://twitter.com/i/api/graphql/1CL-tn62bpc-zqeQrWm4Kw/UserByScreenName"
)
USER_TWEETS_URL = "https://twitter.com/i/api/graphql/jpCmlX6UgnPEZJknGKbmZA/UserTweets"


def _graphql_params(variables: Dict[str, Any]) -> Dict[str, str]:
    """Encodes GraphQL variables the way the web client sends them."""
    return {"variables": json.dumps(variables, separators=(",", ":"))}


class TwitterAPIClient:
    """
    Thin async wrapper around the Twitter web API.

    Every method issues exactly one request and raises
    `aiohttp.ClientResponseError` on a non-success status. Interpreting the
    response body is left to the resolvers.
    """

    def __init__(self, max_workers: int = 4):
        """
        Initializes the API client.

        Args:
            max_workers: The number of concurrent Sessions, used to tune the
                connection pool.
        """
        self.max_workers = max_workers
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_workers * 4,
                limit_per_host=self.max_workers * 2,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"Accept-Encoding": "gzip, deflate, br"},
                timeout=aiohttp.ClientTimeout(total=60, connect=15, sock_read=30),
            )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "TwitterAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def get_text(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """Performs a GET request and returns the response body as text."""
        session = await self._initialize_session()
        start_time = time.monotonic()
        async with session.get(
            url, params=params, headers=headers, allow_redirects=True
        ) as r:
            duration_ms = (time.monotonic() - start_time) * 1000
            log.debug(f"GET {url} -> {r.status} ({duration_ms:.0f} ms)")
            r.raise_for_status()
            return await r.text()

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Performs a GET request and decodes the JSON body."""
        return json.loads(await self.get_text(url, params=params, headers=headers))

    # Public API Methods
    async def fetch_home_page(self) -> str:
        return await self.get_text(HOME_URL, headers={"User-Agent": USER_AGENT})

    async def fetch_space_metadata(
        self, space_id: str, headers: Dict[str, str]
    ) -> Dict[str, Any]:
        variables = {
            "id": space_id,
            "isMetatagsQuery": False,
            "withSuperFollowsUserFields": True,
            "withBirdwatchPivots": False,
            "withDownvotePerspective": False,
            "withReactionsMetadata": False,
            "withReactionsPerspective": False,
            "withSuperFollowsTweetFields": True,
            "withReplays": True,
            "withScheduledSpaces": True,
        }
        return await self.get_json(
            AUDIO_SPACE_BY_ID_URL, params=_graphql_params(variables), headers=headers
        )

    async def fetch_stream_status(
        self, media_key: str, headers: Dict[str, str]
    ) -> Dict[str, Any]:
        return await self.get_json(
            LIVE_VIDEO_STREAM_STATUS_URL + media_key,
            headers={**headers, "cookie": "auth_token="},
        )

    async def fetch_user_by_screen_name(
        self, screen_name: str, headers: Dict[str, str]
    ) -> Dict[str, Any]:
        variables = {
            "screen_name": screen_name,
            "withSafetyModeUserFields": True,
            "withSuperFollowsUserFields": True,
            "withNftAvatar": False,
        }
        return await self.get_json(
            USER_BY_SCREEN_NAME_URL, params=_graphql_params(variables), headers=headers
        )

    async def fetch_user_tweets(self, user_id: str, headers: Dict[str, str]) -> str:
        variables = {
            "userId": user_id,
            "count": 20,
            "withTweetQuoteCount": True,
            "includePromotedContent": True,
            "withQuickPromoteEligibilityTweetFields": True,
            "withSuperFollowsUserFields": True,
            "withUserResults": True,
            "withNftAvatar": False,
            "withBirdwatchPivots": False,
            "withReactionsMetadata": False,
            "withReactionsPerspective": False,
            "withSuperFollowsTweetFields": True,
            "withVoice": True,
        }
        return await self.get_text(
            USER_TWEETS_URL, params=_graphql_params(variables), headers=headers
        )

    async def fetch_playlist(self, url: str) -> str:
        return await self.get_text(url)
