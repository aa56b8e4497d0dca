import sys
from pathlib import Path

import aiohttp
import pytest

# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

GUEST_TOKEN = "1234567890123456789"
HOST = "prod-fastly-ap-northeast-1.video.pscp.tv"
AUDIO_BASE = f"https://{HOST}/Transcoding/v1/hls/abc/non_transcode/ap-northeast-1/audio-space/"
DYN_URL = AUDIO_BASE + "dynamic_playlist.m3u8?type=replay"
MASTER_URL = AUDIO_BASE + "master_playlist.m3u8"
PLAYLIST_PATH = "/Transcoding/v1/hls/abc/non_transcode/ap-northeast-1/audio-space/playlist_16701.m3u8"
PLAYLIST_URL = f"https://{HOST}{PLAYLIST_PATH}"
MASTER_BODY = (
    "#EXTM3U\n"
    "#EXT-X-VERSION:3\n"
    '#EXT-X-STREAM-INF:BANDWIDTH=67000,CODECS="mp4a.40.2"\n'
    f"{PLAYLIST_PATH}\n"
)
PLAYLIST_BODY = (
    "#EXTM3U\n"
    "#EXTINF:3.0,\n"
    "chunk_0001.aac\n"
    "#EXTINF:3.0,\n"
    "chunk_0002.aac\n"
    "#EXT-X-ENDLIST\n"
)


def space_document(
    state="Ended",
    replay=True,
    media_key="28_1234",
    title="Hello",
    rest_id="1OyJADqBEgDGb",
):
    metadata = {
        "rest_id": rest_id,
        "state": state,
        "title": title,
        "is_space_available_for_replay": replay,
        "created_at": 1650000000000,
        "started_at": 1650000001000,
        "updated_at": 1650000002000,
        "total_participated": 12,
        "total_replay_watched": 34,
    }
    if media_key is not None:
        metadata["media_key"] = media_key
    return {"data": {"audioSpace": {"metadata": metadata}}}


class FakeTwitterClient:
    """Stands in for TwitterAPIClient, recording every call it receives."""

    def __init__(self):
        self.home_pages = [f'<script>document.cookie="gt={GUEST_TOKEN}; Max-Age=10800"</script>']
        self.spaces = {"1OyJADqBEgDGb": space_document()}
        self.status = {"source": {"location": DYN_URL}}
        self.playlists = {MASTER_URL: MASTER_BODY, PLAYLIST_URL: PLAYLIST_BODY}
        self.users = {"host": {"data": {"user": {"result": {"rest_id": "42"}}}}}
        self.tweets = {"42": ""}
        self.calls = []

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    async def fetch_home_page(self):
        self.calls.append(("home",))
        page = self.home_pages[0] if len(self.home_pages) == 1 else self.home_pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page

    async def fetch_space_metadata(self, space_id, headers):
        self.calls.append(("metadata", space_id, headers))
        if space_id not in self.spaces:
            raise aiohttp.ClientError("404 Not Found")
        return self.spaces[space_id]

    async def fetch_stream_status(self, media_key, headers):
        self.calls.append(("status", media_key))
        return self.status

    async def fetch_user_by_screen_name(self, screen_name, headers):
        self.calls.append(("user", screen_name))
        return self.users[screen_name]

    async def fetch_user_tweets(self, user_id, headers):
        self.calls.append(("tweets", user_id))
        return self.tweets[user_id]

    async def fetch_playlist(self, url):
        self.calls.append(("playlist", url))
        if url not in self.playlists:
            raise aiohttp.ClientError(f"404 Not Found: {url}")
        return self.playlists[url]


class FakeRunner:
    """Records FFmpeg jobs instead of running them."""

    def __init__(self, statuses=None):
        self.statuses = dict(statuses or {})
        self.jobs = []

    async def run(self, job):
        self.jobs.append(job)
        status = self.statuses.get(job.kind, 0)
        if status == 0:
            job.output.write_bytes(b"audio")
        return status


@pytest.fixture
def client():
    return FakeTwitterClient()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture
def make_document():
    return space_document
