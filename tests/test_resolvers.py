import asyncio

import pytest
from conftest import DYN_URL, MASTER_URL, PLAYLIST_URL

from twspace_dl.core.resolvers import (
    master_playlist_url,
    rewrite_playlist,
    sub_playlist_url,
)
from twspace_dl.core.session import Session
from twspace_dl.exceptions import BroadcastEndedError, ResolutionError

SPACE_ID = "1OyJADqBEgDGb"


def test_master_playlist_url_replaces_trailing_segment() -> None:
    assert master_playlist_url(DYN_URL) == MASTER_URL


def test_sub_playlist_url_uses_fourth_line_and_master_host() -> None:
    body = "#EXTM3U\n#EXT-X-VERSION:3\n#EXT-X-STREAM-INF:BANDWIDTH=1\n/path/chunk.m3u8?x=1\n"

    url = sub_playlist_url("https://example.com/a/master_playlist.m3u8", body)

    assert url == "https://example.com/path/chunk.m3u8?x=1"


@pytest.mark.parametrize(
    "master_url, body",
    [
        ("https://example.com/master_playlist.m3u8", "#EXTM3U\n#EXT-X-VERSION:3\n"),
        ("not a url", "a\nb\nc\n/path.m3u8\n"),
    ],
)
def test_sub_playlist_url_rejects_malformed_input(master_url, body) -> None:
    with pytest.raises(ValueError):
        sub_playlist_url(master_url, body)


def test_rewrite_playlist_prefixes_every_chunk() -> None:
    body = "#EXTM3U\nchunk_0001.aac\nchunk_0002.aac\n"

    rewritten = rewrite_playlist(body, "https://host/a/master_playlist.m3u8?q=1")

    assert rewritten == (
        "#EXTM3U\nhttps://host/a/chunk_0001.aac\nhttps://host/a/chunk_0002.aac\n"
    )


def test_metadata_is_fetched_once_per_session(client) -> None:
    session = Session(client, space_id=SPACE_ID)

    async def run():
        await session.resolver.metadata()
        return await session.resolver.metadata()

    meta = asyncio.run(run())

    assert meta.title == "Hello"
    assert meta.media_key == "28_1234"
    assert client.count("metadata") == 1


def test_metadata_without_media_key_is_a_resolution_failure(client, make_document) -> None:
    client.spaces[SPACE_ID] = make_document(media_key=None)
    session = Session(client, space_id=SPACE_ID)

    with pytest.raises(ResolutionError) as excinfo:
        asyncio.run(session.resolver.metadata())

    assert excinfo.value.stage == "metadata"
    assert session.cache.get("metadata") is None


def test_ended_without_replay_never_queries_status(client, make_document) -> None:
    client.spaces[SPACE_ID] = make_document(state="Ended", replay=False)
    session = Session(client, space_id=SPACE_ID)

    with pytest.raises(BroadcastEndedError) as excinfo:
        asyncio.run(session.resolver.dyn_url())

    assert "not available for replay" in excinfo.value.reason
    assert client.count("status") == 0


def test_ended_with_replay_queries_status_once_by_media_key(client) -> None:
    session = Session(client, space_id=SPACE_ID)

    async def run():
        await session.resolver.dyn_url()
        return await session.resolver.dyn_url()

    assert asyncio.run(run()) == DYN_URL
    assert [call for call in client.calls if call[0] == "status"] == [
        ("status", "28_1234")
    ]
    assert session.cache.get("dyn_url") == DYN_URL


def test_running_space_resolves_through_status_query(client, make_document) -> None:
    client.spaces[SPACE_ID] = make_document(state="Running", replay=False)
    session = Session(client, space_id=SPACE_ID)

    assert asyncio.run(session.resolver.dyn_url()) == DYN_URL
    assert client.count("status") == 1


def test_missing_source_location_is_a_resolution_failure(client) -> None:
    client.status = {"source": {}}
    session = Session(client, space_id=SPACE_ID)

    with pytest.raises(ResolutionError) as excinfo:
        asyncio.run(session.resolver.dyn_url())

    assert excinfo.value.stage == "dyn_url"
    assert not isinstance(excinfo.value, BroadcastEndedError)


def test_playlist_content_resolves_the_whole_chain(client) -> None:
    session = Session(client, space_id=SPACE_ID)

    content = asyncio.run(session.resolver.playlist_content())

    base = MASTER_URL.replace("master_playlist.m3u8", "")
    assert f"{base}chunk_0001.aac" in content
    assert f"{base}chunk_0002.aac" in content
    assert session.cache.get("master_playlist") == MASTER_URL
    assert session.cache.get("playlist_url") == PLAYLIST_URL
    assert [call[1] for call in client.calls if call[0] == "playlist"] == [
        MASTER_URL,
        PLAYLIST_URL,
    ]


def test_broken_master_playlist_fails_later_stages(client) -> None:
    client.playlists[MASTER_URL] = "#EXTM3U\n"
    session = Session(client, space_id=SPACE_ID)

    with pytest.raises(ResolutionError) as excinfo:
        asyncio.run(session.resolver.playlist_content())

    assert excinfo.value.stage == "playlist_url"
    assert session.cache.get("playlist_content") is None


@pytest.mark.parametrize(
    "template, expected",
    [
        ("space-%{title}-%{rest_id}", "space-Hello-123"),
        ("%{title}%{bogus}", "Hello"),
        ("%{bogus}", "123"),
    ],
)
def test_filename_template(client, make_document, template, expected) -> None:
    client.spaces["123"] = make_document(title="Hello", rest_id="123")
    session = Session(client, space_id="123")

    assert asyncio.run(session.resolver.filename(template)) == expected


def test_sessions_do_not_share_cache(client) -> None:
    first = Session(client, space_id=SPACE_ID)
    second = first.for_space(SPACE_ID)

    asyncio.run(first.resolver.metadata())
    asyncio.run(second.resolver.metadata())

    assert first.cache is not second.cache
    assert client.count("metadata") == 2
    assert client.count("home") == 2
