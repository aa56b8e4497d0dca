import asyncio

import aiohttp
import pytest
from conftest import GUEST_TOKEN

from twspace_dl.api import auth as auth_module
from twspace_dl.api.client import BEARER_TOKEN
from twspace_dl.core.session import Session
from twspace_dl.exceptions import CredentialError


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def _sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(auth_module.asyncio, "sleep", _sleep)
    return delays


def test_guest_token_is_scraped_and_cached(client, sleeps) -> None:
    session = Session(client, space_id="1OyJADqBEgDGb")

    async def run():
        first = await session.auth.guest_token()
        second = await session.auth.guest_token()
        return first, second

    assert asyncio.run(run()) == (GUEST_TOKEN, GUEST_TOKEN)
    assert client.count("home") == 1
    assert sleeps == []


def test_guest_token_retries_exactly_the_budget(client, sleeps) -> None:
    client.home_pages = ["<html>no token here</html>"]
    session = Session(client, guest_token_attempts=5, guest_token_retry_delay=1.0)

    with pytest.raises(CredentialError):
        asyncio.run(session.auth.guest_token())

    assert client.count("home") == 5
    assert sleeps == [1.0] * 4
    assert session.cache.get("guest_token") is None


def test_guest_token_success_on_third_attempt_stops_retrying(client, sleeps) -> None:
    client.home_pages = [
        aiohttp.ClientError("503 Service Unavailable"),
        "<html>no token</html>",
        f"gt={GUEST_TOKEN};",
        "gt=9999999999999999999;",
    ]
    session = Session(client, guest_token_attempts=5, guest_token_retry_delay=0.5)

    assert asyncio.run(session.auth.guest_token()) == GUEST_TOKEN
    assert client.count("home") == 3
    assert sleeps == [0.5, 0.5]


def test_guest_header_carries_bearer_and_token(client, sleeps) -> None:
    session = Session(client)

    headers = asyncio.run(session.auth.guest_header())

    assert headers == {"authorization": BEARER_TOKEN, "x-guest-token": GUEST_TOKEN}


def test_concurrent_token_requests_share_one_fetch(client, sleeps) -> None:
    session = Session(client)

    async def run():
        return await asyncio.gather(*(session.auth.guest_token() for _ in range(5)))

    assert set(asyncio.run(run())) == {GUEST_TOKEN}
    assert client.count("home") == 1


def test_undecodable_home_page_counts_as_a_failed_attempt(client, sleeps) -> None:
    client.home_pages = [
        UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte"),
        f"gt={GUEST_TOKEN};",
    ]
    session = Session(client, guest_token_attempts=5, guest_token_retry_delay=1.0)

    assert asyncio.run(session.auth.guest_token()) == GUEST_TOKEN
    assert client.count("home") == 2
    assert sleeps == [1.0]


def test_undecodable_home_page_exhausts_into_credential_error(client, sleeps) -> None:
    client.home_pages = [UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")]
    session = Session(client, guest_token_attempts=3, guest_token_retry_delay=0)

    with pytest.raises(CredentialError):
        asyncio.run(session.auth.guest_token())

    assert client.count("home") == 3
