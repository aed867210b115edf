"""
Artwork fetcher: retries, decode failures and the overall timeout.
The requests session is mocked so no network is touched.
"""
import io
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests
from PIL import Image

from lockscreen import ArtworkFetcher, FetchFailed
from lockscreen import artwork as artwork_module

URL = "https://cdn.example.com/cover.png"


def _png_bytes(size=(3, 2)):
    buf = io.BytesIO()
    Image.new("RGB", size, "blue").save(buf, format="PNG")
    return buf.getvalue()


def _response(content):
    response = MagicMock()
    response.status_code = 200
    response.content = content
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session():
    mock = MagicMock()
    mock.headers = {}
    return mock


@pytest.fixture
def fetcher(session):
    return ArtworkFetcher(max_retries=2, retry_delay=0, request_timeout=1.0, session=session)


async def test_fetch_decodes_image(fetcher, session):
    session.get.return_value = _response(_png_bytes())

    entry = await fetcher.fetch(URL)

    assert entry.source_url == URL
    assert entry.size == (3, 2)
    assert "User-Agent" in session.headers
    assert fetcher.request_stats['successes'] == 1


async def test_fetch_retries_then_succeeds(fetcher, session):
    session.get.side_effect = [requests.ConnectionError("reset"), _response(_png_bytes())]

    entry = await fetcher.fetch(URL)

    assert entry.size == (3, 2)
    assert session.get.call_count == 2
    assert fetcher.request_stats['attempts'] == 2


async def test_fetch_gives_up_after_retries(fetcher, session):
    session.get.side_effect = requests.ConnectionError("down")

    with pytest.raises(FetchFailed) as exc:
        await fetcher.fetch(URL)

    assert exc.value.attempts == 3
    assert session.get.call_count == 3
    assert fetcher.request_stats['failures'] == 1


async def test_undecodable_and_empty_bodies_fail(fetcher, session):
    session.get.side_effect = [_response(b""), _response(b"not an image"), _response(b"still not")]

    with pytest.raises(FetchFailed):
        await fetcher.fetch(URL)
    assert session.get.call_count == 3


async def test_invalid_url_is_not_requested(fetcher, session):
    with pytest.raises(FetchFailed):
        await fetcher.fetch("ftp://example.com/cover.png")
    session.get.assert_not_called()


async def test_retry_delay_grows_linearly(session):
    fetcher = ArtworkFetcher(max_retries=2, retry_delay=1.0, session=session)
    session.get.side_effect = requests.Timeout("slow")

    with patch.object(artwork_module.asyncio, "sleep", new=AsyncMock()) as sleep:
        with pytest.raises(FetchFailed):
            await fetcher.fetch(URL)

    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


async def test_fetch_with_timeout_returns_none(fetcher, session):
    def slow_get(*args, **kwargs):
        time.sleep(0.3)
        return _response(_png_bytes())
    session.get.side_effect = slow_get

    assert await fetcher.fetch_with_timeout(URL, timeout=0.05) is None
    assert fetcher.request_stats['timeouts'] == 1


async def test_fetch_with_timeout_swallows_fetch_failure(fetcher, session):
    session.get.side_effect = requests.ConnectionError("down")
    assert await fetcher.fetch_with_timeout(URL, timeout=1.0) is None
