import asyncio
import gzip
import json

import httpx
import pytest

from modmanager.core.errors import FormatError, TransportError
from modmanager.domain.models import ChunkReference, ManagerSettings
from modmanager.services.catalog.communities import CommunityFetcher
from modmanager.services.catalog.fetcher import (
    CatalogIndexFetcher,
    ChunkFetcher,
    decode_json_payload,
)

CHUNK_URL = "https://gcdn.example.com/live/repository/packages/aaaaaaaaaaaaaaaabbbbbbbbbbbbbbbb.json.gz"


def gz(document) -> bytes:
    return gzip.compress(json.dumps(document).encode("utf-8"))


def settings() -> ManagerSettings:
    return ManagerSettings(api_base_url="https://catalog.test")


def test_decode_accepts_gzip_and_plain_json():
    assert decode_json_payload(gz([1, 2])) == [1, 2]
    assert decode_json_payload(b'["plain"]') == ["plain"]


def test_decode_rejects_garbage():
    with pytest.raises(FormatError):
        decode_json_payload(b"")
    with pytest.raises(FormatError):
        decode_json_payload(b"\x1f\x8b not really gzip")
    with pytest.raises(FormatError):
        decode_json_payload(b"{broken")


def test_index_fetch_returns_chunk_references():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=gz([CHUNK_URL, 42, "https://example.com/other.json.gz"]))

    fetcher = CatalogIndexFetcher(settings(), transport=httpx.MockTransport(handler))
    refs = asyncio.run(fetcher.fetch("lethal-company"))

    assert seen == ["https://catalog.test/api/cv/package-listing-index/lethal-company/"]
    assert [r.url for r in refs] == [CHUNK_URL, "https://example.com/other.json.gz"]
    assert refs[0].content_hash == "aaaaaaaaaaaaaaaabbbbbbbbbbbbbbbb"


def test_index_fetch_maps_http_errors_to_transport_error():
    fetcher = CatalogIndexFetcher(
        settings(), transport=httpx.MockTransport(lambda request: httpx.Response(503))
    )
    with pytest.raises(TransportError) as exc:
        asyncio.run(fetcher.fetch("lethal-company"))
    assert "503" in str(exc.value)


def test_index_fetch_maps_connection_errors_to_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = CatalogIndexFetcher(settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError):
        asyncio.run(fetcher.fetch("lethal-company"))


def test_index_that_is_not_a_list_is_a_format_error():
    fetcher = CatalogIndexFetcher(
        settings(), transport=httpx.MockTransport(lambda request: httpx.Response(200, content=gz({"a": 1})))
    )
    with pytest.raises(FormatError):
        asyncio.run(fetcher.fetch("lethal-company"))


def test_chunk_fetch_parses_records_and_skips_junk():
    records = [
        {"name": "A", "full_name": "X-A", "versions": [{"downloads": 3}]},
        "junk",
        {"name": "B", "full_name": "X-B"},
    ]
    fetcher = ChunkFetcher(
        settings(), transport=httpx.MockTransport(lambda request: httpx.Response(200, content=gz(records)))
    )
    entries = asyncio.run(fetcher.fetch(ChunkReference.from_url(CHUNK_URL)))
    assert [e.full_name for e in entries] == ["X-A", "X-B"]
    assert entries[0].downloads == 3


def test_communities_follow_pagination():
    pages = {
        "https://catalog.test/api/experimental/community/": {
            "results": [{"identifier": "riskofrain2", "name": "Risk of Rain 2"}],
            "pagination": {"next_link": "https://catalog.test/api/experimental/community/?cursor=2"},
        },
        "https://catalog.test/api/experimental/community/?cursor=2": {
            "results": [{"identifier": "lethal-company", "name": "Lethal Company"}, {"bad": True}],
            "pagination": {"next_link": None},
        },
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=pages[str(request.url)])

    fetcher = CommunityFetcher(settings(), transport=httpx.MockTransport(handler))
    communities = asyncio.run(fetcher.fetch_all())
    assert [c.identifier for c in communities] == ["riskofrain2", "lethal-company"]
