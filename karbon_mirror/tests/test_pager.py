"""Tests for nextLink pagination."""

from __future__ import annotations

import pytest

from karbon_mirror.api.client import KarbonAuthError, KarbonError, ODataQuery
from karbon_mirror.api.pager import fetch_all


def _contacts(start: int, count: int) -> list[dict]:
    return [{"ContactKey": f"C{i:04d}"} for i in range(start, start + count)]


@pytest.mark.asyncio
async def test_follows_next_links_until_exhausted(karbon_api, karbon):
    karbon_api.add_pages("/Contacts", [_contacts(0, 100), _contacts(100, 100), _contacts(200, 30)])

    result = await fetch_all(karbon, "/Contacts", ODataQuery(orderby="FullName asc"))

    assert len(result.items) == 230
    assert result.pages == 3
    assert result.warning is None
    assert [c["url"] for c in karbon_api.calls] == ["/Contacts", "/Contacts?page=2", "/Contacts?page=3"]
    # Only the first request carries the query; nextLinks are opaque.
    assert karbon_api.calls[0]["params"] == {"$orderby": "FullName asc"}
    assert karbon_api.calls[1]["params"] is None


@pytest.mark.asyncio
async def test_stops_at_page_ceiling_with_warning(karbon_api, karbon):
    pages = [_contacts(i * 10, 10) for i in range(8)]
    karbon_api.add_pages("/Contacts", pages)

    result = await fetch_all(karbon, "/Contacts", max_pages=5)

    assert result.pages == 5
    assert len(result.items) == 50
    assert "5 pages" in result.warning
    assert len(karbon_api.calls) == 5


@pytest.mark.asyncio
async def test_repeated_cursor_terminates(karbon_api, karbon):
    karbon_api.add("GET", "/Contacts", {"value": _contacts(0, 2), "@odata.nextLink": "/Contacts?again"})
    karbon_api.add("GET", "/Contacts?again", {"value": _contacts(2, 2), "@odata.nextLink": "/Contacts?again"})

    result = await fetch_all(karbon, "/Contacts", max_pages=50)

    assert result.pages == 2
    assert len(result.items) == 4
    assert "repeated" in result.warning


@pytest.mark.asyncio
async def test_not_found_is_empty_result(karbon_api, karbon):
    result = await fetch_all(karbon, "/Nope")
    assert result.items == []
    assert result.not_found is True
    assert result.warning is None


@pytest.mark.asyncio
async def test_failure_after_first_page_keeps_partial_items(karbon_api, karbon):
    karbon_api.add("GET", "/Contacts", {"value": _contacts(0, 100), "@odata.nextLink": "/Contacts?page=2"})
    karbon_api.add("GET", "/Contacts?page=2", {"Message": "boom"}, status=500)

    result = await fetch_all(karbon, "/Contacts")

    assert len(result.items) == 100
    assert result.pages == 1
    assert "Partial result" in result.warning


@pytest.mark.asyncio
async def test_failure_on_first_page_propagates(karbon_api, karbon):
    karbon_api.add("GET", "/Contacts", {"Message": "boom"}, status=500)
    with pytest.raises(KarbonError):
        await fetch_all(karbon, "/Contacts")


@pytest.mark.asyncio
async def test_auth_failure_always_propagates(karbon_api, karbon):
    karbon_api.add("GET", "/Contacts", {"value": _contacts(0, 1), "@odata.nextLink": "/Contacts?page=2"})
    karbon_api.add("GET", "/Contacts?page=2", {"Message": "expired"}, status=401)
    with pytest.raises(KarbonAuthError):
        await fetch_all(karbon, "/Contacts")
