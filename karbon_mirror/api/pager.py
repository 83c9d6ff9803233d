"""Cursor pagination over Karbon collections."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .client import KarbonAuthError, KarbonClient, KarbonError, KarbonNotFound, ODataQuery

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    items: list[dict] = field(default_factory=list)
    pages: int = 0
    total_count: int | None = None
    warning: str | None = None
    not_found: bool = False


async def fetch_all(
    client: KarbonClient,
    endpoint: str,
    query: ODataQuery | None = None,
    *,
    max_pages: int = 50,
) -> FetchResult:
    """Follow ``@odata.nextLink`` until exhausted or ``max_pages`` is reached.

    A 404 means the resource has no data (or no list endpoint) and yields an
    empty result. Other upstream failures keep whatever pages already arrived
    and set ``warning``; with nothing fetched yet they propagate. Auth
    failures always propagate.
    """
    result = FetchResult()
    next_link: str | None = None
    seen_links: set[str] = set()

    while True:
        if result.pages >= max_pages:
            result.warning = f"Stopped after {max_pages} pages; more data may remain"
            logger.warning("%s: page limit %d reached", endpoint, max_pages)
            break

        try:
            page = await client.fetch_page(endpoint, query, next_link=next_link)
        except KarbonAuthError:
            raise
        except KarbonNotFound:
            logger.info("%s returned 404; treating as no data", endpoint)
            result.not_found = True
            break
        except KarbonError as e:
            if result.pages == 0:
                raise
            result.warning = f"Partial result after {result.pages} page(s): {e.message}"
            logger.warning("%s: %s", endpoint, result.warning)
            break

        result.pages += 1
        result.items.extend(page.items)
        if page.total_count is not None:
            result.total_count = page.total_count

        if not page.next_link:
            break
        # Defensive guard when the API hands back a cursor it already gave us.
        if page.next_link in seen_links:
            result.warning = "Pagination cursor repeated; stopping"
            logger.warning("%s: repeated nextLink %s", endpoint, page.next_link)
            break
        seen_links.add(page.next_link)
        next_link = page.next_link

    return result
