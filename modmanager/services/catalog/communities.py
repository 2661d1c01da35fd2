from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from modmanager.core.errors import FormatError, TransportError
from modmanager.domain.models import Community, ManagerSettings

logger = logging.getLogger(__name__)

COMMUNITIES_PATH = "/api/experimental/community/"


class CommunityFetcher:
    """Lists every community, following the API's pagination links."""

    def __init__(
        self,
        settings: ManagerSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    async def fetch_all(self) -> List[Community]:
        url: Optional[str] = self.settings.api_base_url.rstrip("/") + COMMUNITIES_PATH
        communities: List[Community] = []
        seen_urls = set()

        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.settings.request_timeout_seconds,
            headers={"User-Agent": self.settings.user_agent},
            transport=self._transport,
        ) as client:
            while url and url not in seen_urls:
                seen_urls.add(url)
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                    page = response.json()
                except httpx.HTTPStatusError as e:
                    raise TransportError(url, f"HTTP {e.response.status_code}") from e
                except httpx.HTTPError as e:
                    raise TransportError(url, str(e) or type(e).__name__) from e
                except ValueError as e:
                    raise FormatError(f"Invalid community page from {url}: {e}") from e

                if not isinstance(page, dict):
                    raise FormatError(f"Community page from {url} is not an object")

                results = page.get("results") or []
                for raw in results:
                    community = Community.from_record(raw)
                    if community is not None:
                        communities.append(community)
                logger.debug(f"Fetched {len(results)} communities from {url}")

                pagination = page.get("pagination") or {}
                next_link = pagination.get("next_link") if isinstance(pagination, dict) else None
                url = next_link if isinstance(next_link, str) and next_link else None

        logger.info(f"Total communities fetched: {len(communities)}")
        return communities
