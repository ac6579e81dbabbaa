"""OpenStreetMap Overpass source for residential complex footprints.

Queries named buildings and residential landuse areas inside a bounding
box and turns the returned elements into ``OsmFeature`` records for the
offline complex linkage. Public Overpass servers are flaky, so every
request is retried and the client fails over to the next configured
server before giving up.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional

import httpx

from ..config import Settings, config
from ..errors import OverpassError
from ..models.reference import OsmFeature

logger = logging.getLogger(__name__)

BBox = tuple[float, float, float, float]  # south, west, north, east

USER_AGENT = "listing-resolver/0.1"


def build_query(bbox: BBox, timeout: int = 180) -> str:
    """Overpass QL for named complex-like ways and relations with geometry."""
    south, west, north, east = bbox
    area = f"({south},{west},{north},{east})"
    return f"""
[out:json][timeout:{timeout}];
(
  way["building"]["name"]{area};
  way["landuse"="residential"]["name"]{area};
  relation["building"]["name"]{area};
  relation["landuse"="residential"]["name"]{area};
);
out body geom;
"""


def _ring(points: Iterable[dict]) -> list[tuple[float, float]]:
    ring = [
        (float(p["lon"]), float(p["lat"]))
        for p in points
        if p and p.get("lat") is not None and p.get("lon") is not None
    ]
    if len(ring) < 3:
        return []
    if ring[0] != ring[-1]:
        ring.append(ring[0])
    return ring


def _outer_ring(element: dict[str, Any]) -> list[tuple[float, float]]:
    if element.get("geometry"):
        return _ring(element["geometry"])
    # Relations carry geometry on their member ways
    for member in element.get("members") or []:
        if member.get("type") == "way" and member.get("role", "outer") in ("outer", ""):
            ring = _ring(member.get("geometry") or [])
            if ring:
                return ring
    return []


def parse_elements(elements: Iterable[dict[str, Any]]) -> list[OsmFeature]:
    """Convert raw Overpass elements into features.

    Elements without a name or without a usable ring are dropped. Rings
    are closed when the source left them open; rings with fewer than three
    distinct points are discarded.

    Args:
        elements: The ``elements`` array of an Overpass JSON response

    Returns:
        Named features, first occurrence kept when an element repeats
    """
    features: list[OsmFeature] = []
    seen: set[tuple[str, int]] = set()
    skipped = 0

    for element in elements:
        tags = element.get("tags") or {}
        if not tags.get("name") or "id" not in element:
            skipped += 1
            continue
        key = (element.get("type", "way"), int(element["id"]))
        if key in seen:
            continue

        ring = _outer_ring(element)
        lat, lng = element.get("lat"), element.get("lon")
        if not ring and (lat is None or lng is None):
            skipped += 1
            continue

        seen.add(key)
        features.append(OsmFeature(
            osm_id=key[1],
            osm_type=key[0],
            tags={str(k): str(v) for k, v in tags.items()},
            ring=ring,
            lat=lat,
            lng=lng,
        ))

    if skipped:
        logger.debug(f"Skipped {skipped} OSM elements without name or geometry")
    return features


class OverpassClient:
    """Async Overpass API client with retry and server failover.

    Example:
        async with OverpassClient() as client:
            features = await client.fetch_features((46.3, 30.4, 46.8, 31.1))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            settings: Server list, timeout and retry policy
            client: Pre-built httpx client (tests pass one with a mock transport)
        """
        self.settings = settings or config
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "OverpassClient":
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.overpass_timeout,
                headers={"User-Agent": USER_AGENT},
            )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _retry_request(self, url: str, query: str) -> Optional[httpx.Response]:
        """POST a query to one server with retry logic and rate limit handling.

        Retries on timeouts, 429 (rate limited), and 5xx server errors.
        Returns None if all retries are exhausted.
        """
        retries = self.settings.overpass_retries
        delay = self.settings.overpass_retry_delay

        for attempt in range(retries + 1):
            try:
                resp = await self._client.post(url, data={"data": query})

                if resp.status_code == 429:
                    retry_after = float(resp.headers.get("Retry-After", delay * (attempt + 1)))
                    logger.warning(f"Overpass {url} rate limited (429), retry in {retry_after}s")
                    if attempt < retries:
                        await asyncio.sleep(retry_after)
                        continue
                    return None

                if resp.status_code >= 500:
                    logger.warning(
                        f"Overpass {url} server error {resp.status_code}, attempt {attempt + 1}"
                    )
                    if attempt < retries:
                        await asyncio.sleep(delay * (attempt + 1))
                        continue
                    return None

                resp.raise_for_status()
                return resp

            except httpx.TimeoutException:
                logger.warning(f"Overpass {url} timeout, attempt {attempt + 1}/{retries + 1}")
                if attempt < retries:
                    await asyncio.sleep(delay * (attempt + 1))
                    continue
                return None
            except httpx.HTTPStatusError as e:
                # 4xx errors (other than 429) are not retryable
                logger.warning(f"Overpass {url} HTTP error: {e.response.status_code}")
                return None
            except httpx.HTTPError as e:
                logger.warning(f"Overpass {url} error: {e}")
                if attempt < retries:
                    await asyncio.sleep(delay)
                    continue
                return None

        return None

    async def query(self, query: str) -> list[dict[str, Any]]:
        """Run a raw Overpass QL query, trying each server in turn.

        Raises:
            OverpassError: If every server failed or answered with non-JSON
        """
        if self._client is None:
            await self.__aenter__()

        for url in self.settings.overpass_urls:
            resp = await self._retry_request(url, query)
            if resp is None:
                logger.info(f"Overpass server {url} failed, trying next")
                continue
            try:
                data = resp.json()
            except ValueError:
                # Overloaded servers answer 200 with an HTML/XML error page
                logger.warning(f"Overpass {url} returned a non-JSON response, trying next")
                continue
            elements = data.get("elements", [])
            logger.info(f"Overpass {url}: {len(elements)} elements")
            return elements

        raise OverpassError(f"All {len(self.settings.overpass_urls)} Overpass servers failed")

    async def fetch_features(self, bbox: BBox) -> list[OsmFeature]:
        """Named building/residential features inside ``bbox`` (south, west, north, east)."""
        query = build_query(bbox, int(self.settings.overpass_timeout))
        return parse_elements(await self.query(query))
