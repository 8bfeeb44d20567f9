# pricesync/scrapers/reebelo_adapter.py

"""Adapter for reebelo.com.au via their paginated offers search API."""

import time
from typing import Any

from pricesync.errors import AdapterError, ConfigurationError, QueryKeyError
from pricesync.models.offer import RawRecord
from pricesync.scrapers.base_adapter import BaseAdapter


class ReebeloAdapter(BaseAdapter):
    """Adapter for Reebelo's offers socket API.

    The API is keyed by an ``x-api-key`` header and returns one JSON page
    per request: ``publishedOffers`` holds the listings and
    ``hasNextPage`` says whether another ``page`` exists.  Pages of one
    SKU are fetched strictly in order; a 429 waits and retries the same
    page rather than skipping it.
    """

    def __init__(self, api_key: str | None = None) -> None:
        super().__init__("reebelo")
        self.api_key = (
            api_key if api_key is not None
            else self.settings.REEBELO_API_KEY
        )
        if not self.api_key:
            raise ConfigurationError(
                "REEBELO_API_KEY is not set; refusing to start Reebelo sync"
            )
        self.api_url = self.settings.REEBELO_API_URL

    def _headers(self) -> dict[str, str]:
        """JSON headers plus the API key."""
        return {
            **self.settings.DEFAULT_HEADERS,
            "content-type": "application/json",
            "x-api-key": self.api_key,
        }

    def probe_url(self) -> str:
        return self.api_url

    def _fetch_key(self, key: str) -> list[RawRecord]:
        """Accumulate every page of offers for one SKU."""
        records: list[RawRecord] = []
        page = 1
        while True:
            resp = self._request(
                key, self.api_url, params={"search": key, "page": page}
            )
            if resp.status_code in (401, 403):
                raise AdapterError(
                    f"reebelo: API key rejected (HTTP {resp.status_code})"
                )
            if resp.status_code != 200:
                raise QueryKeyError(
                    key, f"HTTP {resp.status_code} on page {page}"
                )

            try:
                data: Any = resp.json()
            except ValueError:
                self.logger.warning(
                    "[reebelo] Malformed JSON for %s page %d, "
                    "keeping %d records",
                    key,
                    page,
                    len(records),
                )
                break
            if not isinstance(data, dict):
                self.logger.warning(
                    "[reebelo] Unexpected payload for %s page %d",
                    key,
                    page,
                )
                break

            offers = data.get("publishedOffers")
            if isinstance(offers, list):
                for offer in offers:
                    if not isinstance(offer, dict):
                        continue
                    listing = offer.get("reebeloOffer")
                    if not isinstance(listing, dict):
                        listing = {}
                    records.append(
                        RawRecord(
                            competitor=self.competitor,
                            query_key=key,
                            payload=offer,
                            source_url=str(listing.get("url") or ""),
                        )
                    )

            if data.get("hasNextPage") is not True:
                break
            page += 1
            if page > self.settings.MAX_PAGES:
                self.logger.warning(
                    "[reebelo] Stopped %s at page limit %d",
                    key,
                    self.settings.MAX_PAGES,
                )
                break
            self._check_cancelled()
            time.sleep(self.settings.PAGE_DELAY)

        self.logger.info(
            "[reebelo] %s: %d offers over %d pages",
            key,
            len(records),
            page,
        )
        return records
