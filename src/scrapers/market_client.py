# src/scrapers/market_client.py

"""Transport for the Steam Community Market search listing endpoint."""

import json
import logging
from typing import Any

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.models.page import Page


class TransientTransportError(Exception):
    """A page request failed in a way that is worth retrying.

    Covers transport errors and timeouts, non-200 responses, invalid
    JSON, and payloads missing the listing fields.
    """


def parse_cookie_header(raw: str) -> dict[str, str]:
    """Split a ``name=value; name2=value2`` string into a cookie dict."""
    cookies: dict[str, str] = {}
    for part in raw.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            cookies[name.strip()] = value.strip()
    return cookies


def parse_entries(results: list[Any]) -> list[tuple[str, int]]:
    """Keep entries with a non-empty ``hash_name`` and a price above zero."""
    entries: list[tuple[str, int]] = []
    for item in results:
        if not isinstance(item, dict):
            continue
        name = item.get("hash_name")
        cents = item.get("sell_price")
        if not name or not isinstance(name, str):
            continue
        if isinstance(cents, bool) or not isinstance(cents, (int, float)):
            continue
        if cents > 0:
            entries.append((name, int(cents)))
    return entries


class MarketClient:
    """Fetches listing pages using an authenticated curl_cffi session.

    The session cookies are the opaque transport context produced by
    whatever logged in; this class never authenticates by itself.
    """

    def __init__(self, cookies: str | None = None) -> None:
        self.logger = logging.getLogger("market_prices.market")
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        raw_cookies = (
            cookies if cookies is not None else self.settings.MARKET_COOKIES
        )
        self.cookies = parse_cookie_header(raw_cookies)
        if not self.cookies:
            self.logger.warning(
                "No market cookies configured, requests are anonymous"
            )

    def _params(self, offset: int, page_size: int) -> dict[str, str | int]:
        return {
            "appid": self.settings.APP_ID,
            "norender": 1,
            "currency": self.settings.CURRENCY_CODE,
            "count": page_size,
            "start": offset,
        }

    def fetch_page(self, offset: int, page_size: int) -> Page:
        """Request one listing page starting at *offset*."""
        try:
            resp = self.session.get(
                self.settings.SEARCH_URL,
                params=self._params(offset, page_size),
                headers=self.settings.DEFAULT_HEADERS,
                cookies=self.cookies,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            raise TransientTransportError(
                f"Request failed: {exc}"
            ) from exc

        if resp.status_code != 200:
            raise TransientTransportError(
                f"HTTP {resp.status_code}: {resp.reason}"
            )

        try:
            data: Any = json.loads(resp.text)
        except ValueError as exc:
            raise TransientTransportError(f"Invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise TransientTransportError("Payload is not a JSON object")

        total_count = data.get("total_count")
        if isinstance(total_count, bool) or not isinstance(total_count, int):
            raise TransientTransportError(
                f"Payload has no integer total_count: {total_count!r}"
            )

        results = data.get("results") or []
        if not isinstance(results, list):
            raise TransientTransportError("Payload results is not a list")

        return Page(
            total_count=total_count,
            entries=parse_entries(results),
            result_count=len(results),
        )
