from __future__ import annotations

import http.client
import json
import logging
from collections.abc import Iterable
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from app.config.settings import Settings
from app.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

_COIN_LIST_PATH = "/data/all/coinlist"
_PRICE_MULTI_PATH = "/data/pricemulti"
_PRICE_SINGLE_PATH = "/data/price"

DEFAULT_BASE_URL = "https://min-api.cryptocompare.com"


def _join(symbols: Iterable[str]) -> str:
    return ",".join(symbols)


class CryptoCompareClient:
    """One request per call, no retries: callers decide how to fall back."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        api_key: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings) -> CryptoCompareClient:
        return cls(
            base_url=settings.upstream_base_url,
            timeout=settings.upstream_timeout_seconds,
            api_key=settings.cryptocompare_api_key,
        )

    def _build_url(self, path: str, params: dict[str, str] | None = None) -> str:
        if not params:
            return f"{self.base_url}{path}"
        return f"{self.base_url}{path}?{urlencode(params)}"

    def _get_json(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        url = self._build_url(path, params)
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Apikey {self.api_key}"
        request = Request(url, headers=headers)
        logger.debug("GET %s", url)
        # resets and truncated bodies surface while reading, outside urlopen's URLError wrapping
        try:
            with urlopen(request, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
            payload = json.loads(body)
        except HTTPError as exc:
            raise UpstreamUnavailable(f"{path} returned HTTP {exc.code}") from exc
        except (OSError, http.client.HTTPException, ValueError) as exc:
            raise UpstreamUnavailable(f"{path} request failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise UpstreamUnavailable(f"{path} returned a non-object payload")
        # CryptoCompare reports most failures in-band with a 200 status.
        if payload.get("Response") == "Error":
            raise UpstreamUnavailable(f"{path} error: {payload.get('Message', 'unknown error')}")
        return payload

    def fetch_coin_list(self) -> frozenset[str]:
        payload = self._get_json(_COIN_LIST_PATH)
        data = payload.get("Data")
        if not isinstance(data, dict) or not data:
            raise UpstreamUnavailable(f"{_COIN_LIST_PATH} returned no coin data")
        return frozenset(data.keys())

    def fetch_price_multi(self, fsyms: Iterable[str], tsyms: Iterable[str]) -> dict[str, Any]:
        payload = self._get_json(_PRICE_MULTI_PATH, {"fsyms": _join(fsyms), "tsyms": _join(tsyms)})
        if not all(isinstance(rates, dict) for rates in payload.values()):
            raise UpstreamUnavailable(f"{_PRICE_MULTI_PATH} returned a malformed rate table")
        return payload

    def fetch_price_single(self, fsym: str, tsyms: Iterable[str]) -> dict[str, Any]:
        return self._get_json(_PRICE_SINGLE_PATH, {"fsym": fsym, "tsyms": _join(tsyms)})
