from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from app.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class SymbolRegistry:
    """
    Managed symbols (static) and the symbols CryptoCompare currently lists.

    ``supported`` is only ever replaced by assigning a new frozenset, so
    readers always see either the previous catalog or the new one.
    """

    def __init__(
        self,
        managed: Iterable[str],
        fetch_catalog: Callable[[], Iterable[str]],
    ) -> None:
        self.managed: frozenset[str] = frozenset(managed)
        self.supported: frozenset[str] = frozenset()
        self._fetch_catalog = fetch_catalog

    def refresh(self) -> frozenset[str]:
        catalog = frozenset(self._fetch_catalog())
        self.supported = catalog
        logger.info(
            "coin list updated: %d upstream symbols, %d eligible",
            len(catalog),
            len(self.managed & catalog),
        )
        return catalog

    def refresh_safely(self) -> frozenset[str] | None:
        try:
            return self.refresh()
        except UpstreamUnavailable as exc:
            logger.warning("coin list refresh failed, keeping previous list: %s", exc)
            return None

    def is_eligible(self, symbol: str) -> bool:
        return symbol in self.managed and symbol in self.supported

    def filter(self, symbols: Iterable[str]) -> list[str]:
        return [symbol for symbol in dict.fromkeys(symbols) if self.is_eligible(symbol)]
