from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from app.errors import UpstreamUnavailable
from app.schemas.prices import PriceSnapshot
from app.snapshots.store import SnapshotStore

logger = logging.getLogger(__name__)


def _is_price(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class SnapshotRefresher:
    """Captures the pivot-denominated price of every managed symbol into the store."""

    def __init__(
        self,
        store: SnapshotStore,
        managed: Iterable[str],
        fetch_prices: Callable[[str, list[str]], Mapping[str, Any]],
        pivot: str = "USD",
    ) -> None:
        self.store = store
        self.managed = sorted(set(managed))
        self.pivot = pivot
        self._fetch_prices = fetch_prices

    def _complete_prices(self, payload: Mapping[str, Any]) -> dict[str, float]:
        missing = [symbol for symbol in self.managed if not _is_price(payload.get(symbol))]
        if missing:
            raise UpstreamUnavailable(
                f"price response is missing managed symbols: {', '.join(missing)}"
            )
        return {symbol: float(payload[symbol]) for symbol in self.managed}

    async def capture(self) -> PriceSnapshot:
        payload = await asyncio.to_thread(self._fetch_prices, self.pivot, self.managed)
        prices = self._complete_prices(payload)
        snapshot = await self.store.append(prices)
        logger.info("snapshot saved (position=%d, symbols=%d)", snapshot.id, len(prices))
        return snapshot

    async def tick(self) -> PriceSnapshot | None:
        try:
            return await self.capture()
        except UpstreamUnavailable as exc:
            logger.warning("snapshot capture skipped: %s", exc)
            return None
