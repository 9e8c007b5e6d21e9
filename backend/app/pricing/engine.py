from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from app.errors import NoCoinsHandled, UpstreamUnavailable
from app.pricing.synthesizer import synthesize
from app.registry import SymbolRegistry
from app.schemas.prices import RateTable
from app.snapshots.store import SnapshotStore

logger = logging.getLogger(__name__)


def parse_symbols(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


class PriceEngine:
    """
    Resolves fsym -> tsym rate tables.

    Live CryptoCompare data always wins; when the live call fails the
    table is derived from the latest snapshot instead. Nothing is cached.
    """

    def __init__(
        self,
        registry: SymbolRegistry,
        store: SnapshotStore,
        fetch_live: Callable[[list[str], list[str]], dict[str, Any]],
    ) -> None:
        self.registry = registry
        self.store = store
        self._fetch_live = fetch_live

    def handled(self, fsyms: Iterable[str], tsyms: Iterable[str]) -> tuple[list[str], list[str]]:
        handled_fsyms = self.registry.filter(fsyms)
        handled_tsyms = self.registry.filter(tsyms)
        if not handled_fsyms or not handled_tsyms:
            raise NoCoinsHandled()
        return handled_fsyms, handled_tsyms

    async def resolve(self, fsyms: Iterable[str], tsyms: Iterable[str]) -> dict[str, Any]:
        handled_fsyms, handled_tsyms = self.handled(fsyms, tsyms)
        try:
            return await asyncio.to_thread(self._fetch_live, handled_fsyms, handled_tsyms)
        except UpstreamUnavailable as exc:
            logger.warning("live price unavailable, using latest snapshot: %s", exc)
        return await self._synthesize(handled_fsyms, handled_tsyms)

    async def resolve_local(self, fsyms: Iterable[str], tsyms: Iterable[str]) -> RateTable:
        handled_fsyms, handled_tsyms = self.handled(fsyms, tsyms)
        return await self._synthesize(handled_fsyms, handled_tsyms)

    async def _synthesize(self, fsyms: list[str], tsyms: list[str]) -> RateTable:
        snapshot = await self.store.latest()
        return synthesize(fsyms, tsyms, snapshot)
