from __future__ import annotations

from collections.abc import Iterable

from app.errors import StaleDataUnavailable
from app.schemas.prices import PriceSnapshot, RateTable


def synthesize(
    fsyms: Iterable[str], tsyms: Iterable[str], snapshot: PriceSnapshot | None
) -> RateTable:
    """
    Derive a rate table from one pivot-denominated snapshot.

    Each entry is ``snapshot[tsym] / snapshot[fsym]``. With snapshots
    captured as "units of symbol per one pivot unit" this is the number
    of ``tsym`` units per ``fsym``.
    """
    if snapshot is None:
        raise StaleDataUnavailable("no price snapshot has been captured yet")

    fsyms = list(fsyms)
    tsyms = list(tsyms)
    prices = snapshot.prices
    missing = [symbol for symbol in dict.fromkeys([*fsyms, *tsyms]) if symbol not in prices]
    if missing:
        raise StaleDataUnavailable(
            f"snapshot {snapshot.id} has no price for: {', '.join(missing)}"
        )
    zero = [symbol for symbol in dict.fromkeys(fsyms) if prices[symbol] == 0]
    if zero:
        raise StaleDataUnavailable(
            f"snapshot {snapshot.id} has a zero price for: {', '.join(zero)}"
        )

    return {fsym: {tsym: prices[tsym] / prices[fsym] for tsym in tsyms} for fsym in fsyms}
