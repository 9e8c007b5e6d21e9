import asyncio
from unittest.mock import Mock

import pytest

from app.errors import UpstreamUnavailable
from app.snapshots.refresher import SnapshotRefresher

MANAGED = ["ETH", "BTC", "USD"]


def test_capture_requests_every_managed_symbol_in_one_call(store) -> None:
    fetch = Mock(return_value={"BTC": 0.00002, "ETH": 0.0003, "USD": 1, "EUR": 0.92})
    refresher = SnapshotRefresher(store, MANAGED, fetch)

    snapshot = asyncio.run(refresher.capture())

    fetch.assert_called_once_with("USD", ["BTC", "ETH", "USD"])
    assert snapshot.prices == {"BTC": 0.00002, "ETH": 0.0003, "USD": 1.0}
    assert store.snapshots == [snapshot]


def test_custom_pivot(store) -> None:
    fetch = Mock(return_value={"BTC": 0.000018, "USD": 1.08})
    refresher = SnapshotRefresher(store, ["BTC", "USD"], fetch, pivot="EUR")

    asyncio.run(refresher.capture())

    fetch.assert_called_once_with("EUR", ["BTC", "USD"])


@pytest.mark.parametrize(
    "payload",
    [
        {"BTC": 0.00002, "USD": 1},
        {"BTC": 0.00002, "ETH": None, "USD": 1},
        {"BTC": 0.00002, "ETH": "0.0003", "USD": 1},
        {"BTC": 0.00002, "ETH": float("nan"), "USD": 1},
        {"BTC": 0.00002, "ETH": True, "USD": 1},
    ],
)
def test_partial_response_is_never_stored(store, payload) -> None:
    refresher = SnapshotRefresher(store, MANAGED, Mock(return_value=payload))

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(refresher.capture())

    assert asyncio.run(refresher.tick()) is None
    assert store.snapshots == []


def test_tick_skips_failed_upstream_and_keeps_previous(store) -> None:
    fetch = Mock(
        side_effect=[
            {"BTC": 0.00002, "ETH": 0.0003, "USD": 1},
            UpstreamUnavailable("down"),
        ]
    )
    refresher = SnapshotRefresher(store, MANAGED, fetch)

    first = asyncio.run(refresher.tick())
    second = asyncio.run(refresher.tick())

    assert first is not None
    assert second is None
    assert asyncio.run(store.latest()) == first
