import asyncio

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.api.routes import get_local_price, get_price, health
from app.errors import UpstreamUnavailable
from app.main import Services, create_app
from app.pricing.engine import PriceEngine
from app.registry import SymbolRegistry
from app.scheduler import RecurringTask
from app.schemas.prices import ErrorResponse, PriceResponse
from app.snapshots.refresher import SnapshotRefresher

MANAGED = ["BTC", "ETH", "USD"]
SNAPSHOT = {"BTC": 50000.0, "ETH": 3000.0, "USD": 1.0}


def failing_live(fsyms, tsyms):
    raise UpstreamUnavailable("cryptocompare down")


def build_engine(store, fetch_live=failing_live) -> PriceEngine:
    registry = SymbolRegistry(MANAGED, lambda: {"BTC", "ETH", "USD", "LTC"})
    registry.refresh()
    return PriceEngine(registry, store, fetch_live)


def test_price_returns_live_payload(store) -> None:
    live = {"BTC": {"ETH": 16.4}}
    engine = build_engine(store, lambda fsyms, tsyms: live)

    result = asyncio.run(get_price(fsyms="BTC", tsyms="ETH", engine=engine))

    assert result == PriceResponse(data=live)


def test_price_falls_back_to_snapshot(snapshot_store_factory) -> None:
    engine = build_engine(snapshot_store_factory(SNAPSHOT))

    result = asyncio.run(get_price(fsyms="BTC", tsyms="ETH", engine=engine))

    assert result.data == {"BTC": {"ETH": 3000.0 / 50000.0}}


@pytest.mark.parametrize(
    ("fsyms", "tsyms"),
    [("XYZ", "BTC"), (None, "BTC"), ("BTC", None), ("", ""), (None, None)],
)
def test_unhandled_coins_return_error_payload(store, fsyms, tsyms) -> None:
    engine = build_engine(store)

    assert asyncio.run(get_price(fsyms=fsyms, tsyms=tsyms, engine=engine)) == ErrorResponse(
        error="coin not handled"
    )
    assert asyncio.run(
        get_local_price(fsyms=fsyms, tsyms=tsyms, engine=engine)
    ) == ErrorResponse(error="coin not handled")


def test_no_snapshot_is_service_unavailable(store) -> None:
    engine = build_engine(store)

    with pytest.raises(HTTPException) as price_exc:
        asyncio.run(get_price(fsyms="BTC", tsyms="ETH", engine=engine))
    with pytest.raises(HTTPException) as local_exc:
        asyncio.run(get_local_price(fsyms="BTC", tsyms="ETH", engine=engine))

    assert price_exc.value.status_code == 503
    assert local_exc.value.status_code == 503
    assert "snapshot" in price_exc.value.detail["message"]


def test_local_price_ignores_live_data(snapshot_store_factory) -> None:
    engine = build_engine(snapshot_store_factory(SNAPSHOT), lambda fsyms, tsyms: {"BTC": {"ETH": 1.0}})

    result = asyncio.run(get_local_price(fsyms="ETH,BTC", tsyms="USD", engine=engine))

    assert result.data == {"ETH": {"USD": 1.0 / 3000.0}, "BTC": {"USD": 1.0 / 50000.0}}


def test_health_reports_counts(snapshot_store_factory) -> None:
    engine = build_engine(snapshot_store_factory(SNAPSHOT, SNAPSHOT))

    result = asyncio.run(health(engine=engine))

    assert result.status == "ok"
    assert result.supported_symbols == 4
    assert result.snapshots == 2


def test_http_surface_end_to_end(snapshot_store_factory) -> None:
    store = snapshot_store_factory(SNAPSHOT)
    registry = SymbolRegistry(MANAGED, lambda: {"BTC", "ETH", "USD"})
    refresher = SnapshotRefresher(store, MANAGED, lambda fsym, tsyms: dict(SNAPSHOT))
    services = Services(
        registry=registry,
        store=store,
        refresher=refresher,
        engine=PriceEngine(registry, store, failing_live),
        tasks=[RecurringTask("snapshot-capture", 3600.0, refresher.tick)],
    )
    app = create_app(services)

    with TestClient(app) as client:
        price = client.get("/service/price", params={"fsyms": "BTC", "tsyms": "ETH"})
        local = client.get("/service/localprice", params={"fsyms": "BTC,XYZ", "tsyms": "ETH,USD"})
        missing = client.get("/service/price")
        unknown = client.get("/service/localprice", params={"fsyms": "XYZ", "tsyms": "BTC"})
        assert services.tasks[0].running is True

    assert price.status_code == 200
    assert price.json() == {"data": {"BTC": {"ETH": 0.06}}}
    assert local.json() == {"data": {"BTC": {"ETH": 0.06, "USD": 1.0 / 50000.0}}}
    assert missing.status_code == 200
    assert missing.json() == {"error": "coin not handled"}
    assert unknown.json() == {"error": "coin not handled"}
    assert services.tasks[0].running is False
    assert store.closed is True
