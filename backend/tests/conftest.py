from collections.abc import Mapping

import pytest

from app.schemas.prices import PriceSnapshot
from app.snapshots.store import SnapshotStore


class FakeSnapshotStore(SnapshotStore):
    def __init__(self) -> None:
        self.snapshots: list[PriceSnapshot] = []
        self.closed = False

    async def append(self, prices: Mapping[str, float]) -> PriceSnapshot:
        snapshot = PriceSnapshot(id=len(self.snapshots) + 1, prices=dict(prices))
        self.snapshots.append(snapshot)
        return snapshot

    async def latest(self) -> PriceSnapshot | None:
        return self.snapshots[-1] if self.snapshots else None

    async def count(self) -> int:
        return len(self.snapshots)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    # keep a developer's conf.json / environment out of the tests
    monkeypatch.setenv("COINRATE_CONFIG_FILE", str(tmp_path / "missing-conf.json"))
    for name in (
        "COINRATE_LOCAL_PORT",
        "COINRATE_MANAGED_COINS",
        "COINRATE_SNAPSHOT_BACKEND",
        "DATABASE_URL",
        "COINRATE_DATABASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store() -> FakeSnapshotStore:
    return FakeSnapshotStore()


@pytest.fixture
def snapshot_store_factory():
    def _build(*snapshots: Mapping[str, float]) -> FakeSnapshotStore:
        fake = FakeSnapshotStore()
        for prices in snapshots:
            fake.snapshots.append(PriceSnapshot(id=len(fake.snapshots) + 1, prices=dict(prices)))
        return fake

    return _build
