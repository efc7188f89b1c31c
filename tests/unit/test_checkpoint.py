from datetime import datetime, timezone

import pytest

from fluxcdc.checkpoint import (
    FileCheckpointStore,
    InMemoryCheckpointStore,
    SQLiteCheckpointStore,
    get_checkpoint_store,
)
from fluxcdc.config import FluxCdcConfig
from fluxcdc.contracts import Watermark
from fluxcdc.errors import CheckpointError

T0 = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 5, 1, 10, 5, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    monkeypatch.delenv("FLUXCDC_CHECKPOINT_URL", raising=False)


def make_stores(tmp_path):
    return [
        InMemoryCheckpointStore(),
        FileCheckpointStore(tmp_path / "checkpoint.json"),
        SQLiteCheckpointStore(tmp_path / "checkpoint.db"),
    ]


@pytest.mark.asyncio
async def test_stores_save_load_and_reset(tmp_path):
    for store in make_stores(tmp_path):
        assert await store.load() is None

        await store.save(Watermark(started_after=T0))
        await store.save(Watermark(started_after=T1))
        loaded = await store.load()
        assert loaded.started_after == T1

        await store.reset()
        assert await store.load() is None
        await store.close()


@pytest.mark.asyncio
async def test_initial_watermark_round_trips(tmp_path):
    store = SQLiteCheckpointStore(tmp_path / "checkpoint.db")
    await store.save(Watermark.initial())
    loaded = await store.load()
    assert loaded is not None
    assert loaded.is_initial
    await store.close()


@pytest.mark.asyncio
async def test_file_store_survives_reopen_and_keeps_names_apart(tmp_path):
    path = tmp_path / "state" / "checkpoint.json"
    await FileCheckpointStore(path, name="a").save(Watermark(started_after=T0))
    await FileCheckpointStore(path, name="b").save(Watermark(started_after=T1))

    assert (await FileCheckpointStore(path, name="a").load()).started_after == T0
    assert (await FileCheckpointStore(path, name="b").load()).started_after == T1
    assert not path.with_name("checkpoint.json.tmp").exists()


@pytest.mark.asyncio
async def test_file_store_rejects_corrupt_file(tmp_path):
    path = tmp_path / "checkpoint.json"
    path.write_text("{not json")
    with pytest.raises(CheckpointError):
        await FileCheckpointStore(path).load()


@pytest.mark.asyncio
async def test_sqlite_store_survives_reopen(tmp_path):
    path = tmp_path / "checkpoint.db"
    first = SQLiteCheckpointStore(path)
    await first.save(Watermark(started_after=T0))
    await first.close()

    second = SQLiteCheckpointStore(path)
    assert (await second.load()).started_after == T0
    await second.close()


def test_factory_selects_backend_from_url(tmp_path):
    config = FluxCdcConfig()
    assert isinstance(get_checkpoint_store(config=config), InMemoryCheckpointStore)
    assert isinstance(
        get_checkpoint_store(f"file://{tmp_path}/c.json", config=config),
        FileCheckpointStore,
    )
    store = get_checkpoint_store(f"sqlite://{tmp_path}/c.db", config=config)
    assert isinstance(store, SQLiteCheckpointStore)
    assert store.db_path == f"{tmp_path}/c.db"

    with pytest.raises(ValueError):
        get_checkpoint_store("redis://localhost", config=config)


def test_factory_reads_url_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("FLUXCDC_CHECKPOINT_URL", f"file://{tmp_path}/env.json")
    config = FluxCdcConfig()
    config.pipeline.checkpoint_name = "orders"
    store = get_checkpoint_store(config=config)
    assert isinstance(store, FileCheckpointStore)
    assert store.name == "orders"
