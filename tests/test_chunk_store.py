import asyncio
from pathlib import Path

from modmanager.domain.models import CatalogEntry, ChunkReference
from modmanager.storage.chunk_store import ChunkStore

CHUNK_URL = "https://gcdn.example.com/live/repository/packages/00112233445566778899aabbccddeeff.json.gz"


def sample_entries() -> list:
    return [
        CatalogEntry.from_record(
            {
                "name": f"Mod{i}",
                "full_name": f"Author-Mod{i}",
                "rating_score": i,
                "date_updated": f"2024-01-0{i + 1}T00:00:00Z",
                "categories": ["Mods"],
                "versions": [{"version_number": "1.0.0", "downloads": i * 10, "dependencies": ["A-B-1.0.0"]}],
            }
        )
        for i in range(3)
    ]


def test_save_then_load_round_trips(tmp_path: Path):
    store = ChunkStore(tmp_path)
    ref = ChunkReference.from_url(CHUNK_URL)
    entries = sample_entries()

    async def scenario():
        assert await store.save(ref, entries) is True
        return await store.load(ref)

    loaded = asyncio.run(scenario())
    assert loaded == entries
    assert (tmp_path / "chunks" / f"{ref.content_hash}.json").is_file()
    assert not list((tmp_path / "chunks").glob("*.tmp"))


def test_chunks_are_shared_by_content_hash(tmp_path: Path):
    store = ChunkStore(tmp_path)
    ref = ChunkReference.from_url(CHUNK_URL)
    # same hash, different host: same cache file
    mirror_ref = ChunkReference.from_url(CHUNK_URL.replace("gcdn.example.com", "cdn.other.net"))

    async def scenario():
        await store.save(ref, sample_entries())
        return await store.load(mirror_ref)

    assert asyncio.run(scenario()) == sample_entries()


def test_missing_chunk_is_a_miss(tmp_path: Path):
    store = ChunkStore(tmp_path)
    ref = ChunkReference.from_url(CHUNK_URL)
    assert asyncio.run(store.load(ref)) is None


def test_corrupt_chunk_is_a_miss(tmp_path: Path):
    store = ChunkStore(tmp_path)
    ref = ChunkReference.from_url(CHUNK_URL)
    (tmp_path / "chunks" / f"{ref.content_hash}.json").write_text("{not json", encoding="utf-8")
    assert asyncio.run(store.load(ref)) is None


def test_chunk_with_wrong_hash_is_a_miss(tmp_path: Path):
    store = ChunkStore(tmp_path)
    ref = ChunkReference.from_url(CHUNK_URL)
    other = ChunkReference(url="https://example.com/x.json.gz", content_hash="ffffffffffffffffffff")

    async def scenario():
        await store.save(other, sample_entries())
        # plant the other chunk's file under this ref's name
        (tmp_path / "chunks" / f"{other.content_hash}.json").rename(
            tmp_path / "chunks" / f"{ref.content_hash}.json"
        )
        return await store.load(ref)

    assert asyncio.run(scenario()) is None


def test_save_failure_is_reported_not_raised(tmp_path: Path):
    store = ChunkStore(tmp_path)
    ref = ChunkReference.from_url(CHUNK_URL)
    # a directory where the chunk file belongs makes the final move fail
    (tmp_path / "chunks" / f"{ref.content_hash}.json" / "occupied").mkdir(parents=True)

    assert asyncio.run(store.save(ref, sample_entries())) is False
    assert asyncio.run(store.load(ref)) is None
    assert not list((tmp_path / "chunks").glob("*.tmp"))


def test_concurrent_saves_of_a_shared_chunk_all_succeed(tmp_path: Path):
    store = ChunkStore(tmp_path)
    ref = ChunkReference.from_url(CHUNK_URL)
    entries = sample_entries()

    async def scenario():
        results = await asyncio.gather(*(store.save(ref, entries) for _ in range(8)))
        return results, await store.load(ref)

    results, loaded = asyncio.run(scenario())
    assert results == [True] * 8
    assert loaded == entries
    assert not list((tmp_path / "chunks").glob("*.tmp"))


def test_clear_removes_all_chunks(tmp_path: Path):
    store = ChunkStore(tmp_path)
    ref = ChunkReference.from_url(CHUNK_URL)
    asyncio.run(store.save(ref, sample_entries()))

    files, size = store.stats()
    assert files == 1
    assert size > 0

    cleared, freed = store.clear()
    assert cleared == 1
    assert freed == size
    assert store.stats() == (0, 0)
