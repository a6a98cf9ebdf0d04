import asyncio
import logging

from conftest import FakeClock, run
from dbforge.services.listing import ListingCache, ListingService


def _seed(fake_notion, n, root="root-page"):
    for i in range(1, n + 1):
        db_id = f"db-{i}"
        fake_notion.add_child_database(root, db_id, f"Database {i}")
        fake_notion.add_database(
            db_id,
            title=f"Database {i}",
            sources=[{"id": f"ds-{i}", "properties": {"Name": {"type": "title", "title": {}}, "Done": {"type": "checkbox", "checkbox": {}}}}],
        )


# ─────────────────────────────────────────────────────────────
# Cache
# ─────────────────────────────────────────────────────────────
def test_cache_ttl_hit_and_expiry():
    clock = FakeClock()
    cache = ListingCache(ttl_s=300, clock=clock)
    cache.put("k", {"count": 1})

    clock.advance(299)
    assert cache.get("k") == {"count": 1}
    clock.advance(2)
    assert cache.get("k") is None


def test_cache_invalidate():
    cache = ListingCache()
    cache.put("a", {})
    cache.put("b", {})
    cache.invalidate("a")
    assert cache.get("a") is None and cache.get("b") == {}
    cache.invalidate()
    assert cache.get("b") is None


def test_second_call_within_ttl_is_a_hit(fake_notion, client_b, fake_clock):
    _seed(fake_notion, 3)
    service = ListingService(client_b, ListingCache(clock=fake_clock))

    first, hit1 = run(service.list_containers("root-page"))
    calls_after_first = len(fake_notion.calls)
    second, hit2 = run(service.list_containers("root-page"))

    assert (hit1, hit2) == (False, True)
    assert second == first
    assert len(fake_notion.calls) == calls_after_first

    fake_clock.advance(301)
    _, hit3 = run(service.list_containers("root-page"))
    assert hit3 is False


def test_cache_is_keyed_by_root(fake_notion, client_b, fake_clock):
    _seed(fake_notion, 1, root="root-a")
    service = ListingService(client_b, ListingCache(clock=fake_clock))
    run(service.list_containers("root-a"))
    payload, hit = run(service.list_containers("root-b"))
    assert hit is False
    assert payload["count"] == 0


# ─────────────────────────────────────────────────────────────
# Discovery + enrichment
# ─────────────────────────────────────────────────────────────
def test_twelve_containers_over_two_pages_with_one_failure(fake_notion, client_b):
    fake_notion.children_page_size = 10
    _seed(fake_notion, 12)
    fake_notion.fail["GET /databases/db-7"] = (500, "internal_server_error")
    service = ListingService(client_b, ListingCache())

    payload, hit = run(service.list_containers("root-page"))

    assert hit is False
    assert payload["success"] is True
    assert payload["count"] == 12
    assert payload["cached_at"]
    assert [r["id"] for r in payload["results"]] == [f"db-{i}" for i in range(1, 13)]

    degraded = payload["results"][6]
    assert degraded == {"id": "db-7", "title": "Database 7"}
    full = payload["results"][0]
    assert full["properties"] == ["Name", "Done"]
    assert full["dataSourceId"] == "ds-1"
    assert full["hasMultipleDataSources"] is False
    assert full["url"] == "https://notion.so/db-1"


def test_malformed_metadata_degrades_single_entry(fake_notion, client_b):
    _seed(fake_notion, 2)
    fake_notion.databases["db-2"]["data_sources"] = ["ds-broken"]
    service = ListingService(client_b, ListingCache())

    payload, _ = run(service.list_containers("root-page"))

    assert payload["count"] == 2
    assert payload["results"][0]["dataSourceId"] == "ds-1"
    assert payload["results"][1] == {"id": "db-2", "title": "Database 2"}


def test_enrichment_runs_in_batches_of_five(fake_notion, client_b):
    _seed(fake_notion, 12)
    service = ListingService(client_b, ListingCache(), batch_size=5)
    in_flight = 0
    peak = 0
    original = client_b.retrieve_database

    async def tracked(db_id):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        try:
            return await original(db_id)
        finally:
            in_flight -= 1

    client_b.retrieve_database = tracked
    payload, _ = run(service.list_containers("root-page"))

    assert peak == 5
    ids = [r["id"] for r in payload["results"]]
    assert sorted(ids) == sorted(set(ids))
    assert len(ids) == 12


def test_page_ceiling_stops_discovery(fake_notion, client_b, caplog):
    fake_notion.children_page_size = 1
    _seed(fake_notion, 4)
    service = ListingService(client_b, ListingCache(), max_pages=2)

    with caplog.at_level(logging.WARNING):
        found = run(service.discover("root-page"))

    assert [d["id"] for d in found] == ["db-1", "db-2"]
    assert any(r.getMessage() == "listing.page_ceiling_reached" for r in caplog.records)


def test_failed_source_lookup_keeps_container_properties(fake_notion, client_b):
    fake_notion.add_child_database("root-page", "db-x", "Mixed")
    fake_notion.add_database("db-x", title="Mixed", sources=[{"id": "ds-x"}, {"id": "ds-y"}])
    fake_notion.fail["GET /data_sources/ds-x"] = (403, "restricted_resource")

    payload, _ = run(ListingService(client_b, ListingCache()).list_containers("root-page"))

    summary = payload["results"][0]
    assert summary["properties"] == []
    assert summary["hasMultipleDataSources"] is True
    assert "dataSourceId" not in summary


def test_non_database_children_are_ignored(fake_notion, client_b):
    fake_notion.children["root-page"] = [{"id": "b-1", "type": "paragraph", "paragraph": {}}]
    found = run(ListingService(client_b, ListingCache()).discover("root-page"))
    assert found == []
