# tests/test_demo_feed.py
# Tests for mesh/demo_feed.py: live updates into the demo mesh

import logging
import time

import pytest

from mesh.demo_feed import DemoFeed
from mesh.scheduler import RecomputeScheduler
from mesh.serialization import snapshot_from_dict
from mesh.store import TopologyStore
from scripts.generate_mock_mesh import generate_mesh


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def demo():
    mesh = generate_mesh(seed=42)
    store = TopologyStore()
    store.ingest(snapshot_from_dict(mesh))
    return store, mesh


class TestStep:
    def test_step_bumps_version_and_recomputes(self, demo, instant_settings):
        store, mesh = demo
        sched = RecomputeScheduler(store, instant_settings)
        sched.start()
        feed = DemoFeed(store, mesh, interval_seconds=60, seed=1)

        result = feed.step()

        assert result.changed is True
        assert result.version == 2
        assert sched.recompute_count == 1
        assert sched.latest.version == 2
        assert feed.updates_applied == 1
        sched.stop()

    def test_updates_target_known_services(self, demo):
        store, mesh = demo
        ids = {s["id"] for s in mesh["services"]}
        feed = DemoFeed(store, mesh, seed=3)
        for _ in range(10):
            feed.step()
        assert {s.id for s in store.current().services} == ids

    def test_seeded_sequence_is_reproducible(self):
        mesh = generate_mesh(seed=42)
        stores = []
        for _ in range(2):
            store = TopologyStore()
            store.ingest(snapshot_from_dict(mesh))
            feed = DemoFeed(store, mesh, seed=11)
            for _ in range(5):
                feed.step()
            stores.append(store.current())
        assert stores[0].services == stores[1].services


class TestLoop:
    def test_start_applies_updates_until_stopped(self, demo):
        store, mesh = demo
        feed = DemoFeed(store, mesh, interval_seconds=0.01, seed=5)
        feed.start()
        assert feed.running
        assert _wait_for(lambda: feed.updates_applied >= 2)
        feed.stop()
        assert feed.running is False
        assert not feed.thread.is_alive()
        assert store.version > 1

    def test_start_twice_keeps_one_thread(self, demo):
        store, mesh = demo
        feed = DemoFeed(store, mesh, interval_seconds=60)
        feed.start()
        thread = feed.thread
        feed.start()
        assert feed.thread is thread
        feed.stop()

    def test_failed_update_keeps_loop_alive(self, demo, caplog):
        _, mesh = demo
        empty = TopologyStore()
        feed = DemoFeed(empty, mesh, interval_seconds=0.01, seed=5)
        with caplog.at_level(logging.ERROR, logger="mesh.demo_feed"):
            feed.start()
            assert _wait_for(lambda: "Demo feed update failed" in caplog.text)
            assert feed.thread.is_alive()
            feed.stop()
        assert feed.updates_applied == 0
        assert empty.version == 0
