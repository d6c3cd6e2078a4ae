# mesh/demo_feed.py
# Background loop that keeps the demo mesh moving with live service updates

import logging
import random
import threading

from mesh.serialization import delta_from_dict
from mesh.store import DeltaResult, TopologyStore
from scripts.generate_mock_mesh import generate_service_update

logger = logging.getLogger(__name__)


class DemoFeed:
    """Pushes one random service update into the store every interval."""

    def __init__(
        self,
        store: TopologyStore,
        mesh: dict,
        interval_seconds: float = 6.0,
        seed: int | None = None,
    ):
        """
        Args:
            store: topology store receiving the updates
            mesh: feed payload the demo store was bootstrapped from
            interval_seconds: pause between two updates
            seed: random seed for a reproducible update sequence
        """
        self.store = store
        self.mesh = mesh
        self.interval_seconds = interval_seconds
        self.running = False
        self.thread = None
        self.updates_applied = 0
        self._rng = random.Random(seed)
        self._stop_event = threading.Event()

    def start(self):
        """Starts the background feed thread."""
        if self.running:
            return

        self.running = True
        self._stop_event.clear()
        self.thread = threading.Thread(target=self._run_loop, daemon=True)
        self.thread.start()
        logger.info("Demo feed started: one update every %.1fs", self.interval_seconds)

    def stop(self):
        """Stops the feed and waits for the thread to exit."""
        self.running = False
        self._stop_event.set()
        if self.thread:
            self.thread.join(timeout=5)
        logger.info("Demo feed stopped")

    def step(self) -> DeltaResult:
        """Applies a single live update to the store."""
        update = generate_service_update(self.mesh, seed=self._rng.randrange(2**32))
        result = self.store.apply_delta(delta_from_dict({"services": [update]}))
        self.updates_applied += 1
        logger.debug("Demo update for %s", update["serviceId"],
                     extra={"topology_version": result.version})
        return result

    def _run_loop(self):
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.step()
            except Exception:
                logger.exception("Demo feed update failed")
